import pytest

from kvslab.items import PAGE_SIZE
from kvslab.pagecache import LruEntry, PageCache, page_hash


def test_page_hash_puts_fd_in_high_bits():
    assert page_hash(1, 0) == 1 << 40
    assert page_hash(0, 5) == 5
    assert page_hash(2, 9) != page_hash(3, 9)


def test_new_page_is_not_cached():
    cache = PageCache(max_pages=4)
    cached, entry = cache.get_page(10)
    assert cached is False
    assert entry.page_hash == 10
    assert entry.contains_data is False
    assert entry.dirty is False
    assert len(entry.page) == PAGE_SIZE
    assert len(cache) == 1


def test_second_lookup_hits_same_entry():
    cache = PageCache(max_pages=4)
    _, first = cache.get_page(10)
    first.contains_data = True
    cached, second = cache.get_page(10)
    assert cached is True
    assert second is first
    assert second.contains_data is True
    assert len(cache) == 1


def test_oldest_page_is_evicted_and_recycled():
    cache = PageCache(max_pages=2)
    _, a = cache.get_page(1)
    a.contains_data = True
    a.dirty = True
    a.page[0] = 0x7F
    cache.get_page(2)
    cached, c = cache.get_page(3)
    assert cached is False
    assert c is a
    assert c.page_hash == 3
    assert c.contains_data is False and c.dirty is False
    assert 1 not in cache
    assert len(cache) == 2
    assert cache.lru_order() == [3, 2]


def test_hit_bumps_page_to_newest():
    cache = PageCache(max_pages=2)
    cache.get_page(1)
    cache.get_page(2)
    cache.get_page(1)
    assert cache.lru_order() == [1, 2]
    cache.get_page(3)
    assert 2 not in cache
    assert 1 in cache
    cached, _ = cache.get_page(2)
    assert cached is False


def test_size_never_exceeds_capacity():
    cache = PageCache(max_pages=3)
    for h in range(20):
        cache.get_page(h)
        assert len(cache) <= 3
    assert cache.lru_order() == [19, 18, 17]


def test_capacity_is_shared_between_workers():
    cache = PageCache(max_pages=None, nb_workers=4)
    whole = PageCache(max_pages=None, nb_workers=1)
    assert cache.max_pages * 4 == whole.max_pages


@pytest.mark.parametrize("kwargs", [{"max_pages": 0}, {"nb_workers": 0}])
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        PageCache(**kwargs)


def test_entry_defaults():
    entry = LruEntry(42)
    assert entry.page == bytearray(PAGE_SIZE)
    assert (entry.contains_data, entry.dirty) == (False, False)