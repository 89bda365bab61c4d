import os

import pytest

from kvslab.ioengine import IoEngine
from kvslab.items import (
    HEADER_SIZE,
    PAGE_SIZE,
    ItemMetadata,
    SlabAction,
    SlabCallback,
    decode_item,
    encode_item,
)
from kvslab.pagecache import PageCache
from kvslab.slab import Slab, open_slab


def _drive(engine):
    for _ in range(100):
        if not engine.pending():
            return
        engine.enqueue_ios()
        engine.get_completed_ios()
        engine.process_completed_ios()
    raise AssertionError("IO engine did not drain")


@pytest.fixture
def engine():
    return IoEngine(PageCache(max_pages=16), nb_callbacks=8)


def _write(slab, engine, idx, key, value, action=SlabAction.ADD):
    seen = []
    cb = SlabCallback(
        cb=lambda c, item: seen.append(item),
        item=encode_item(key, value),
        action=action,
        slab_idx=idx,
    )
    slab.update_item_async(cb)
    _drive(engine)
    return seen


def test_new_slab_has_two_pages(tmp_path):
    path = tmp_path / "slab"
    with open_slab(path, 1024) as slab:
        assert slab.size_on_disk == 2 * PAGE_SIZE
        assert slab.nb_max_items == 2 * slab.items_per_page
        assert slab.nb_items == 0
        assert slab.last_item == 0
    assert os.path.getsize(path) == 2 * PAGE_SIZE


@pytest.mark.parametrize("size", [0, HEADER_SIZE - 1, PAGE_SIZE + 1])
def test_invalid_item_size(tmp_path, size):
    with pytest.raises(ValueError):
        open_slab(tmp_path / "slab", size)


def test_slots_never_cross_pages(tmp_path):
    with open_slab(tmp_path / "slab", 100) as slab:
        for idx in range(3 * slab.items_per_page):
            offset = slab.item_in_page_offset(idx)
            assert offset + slab.item_size <= PAGE_SIZE
            if idx % slab.items_per_page:
                assert slab.item_page_num(idx) == slab.item_page_num(idx - 1)
                assert offset == slab.item_in_page_offset(idx - 1) + slab.item_size
            else:
                assert offset == 0
                assert slab.item_page_num(idx) == idx // slab.items_per_page


def test_resize_doubles(tmp_path):
    with open_slab(tmp_path / "slab", 512) as slab:
        before_items = slab.nb_max_items
        slab.resize()
        assert slab.size_on_disk == 4 * PAGE_SIZE
        assert slab.nb_max_items == 2 * before_items
        assert os.fstat(slab.fd).st_size == 4 * PAGE_SIZE


def test_update_writes_to_disk(tmp_path, engine):
    with open_slab(tmp_path / "slab", 256, engine) as slab:
        slab.rdt = 5
        seen = _write(slab, engine, 3, b"key", b"value")
        meta, key, value = decode_item(seen[0])
        assert (meta.rdt, key, value) == (5, b"key", b"value")
        meta, key, value = decode_item(slab.read_item(3))
        assert (meta.rdt, key, value) == (5, b"key", b"value")
        assert ItemMetadata.unpack(slab.read_item(2)).is_empty()


def test_read_async_from_cache(tmp_path, engine):
    with open_slab(tmp_path / "slab", 256, engine) as slab:
        _write(slab, engine, 1, b"k", b"v")
        got = []
        slab.read_item_async(SlabCallback(cb=lambda c, item: got.append(item), slab_idx=1))
        assert engine.pending() == 0
        assert decode_item(got[0])[1:] == (b"k", b"v")


def test_read_async_from_disk(tmp_path):
    path = tmp_path / "slab"
    with open_slab(path, 256, IoEngine(PageCache(max_pages=4), 4)) as slab:
        first = IoEngine(PageCache(max_pages=4), 4)
        slab.engine = first
        _write(slab, first, 0, b"abc", b"def")
    second = IoEngine(PageCache(max_pages=4), 4)
    with open_slab(path, 256, second) as slab:
        got = []
        slab.read_item_async(SlabCallback(cb=lambda c, item: got.append(item), slab_idx=0))
        assert got == []
        _drive(second)
        assert decode_item(got[0])[1:] == (b"abc", b"def")


def test_recovery_counts_items_and_tombstones(tmp_path):
    path = tmp_path / "slab"
    size = 128
    open_slab(path, size).close()
    fd = os.open(path, os.O_RDWR)
    try:
        os.pwrite(fd, encode_item(b"k", b"v", rdt=7), 0)
        os.pwrite(fd, ItemMetadata(rdt=3, key_size=-1, value_size=0).pack(), size)
    finally:
        os.close(fd)

    found = []
    cb = SlabCallback(cb=lambda c, item: found.append((c.slab_idx, decode_item(item)[1:])))
    with open_slab(path, size, callback=cb) as slab:
        assert found == [(0, (b"k", b"v"))]
        assert cb.slab is slab
        assert slab.nb_items == 1
        assert slab.free_items == [1]
        assert slab.nb_free_items == 1
        assert slab.last_item == 2
        assert slab.rdt == 7


def test_recovery_after_async_writes(tmp_path, engine):
    path = tmp_path / "slab"
    with open_slab(path, 512, engine) as slab:
        for idx, key in enumerate([b"a", b"b", b"c"]):
            _write(slab, engine, idx, key, key * 3)
    keys = []
    cb = SlabCallback(cb=lambda c, item: keys.append(decode_item(item)[1]))
    with open_slab(path, 512, callback=cb) as slab:
        assert keys == [b"a", b"b", b"c"]
        assert slab.nb_items == len(keys)
        assert slab.last_item == len(keys)


def test_update_with_other_key_size_fails(tmp_path, engine):
    with open_slab(tmp_path / "slab", 256, engine) as slab:
        _write(slab, engine, 0, b"a", b"1")
        with pytest.raises(RuntimeError):
            _write(slab, engine, 0, b"bb", b"1", action=SlabAction.UPDATE)


def test_update_with_other_key_fails(tmp_path, engine):
    with open_slab(tmp_path / "slab", 256, engine) as slab:
        _write(slab, engine, 0, b"a", b"1")
        with pytest.raises(RuntimeError):
            _write(slab, engine, 0, b"z", b"1", action=SlabAction.UPDATE)


def test_update_same_key_replaces_value(tmp_path, engine):
    with open_slab(tmp_path / "slab", 256, engine) as slab:
        _write(slab, engine, 0, b"a", b"old")
        _write(slab, engine, 0, b"a", b"new", action=SlabAction.UPDATE)
        assert decode_item(slab.read_item(0))[1:] == (b"a", b"new")


def test_item_too_big(tmp_path, engine):
    with open_slab(tmp_path / "slab", 64, engine) as slab:
        with pytest.raises(ValueError):
            _write(slab, engine, 0, b"k", b"x" * 100)


def test_async_needs_engine(tmp_path):
    with open_slab(tmp_path / "slab", 256) as slab:
        with pytest.raises(RuntimeError):
            slab.read_item_async(SlabCallback(slab_idx=0))


def test_close_is_idempotent(tmp_path):
    slab = open_slab(tmp_path / "slab", 256)
    slab.close()
    slab.close()
    assert slab.fd == -1


def test_direct_construction_computes_capacity():
    slab = Slab(-1, 1024, 8 * PAGE_SIZE)
    assert slab.nb_max_items == 8 * slab.items_per_page