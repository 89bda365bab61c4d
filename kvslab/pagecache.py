"""Per-worker page cache with least-recently-used eviction.

Pages are identified by a hash that must be unique per file and offset;
``page_hash`` builds one from a file descriptor and a page number.
The cache only hands out page buffers and their metadata; whether a page
holds valid data (``contains_data``) or awaits a flush (``dirty``) is
managed by the IO engine.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from kvslab.items import MAX_PAGE_CACHE, PAGE_SIZE


def page_hash(fd: int, page_num: int) -> int:
    """Cache key of page ``page_num`` of file ``fd`` (files under 2**40 pages)."""
    return (fd << 40) + page_num


@dataclass(eq=False)
class LruEntry:
    """Metadata of one cached page and the buffer holding its bytes."""

    page_hash: int
    page: bytearray = field(default_factory=lambda: bytearray(PAGE_SIZE), repr=False)
    contains_data: bool = False
    dirty: bool = False


class PageCache:
    """Fixed number of page buffers, recycled in least-recently-used order."""

    def __init__(self, max_pages: Optional[int] = None, nb_workers: int = 1) -> None:
        if nb_workers < 1:
            raise ValueError(f"need at least one worker, got {nb_workers}")
        if max_pages is None:
            max_pages = MAX_PAGE_CACHE // nb_workers
        if max_pages < 1:
            raise ValueError(f"page cache needs at least one page, got {max_pages}")
        self.max_pages = max_pages
        # Oldest first, newest last.
        self._entries: "OrderedDict[int, LruEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: int) -> bool:
        return key in self._entries

    def get_page(self, page_hash: int) -> tuple[bool, LruEntry]:
        """Return ``(already_cached, entry)`` for the page, allocating one if needed.

        A newly allocated or recycled entry has ``contains_data`` and ``dirty``
        cleared; the oldest page is evicted when the cache is full.
        """
        entry = self._entries.get(page_hash)
        if entry is not None:
            if entry.page_hash != page_hash:
                raise RuntimeError(
                    f"LRU inconsistency: {entry.page_hash} vs {page_hash}"
                )
            self._entries.move_to_end(page_hash)
            return True, entry

        if len(self._entries) < self.max_pages:
            entry = LruEntry(page_hash)
        else:
            _, entry = self._entries.popitem(last=False)
            entry.page_hash = page_hash
        self._entries[page_hash] = entry
        entry.contains_data = False
        entry.dirty = False
        return False, entry

    def lru_order(self) -> list[int]:
        """Hashes of the cached pages, most recently used first."""
        return list(reversed(self._entries))