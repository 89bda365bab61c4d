"""Slabs: files holding fixed-size item slots.

A slab stores items of one maximal size.  Slots are laid out page by page,
``PAGE_SIZE // item_size`` slots per page; a slot never straddles two pages.
Each slot starts with an ``ItemMetadata`` header followed by the key and the
value.  A removed item has ``key_size == -1``; an untouched slot is all zeros.
"""

from __future__ import annotations

import os
from typing import Optional

from kvslab.ioengine import IoEngine, safe_pread
from kvslab.items import (
    HEADER_SIZE,
    PAGE_SIZE,
    ItemMetadata,
    SlabAction,
    SlabCallback,
    item_size,
)

GRANULARITY_REBUILD = 2 * 1024 * 1024
RESIZE_STEP = 10_000_000_000


class Slab:
    """An open slab file and the bookkeeping needed to place items in it."""

    def __init__(
        self,
        fd: int,
        item_size: int,
        size_on_disk: int,
        engine: Optional[IoEngine] = None,
    ) -> None:
        if not HEADER_SIZE <= item_size <= PAGE_SIZE:
            raise ValueError(
                f"item size must be between {HEADER_SIZE} and {PAGE_SIZE}, got {item_size}"
            )
        self.fd = fd
        self.item_size = item_size
        self.size_on_disk = size_on_disk
        self.engine = engine
        self.nb_items = 0
        self.last_item = 0
        self.nb_max_items = size_on_disk // PAGE_SIZE * self.items_per_page
        self.free_items: list[int] = []
        self.rdt = 0

    @property
    def items_per_page(self) -> int:
        return PAGE_SIZE // self.item_size

    @property
    def nb_free_items(self) -> int:
        return len(self.free_items)

    # Placement -----------------------------------------------------------

    def item_page_num(self, idx: int) -> int:
        """Page holding slot ``idx``."""
        return idx // self.items_per_page

    def item_in_page_offset(self, idx: int) -> int:
        """Byte offset of slot ``idx`` inside its page."""
        return (idx % self.items_per_page) * self.item_size

    def _slot(self, page: bytes, idx: int) -> bytes:
        offset = self.item_in_page_offset(idx)
        return bytes(page[offset:offset + self.item_size])

    # Size ------------------------------------------------------------------

    def resize(self) -> "Slab":
        """Grow the file: double it while small, then add fixed steps."""
        if self.size_on_disk < RESIZE_STEP:
            new_size = self.size_on_disk * 2
            os.ftruncate(self.fd, new_size)
            self.size_on_disk = new_size
            self.nb_max_items *= 2
        else:
            new_size = self.size_on_disk + RESIZE_STEP
            os.ftruncate(self.fd, new_size)
            self.size_on_disk = new_size
            self.nb_max_items = new_size // PAGE_SIZE * self.items_per_page
        return self

    # Recovery ----------------------------------------------------------------

    def _add_existing_item(
        self, idx: int, data: bytes, callback: Optional[SlabCallback]
    ) -> None:
        meta = ItemMetadata.unpack(data)
        if meta.is_removed():
            self.free_items.append(idx)
            self.last_item = max(self.last_item, idx)
        elif not meta.is_empty():
            self.nb_items += 1
            self.last_item = max(self.last_item, idx)
            self.rdt = max(self.rdt, meta.rdt)
            if callback is not None and callback.cb is not None:
                callback.slab_idx = idx
                callback.cb(callback, data)

    def _rebuild_index(self, callback: Optional[SlabCallback]) -> None:
        start = 0
        while True:
            end = min(start + GRANULARITY_REBUILD, self.size_on_disk)
            end -= (end - start) % PAGE_SIZE
            if end == start:
                break
            chunk = os.pread(self.fd, end - start, start)
            if len(chunk) != end - start:
                raise OSError(
                    f"pread failed: read {len(chunk)} instead of {end - start} "
                    f"(offset {start})"
                )
            for page_start in range(0, len(chunk), PAGE_SIZE):
                page = chunk[page_start:page_start + PAGE_SIZE]
                base_idx = (start + page_start) // PAGE_SIZE * self.items_per_page
                for slot in range(self.items_per_page):
                    self._add_existing_item(
                        base_idx + slot, self._slot(page, base_idx + slot), callback
                    )
            start = end
        self.last_item += 1

    # Reads ---------------------------------------------------------------------

    def read_item(self, idx: int) -> bytes:
        """Read slot ``idx`` synchronously from disk."""
        page = safe_pread(self.fd, self.item_page_num(idx) * PAGE_SIZE)
        return self._slot(page, idx)

    def _require_engine(self) -> IoEngine:
        if self.engine is None:
            raise RuntimeError("slab has no IO engine for asynchronous requests")
        return self.engine

    def _deliver(self, callback: SlabCallback) -> None:
        if callback.cb is not None:
            callback.cb(callback, self._slot(callback.lru_entry.page, callback.slab_idx))

    def read_item_async(self, callback: SlabCallback) -> None:
        """Queue a read of slot ``callback.slab_idx``; ``callback.cb`` gets its bytes."""
        engine = self._require_engine()
        callback.slab = self
        callback.io_cb = self._deliver
        engine.read_page_async(callback)

    # Updates -------------------------------------------------------------------

    def _write_into_page(self, callback: SlabCallback) -> None:
        page = callback.lru_entry.page
        idx = callback.slab_idx
        offset = self.item_in_page_offset(idx)
        item = bytes(callback.item or b"")
        meta = ItemMetadata.unpack(item)
        old_meta = ItemMetadata.unpack(self._slot(page, idx))

        if callback.action is SlabAction.UPDATE:
            if meta.key_size != old_meta.key_size:
                raise RuntimeError(
                    "updating an item, but key size changed "
                    f"({old_meta.key_size} -> {meta.key_size})"
                )
            new_key = item[HEADER_SIZE:HEADER_SIZE + meta.key_size]
            old_key = bytes(page[offset + HEADER_SIZE:offset + HEADER_SIZE + meta.key_size])
            if new_key != old_key:
                raise RuntimeError("updating an item, but key mismatch")

        meta.rdt = self.rdt
        if meta.is_removed():
            page[offset:offset + HEADER_SIZE] = meta.pack()
            callback.item = meta.pack() + item[HEADER_SIZE:]
        else:
            size = item_size(item)
            if size > self.item_size:
                raise ValueError(
                    f"item of {size} bytes is too big for a slab of {self.item_size}-byte items"
                )
            if len(item) < size:
                raise ValueError(f"item needs {size} bytes, got {len(item)}")
            data = meta.pack() + item[HEADER_SIZE:size]
            page[offset:offset + size] = data
            callback.item = data + item[size:]

        callback.io_cb = self._deliver
        self._require_engine().write_page_async(callback)

    def update_item_async(self, callback: SlabCallback) -> None:
        """Write ``callback.item`` into slot ``callback.slab_idx`` and flush its page.

        The page is read first if it is not cached; ``callback.cb`` receives the
        slot bytes once the write has reached the disk.
        """
        engine = self._require_engine()
        callback.slab = self
        callback.io_cb = self._write_into_page
        engine.read_page_async(callback)

    # Lifetime --------------------------------------------------------------------

    def close(self) -> None:
        """Close the slab file; closing twice is harmless."""
        if self.fd >= 0:
            os.close(self.fd)
            self.fd = -1

    def __enter__(self) -> "Slab":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_slab(
    path: "os.PathLike[str] | str",
    item_size: int,
    engine: Optional[IoEngine] = None,
    callback: Optional[SlabCallback] = None,
) -> Slab:
    """Open or create the slab file at ``path``.

    A new file is given two zeroed pages.  If the file already holds items,
    the slab's counters are rebuilt and ``callback.cb`` is called for every
    live item with ``callback.slab_idx`` set to its slot.
    """
    fd = os.open(os.fspath(path), os.O_RDWR | os.O_CREAT, 0o666)
    try:
        size_on_disk = os.fstat(fd).st_size
        if size_on_disk < 2 * PAGE_SIZE:
            os.ftruncate(fd, 2 * PAGE_SIZE)
            size_on_disk = 2 * PAGE_SIZE
        slab = Slab(fd, item_size, size_on_disk, engine)
        first = ItemMetadata.unpack(slab.read_item(0))
        if not first.is_empty():
            if callback is not None:
                callback.slab = slab
            slab._rebuild_index(callback)
    except BaseException:
        os.close(fd)
        raise
    return slab