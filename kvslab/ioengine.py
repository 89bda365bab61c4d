"""Queued page IO on top of the page cache.

Reads and writes are queued by ``read_page_async``/``write_page_async`` and
carried out in three steps driven by the worker loop: ``enqueue_ios``
submits everything queued, ``get_completed_ios`` performs the transfers and
``process_completed_ios`` marks the pages as loaded and calls each request's
``io_cb``.  Requests on a page that is already in flight are linked and run
once the page holds data.

The page cache is assumed to be large enough for all concurrent requests.
"""

from __future__ import annotations

import enum
import os
from collections import deque
from dataclasses import dataclass
from typing import Optional

from kvslab.items import MAX_NB_PENDING_CALLBACKS_PER_WORKER, PAGE_SIZE, SlabCallback
from kvslab.pagecache import LruEntry, PageCache, page_hash


def safe_pread(fd: int, offset: int) -> bytes:
    """Read one whole page synchronously; raise OSError on a short read."""
    data = os.pread(fd, PAGE_SIZE, offset)
    if len(data) != PAGE_SIZE:
        raise OSError(
            f"pread failed: read {len(data)} instead of {PAGE_SIZE} (offset {offset})"
        )
    return data


class _Op(enum.Enum):
    READ = "read"
    WRITE = "write"


@dataclass
class _Request:
    op: _Op
    fd: int
    offset: int
    callback: SlabCallback


def _locate(callback: SlabCallback) -> tuple[int, int]:
    slab = callback.slab
    return slab.fd, slab.item_page_num(callback.slab_idx)


class IoEngine:
    """IO queue of one worker, bounded to twice its number of callbacks."""

    def __init__(
        self,
        page_cache: PageCache,
        nb_callbacks: int = MAX_NB_PENDING_CALLBACKS_PER_WORKER,
    ) -> None:
        if nb_callbacks < 1:
            raise ValueError(f"need room for at least one callback, got {nb_callbacks}")
        self.page_cache = page_cache
        self.max_pending_io = nb_callbacks * 2
        self._queued: deque[_Request] = deque()
        self._submitted: list[_Request] = []
        self._completed: list[_Request] = []
        self._linked: list[SlabCallback] = []

    def pending(self) -> int:
        """Requests queued or submitted but not yet processed."""
        return len(self._queued) + len(self._submitted)

    def _queue(self, op: _Op, fd: int, page_num: int, callback: SlabCallback) -> None:
        if self.pending() >= self.max_pending_io:
            raise RuntimeError(
                f"IO buffer is too full: {self.pending()} requests waiting "
                f"(limit {self.max_pending_io})"
            )
        self._queued.append(_Request(op, fd, page_num * PAGE_SIZE, callback))

    def read_page_async(self, callback: SlabCallback) -> Optional[bytearray]:
        """Load the callback's page; return it if cached, else None.

        When the page is cached ``callback.io_cb`` is called at once.
        """
        fd, page_num = _locate(callback)
        already_used, entry = self.page_cache.get_page(page_hash(fd, page_num))
        callback.lru_entry = entry
        if entry.contains_data:
            callback.io_cb(callback)
            return entry.page
        if already_used:
            # Someone else is already fetching this page.
            self._linked.append(callback)
            return None
        self._queue(_Op.READ, fd, page_num, callback)
        return None

    def write_page_async(self, callback: SlabCallback) -> Optional[bytearray]:
        """Flush the callback's cached page to disk.

        Returns the page if a flush of it is already queued (the callback is
        then run with the next completions), else None.
        """
        entry: LruEntry = callback.lru_entry
        if entry is None or not entry.contains_data:
            raise RuntimeError("cannot write a page that is not in memory")
        if entry.dirty:
            self._linked.append(callback)
            return entry.page
        entry.dirty = True
        fd, page_num = _locate(callback)
        self._queue(_Op.WRITE, fd, page_num, callback)
        return None

    def enqueue_ios(self) -> int:
        """Submit every queued request; return how many were submitted."""
        while self._queued:
            request = self._queued.popleft()
            # Cleared before submission so that a later write is not lost.
            request.callback.lru_entry.dirty = False
            self._submitted.append(request)
        return len(self._submitted)

    def get_completed_ios(self) -> int:
        """Carry out the submitted transfers; return how many completed."""
        for request in self._submitted[len(self._completed):]:
            page = request.callback.lru_entry.page
            if request.op is _Op.READ:
                data = os.pread(request.fd, PAGE_SIZE, request.offset)
                done = len(data)
                if done == PAGE_SIZE:
                    page[:] = data
            else:
                done = os.pwrite(request.fd, bytes(page), request.offset)
            if done != PAGE_SIZE:
                raise OSError(
                    f"{request.op.value} of page at offset {request.offset} "
                    f"transferred {done} of {PAGE_SIZE} bytes"
                )
            self._completed.append(request)
        return len(self._completed)

    def process_completed_ios(self) -> int:
        """Run callbacks of completed requests and of ready linked requests."""
        completed = self._completed
        if not completed:
            return 0
        self._completed = []
        for request in completed:
            callback = request.callback
            callback.lru_entry.contains_data = True
            callback.io_cb(callback)
        self._process_linked()
        self._submitted = self._submitted[len(completed):]
        return len(completed)

    def _process_linked(self) -> None:
        linked, self._linked = self._linked, []
        for callback in reversed(linked):
            if callback.lru_entry.contains_data:
                callback.io_cb(callback)
            else:
                # Likely fetched by the next batch.
                self._linked.append(callback)