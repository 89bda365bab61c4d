"""On-disk item layout, store-wide options and slab callback records."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Any, Callable, Optional

PAGE_SIZE = 4096

# Queue depth management
QUEUE_DEPTH = 64
MAX_NB_PENDING_CALLBACKS_PER_WORKER = 4 * QUEUE_DEPTH
NEVER_EXCEED_QUEUE_DEPTH = True
WAIT_A_BIT_FOR_MORE_IOS = False

# Page cache
PAGE_CACHE_SIZE = PAGE_SIZE * 131072
MAX_PAGE_CACHE = PAGE_CACHE_SIZE // PAGE_SIZE

# Free list
FREELIST_IN_MEMORY_ITEMS = 256

DEBUG = False
PINNING = True
PATH = "/scratch{disk}/kvell/slab-{worker}-{file}-{item_size}"

_HEADER = struct.Struct("<QQQ")
HEADER_SIZE = _HEADER.size

REMOVED = -1
_REMOVED_ON_DISK = (1 << 64) - 1


@dataclass
class ItemMetadata:
    """Fixed-size header stored in front of every item on disk.

    A ``key_size`` of -1 marks a removed item; its ``value_size`` then holds
    the index of the next free slot.  A ``key_size`` of 0 is an empty slot.
    """

    rdt: int = 0
    key_size: int = 0
    value_size: int = 0

    def pack(self) -> bytes:
        key_size = _REMOVED_ON_DISK if self.key_size == REMOVED else self.key_size
        try:
            return _HEADER.pack(self.rdt, key_size, self.value_size)
        except struct.error as exc:
            raise ValueError(f"cannot pack item metadata: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "ItemMetadata":
        if len(data) < HEADER_SIZE:
            raise ValueError(
                f"item metadata needs {HEADER_SIZE} bytes, got {len(data)}"
            )
        rdt, key_size, value_size = _HEADER.unpack_from(data)
        if key_size == _REMOVED_ON_DISK:
            key_size = REMOVED
        return cls(rdt, key_size, value_size)

    def is_removed(self) -> bool:
        return self.key_size == REMOVED

    def is_empty(self) -> bool:
        return self.key_size == 0


class SlabAction(enum.Enum):
    ADD = 0
    UPDATE = 1
    DELETE = 2
    READ = 3
    READ_NO_LOOKUP = 4
    ADD_OR_UPDATE = 5


@dataclass
class SlabCallback:
    """A request travelling through the slab and IO layers.

    ``cb`` is the user callback, called with the callback and the item bytes.
    ``io_cb`` is the internal continuation called once the page is available.
    """

    cb: Optional[Callable[["SlabCallback", Any], None]] = None
    payload: Any = None
    item: Optional[bytes] = None
    action: SlabAction = SlabAction.READ
    slab: Any = None
    slab_idx: int = 0
    lru_entry: Any = None
    io_cb: Optional[Callable[["SlabCallback"], None]] = None


def encode_item(key: bytes, value: bytes, rdt: int = 0) -> bytes:
    """Serialise a key/value pair with its header."""
    key = bytes(key)
    value = bytes(value)
    meta = ItemMetadata(rdt=rdt, key_size=len(key), value_size=len(value))
    return meta.pack() + key + value


def decode_item(data: bytes) -> tuple[ItemMetadata, bytes, bytes]:
    """Split serialised item bytes into header, key and value."""
    meta = ItemMetadata.unpack(data)
    if meta.is_removed() or meta.is_empty():
        return meta, b"", b""
    end_key = HEADER_SIZE + meta.key_size
    end_value = end_key + meta.value_size
    if len(data) < end_value:
        raise ValueError(f"item needs {end_value} bytes, got {len(data)}")
    return meta, bytes(data[HEADER_SIZE:end_key]), bytes(data[end_key:end_value])


def item_size(data: bytes) -> int:
    """Number of bytes occupied by the serialised item at the start of ``data``."""
    meta = ItemMetadata.unpack(data)
    if meta.is_removed():
        return HEADER_SIZE
    return HEADER_SIZE + meta.key_size + meta.value_size