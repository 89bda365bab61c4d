# kvslab

This package provides building blocks for a slab-based key-value store:

- Items live in fixed-size slots inside slab files.
- Pages pass through an LRU page cache and a batched IO engine.
- A red-black tree is available as an ordered in-memory index.
- Key generators produce YCSB-style workloads: Zipfian, uniform and two production-like distributions.

The package runs on POSIX systems because it uses `os.pread` and `os.pwrite`. It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

### `kvslab.items`

This module defines the on-disk item layout and shared constants such as `PAGE_SIZE`, `QUEUE_DEPTH` and `MAX_PAGE_CACHE`.

- `ItemMetadata` is the 24-byte header that precedes every item.
  - It holds `rdt`, `key_size` and `value_size`.
  - Use `pack` and `unpack` to convert it to and from bytes.
  - A `key_size` of -1 marks a removed item (`is_removed`).
  - A `key_size` of 0 marks an empty slot (`is_empty`).
- `encode_item(key, value, rdt=0)` builds the bytes of an item.
- `decode_item(data)` returns `(meta, key, value)`.
- `item_size(data)` returns the number of bytes the item occupies.
- `SlabAction` and `SlabCallback` describe a request as it passes through the slab and IO layers.
  - `cb` is the user callback. It is called with the callback and the slot's bytes.
  - `io_cb` is the internal continuation.

### `kvslab.generators`

- `Xorshf96` is the xorshf96 generator. It is also iterable.
- `KeyGenerator(seed=None)` draws keys.
  - `init_zipf(low, high)` prepares draws over `[low, high]`. You must call it before `zipf_next` and `uniform_next`.
  - `zipf_next()` draws a Zipfian key with constant 0.99.
  - `uniform_next()` draws a key uniformly.
  - `bogus_rand()` returns a value below 1000.
  - `production_random1()` and `production_random2()` draw keys from production-like distributions.
- `zeta(n, theta)` computes the generalised harmonic number.
- `get_function_name(f)` labels a generator method, for example `"Zipf"` or `"Uniform"`.

### `kvslab.rbtree`

`RBTree` is an ordered map. It supports:

- `insert` and `lookup`. `lookup` returns None for an absent key.
- `delete`, which returns whether the key was present.
- `lookup_n(key, n)`, which returns up to `n` pairs starting at the first key that is >= `key`.
- `items()`, which yields the pairs in key order.
- `len()` and `in`.
- `verify()`, which checks the tree's invariants and returns its black height.

### `kvslab.pagecache`

`PageCache(max_pages=None, nb_workers=1)` holds a fixed number of 4 KiB page buffers.

- `get_page(hash)` returns `(already_cached, entry)`.
  - When the cache is full, it recycles the least recently used page.
  - New and recycled entries have `contains_data` and `dirty` cleared.
- `lru_order()` lists the cached hashes, most recent first.
- `page_hash(fd, page_num)` builds the cache key of a page.

### `kvslab.ioengine`

`IoEngine(page_cache, nb_callbacks=256)` queues page IO. It allows up to `2 * nb_callbacks` requests in flight.

- `read_page_async(callback)` loads the callback's page. If the page is already cached, it calls `io_cb` at once.
- `write_page_async(callback)` flushes a cached page.
- The worker loop drives the requests in three steps:
  1. `enqueue_ios()` submits the queued requests.
  2. `get_completed_ios()` performs the reads and writes.
  3. `process_completed_ios()` marks the pages as loaded and runs the callbacks. It also runs any requests that waited on a page already in flight.
- `pending()` counts the requests that are not yet processed.
- `safe_pread(fd, offset)` reads one page synchronously and raises `OSError` on a short read.

### `kvslab.slab`

`open_slab(path, item_size, engine=None, callback=None)` opens or creates a slab file.

- A new file starts with two zeroed pages.
- An existing file is scanned to rebuild `nb_items`, `last_item`, the removed slots (`free_items`) and the highest `rdt`. `callback.cb` is called for each live item.

A `Slab` supports the following operations:

- `item_page_num(idx)` and `item_in_page_offset(idx)` locate a slot.
- `read_item(idx)` reads a slot synchronously.
- `read_item_async(callback)` reads a slot through the engine.
- `update_item_async(callback)` works in two stages:
  1. It reads the page holding slot `callback.slab_idx` and writes `callback.item` into it.
  2. It flushes the page. `callback.cb` then receives the slot's bytes.
- `resize()` grows the file. It doubles the file until the file reaches 10 GB, then grows it in 10 GB steps.
- `close()` closes the file. A slab is also a context manager.

### `kvslab.parse_log`

`parse_log(lines, iops)` turns lines of the form `<time> <bytes>` into `(time, throughput)` points in 10 ms windows.

- Empty windows in between produce zero points.
- With `iops` set, each line counts as one operation instead of its byte count.

## Example

```python
from kvslab.ioengine import IoEngine
from kvslab.items import SlabAction, SlabCallback, decode_item, encode_item
from kvslab.pagecache import PageCache
from kvslab.slab import open_slab

engine = IoEngine(PageCache(max_pages=64))

def run_batch():
    engine.enqueue_ios()
    engine.get_completed_ios()
    engine.process_completed_ios()

with open_slab("items.slab", 128, engine) as slab:
    request = SlabCallback(
        item=encode_item(b"key", b"value"),
        action=SlabAction.ADD,
        slab_idx=0,
        cb=lambda cb, data: print(decode_item(data)),
    )
    slab.update_item_async(request)
    run_batch()  # reads the page and writes the item into it
    run_batch()  # flushes the page, then calls request.cb
    print(decode_item(slab.read_item(0)))
```

Key generation and indexing:

```python
from kvslab.generators import KeyGenerator
from kvslab.rbtree import RBTree

gen = KeyGenerator(seed=1)
gen.init_zipf(0, 999)

tree = RBTree()
for _ in range(100):
    key = gen.zipf_next()
    tree.insert(key, f"value-{key}")

print(len(tree), tree.lookup_n(0, 5))
```

## Command line

```
kvslab-parse-log trace.txt 0
```

The command prints one `<time> <throughput>` line per point. Pass `1` as the second argument to count operations instead of bytes.

## What the package does not do

This package is a set of components, not a running store:

- It has no key-value API that maps keys to slots.
- It has no worker threads, no disk layout across several slabs and no benchmark driver.
- Slabs do not choose free slots by themselves. The caller picks `slab_idx`, and there is no asynchronous add or remove operation.
- Removed slots are only collected when a slab is reopened.
- The IO engine performs its transfers synchronously, inside `get_completed_ios`.