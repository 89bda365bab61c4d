"""Slab-based key-value storage components: items, slabs, page cache, IO engine, red-black tree index, key generators and trace parsing."""

__version__ = "0.1.0"
__all__ = ["items", "generators", "rbtree", "pagecache", "ioengine", "slab", "parse_log"]