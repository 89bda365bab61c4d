[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kvslab"
version = "0.1.0"
description = "Slab-based key-value storage primitives: on-disk item slabs, an LRU page cache, a batched IO engine, a red-black tree index and workload key generators"
requires-python = ">=3.10"
dependencies = []
keywords = ["key-value", "slab", "page cache", "red-black tree", "zipf", "ycsb", "storage"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kvslab-parse-log = "kvslab.parse_log:main"

[tool.hatch.build.targets.wheel]
packages = ["kvslab"]

[tool.pytest.ini_options]
addopts = "-ra"
