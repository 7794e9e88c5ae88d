"""
Conversion gateway caching package.

One cache interface with two interchangeable backends, picked when the
service starts:

- memory: process-local, reader/writer locked, optional expiry sweep.
- file: whole mapping persisted to a JSON file on every mutation.
"""

import time
from typing import Any, Callable, Optional

from shared.config import ConverterConfig
from .store import CacheEntry, CacheStore, Clock
from .memory_store import MemoryCacheStore, ReadWriteLock
from .file_store import FileCacheStore


def build_cache_store(
    config: ConverterConfig,
    *,
    encoder: Optional[Callable[[Any], Any]] = None,
    decoder: Optional[Callable[[Any], Any]] = None,
    clock: Clock = time.time_ns,
) -> CacheStore:
    """Create the store variant selected by ``config.cache_backend``.

    ``encoder``/``decoder`` only apply to the file backend, which has to turn
    values into JSON.
    """
    if config.cache_backend == "file":
        return FileCacheStore(config.cache_file, encoder=encoder, decoder=decoder, clock=clock)

    interval = config.cache_sweep_interval_seconds
    return MemoryCacheStore(sweep_interval=interval if interval > 0 else None, clock=clock)


__all__ = [
    "CacheEntry",
    "CacheStore",
    "MemoryCacheStore",
    "FileCacheStore",
    "ReadWriteLock",
    "build_cache_store",
]
