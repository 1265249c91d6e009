"""Bounded caches and buffer pooling on the network/disk boundary."""

from gnucore.storage.buffers import BufferStats, ByteBufferPool
from gnucore.storage.cache import (
    BoundedCache,
    CacheEntry,
    CacheHandle,
    ContentResponseCache,
    CreationCache,
    DiskIOCache,
    auto_size_capacity,
)

__all__ = [
    "BoundedCache",
    "BufferStats",
    "ByteBufferPool",
    "CacheEntry",
    "CacheHandle",
    "ContentResponseCache",
    "CreationCache",
    "DiskIOCache",
    "auto_size_capacity",
]
