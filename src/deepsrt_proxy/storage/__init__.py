"""Storage layer for R2 and the response cache."""

from .cache import (
    CachedResponse,
    CacheStorage,
    DiskResponseCache,
    MemoryResponseCache,
    ResponseCache,
)
from .r2 import ObjectStore, R2Client, StoredObject

__all__ = [
    "CachedResponse",
    "CacheStorage",
    "DiskResponseCache",
    "MemoryResponseCache",
    "ObjectStore",
    "R2Client",
    "ResponseCache",
    "StoredObject",
]
