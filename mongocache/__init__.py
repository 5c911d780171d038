"""
mongocache — MongoDB Cache Storage

Cache adapter over MongoDB with a shared, lazily connecting resource registry.
"""

__version__ = "1.0.0"

from .cache import CacheInterface, CacheLookup, Capabilities, create_cache, get_cache
from .cache.backends.mongodb import (
    DriverInfo,
    MongoDBCacheBackend,
    MongoDBOptions,
    MongoDBResourceManager,
    probe_driver,
)

__all__ = [
    "CacheInterface",
    "CacheLookup",
    "Capabilities",
    "create_cache",
    "get_cache",
    "DriverInfo",
    "MongoDBCacheBackend",
    "MongoDBOptions",
    "MongoDBResourceManager",
    "probe_driver",
]
