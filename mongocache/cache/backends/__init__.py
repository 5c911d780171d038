"""
mongocache — Cache Backends

Exports available cache backend implementations.
"""

from .mongodb import MongoDBCacheBackend, MongoDBOptions, MongoDBResourceManager

__all__ = [
    "MongoDBCacheBackend",
    "MongoDBOptions",
    "MongoDBResourceManager",
]
