"""
mongocache — Cache Module

Provides the cache interface and the MongoDB backend.

Canonical exports:
- factory.py: Creates configured cache instances
- interface.py: Abstract cache interface all backends implement
- capabilities.py: Capability descriptor returned by backends
- backends/mongodb: Resource manager, options and backend

Usage:
    from mongocache.cache import create_cache

    cache = create_cache()
    cache.set("key", "value")
    value = cache.get("key")
"""

from .capabilities import Capabilities
from .factory import (
    close_all_caches,
    create_cache,
    get_cache,
    get_resource_manager,
    list_cache_instances,
    reset_cache_factory,
)
from .interface import CacheInterface, CacheLookup

__all__ = [
    # Factory functions
    "create_cache",
    "get_cache",
    "get_resource_manager",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    # Interface
    "CacheInterface",
    "CacheLookup",
    "Capabilities",
]
