"""
mongocache — Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config, reset_config
from .schemas import (
    CacheConfig,
    Environment,
    LogLevel,
    MongoCacheConfig,
    MongoResourceConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    # Main config
    "MongoCacheConfig",
    # Enums
    "Environment",
    "LogLevel",
    # Config sections
    "CacheConfig",
    "MongoResourceConfig",
]
