"""
mongocache — MongoDB Backend

Resource manager, options and cache backend for MongoDB.
"""

from .adapter import MongoDBCacheBackend
from .driver import DriverInfo, probe_driver
from .option_rules import OPTION_RULES, RESOURCE_DEFAULTS, OptionRule
from .options import MongoDBOptions
from .resource_manager import MongoDBResourceManager, ResourceEntry
from .servers import Server, normalize_servers

__all__ = [
    "MongoDBCacheBackend",
    "MongoDBOptions",
    "MongoDBResourceManager",
    "ResourceEntry",
    "DriverInfo",
    "probe_driver",
    "OPTION_RULES",
    "RESOURCE_DEFAULTS",
    "OptionRule",
    "Server",
    "normalize_servers",
]
