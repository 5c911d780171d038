"""
mongocache — Cache Factory

Canonical factory for creating cache instances based on configuration.

Key points:
- Every resource in the configuration is registered in one shared
  MongoDBResourceManager, so caches pointing at the same resource id share
  one client
- The driver is probed unless the caller supplies a DriverInfo, and is handed
  to each backend as a construction precondition
- Instances are registered by name; create_cache() returns the registered
  instance when the name is taken

Examples:
    from mongocache.cache import create_cache, get_cache

    # Uses env-configured settings
    cache = create_cache()

    # Or explicitly supply a CacheConfig (e.g., for tests)
    from mongocache.config import CacheConfig, MongoResourceConfig
    cfg = CacheConfig(ttl_seconds=600, resources={"default": MongoResourceConfig(database="app")})
    cache = create_cache(cfg, name="app")
"""

from __future__ import annotations

import logging

from ..config import CacheConfig, get_config
from ..errors import ConfigurationError, MongoCacheError
from ..observability import configure_logging
from .backends.mongodb import DriverInfo, MongoDBCacheBackend, MongoDBOptions, MongoDBResourceManager, probe_driver
from .interface import CacheInterface

logger = logging.getLogger(__name__)

# Global cache instances registry
_cache_instances: dict[str, CacheInterface] = {}

# Registry shared by every cache the factory creates
_resource_manager: MongoDBResourceManager | None = None


def get_resource_manager() -> MongoDBResourceManager:
    """Get the resource manager shared by factory-created caches."""
    global _resource_manager

    if _resource_manager is None:
        _resource_manager = MongoDBResourceManager()
    return _resource_manager


def _register_resources(config: CacheConfig, manager: MongoDBResourceManager) -> None:
    for resource_id, resource in config.resources.items():
        manager.set_resource(resource_id, resource.to_options())


def create_cache(
    config: CacheConfig | None = None,
    name: str = "default",
    resource_manager: MongoDBResourceManager | None = None,
    driver: DriverInfo | None = None,
) -> CacheInterface:
    """
    Create a MongoDB cache instance based on configuration.

    Args:
        config: Cache configuration (uses the global config, and applies its
            logging settings, if not provided)
        name: Cache instance name (for multiple cache instances)
        resource_manager: Registry to use (defaults to the shared one)
        driver: Probed driver (probed here if not provided)

    Returns:
        Configured cache backend instance

    Raises:
        ExtensionUnavailableError: If the MongoDB driver is unavailable
        ConfigurationError: If the configuration is invalid
    """
    # Return existing instance if already created
    if name in _cache_instances:
        logger.debug("Returning existing cache instance: %s", name)
        return _cache_instances[name]

    # Use global config if not provided; it also carries the logging settings
    if config is None:
        root_config = get_config()
        configure_logging(root_config.log_level, json_format=root_config.log_json)
        config = root_config.cache

    manager = resource_manager if resource_manager is not None else get_resource_manager()

    logger.info(
        "Creating cache instance '%s' for resource '%s'",
        name,
        config.resource_id,
        extra={"cache_name": name, "resource_id": config.resource_id},
    )

    if driver is None:
        driver = probe_driver()

    try:
        _register_resources(config, manager)

        options = MongoDBOptions(resource_manager=manager)
        options.resource_id = config.resource_id
        options.namespace = config.namespace
        options.ttl = config.ttl_seconds
        options.key_pattern = config.key_pattern

        cache = MongoDBCacheBackend(options, driver=driver)
    except MongoCacheError:
        # Re-raise our own errors as-is
        raise
    except (TypeError, ValueError) as e:
        logger.error(
            "Unexpected error creating cache instance '%s': %s",
            name,
            e,
            extra={"cache_name": name, "resource_id": config.resource_id, "error": str(e)},
            exc_info=True,
        )
        raise ConfigurationError(
            f"Failed to create cache instance '{name}': {e}",
            details={"cache_name": name, "resource_id": config.resource_id, "error": str(e)},
        ) from e

    # Store instance in registry
    _cache_instances[name] = cache

    logger.info(
        "Cache instance '%s' created successfully",
        name,
        extra={"cache_name": name, "resource_id": config.resource_id},
    )

    return cache


def get_cache(name: str = "default") -> CacheInterface:
    """
    Get an existing cache instance by name.

    If the instance doesn't exist, it will be created automatically
    using the global configuration.
    """
    if name not in _cache_instances:
        logger.debug("Cache instance '%s' not found, creating new instance", name)
        return create_cache(name=name)

    return _cache_instances[name]


def close_all_caches() -> None:
    """
    Close all cache instances and the shared resource manager's clients.

    Should be called during graceful shutdown.
    """
    if not _cache_instances and _resource_manager is None:
        logger.debug("No cache instances to close")
        return

    logger.info("Closing %d cache instance(s)...", len(_cache_instances))

    for name, cache in list(_cache_instances.items()):
        cache.close()
        logger.info("Closed cache instance: %s", name)

    _cache_instances.clear()

    if _resource_manager is not None:
        _resource_manager.close()

    logger.info("All cache instances closed")


def reset_cache_factory() -> None:
    """
    Reset the cache factory by clearing all instance references and the shared
    resource manager.

    Does NOT close anything - use close_all_caches() for proper cleanup.

    Warning: Only use this in testing contexts.
    """
    global _resource_manager

    count = len(_cache_instances)
    _cache_instances.clear()
    _resource_manager = None
    logger.debug("Reset cache factory, cleared %d instance reference(s)", count)


def list_cache_instances() -> list[str]:
    """
    List all registered cache instance names.

    Returns:
        List of cache instance names
    """
    return list(_cache_instances.keys())
