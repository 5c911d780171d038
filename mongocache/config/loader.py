"""
mongocache — Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the runtime.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import MongoCacheConfig

logger = logging.getLogger(__name__)

_config_instance: MongoCacheConfig | None = None

# Environment variable -> resource option (string values, converted below)
_RESOURCE_ENV: dict[str, str] = {
    "MONGODB_SERVERS": "servers",
    "MONGODB_DATABASE": "database",
    "MONGODB_COLLECTION": "collection",
    "MONGODB_REPLICA_SET": "replica_set",
    "MONGODB_USERNAME": "username",
    "MONGODB_PASSWORD": "password",
    "MONGODB_AUTH_SOURCE": "auth_source",
    "MONGODB_CONNECT_TIMEOUT_MS": "connect_timeout_ms",
    "MONGODB_SOCKET_TIMEOUT_MS": "socket_timeout_ms",
    "MONGODB_W_TIMEOUT_MS": "w_timeout_ms",
    "MONGODB_TLS": "tls",
    "MONGODB_W": "w",
    "MONGODB_READ_PREFERENCE": "read_preference",
    "MONGODB_READ_PREFERENCE_TAGS": "read_preference_tags",
}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _resource_from_env() -> dict[str, Any]:
    """Collect the resource options present in the environment."""
    resource: dict[str, Any] = {}
    for env_name, option in _RESOURCE_ENV.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        if option == "tls":
            resource[option] = _env_flag(raw)
        elif option == "w":
            # "2", "majority" or a comma-separated list of tag-set names
            if raw.isdigit():
                resource[option] = int(raw)
            elif "," in raw:
                resource[option] = [part.strip() for part in raw.split(",") if part.strip()]
            else:
                resource[option] = raw
        elif option == "read_preference_tags":
            # Tag sets contain commas, so sets are separated by semicolons
            resource[option] = [part.strip() for part in raw.split(";") if part.strip()]
        else:
            resource[option] = raw
    return resource


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> MongoCacheConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in the working directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated MongoCacheConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    env_path = Path(env_file) if env_file else Path.cwd() / ".env"

    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        try:
            load_dotenv(env_path, override=True)
        except OSError as e:
            logger.error(
                f"Failed to load .env file from {env_path}: {e}",
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    resource_id = os.getenv("CACHE_RESOURCE_ID", "default")

    try:
        config_dict = {
            "environment": os.getenv("ENVIRONMENT", "development"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "log_json": _env_flag(os.getenv("LOG_JSON", "false")),
            "cache": {
                "resource_id": resource_id,
                "namespace": os.getenv("CACHE_NAMESPACE", "mongocache"),
                "ttl_seconds": int(os.getenv("CACHE_TTL_SECONDS", "0")),
                "key_pattern": os.getenv("CACHE_KEY_PATTERN") or None,
                "resources": {resource_id: _resource_from_env()},
            },
        }
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid numeric environment value: {e}",
            details={"error": str(e)},
        ) from e

    try:
        _config_instance = MongoCacheConfig(**config_dict)  # type: ignore[arg-type]
        logger.info(
            f"Configuration loaded successfully (environment: {_config_instance.environment})",
            extra={"environment": _config_instance.environment, "resource_id": resource_id},
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            f"Configuration validation failed: {e}",
            extra={"validation_errors": e.errors(include_input=False), "config_dict_keys": list(config_dict.keys())},
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors(include_input=False, include_context=False)},
        ) from e


def get_config() -> MongoCacheConfig:
    """
    Get the current configuration instance, loading it on first access.

    Returns:
        Current MongoCacheConfig instance
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> MongoCacheConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded MongoCacheConfig instance
    """
    return load_config(env_file=env_file, reload=True)


def reset_config() -> None:
    """Forget the loaded configuration. Used by tests."""
    global _config_instance
    _config_instance = None
