"""
mongocache — MongoDB Driver Probe

The driver check runs once, explicitly, at application start (the cache
factory does it when no DriverInfo is supplied). The resulting DriverInfo is
passed into every MongoDBCacheBackend as a construction precondition.
"""

import logging
from dataclasses import dataclass
from typing import Any

from ....errors import ExtensionUnavailableError

logger = logging.getLogger(__name__)

MINIMUM_DRIVER_VERSION: tuple[int, int] = (4, 0)
INSTALL_HINT = "pip install 'pymongo>=4.0'"


@dataclass(frozen=True)
class DriverInfo:
    """Result of probing the installed MongoDB driver."""

    name: str
    version: str
    version_tuple: tuple[int, ...]
    client_class: Any

    def satisfies(self, minimum: tuple[int, ...]) -> bool:
        """Whether the driver version is at least ``minimum``."""
        return self.version_tuple[: len(minimum)] >= minimum


def _format_version(version: tuple[int, ...]) -> str:
    return ".".join(str(part) for part in version)


def probe_driver(minimum: tuple[int, ...] = MINIMUM_DRIVER_VERSION) -> DriverInfo:
    """
    Import pymongo and check its version.

    Args:
        minimum: Minimum acceptable (major, minor[, patch]) version

    Returns:
        DriverInfo describing the installed driver

    Raises:
        ExtensionUnavailableError: If pymongo is missing or too old
    """
    try:
        import pymongo
    except ImportError as e:
        logger.error(
            "MongoDB driver is not installed",
            extra={"package": "pymongo", "error": str(e)},
        )
        raise ExtensionUnavailableError(
            "pymongo", required=_format_version(minimum), install_hint=INSTALL_HINT
        ) from e

    version_tuple = tuple(part for part in pymongo.version_tuple if isinstance(part, int))
    info = DriverInfo(
        name="pymongo",
        version=pymongo.version,
        version_tuple=version_tuple,
        client_class=pymongo.MongoClient,
    )

    if not info.satisfies(minimum):
        raise ExtensionUnavailableError(
            "pymongo",
            required=_format_version(minimum),
            found=info.version,
            install_hint=INSTALL_HINT,
        )

    logger.debug("Probed MongoDB driver %s %s", info.name, info.version)
    return info
