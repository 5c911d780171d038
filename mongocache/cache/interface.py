"""
mongocache — Cache Interface

Defines the abstract interface that cache backends implement. All operations
are synchronous and block on backend I/O.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from .capabilities import Capabilities


class CacheLookup(NamedTuple):
    """
    Result of a single-key read.

    Attributes:
        found: Whether a live (unexpired) item exists
        value: The stored value (None when not found)
        cas_token: Token to pass to check_and_set() (None when not found)
    """

    found: bool
    value: Any = None
    cas_token: Any = None


MISS = CacheLookup(found=False)


class CacheInterface(ABC):
    """
    Abstract base class for cache backends.

    Batch and compound operations have default implementations built on the
    single-key primitives. Backends can override them for fewer round-trips
    or for atomicity.
    """

    @abstractmethod
    def lookup(self, key: str) -> CacheLookup:
        """
        Read an item.

        Args:
            key: Cache key

        Returns:
            CacheLookup; ``found`` is False for missing or expired items
        """

    @abstractmethod
    def has(self, key: str) -> bool:
        """
        Check if a live item exists.

        Args:
            key: Cache key

        Returns:
            True if the item exists and is not expired
        """

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """
        Store an item, overwriting any existing one.

        Args:
            key: Cache key
            value: Value to store

        Returns:
            True on success
        """

    @abstractmethod
    def add(self, key: str, value: Any) -> bool:
        """
        Store an item only if it does not exist yet.

        Returns:
            True if stored, False if a live item already exists
        """

    @abstractmethod
    def replace(self, key: str, value: Any) -> bool:
        """
        Store an item only if it already exists.

        Returns:
            True if replaced, False if there was no live item
        """

    @abstractmethod
    def remove(self, key: str) -> bool:
        """
        Delete an item.

        Returns:
            True if a live item was deleted, False if it didn't exist
        """

    @abstractmethod
    def flush(self) -> bool:
        """
        Delete every item in the backend's scope.

        Returns:
            True once the storage is empty
        """

    @abstractmethod
    def get_metadata(self, key: str) -> dict[str, Any] | None:
        """
        Get metadata of an item.

        Returns:
            Metadata mapping, or None if the item is missing or expired
        """

    @abstractmethod
    def get_capabilities(self) -> Capabilities:
        """Describe what the backend supports."""

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics (hits, misses, etc.)
        """

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the backend."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` if the item is missing or expired."""
        result = self.lookup(key)
        return result.value if result.found else default

    def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        """
        Retrieve multiple values.

        Returns:
            Dictionary mapping keys to values (missing keys are omitted)
        """
        result = {}
        for key in keys:
            item = self.lookup(key)
            if item.found:
                result[key] = item.value
        return result

    def has_many(self, keys: Iterable[str]) -> set[str]:
        """Return the subset of keys that exist."""
        return {key for key in keys if self.has(key)}

    def set_many(self, items: Mapping[str, Any]) -> list[str]:
        """
        Store multiple values.

        Returns:
            Keys that were not stored
        """
        return [key for key, value in items.items() if not self.set(key, value)]

    def remove_many(self, keys: Iterable[str]) -> list[str]:
        """
        Delete multiple items.

        Returns:
            Keys that were not removed because they didn't exist
        """
        return [key for key in keys if not self.remove(key)]

    def get_metadatas(self, keys: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Metadata of multiple items (missing keys are omitted)."""
        result = {}
        for key in keys:
            metadata = self.get_metadata(key)
            if metadata is not None:
                result[key] = metadata
        return result

    def check_and_set(self, token: Any, key: str, value: Any) -> bool:
        """
        Store an item only if it still holds the value a previous lookup() returned.

        Default implementation is not atomic; backends should override.

        Returns:
            True if stored, False if the item is missing or was modified
        """
        current = self.lookup(key)
        if not current.found or current.cas_token != token:
            return False
        return self.set(key, value)

    def touch(self, key: str) -> bool:
        """
        Reset the expiry of an item to the current TTL.

        Returns:
            True if the item exists
        """
        current = self.lookup(key)
        if not current.found:
            return False
        return self.set(key, current.value)

    def increment(self, key: str, delta: int | float = 1) -> int | float | None:
        """
        Add ``delta`` to a numeric item, creating it with ``delta`` if missing.

        Default implementation is not atomic; backends should override.

        Returns:
            The new value, or None if it could not be stored
        """
        current = self.lookup(key)
        new_value = current.value + delta if current.found else delta
        if not self.set(key, new_value):
            return None
        return new_value

    def decrement(self, key: str, delta: int | float = 1) -> int | float | None:
        """Subtract ``delta`` from a numeric item (see increment())."""
        return self.increment(key, -delta)
