"""
mongocache — MongoDB Adapter Options

Options object handed to MongoDBCacheBackend. It holds the adapter-level
settings (ttl, namespace, key pattern, read/write switches) itself, and acts
as a validated facade over one entry of a MongoDBResourceManager for the
connection-level settings. Resource settings are never cached here, so a change
made directly on the manager is visible through the options immediately.

Every change bumps ``version``; adapters compare it against the version they
last resolved to know when to re-resolve their collection handle.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from ....errors import InvalidOptionError
from .resource_manager import MongoDBResourceManager
from .servers import Server

DEFAULT_RESOURCE_ID = "default"
DEFAULT_NAMESPACE = "mongocache"

_LOCAL_OPTIONS = frozenset({"resource_manager", "resource_id", "ttl", "namespace", "key_pattern", "readable", "writable"})


class MongoDBOptions:
    """Options for the MongoDB cache adapter."""

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        resource_manager: MongoDBResourceManager | None = None,
    ) -> None:
        """
        Initialize options.

        Args:
            options: Configuration mapping. Adapter-level keys (resource_id,
                ttl, namespace, key_pattern, readable, writable) are kept here;
                every other key is a resource option applied to the manager.
            resource_manager: Registry to use (created lazily when omitted)
        """
        self._resource_manager = resource_manager
        self._resource_id = DEFAULT_RESOURCE_ID
        self._ttl = 0
        self._namespace = DEFAULT_NAMESPACE
        self._key_pattern: re.Pattern[str] | None = None
        self._readable = True
        self._writable = True
        self._version = 0

        if options:
            self.set_from_mapping(options)

    def set_from_mapping(self, options: Mapping[str, Any]) -> None:
        """Apply a configuration mapping (see __init__)."""
        if "resource_manager" in options:
            self.set_resource_manager(options["resource_manager"])
        if "resource_id" in options:
            self.resource_id = options["resource_id"]
        if "ttl" in options:
            self.ttl = options["ttl"]
        if "namespace" in options:
            self.namespace = options["namespace"]
        if "key_pattern" in options:
            self.key_pattern = options["key_pattern"]
        if "readable" in options:
            self.readable = options["readable"]
        if "writable" in options:
            self.writable = options["writable"]

        resource_options = {name: value for name, value in options.items() if name not in _LOCAL_OPTIONS}
        if resource_options:
            self.get_resource_manager().set_resource(self._resource_id, resource_options)

    @property
    def version(self) -> int:
        """Counter bumped on every adapter-level change."""
        return self._version

    def _changed(self) -> None:
        self._version += 1

    # ------------ Registry ------------

    def set_resource_manager(self, resource_manager: MongoDBResourceManager | None) -> None:
        """Swap the registry (None: a fresh one is created on next access)."""
        if resource_manager is not self._resource_manager:
            self._resource_manager = resource_manager
            self._changed()

    def get_resource_manager(self) -> MongoDBResourceManager:
        """Get the registry, creating one on first access."""
        if self._resource_manager is None:
            self._resource_manager = MongoDBResourceManager()
        return self._resource_manager

    @property
    def resource_id(self) -> str:
        return self._resource_id

    @resource_id.setter
    def resource_id(self, resource_id: str) -> None:
        resource_id = str(resource_id)
        if resource_id != self._resource_id:
            self._resource_id = resource_id
            self._changed()

    # ------------ Adapter-level options ------------

    @property
    def ttl(self) -> int:
        """Time-to-live in seconds applied on writes (0 = no expiry)."""
        return self._ttl

    @ttl.setter
    def ttl(self, ttl: int | str) -> None:
        if isinstance(ttl, bool):
            raise InvalidOptionError("ttl", "must be a non-negative integer", ttl)
        try:
            value = int(ttl)
        except (TypeError, ValueError) as e:
            raise InvalidOptionError("ttl", "must be a non-negative integer", ttl) from e
        if value < 0 or (isinstance(ttl, float) and not ttl.is_integer()):
            raise InvalidOptionError("ttl", "must be a non-negative integer", ttl)
        if value != self._ttl:
            self._ttl = value
            self._changed()

    @property
    def namespace(self) -> str:
        return self._namespace

    @namespace.setter
    def namespace(self, namespace: str) -> None:
        if not isinstance(namespace, str):
            raise InvalidOptionError("namespace", "must be a string", namespace)
        if namespace != self._namespace:
            self._namespace = namespace
            self._changed()

    @property
    def key_pattern(self) -> re.Pattern[str] | None:
        """Compiled pattern every key must match, if any."""
        return self._key_pattern

    @key_pattern.setter
    def key_pattern(self, pattern: str | re.Pattern[str] | None) -> None:
        if pattern is None or pattern == "":
            compiled = None
        elif isinstance(pattern, re.Pattern):
            compiled = pattern
        else:
            try:
                compiled = re.compile(pattern)
            except (TypeError, re.error) as e:
                raise InvalidOptionError("key_pattern", f"not a valid regular expression: {e}", pattern) from e
        self._key_pattern = compiled
        self._changed()

    @property
    def readable(self) -> bool:
        return self._readable

    @readable.setter
    def readable(self, readable: bool) -> None:
        self._readable = bool(readable)
        self._changed()

    @property
    def writable(self) -> bool:
        return self._writable

    @writable.setter
    def writable(self, writable: bool) -> None:
        self._writable = bool(writable)
        self._changed()

    # ------------ Resource options (delegated) ------------

    def set_servers(self, servers: Any) -> None:
        self.get_resource_manager().set_servers(self._resource_id, servers)

    def get_servers(self) -> list[Server]:
        return self.get_resource_manager().get_servers(self._resource_id)

    def set_database(self, database: str) -> None:
        self.get_resource_manager().set_database(self._resource_id, database)

    def get_database(self) -> str | None:
        return self.get_resource_manager().get_database(self._resource_id)

    def set_collection(self, collection: str) -> None:
        self.get_resource_manager().set_collection(self._resource_id, collection)

    def get_collection(self) -> str | None:
        return self.get_resource_manager().get_collection(self._resource_id)

    def set_replica_set(self, replica_set: str) -> None:
        self.get_resource_manager().set_replica_set(self._resource_id, replica_set)

    def get_replica_set(self) -> str | None:
        return self.get_resource_manager().get_replica_set(self._resource_id)

    def set_username(self, username: str) -> None:
        self.get_resource_manager().set_username(self._resource_id, username)

    def get_username(self) -> str | None:
        return self.get_resource_manager().get_username(self._resource_id)

    def set_password(self, password: str) -> None:
        self.get_resource_manager().set_password(self._resource_id, password)

    def get_password(self) -> str | None:
        return self.get_resource_manager().get_password(self._resource_id)

    def set_auth_source(self, auth_source: str) -> None:
        self.get_resource_manager().set_auth_source(self._resource_id, auth_source)

    def get_auth_source(self) -> str | None:
        return self.get_resource_manager().get_auth_source(self._resource_id)

    def set_connect_timeout_ms(self, timeout: int | str) -> None:
        self.get_resource_manager().set_connect_timeout_ms(self._resource_id, timeout)

    def get_connect_timeout_ms(self) -> int | None:
        return self.get_resource_manager().get_connect_timeout_ms(self._resource_id)

    def set_socket_timeout_ms(self, timeout: int | str) -> None:
        self.get_resource_manager().set_socket_timeout_ms(self._resource_id, timeout)

    def get_socket_timeout_ms(self) -> int | None:
        return self.get_resource_manager().get_socket_timeout_ms(self._resource_id)

    def set_w_timeout_ms(self, timeout: int | str) -> None:
        self.get_resource_manager().set_w_timeout_ms(self._resource_id, timeout)

    def get_w_timeout_ms(self) -> int | None:
        return self.get_resource_manager().get_w_timeout_ms(self._resource_id)

    def set_connect(self, connect: bool) -> None:
        self.get_resource_manager().set_connect(self._resource_id, connect)

    def get_connect(self) -> bool | None:
        return self.get_resource_manager().get_connect(self._resource_id)

    def set_tls(self, tls: bool) -> None:
        self.get_resource_manager().set_tls(self._resource_id, tls)

    def get_tls(self) -> bool | None:
        return self.get_resource_manager().get_tls(self._resource_id)

    def set_fsync(self, fsync: bool) -> None:
        self.get_resource_manager().set_fsync(self._resource_id, fsync)

    def get_fsync(self) -> bool | None:
        return self.get_resource_manager().get_fsync(self._resource_id)

    def set_journal(self, journal: bool) -> None:
        self.get_resource_manager().set_journal(self._resource_id, journal)

    def get_journal(self) -> bool | None:
        return self.get_resource_manager().get_journal(self._resource_id)

    def set_read_preference(self, mode: str) -> None:
        self.get_resource_manager().set_read_preference(self._resource_id, mode)

    def get_read_preference(self) -> str | None:
        return self.get_resource_manager().get_read_preference(self._resource_id)

    def set_read_preference_tags(self, tags: list[str]) -> None:
        self.get_resource_manager().set_read_preference_tags(self._resource_id, tags)

    def get_read_preference_tags(self) -> list[str] | None:
        return self.get_resource_manager().get_read_preference_tags(self._resource_id)

    def set_write_concern(self, w: int | str | list[str]) -> None:
        self.get_resource_manager().set_write_concern(self._resource_id, w)

    def get_write_concern(self) -> int | str | list[str] | None:
        return self.get_resource_manager().get_write_concern(self._resource_id)
