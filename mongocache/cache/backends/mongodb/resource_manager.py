"""
mongocache — MongoDB Resource Manager

Registry of named MongoDB resources. Each resource id maps to one entry holding
the normalized server list, the validated client options and a lazily built
client. Entries are shared: every adapter configured with the same resource id
(and the same manager) uses the same client.

Lifecycle of an entry:
- set_resource() or any setter stores validated values and bumps the entry's
  generation; connection-affecting changes also drop the memoized client
- get_resource() returns the memoized client, or builds one from the entry
- remove_resource() forgets the entry without closing its client

Example:
    manager = MongoDBResourceManager()
    manager.set_resource("sessions", {"servers": "db1:27017,db2:27017", "replicaSet": "rs0"})
    client = manager.get_resource("sessions")
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote_plus

from ....errors import NotFoundError
from .option_rules import RESOURCE_DEFAULTS, driver_kwargs, resolve_option, validate_options
from .servers import DEFAULT_HOST, DEFAULT_PORT, Server

logger = logging.getLogger(__name__)

try:
    from pymongo import MongoClient
    from pymongo.errors import PyMongoError
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "pymongo is required but not installed. "
        "Install with: pip install 'pymongo>=4.0' or add 'pymongo' to your dependencies."
    ) from e

ClientFactory = Callable[..., Any]


@dataclass
class ResourceEntry:
    """State of one registered resource."""

    servers: list[Server] = field(default_factory=list)
    client_options: dict[str, Any] = field(default_factory=dict)
    connection: Any = None
    initialized: bool = False
    generation: int = 0


class MongoDBResourceManager:
    """
    Registry of MongoDB resources keyed by resource id.

    Notes:
    - Option values are validated before anything is stored, so a rejected value
      leaves the previous one in place.
    - Getters return the stored value as-is (None when never set).
    - No locking: one manager is meant to be used from one thread at a time.
    """

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        """
        Initialize an empty registry.

        Args:
            client_factory: Callable(uri, **kwargs) building a client handle
                (defaults to pymongo.MongoClient)
        """
        self._resources: dict[str, ResourceEntry] = {}
        self._client_factory: ClientFactory = client_factory or MongoClient
        self._generations = itertools.count(1)

    # ------------ Registry ------------

    def has_resource(self, resource_id: str) -> bool:
        """Check if a resource is registered."""
        return resource_id in self._resources

    def list_resources(self) -> list[str]:
        """List registered resource ids."""
        return list(self._resources)

    def _entry(self, resource_id: str) -> ResourceEntry:
        try:
            return self._resources[resource_id]
        except KeyError:
            raise NotFoundError("MongoDB resource", resource_id) from None

    def _invalidate(self, entry: ResourceEntry, drop_connection: bool = True) -> None:
        entry.generation = next(self._generations)
        if drop_connection:
            entry.connection = None
            entry.initialized = False

    def set_resource(self, resource_id: str, resource: Any) -> None:
        """
        Register or update a resource.

        Args:
            resource_id: Resource id
            resource: A ready client handle (stored as-is), or a mapping of
                options (canonical names or configuration aliases)

        Raises:
            TypeError: If resource is neither a mapping nor a client handle
            UnknownOptionError: For an unrecognized option name
            InvalidOptionError: For an invalid option value
        """
        resource_id = str(resource_id)

        if not isinstance(resource, Mapping):
            if not hasattr(resource, "get_database"):
                raise TypeError("Resource must be a MongoDB client or a mapping of options")
            options = validate_options(RESOURCE_DEFAULTS)
            options.pop("servers")
            entry = ResourceEntry(client_options=options, connection=resource, initialized=True)
            entry.generation = next(self._generations)
            self._resources[resource_id] = entry
            logger.debug("Registered client handle for resource '%s'", resource_id)
            return

        existing = self._resources.get(resource_id)
        if existing is None:
            # Canonicalize first so an alias in the input overrides the default it shadows
            options = {**validate_options(RESOURCE_DEFAULTS), **validate_options(resource)}
            entry = ResourceEntry()
            entry.servers = options.pop("servers")
            entry.client_options = options
            self._invalidate(entry)
            self._resources[resource_id] = entry
            logger.debug("Registered resource '%s'", resource_id, extra={"resource_id": resource_id})
            return

        options = validate_options(resource)
        drop_connection = any(resolve_option(name).affects_connection for name in options)
        if "servers" in options:
            existing.servers = options.pop("servers")
        existing.client_options.update(options)
        self._invalidate(existing, drop_connection=drop_connection)
        logger.debug("Updated resource '%s'", resource_id, extra={"options": sorted(resource)})

    def remove_resource(self, resource_id: str) -> None:
        """Forget a resource. Its client is not closed here."""
        self._resources.pop(resource_id, None)

    def get_generation(self, resource_id: str) -> int:
        """
        Current generation of a resource.

        The generation changes on every mutation of the entry, so a caller that
        remembers it can tell whether its derived handles are stale.
        """
        return self._entry(resource_id).generation

    def is_initialized(self, resource_id: str) -> bool:
        """Whether the resource currently holds a built client."""
        return self._entry(resource_id).initialized

    # ------------ Connection ------------

    def get_resource(self, resource_id: str) -> Any:
        """
        Get the client for a resource, building it on first use.

        Raises:
            NotFoundError: If the resource id is unknown
        """
        entry = self._entry(resource_id)
        if entry.initialized and entry.connection is not None:
            return entry.connection

        uri = self._build_uri(entry)
        kwargs = driver_kwargs(entry.client_options)
        hosts = [server["host"] for server in entry.servers]
        logger.info(
            f"Building MongoDB client for resource '{resource_id}'",
            extra={"resource_id": resource_id, "hosts": hosts, "options": sorted(kwargs)},
        )
        connection = self._client_factory(uri, **kwargs)

        entry.connection = connection
        entry.initialized = True
        return connection

    def build_connection_uri(self, resource_id: str) -> str:
        """Connection URI of a resource (credentials included)."""
        return self._build_uri(self._entry(resource_id))

    @staticmethod
    def _build_uri(entry: ResourceEntry) -> str:
        credentials = ""
        username = entry.client_options.get("username")
        if username is not None:
            credentials = quote_plus(username)
            password = entry.client_options.get("password")
            if password is not None:
                credentials += ":" + quote_plus(password)
            credentials += "@"

        servers = entry.servers or [Server(host=DEFAULT_HOST, port=DEFAULT_PORT)]
        hosts = []
        for server in servers:
            host, port = server["host"], server["port"]
            if port is None:
                hosts.append(quote_plus(host))
            elif ":" in host:
                hosts.append(f"[{host}]:{port}")
            else:
                hosts.append(f"{host}:{port}")

        return f"mongodb://{credentials}{','.join(hosts)}"

    def close(self) -> None:
        """Close every built client and reset all entries to uninitialized."""
        for resource_id, entry in self._resources.items():
            if entry.connection is None:
                continue
            try:
                entry.connection.close()
                logger.info(f"Closed MongoDB client for resource '{resource_id}'")
            except PyMongoError as e:
                logger.warning(
                    f"Error closing MongoDB client for resource '{resource_id}': {e}",
                    extra={"resource_id": resource_id, "error": str(e)},
                )
            self._invalidate(entry)

    # ------------ Generic option access ------------

    def set_option(self, resource_id: str, name: str, value: Any) -> None:
        """
        Validate and store one option, creating the resource if needed.

        Raises:
            UnknownOptionError: For an unrecognized option name
            InvalidOptionError: For an invalid value (the stored value is kept)
        """
        rule = resolve_option(name)
        if not self.has_resource(resource_id):
            self.set_resource(resource_id, {rule.name: value})
            return

        normalized = rule.validate(rule.name, value)
        entry = self._resources[resource_id]
        if rule.name == "servers":
            entry.servers = normalized
        else:
            entry.client_options[rule.name] = normalized
        self._invalidate(entry, drop_connection=rule.affects_connection)

    def get_option(self, resource_id: str, name: str) -> Any:
        """
        Get the stored value of one option.

        Raises:
            NotFoundError: If the resource id is unknown
            UnknownOptionError: For an unrecognized option name
        """
        rule = resolve_option(name)
        entry = self._entry(resource_id)
        if rule.name == "servers":
            return self.get_servers(resource_id)
        return entry.client_options.get(rule.name)

    # ------------ Named accessors ------------

    def set_servers(self, resource_id: str, servers: Any) -> None:
        self.set_option(resource_id, "servers", servers)

    def get_servers(self, resource_id: str) -> list[Server]:
        entry = self._entry(resource_id)
        if not entry.servers and entry.connection is not None:
            # Handle-backed resource: report what the client knows about
            return [Server(host=host, port=port) for host, port in getattr(entry.connection, "nodes", ())]
        return [Server(host=server["host"], port=server["port"]) for server in entry.servers]

    def set_database(self, resource_id: str, database: str) -> None:
        self.set_option(resource_id, "database", database)

    def get_database(self, resource_id: str) -> str | None:
        return self.get_option(resource_id, "database")

    def set_collection(self, resource_id: str, collection: str) -> None:
        self.set_option(resource_id, "collection", collection)

    def get_collection(self, resource_id: str) -> str | None:
        return self.get_option(resource_id, "collection")

    def set_replica_set(self, resource_id: str, replica_set: str) -> None:
        self.set_option(resource_id, "replica_set", replica_set)

    def get_replica_set(self, resource_id: str) -> str | None:
        return self.get_option(resource_id, "replica_set")

    def set_username(self, resource_id: str, username: str) -> None:
        self.set_option(resource_id, "username", username)

    def get_username(self, resource_id: str) -> str | None:
        return self.get_option(resource_id, "username")

    def set_password(self, resource_id: str, password: str) -> None:
        self.set_option(resource_id, "password", password)

    def get_password(self, resource_id: str) -> str | None:
        return self.get_option(resource_id, "password")

    def set_auth_source(self, resource_id: str, auth_source: str) -> None:
        self.set_option(resource_id, "auth_source", auth_source)

    def get_auth_source(self, resource_id: str) -> str | None:
        return self.get_option(resource_id, "auth_source")

    def set_connect_timeout_ms(self, resource_id: str, timeout: int | str) -> None:
        self.set_option(resource_id, "connect_timeout_ms", timeout)

    def get_connect_timeout_ms(self, resource_id: str) -> int | None:
        return self.get_option(resource_id, "connect_timeout_ms")

    def set_socket_timeout_ms(self, resource_id: str, timeout: int | str) -> None:
        self.set_option(resource_id, "socket_timeout_ms", timeout)

    def get_socket_timeout_ms(self, resource_id: str) -> int | None:
        return self.get_option(resource_id, "socket_timeout_ms")

    def set_w_timeout_ms(self, resource_id: str, timeout: int | str) -> None:
        self.set_option(resource_id, "w_timeout_ms", timeout)

    def get_w_timeout_ms(self, resource_id: str) -> int | None:
        return self.get_option(resource_id, "w_timeout_ms")

    def set_connect(self, resource_id: str, connect: bool) -> None:
        self.set_option(resource_id, "connect", connect)

    def get_connect(self, resource_id: str) -> bool | None:
        return self.get_option(resource_id, "connect")

    def set_tls(self, resource_id: str, tls: bool) -> None:
        self.set_option(resource_id, "tls", tls)

    def get_tls(self, resource_id: str) -> bool | None:
        return self.get_option(resource_id, "tls")

    def set_fsync(self, resource_id: str, fsync: bool) -> None:
        self.set_option(resource_id, "fsync", fsync)

    def get_fsync(self, resource_id: str) -> bool | None:
        return self.get_option(resource_id, "fsync")

    def set_journal(self, resource_id: str, journal: bool) -> None:
        self.set_option(resource_id, "journal", journal)

    def get_journal(self, resource_id: str) -> bool | None:
        return self.get_option(resource_id, "journal")

    def set_read_preference(self, resource_id: str, mode: str) -> None:
        self.set_option(resource_id, "read_preference", mode)

    def get_read_preference(self, resource_id: str) -> str | None:
        return self.get_option(resource_id, "read_preference")

    def set_read_preference_tags(self, resource_id: str, tags: list[str]) -> None:
        self.set_option(resource_id, "read_preference_tags", tags)

    def get_read_preference_tags(self, resource_id: str) -> list[str] | None:
        return self.get_option(resource_id, "read_preference_tags")

    def set_write_concern(self, resource_id: str, w: int | str | list[str]) -> None:
        self.set_option(resource_id, "w", w)

    def get_write_concern(self, resource_id: str) -> int | str | list[str] | None:
        return self.get_option(resource_id, "w")
