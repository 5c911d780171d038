"""
mongocache — MongoDB Cache Backend

Synchronous cache backend storing one document per key in a MongoDB collection:

    {uid: <key>, value: <BSON value>, mtime: <datetime>, ttl: <int>, expire: <datetime>}

- ``uid`` carries a unique index; ``expire`` carries a TTL index so the server
  sweeps expired documents on its own schedule
- ``expire`` is computed from the options' TTL at every write and omitted
  when the TTL is 0
- A document past its ``expire`` is treated as absent even before the sweep
  removes it; reads never delete it

The backend resolves its collection through MongoDBOptions -> resource manager
-> resource id, and re-resolves whenever the options version or the resource
generation it last saw has changed.

Example:
    options = MongoDBOptions({"servers": "localhost:27017", "database": "app", "ttl": 60})
    cache = MongoDBCacheBackend(options, driver=probe_driver())
    cache.set("greeting", {"msg": "hello"})
    cache.get("greeting")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from ....errors import BackendOperationError, ExtensionUnavailableError, NotFoundError, ValidationError
from ...capabilities import Capabilities
from ...interface import MISS, CacheInterface, CacheLookup
from .driver import MINIMUM_DRIVER_VERSION, DriverInfo
from .options import MongoDBOptions

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 255


def _as_utc(moment: datetime) -> datetime:
    # The driver returns naive datetimes holding UTC unless tz_aware is set
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment


def _is_expired(document: Mapping[str, Any], now: datetime) -> bool:
    expire = document.get("expire")
    return expire is not None and _as_utc(expire) <= now


def _timestamp(moment: datetime | None) -> float | None:
    return _as_utc(moment).timestamp() if moment is not None else None


class MongoDBCacheBackend(CacheInterface):
    """
    MongoDB cache backend.

    Notes:
    - Not thread-safe; use one instance per thread or guard it externally.
    - Backend failures raise BackendOperationError; read misses are results.
    - replace() only updates live items; it never creates one.
    """

    def __init__(
        self,
        options: MongoDBOptions | Mapping[str, Any] | None = None,
        *,
        driver: DriverInfo,
    ) -> None:
        """
        Initialize the backend.

        Args:
            options: MongoDBOptions, or a mapping to build one from
            driver: Result of probe_driver(), obtained once at startup

        Raises:
            ExtensionUnavailableError: If the probed driver is too old
        """
        if not driver.satisfies(MINIMUM_DRIVER_VERSION):
            raise ExtensionUnavailableError(
                driver.name,
                required=".".join(str(part) for part in MINIMUM_DRIVER_VERSION),
                found=driver.version,
            )
        self._driver = driver

        self._options = MongoDBOptions()
        self._collection: Collection[Any] | None = None
        self._stamp: tuple[int, str, int] | None = None
        self._capabilities: Capabilities | None = None

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

        self.set_options(options if options is not None else MongoDBOptions())

    # ------------ Options ------------

    def set_options(self, options: MongoDBOptions | Mapping[str, Any]) -> None:
        """Replace the options; the collection is re-resolved on next access."""
        if not isinstance(options, MongoDBOptions):
            options = MongoDBOptions(options)
        self._options = options
        self._collection = None
        self._stamp = None

    def get_options(self) -> MongoDBOptions:
        return self._options

    # ------------ Helpers ------------

    def _current_stamp(self) -> tuple[int, str, int]:
        options = self._options
        resource_id = options.resource_id
        generation = options.get_resource_manager().get_generation(resource_id)
        return options.version, resource_id, generation

    @property
    def initialized(self) -> bool:
        """Whether the cached collection handle matches the current options."""
        if self._stamp is None:
            return False
        try:
            return self._stamp == self._current_stamp()
        except NotFoundError:
            return False

    def _get_collection(self) -> Collection[Any]:
        """
        Resolve the collection for the configured resource.

        Raises:
            NotFoundError: If the configured resource id is not registered
        """
        stamp = self._current_stamp()
        if self._collection is not None and stamp == self._stamp:
            return self._collection

        manager = self._options.get_resource_manager()
        resource_id = self._options.resource_id
        with self._backend_call("connect"):
            client = manager.get_resource(resource_id)
        database_name = manager.get_database(resource_id)
        collection_name = manager.get_collection(resource_id)
        collection = client[database_name][collection_name]

        with self._backend_call("create_index"):
            collection.create_index([("uid", ASCENDING)], unique=True, name="uid_unique")
            collection.create_index([("expire", ASCENDING)], expireAfterSeconds=0, name="expire_ttl")

        logger.debug(
            f"Resolved collection {database_name}.{collection_name} for resource '{resource_id}'",
            extra={"resource_id": resource_id, "database": database_name, "collection": collection_name},
        )
        self._collection = collection
        self._stamp = stamp
        return collection

    @contextmanager
    def _backend_call(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Translate driver errors into BackendOperationError."""
        try:
            yield
        except OperationFailure as e:
            logger.error(
                f"MongoDB {operation} failed: {e}",
                extra={"operation": operation, "key": key, "code": e.code, "error": str(e)},
            )
            result = {**(e.details or {}), "ok": 0}
            result.setdefault("errmsg", str(e))
            raise BackendOperationError.from_result(result, operation) from e
        except PyMongoError as e:
            logger.error(
                f"MongoDB {operation} failed: {e}",
                extra={"operation": operation, "key": key, "error": str(e)},
            )
            raise BackendOperationError(str(e), {"operation": operation}) from e

    def _validate_key(self, key: Any) -> None:
        if not isinstance(key, str) or key == "":
            raise ValidationError("Cache key must be a non-empty string", {"key": repr(key)})
        if len(key) > MAX_KEY_LENGTH:
            raise ValidationError(
                f"Cache key exceeds {MAX_KEY_LENGTH} characters",
                {"key": key[:50], "length": len(key)},
            )
        pattern = self._options.key_pattern
        if pattern is not None and not pattern.search(key):
            raise ValidationError(
                f"Cache key '{key}' does not match pattern '{pattern.pattern}'",
                {"key": key, "pattern": pattern.pattern},
            )

    def _validate_keys(self, keys: Iterable[str]) -> list[str]:
        keys = list(dict.fromkeys(keys))
        for key in keys:
            self._validate_key(key)
        return keys

    def _expiry_fields(self, now: datetime) -> tuple[dict[str, Any], dict[str, Any]]:
        """Fields to $set and to $unset for a write at ``now`` under the current TTL."""
        ttl = self._options.ttl
        fields: dict[str, Any] = {"mtime": now, "ttl": ttl}
        if ttl > 0:
            fields["expire"] = now + timedelta(seconds=ttl)
            return fields, {}
        return fields, {"expire": ""}

    def _write_update(self, value: Any, now: datetime) -> dict[str, Any]:
        fields, unset = self._expiry_fields(now)
        update: dict[str, Any] = {"$set": {"value": value, **fields}}
        if unset:
            update["$unset"] = unset
        return update

    def _find_live(self, collection: Collection[Any], key: str, now: datetime) -> Mapping[str, Any] | None:
        """The key's document (without value) if it exists and is not expired."""
        document = collection.find_one({"uid": key}, {"expire": 1})
        if document is None or _is_expired(document, now):
            return None
        return document

    @staticmethod
    def _metadata(document: Mapping[str, Any]) -> dict[str, Any]:
        object_id = document["_id"]
        return {
            "id": str(object_id),
            "ctime": object_id.generation_time.timestamp() if isinstance(object_id, ObjectId) else None,
            "mtime": _timestamp(document.get("mtime")),
            "ttl": document.get("ttl", 0),
            "expire": _timestamp(document.get("expire")),
        }

    # ------------ Reading ------------

    def lookup(self, key: str) -> CacheLookup:
        """Read an item; the stored value doubles as the CAS token."""
        self._validate_key(key)
        if not self._options.readable:
            return MISS

        collection = self._get_collection()
        with self._backend_call("get", key):
            document = collection.find_one({"uid": key}, {"value": 1, "expire": 1})

        if document is None or _is_expired(document, datetime.now(UTC)):
            self._misses += 1
            return MISS

        self._hits += 1
        return CacheLookup(found=True, value=document.get("value"), cas_token=document.get("value"))

    def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        """Retrieve multiple values in one query. Missing and expired keys are omitted."""
        keys = self._validate_keys(keys)
        if not keys or not self._options.readable:
            return {}

        collection = self._get_collection()
        now = datetime.now(UTC)
        result: dict[str, Any] = {}
        with self._backend_call("get_many"):
            for document in collection.find({"uid": {"$in": keys}}, {"uid": 1, "value": 1, "expire": 1}):
                if not _is_expired(document, now):
                    result[document["uid"]] = document.get("value")

        self._hits += len(result)
        self._misses += len(keys) - len(result)
        return result

    def has(self, key: str) -> bool:
        """Check existence without fetching the value."""
        self._validate_key(key)
        if not self._options.readable:
            return False

        collection = self._get_collection()
        with self._backend_call("has", key):
            return self._find_live(collection, key, datetime.now(UTC)) is not None

    def has_many(self, keys: Iterable[str]) -> set[str]:
        keys = self._validate_keys(keys)
        if not keys or not self._options.readable:
            return set()

        collection = self._get_collection()
        now = datetime.now(UTC)
        with self._backend_call("has_many"):
            return {
                document["uid"]
                for document in collection.find({"uid": {"$in": keys}}, {"uid": 1, "expire": 1})
                if not _is_expired(document, now)
            }

    def get_metadata(self, key: str) -> dict[str, Any] | None:
        self._validate_key(key)
        if not self._options.readable:
            return None

        collection = self._get_collection()
        with self._backend_call("get_metadata", key):
            document = collection.find_one({"uid": key}, {"mtime": 1, "ttl": 1, "expire": 1})

        if document is None or _is_expired(document, datetime.now(UTC)):
            return None
        return self._metadata(document)

    def get_metadatas(self, keys: Iterable[str]) -> dict[str, dict[str, Any]]:
        keys = self._validate_keys(keys)
        if not keys or not self._options.readable:
            return {}

        collection = self._get_collection()
        now = datetime.now(UTC)
        with self._backend_call("get_metadatas"):
            return {
                document["uid"]: self._metadata(document)
                for document in collection.find({"uid": {"$in": keys}}, {"uid": 1, "mtime": 1, "ttl": 1, "expire": 1})
                if not _is_expired(document, now)
            }

    # ------------ Writing ------------

    def set(self, key: str, value: Any) -> bool:
        """Upsert an item. Returns True or raises."""
        self._validate_key(key)
        if not self._options.writable:
            return False

        collection = self._get_collection()
        update = self._write_update(value, datetime.now(UTC))
        with self._backend_call("set", key):
            try:
                collection.update_one({"uid": key}, update, upsert=True)
            except DuplicateKeyError:
                # Lost an upsert race against another writer; the document exists now
                collection.update_one({"uid": key}, update)

        self._sets += 1
        return True

    def add(self, key: str, value: Any) -> bool:
        """Insert an item unless a live one exists. An expired leftover is overwritten."""
        self._validate_key(key)
        if not self._options.writable:
            return False

        collection = self._get_collection()
        now = datetime.now(UTC)
        update = self._write_update(value, now)
        with self._backend_call("add", key):
            existing = collection.find_one({"uid": key}, {"expire": 1})
            if existing is not None:
                if not _is_expired(existing, now):
                    return False
                # Only overwrite if nobody rewrote the expired document meanwhile
                result = collection.update_one({"_id": existing["_id"], "expire": existing["expire"]}, update)
                if result.matched_count == 0:
                    return False
            else:
                document = {"uid": key, **update["$set"]}
                try:
                    collection.insert_one(document)
                except DuplicateKeyError:
                    return False

        self._sets += 1
        return True

    def replace(self, key: str, value: Any) -> bool:
        """Update a live item. Returns False when the key is missing or expired."""
        self._validate_key(key)
        if not self._options.writable:
            return False

        collection = self._get_collection()
        now = datetime.now(UTC)
        with self._backend_call("replace", key):
            existing = self._find_live(collection, key, now)
            if existing is None:
                return False
            result = collection.update_one({"_id": existing["_id"]}, self._write_update(value, now))

        if result.matched_count == 0:
            return False
        self._sets += 1
        return True

    def check_and_set(self, token: Any, key: str, value: Any) -> bool:
        """Atomically replace a live item only if its value still equals ``token``."""
        self._validate_key(key)
        if not self._options.writable:
            return False

        collection = self._get_collection()
        now = datetime.now(UTC)
        with self._backend_call("check_and_set", key):
            existing = self._find_live(collection, key, now)
            if existing is None:
                return False
            # Exact comparison: a plain {"value": token} filter also matches arrays containing token
            result = collection.update_one(
                {"_id": existing["_id"], "$expr": {"$eq": ["$value", {"$literal": token}]}},
                self._write_update(value, now),
            )

        if result.matched_count == 0:
            return False
        self._sets += 1
        return True

    def touch(self, key: str) -> bool:
        """Recompute the expiry of a live item from the current TTL."""
        self._validate_key(key)
        if not self._options.writable:
            return False

        collection = self._get_collection()
        now = datetime.now(UTC)
        fields, unset = self._expiry_fields(now)
        update: dict[str, Any] = {"$set": fields}
        if unset:
            update["$unset"] = unset

        with self._backend_call("touch", key):
            existing = self._find_live(collection, key, now)
            if existing is None:
                return False
            result = collection.update_one({"_id": existing["_id"]}, update)

        return result.matched_count == 1

    def increment(self, key: str, delta: int | float = 1) -> int | float | None:
        """
        Atomically add ``delta`` to a numeric item.

        A missing or expired item is created with ``delta`` as its value.

        Returns:
            The new value, or None if the backend is not writable

        Raises:
            BackendOperationError: If the stored value is not numeric
        """
        self._validate_key(key)
        if isinstance(delta, bool) or not isinstance(delta, int | float):
            raise ValidationError("Increment delta must be a number", {"delta": repr(delta)})
        if not self._options.writable:
            return None

        collection = self._get_collection()
        now = datetime.now(UTC)
        with self._backend_call("increment", key):
            existing = self._find_live(collection, key, now)
            if existing is not None:
                document = collection.find_one_and_update(
                    {"_id": existing["_id"]},
                    {"$inc": {"value": delta}, "$set": {"mtime": now}},
                    projection={"value": 1},
                    return_document=ReturnDocument.AFTER,
                )
                if document is not None:
                    self._sets += 1
                    return document["value"]

        self.set(key, delta)
        return delta

    def decrement(self, key: str, delta: int | float = 1) -> int | float | None:
        return self.increment(key, -delta)

    # ------------ Removing ------------

    def remove(self, key: str) -> bool:
        """
        Delete an item.

        Returns:
            True if a live item was deleted. An expired leftover is deleted too
            but reported as False, since it was already logically absent.
        """
        self._validate_key(key)
        if not self._options.writable:
            return False

        collection = self._get_collection()
        with self._backend_call("remove", key):
            document = collection.find_one_and_delete({"uid": key}, projection={"expire": 1})

        if document is None:
            return False
        self._deletes += 1
        return not _is_expired(document, datetime.now(UTC))

    def flush(self) -> bool:
        """Delete every item in the configured database and collection."""
        collection = self._get_collection()
        with self._backend_call("flush"):
            result = collection.delete_many({})

        full_name = f"{collection.database.name}.{collection.name}"
        self._deletes += result.deleted_count
        logger.info(
            f"Flushed {result.deleted_count} items from {full_name}",
            extra={"collection": full_name, "deleted": result.deleted_count},
        )
        return True

    # ------------ Status ------------

    def get_capabilities(self) -> Capabilities:
        if self._capabilities is None:
            self._capabilities = Capabilities(
                supported_datatypes=MappingProxyType(
                    {
                        "NoneType": True,
                        "bool": True,
                        "int": True,
                        "float": True,
                        "str": True,
                        "list": True,
                        "tuple": "list",
                        "dict": True,
                        "bytes": False,
                        "object": False,
                    }
                ),
                supported_metadata=("id", "ctime", "mtime", "ttl", "expire"),
                min_ttl=1,
                max_ttl=0,
                static_ttl=True,
                ttl_precision=1,
                use_request_time=False,
                expired_read=False,
                max_key_length=MAX_KEY_LENGTH,
                namespace_is_prefix=False,
            )
        return self._capabilities

    def get_stats(self) -> dict[str, Any]:
        """Return counters plus connectivity of the configured resource."""
        options = self._options
        total_requests = self._hits + self._misses
        stats: dict[str, Any] = {
            "backend": "mongodb",
            "driver": f"{self._driver.name} {self._driver.version}",
            "resource_id": options.resource_id,
            "namespace": options.namespace,
            "ttl": options.ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round((self._hits / total_requests) * 100, 2) if total_requests else 0.0,
            "sets": self._sets,
            "deletes": self._deletes,
            "initialized": self.initialized,
            "connected": False,
        }

        try:
            collection = self._get_collection()
            stats["database"] = collection.database.name
            stats["collection"] = collection.name
            with self._backend_call("ping"):
                result = collection.database.client.admin.command("ping")
            if result.get("ok") != 1:
                raise BackendOperationError.from_result(result, "ping")
            stats["connected"] = True
        except (BackendOperationError, NotFoundError) as e:
            logger.warning(f"MongoDB ping failed: {e}", extra={"resource_id": options.resource_id, "error": str(e)})

        return stats

    def close(self) -> None:
        """
        Drop this backend's collection handle.

        The client itself belongs to the resource manager and may be shared by
        other backends; close it with MongoDBResourceManager.close().
        """
        self._collection = None
        self._stamp = None
        logger.debug(f"Closed MongoDB cache backend for resource '{self._options.resource_id}'")
