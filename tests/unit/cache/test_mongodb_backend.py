"""
mongocache — MongoDB Cache Backend Tests

Comprehensive test suite for the MongoDB cache backend, run against mongomock.
Tests read/write semantics, TTL handling, metadata, capabilities, re-resolution
after option changes and the translation of driver errors.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock

import mongomock
import pytest
from pymongo.errors import AutoReconnect, OperationFailure
from pymongo.errors import ConfigurationError as DriverConfigurationError

from mongocache.cache.backends.mongodb import DriverInfo, MongoDBCacheBackend, MongoDBOptions, MongoDBResourceManager
from mongocache.cache.interface import CacheLookup
from mongocache.errors import BackendOperationError, ExtensionUnavailableError, ValidationError


def _insert_expired(raw_client: mongomock.MongoClient, key: str, value: Any) -> None:
    """Store a document whose expiry already passed, as the TTL sweep would find it."""
    now = datetime.now(UTC)
    raw_client["test_cache"]["items"].insert_one(
        {
            "uid": key,
            "value": value,
            "mtime": now - timedelta(seconds=20),
            "ttl": 10,
            "expire": now - timedelta(seconds=10),
        }
    )


class TestConstruction:
    """Test suite for backend construction."""

    def test_mapping_options(self, driver: DriverInfo, resource_manager) -> None:
        cache = MongoDBCacheBackend({"resource_manager": resource_manager, "ttl": 5}, driver=driver)

        assert isinstance(cache.get_options(), MongoDBOptions)
        assert cache.get_options().ttl == 5

    def test_driver_too_old(self, options: MongoDBOptions) -> None:
        old_driver = DriverInfo(name="pymongo", version="3.12.0", version_tuple=(3, 12, 0), client_class=object)

        with pytest.raises(ExtensionUnavailableError) as exc_info:
            MongoDBCacheBackend(options, driver=old_driver)
        assert exc_info.value.details["found"] == "3.12.0"
        assert exc_info.value.details["required"] == "4.0"

    def test_collection_is_resolved_lazily(self, options: MongoDBOptions, driver: DriverInfo, client_factory) -> None:
        cache = MongoDBCacheBackend(options, driver=driver)
        assert cache.initialized is False
        assert client_factory.calls == []

        cache.set("key1", "value1")

        assert cache.initialized is True
        assert client_factory.calls == [("mongodb://localhost:27017", {"w": 1, "connect": True})]

    def test_indexes_are_created(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        index_info = raw_client["test_cache"]["items"].index_information()

        assert index_info["uid_unique"]["unique"] is True
        assert index_info["expire_ttl"]["key"] == [("expire", 1)]


class TestReadWrite:
    """Test suite for the basic item operations."""

    def test_set_and_get(self, cache: MongoDBCacheBackend) -> None:
        assert cache.set("key1", "value1") is True
        assert cache.get("key1") == "value1"

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 0
        assert stats["sets"] == 1

    def test_get_nonexistent_key(self, cache: MongoDBCacheBackend) -> None:
        assert cache.get("nonexistent") is None
        assert cache.get("nonexistent", "fallback") == "fallback"
        assert cache.lookup("nonexistent") == CacheLookup(found=False)

        stats = cache.get_stats()
        assert stats["misses"] == 3
        assert stats["hits"] == 0

    def test_lookup_distinguishes_stored_none(self, cache: MongoDBCacheBackend) -> None:
        cache.set("nothing", None)

        result = cache.lookup("nothing")
        assert result.found is True
        assert result.value is None

    def test_set_with_various_types(self, cache: MongoDBCacheBackend, sample_cache_data: dict[str, Any]) -> None:
        for key, value in sample_cache_data.items():
            assert cache.set(key, value) is True

        for key, expected_value in sample_cache_data.items():
            assert cache.get(key) == expected_value

    def test_tuple_is_stored_as_list(self, cache: MongoDBCacheBackend) -> None:
        cache.set("pair", (1, 2))
        assert cache.get("pair") == [1, 2]

    def test_set_overwrites(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        cache.set("key1", "first")
        cache.set("key1", "second")

        assert cache.get("key1") == "second"
        assert raw_client["test_cache"]["items"].count_documents({"uid": "key1"}) == 1

    def test_document_layout(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        cache.get_options().ttl = 60
        cache.set("key1", "value1")

        document = raw_client["test_cache"]["items"].find_one({"uid": "key1"})
        assert document["value"] == "value1"
        assert document["ttl"] == 60
        assert 59 <= (document["expire"] - document["mtime"]).total_seconds() <= 60

    def test_no_expiry_field_without_ttl(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        cache.get_options().ttl = 60
        cache.set("key1", "value1")
        cache.get_options().ttl = 0
        cache.set("key1", "value2")

        document = raw_client["test_cache"]["items"].find_one({"uid": "key1"})
        assert "expire" not in document
        assert document["ttl"] == 0

    def test_has(self, cache: MongoDBCacheBackend) -> None:
        assert cache.has("key1") is False
        cache.set("key1", "value1")
        assert cache.has("key1") is True

    def test_add(self, cache: MongoDBCacheBackend) -> None:
        assert cache.add("key1", "first") is True
        assert cache.add("key1", "second") is False
        assert cache.get("key1") == "first"

    def test_replace(self, cache: MongoDBCacheBackend) -> None:
        assert cache.replace("key1", "value") is False
        assert cache.has("key1") is False

        cache.set("key1", "first")
        assert cache.replace("key1", "second") is True
        assert cache.get("key1") == "second"

    def test_remove(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", "value1")

        assert cache.remove("key1") is True
        assert cache.has("key1") is False
        assert cache.remove("key1") is False

    def test_flush(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", "value1")
        cache.set("key2", "value2")

        assert cache.flush() is True
        assert cache.has("key1") is False
        assert cache.has("key2") is False

    def test_flush_leaves_other_collections(
        self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient
    ) -> None:
        raw_client["test_cache"]["unrelated"].insert_one({"x": 1})
        cache.set("key1", "value1")

        cache.flush()

        assert raw_client["test_cache"]["unrelated"].count_documents({}) == 1


class TestBatchOperations:
    """Test suite for the multi-key operations."""

    def test_get_many(self, cache: MongoDBCacheBackend) -> None:
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.get_many(["a", "b", "missing", "a"]) == {"a": 1, "b": 2}
        assert cache.get_many([]) == {}

    def test_has_many(self, cache: MongoDBCacheBackend) -> None:
        cache.set("a", 1)
        assert cache.has_many(["a", "missing"]) == {"a"}

    def test_set_many(self, cache: MongoDBCacheBackend) -> None:
        assert cache.set_many({"a": 1, "b": [2]}) == []
        assert cache.get_many(["a", "b"]) == {"a": 1, "b": [2]}

    def test_remove_many(self, cache: MongoDBCacheBackend) -> None:
        cache.set_many({"a": 1, "b": 2})
        assert cache.remove_many(["a", "b", "c"]) == ["c"]


class TestExpiry:
    """Test suite for TTL handling."""

    def test_expired_item_is_absent(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        _insert_expired(raw_client, "old", "stale")

        assert cache.get("old") is None
        assert cache.has("old") is False
        assert cache.get_many(["old"]) == {}
        assert cache.has_many(["old"]) == set()
        assert cache.get_metadata("old") is None
        assert cache.get_metadatas(["old"]) == {}

    def test_add_overwrites_expired_item(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        _insert_expired(raw_client, "old", "stale")

        assert cache.add("old", "fresh") is True
        assert cache.get("old") == "fresh"

    def test_replace_ignores_expired_item(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        _insert_expired(raw_client, "old", "stale")

        assert cache.replace("old", "fresh") is False
        assert cache.get("old") is None

    def test_remove_expired_item(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        _insert_expired(raw_client, "old", "stale")

        assert cache.remove("old") is False
        assert raw_client["test_cache"]["items"].count_documents({"uid": "old"}) == 0

    def test_touch_extends_expiry(self, cache: MongoDBCacheBackend) -> None:
        options = cache.get_options()
        options.ttl = 60
        cache.set("key1", "value1")
        before = cache.get_metadata("key1")

        options.ttl = 120
        assert cache.touch("key1") is True

        after = cache.get_metadata("key1")
        assert after["ttl"] == 120
        assert after["expire"] > before["expire"]
        assert cache.get("key1") == "value1"

    def test_touch_missing_item(self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient) -> None:
        _insert_expired(raw_client, "old", "stale")

        assert cache.touch("missing") is False
        assert cache.touch("old") is False


class TestMetadata:
    """Test suite for metadata and capabilities."""

    def test_get_metadata(self, cache: MongoDBCacheBackend) -> None:
        cache.get_options().ttl = 60
        cache.set("key1", "value1")

        metadata = cache.get_metadata("key1")

        assert set(metadata) == {"id", "ctime", "mtime", "ttl", "expire"}
        assert metadata["ttl"] == 60
        assert isinstance(metadata["id"], str)
        assert metadata["ctime"] is not None
        assert metadata["expire"] == pytest.approx(metadata["mtime"] + 60, abs=1)

    def test_get_metadata_without_ttl(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", "value1")

        metadata = cache.get_metadata("key1")
        assert metadata["ttl"] == 0
        assert metadata["expire"] is None

    def test_get_metadata_missing(self, cache: MongoDBCacheBackend) -> None:
        assert cache.get_metadata("missing") is None

    def test_get_metadatas(self, cache: MongoDBCacheBackend) -> None:
        cache.set("a", 1)
        cache.set("b", 2)

        metadatas = cache.get_metadatas(["a", "b", "missing"])
        assert set(metadatas) == {"a", "b"}
        assert metadatas["a"]["id"] != metadatas["b"]["id"]

    def test_capabilities(self, cache: MongoDBCacheBackend) -> None:
        capabilities = cache.get_capabilities()

        assert capabilities is cache.get_capabilities()
        assert capabilities.supported_metadata == ("id", "ctime", "mtime", "ttl", "expire")
        assert capabilities.min_ttl == 1
        assert capabilities.max_ttl == 0
        assert capabilities.max_key_length == 255
        assert capabilities.namespace_is_prefix is False
        assert capabilities.supported_datatypes["tuple"] == "list"

        assert capabilities.supports({"a": 1})
        assert capabilities.supports((1, 2))
        assert not capabilities.supports(b"raw")
        assert not capabilities.supports(object())

        as_dict = capabilities.to_dict()
        assert as_dict["supported_metadata"] == ["id", "ctime", "mtime", "ttl", "expire"]
        assert as_dict["supported_datatypes"]["str"] is True


class TestCompareAndCount:
    """Test suite for check_and_set() and increment()/decrement()."""

    def test_check_and_set(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", "first")
        token = cache.lookup("key1").cas_token

        assert cache.check_and_set(token, "key1", "second") is True
        assert cache.get("key1") == "second"

        # The token is stale now
        assert cache.check_and_set(token, "key1", "third") is False
        assert cache.get("key1") == "second"

    def test_check_and_set_rejects_array_holding_token(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", 5)
        token = cache.lookup("key1").cas_token

        # Another writer changes the item to an array that contains the old value
        cache.set("key1", [5, 6])

        assert cache.check_and_set(token, "key1", "stale") is False
        assert cache.get("key1") == [5, 6]

    def test_check_and_set_with_array_token(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", [5, 6])
        token = cache.lookup("key1").cas_token

        assert cache.check_and_set(token, "key1", {"replaced": True}) is True
        assert cache.get("key1") == {"replaced": True}

    def test_check_and_set_missing_item(self, cache: MongoDBCacheBackend) -> None:
        assert cache.check_and_set("anything", "missing", "value") is False
        assert cache.has("missing") is False

    def test_increment_and_decrement(self, cache: MongoDBCacheBackend) -> None:
        assert cache.increment("counter") == 1
        assert cache.increment("counter", 5) == 6
        assert cache.decrement("counter", 2) == 4
        assert cache.get("counter") == 4

    def test_increment_expired_item_restarts(
        self, cache: MongoDBCacheBackend, raw_client: mongomock.MongoClient
    ) -> None:
        _insert_expired(raw_client, "counter", 100)
        assert cache.increment("counter", 3) == 3

    def test_increment_rejects_non_numeric_delta(self, cache: MongoDBCacheBackend) -> None:
        with pytest.raises(ValidationError):
            cache.increment("counter", "1")  # type: ignore[arg-type]
        with pytest.raises(ValidationError):
            cache.increment("counter", True)


class TestKeyValidation:
    """Test suite for key validation."""

    @pytest.mark.parametrize("key", ["", 42, None])
    def test_invalid_keys(self, cache: MongoDBCacheBackend, key: Any) -> None:
        with pytest.raises(ValidationError):
            cache.get(key)

    def test_key_too_long(self, cache: MongoDBCacheBackend) -> None:
        cache.set("k" * 255, "ok")
        with pytest.raises(ValidationError):
            cache.set("k" * 256, "too long")

    def test_key_pattern(self, cache: MongoDBCacheBackend) -> None:
        cache.get_options().key_pattern = "^[a-z_]+$"

        assert cache.set("valid_key", 1) is True
        with pytest.raises(ValidationError) as exc_info:
            cache.set("Invalid-Key", 1)
        assert exc_info.value.details["pattern"] == "^[a-z_]+$"

    def test_batch_keys_are_validated(self, cache: MongoDBCacheBackend) -> None:
        with pytest.raises(ValidationError):
            cache.get_many(["ok", ""])


class TestReadableWritable:
    """Test suite for the readable/writable switches."""

    def test_not_readable(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", "value1")
        cache.get_options().readable = False

        assert cache.get("key1") is None
        assert cache.has("key1") is False
        assert cache.get_many(["key1"]) == {}
        assert cache.get_metadata("key1") is None

    def test_not_writable(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", "value1")
        cache.get_options().writable = False

        assert cache.set("key1", "changed") is False
        assert cache.add("key2", "value") is False
        assert cache.replace("key1", "changed") is False
        assert cache.remove("key1") is False
        assert cache.touch("key1") is False
        assert cache.increment("counter") is None
        assert cache.set_many({"a": 1}) == ["a"]

        cache.get_options().writable = True
        assert cache.get("key1") == "value1"
        assert cache.has("key2") is False


class TestReResolution:
    """Test suite for picking up option changes."""

    def test_database_switch_isolates_items(self, cache: MongoDBCacheBackend) -> None:
        options = cache.get_options()
        cache.set("key1", "in_test_cache")

        options.set_database("other_db")
        assert cache.initialized is False
        assert cache.has("key1") is False
        cache.set("key1", "in_other_db")

        options.set_database("test_cache")
        assert cache.get("key1") == "in_test_cache"

        options.set_database("other_db")
        assert cache.get("key1") == "in_other_db"
        cache.flush()

    def test_change_on_manager_is_picked_up(self, cache: MongoDBCacheBackend) -> None:
        manager = cache.get_options().get_resource_manager()
        cache.set("key1", "value1")

        manager.set_collection("default", "other_items")

        assert cache.has("key1") is False

    def test_connection_change_rebuilds_client(self, cache: MongoDBCacheBackend, client_factory) -> None:
        cache.set("key1", "value1")
        calls = len(client_factory.calls)

        cache.get_options().set_replica_set("rs0")
        assert cache.get("key1") == "value1"

        assert len(client_factory.calls) == calls + 1
        assert client_factory.calls[-1][1]["replicaSet"] == "rs0"

    def test_set_options_replaces_options(self, cache: MongoDBCacheBackend, resource_manager) -> None:
        cache.set("key1", "value1")
        resource_manager.set_resource("second", {"database": "test_cache", "collection": "items"})

        cache.set_options({"resource_manager": resource_manager, "resource_id": "second"})

        assert cache.initialized is False
        assert cache.get("key1") == "value1"
        assert cache.get_options().resource_id == "second"

    def test_unregistered_resource_id(self, cache: MongoDBCacheBackend) -> None:
        options = cache.get_options()
        options.resource_id = "nowhere"

        stats = cache.get_stats()
        assert stats["connected"] is False
        assert stats["initialized"] is False
        assert stats["resource_id"] == "nowhere"

        options.resource_id = "default"


class TestBackendErrors:
    """Test suite for driver error translation."""

    @pytest.fixture
    def failing_collection(self, cache: MongoDBCacheBackend, monkeypatch: pytest.MonkeyPatch) -> MagicMock:
        collection = MagicMock()
        monkeypatch.setattr(cache, "_get_collection", lambda: collection)
        return collection

    def test_operation_failure(self, cache: MongoDBCacheBackend, failing_collection: MagicMock) -> None:
        failing_collection.find_one.side_effect = OperationFailure(
            "not authorized",
            code=13,
            details={"ok": 0, "errmsg": "not authorized on test_cache", "code": 13, "codeName": "Unauthorized"},
        )

        with pytest.raises(BackendOperationError) as exc_info:
            cache.get("key1")

        assert exc_info.value.message == "not authorized on test_cache"
        assert exc_info.value.details == {"operation": "get", "code": 13, "code_name": "Unauthorized"}

    def test_operation_failure_without_details(
        self, cache: MongoDBCacheBackend, failing_collection: MagicMock
    ) -> None:
        failing_collection.update_one.side_effect = OperationFailure("disk full")

        with pytest.raises(BackendOperationError) as exc_info:
            cache.set("key1", "value1")
        assert "disk full" in exc_info.value.message

    def test_connection_failure(self, cache: MongoDBCacheBackend, failing_collection: MagicMock) -> None:
        failing_collection.delete_many.side_effect = AutoReconnect("connection reset")

        with pytest.raises(BackendOperationError) as exc_info:
            cache.flush()
        assert exc_info.value.details["operation"] == "flush"

    def test_client_construction_failure(self, driver: DriverInfo) -> None:
        def reject(uri: str, **kwargs: Any) -> None:
            raise DriverConfigurationError("readPreferenceTags require a non-primary read preference")

        manager = MongoDBResourceManager(client_factory=reject)
        manager.set_resource("default", {"read_preference": "primary", "read_preference_tags": ["dc:ny"]})
        cache = MongoDBCacheBackend({"resource_manager": manager}, driver=driver)

        with pytest.raises(BackendOperationError) as exc_info:
            cache.get("key1")
        assert exc_info.value.details["operation"] == "connect"

        stats = cache.get_stats()
        assert stats["connected"] is False

    def test_ping_failure_is_reported_in_stats(
        self, cache: MongoDBCacheBackend, failing_collection: MagicMock
    ) -> None:
        failing_collection.database.client.admin.command.return_value = {"ok": 0, "errmsg": "shutting down"}

        stats = cache.get_stats()
        assert stats["connected"] is False


class TestStats:
    """Test suite for get_stats() and close()."""

    def test_stats(self, cache: MongoDBCacheBackend) -> None:
        cache.set("key1", "value1")
        cache.get("key1")
        cache.get("missing")
        cache.remove("key1")

        stats = cache.get_stats()

        assert stats["backend"] == "mongodb"
        assert stats["driver"].startswith("pymongo ")
        assert stats["database"] == "test_cache"
        assert stats["collection"] == "items"
        assert stats["namespace"] == "mongocache"
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0
        assert stats["sets"] == 1
        assert stats["deletes"] == 1
        assert stats["connected"] is True
        assert stats["initialized"] is True

    def test_close_keeps_shared_client(self, cache: MongoDBCacheBackend, client_factory) -> None:
        cache.set("key1", "value1")
        calls = len(client_factory.calls)

        cache.close()
        assert cache.initialized is False

        assert cache.get("key1") == "value1"
        assert len(client_factory.calls) == calls
