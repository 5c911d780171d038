"""
mongocache — Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests.
MongoDB is replaced by mongomock: every client the resource manager builds is a
mongomock client bound to one in-memory server store per test, so data survives
client rebuilds exactly like it would against a real server.
"""

import os
from collections.abc import Generator
from typing import Any

import mongomock
import pytest
from mongomock.store import ServerStore

from mongocache.cache.backends.mongodb import (
    DriverInfo,
    MongoDBCacheBackend,
    MongoDBOptions,
    MongoDBResourceManager,
    probe_driver,
)

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


class RecordingClientFactory:
    """Client factory that records every (uri, kwargs) it is called with."""

    def __init__(self, store: ServerStore) -> None:
        self.store = store
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, uri: str, **kwargs: Any) -> mongomock.MongoClient:
        self.calls.append((uri, kwargs))
        return mongomock.MongoClient(_store=self.store)


@pytest.fixture
def mongo_store() -> ServerStore:
    """In-memory server shared by all clients of one test."""
    return ServerStore()


@pytest.fixture
def client_factory(mongo_store: ServerStore) -> RecordingClientFactory:
    return RecordingClientFactory(mongo_store)


@pytest.fixture
def raw_client(mongo_store: ServerStore) -> mongomock.MongoClient:
    """Direct access to the in-memory server, bypassing the cache."""
    return mongomock.MongoClient(_store=mongo_store)


@pytest.fixture
def resource_manager(client_factory: RecordingClientFactory) -> MongoDBResourceManager:
    return MongoDBResourceManager(client_factory=client_factory)


@pytest.fixture
def driver() -> DriverInfo:
    return probe_driver()


@pytest.fixture
def options(resource_manager: MongoDBResourceManager) -> MongoDBOptions:
    """Options pointing the default resource at a test database."""
    return MongoDBOptions(
        {"servers": "localhost:27017", "database": "test_cache", "collection": "items"},
        resource_manager=resource_manager,
    )


@pytest.fixture
def cache(options: MongoDBOptions, driver: DriverInfo) -> Generator[MongoDBCacheBackend, None, None]:
    """
    Create a MongoDB cache backend for testing.

    Clears the collection before and after each test.
    """
    backend = MongoDBCacheBackend(options, driver=driver)
    backend.flush()

    yield backend

    backend.flush()
    backend.close()


@pytest.fixture
def sample_cache_data() -> dict[str, Any]:
    """Sample data for cache testing."""
    return {
        "simple_string": "hello",
        "simple_int": 42,
        "simple_float": 3.14,
        "simple_bool": True,
        "simple_none": None,
        "complex_dict": {
            "nested": {
                "key": "value",
                "number": 123,
                "list": [1, 2, 3],
            }
        },
        "complex_list": [
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ],
    }


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every variable the config loader reads."""
    for name in list(os.environ):
        if name.startswith(("MONGODB_", "CACHE_")) or name in ("LOG_JSON",):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_cache_factory() -> Generator[None, None, None]:
    """Reset cache factory and loaded config after each test to prevent state leakage."""
    yield
    from mongocache.cache.factory import reset_cache_factory
    from mongocache.config import reset_config

    reset_cache_factory()
    reset_config()
