"""
Tests for the store connector and the Motor-backed snapshot store.

Coroutines are driven with asyncio.run; Motor is replaced by fakes.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from bson.errors import InvalidDocument
from pymongo.errors import ConfigurationError, PyMongoError, ServerSelectionTimeoutError

from snapshot_api.config import Settings
from snapshot_api.database import (
    MongoSnapshotStore,
    StoreConfigurationError,
    StoreConnectionError,
    StoreConnector,
    StoreOperationError,
)


def make_settings(**overrides) -> Settings:
    """Settings that ignore the environment and local files."""
    values = {
        "mongo_uri": "mongodb://localhost:27017",
        "mongo_database": "test_data",
        "mongo_collection": "snapshot",
        "connect_timeout_seconds": 1.0,
        "operation_timeout_seconds": 1.0,
        "scan_timeout_seconds": 1.0,
    }
    values.update(overrides)
    return Settings.model_construct(**values)


class FakeMotorClient:
    """Minimal AsyncIOMotorClient stand-in."""

    def __init__(self, ping_error=None, ping_delay=0.0):
        self.ping_error = ping_error
        self.ping_delay = ping_delay
        self.closed = False
        self.collections = {}
        self.admin = MagicMock()
        self.admin.command = self._command

    async def _command(self, name):
        await asyncio.sleep(self.ping_delay)
        if self.ping_error is not None:
            raise self.ping_error
        return {"ok": 1.0}

    def __getitem__(self, database):
        databases = self.collections.setdefault(database, {})
        db = MagicMock()
        db.__getitem__.side_effect = lambda name: databases.setdefault(name, MagicMock(name=name))
        return db

    def close(self):
        self.closed = True


class TestStoreConnector:
    """Tests for single initialization and cached outcomes."""

    def test_missing_uri_is_configuration_error(self):
        factory = MagicMock()
        connector = StoreConnector(make_settings(mongo_uri=None), client_factory=factory)

        with pytest.raises(StoreConfigurationError):
            asyncio.run(connector.get_store())

        factory.assert_not_called()

    def test_configuration_error_is_cached(self):
        factory = MagicMock()
        connector = StoreConnector(make_settings(mongo_uri=None), client_factory=factory)

        for _ in range(3):
            with pytest.raises(StoreConfigurationError):
                asyncio.run(connector.get_store())

        assert connector.initialized is True
        factory.assert_not_called()

    def test_successful_connect_returns_store(self):
        client = FakeMotorClient()
        factory = MagicMock(return_value=client)
        connector = StoreConnector(make_settings(), client_factory=factory)

        store = asyncio.run(connector.get_store())

        assert isinstance(store, MongoSnapshotStore)
        factory.assert_called_once()
        uri = factory.call_args.args[0]
        assert uri == "mongodb://localhost:27017"
        assert factory.call_args.kwargs["serverSelectionTimeoutMS"] == 1000

    def test_store_is_reused(self):
        factory = MagicMock(return_value=FakeMotorClient())
        connector = StoreConnector(make_settings(), client_factory=factory)

        async def fetch_twice():
            return await connector.get_store(), await connector.get_store()

        first, second = asyncio.run(fetch_twice())

        assert first is second
        factory.assert_called_once()

    def test_concurrent_first_requests_initialize_once(self):
        """Many simultaneous first callers share one connection attempt."""
        factory = MagicMock(return_value=FakeMotorClient(ping_delay=0.01))
        connector = StoreConnector(make_settings(), client_factory=factory)

        async def fetch_many():
            return await asyncio.gather(*(connector.get_store() for _ in range(10)))

        stores = asyncio.run(fetch_many())

        assert len({id(store) for store in stores}) == 1
        factory.assert_called_once()

    def test_failed_ping_is_cached_connection_error(self):
        client = FakeMotorClient(ping_error=ServerSelectionTimeoutError("no servers"))
        factory = MagicMock(return_value=client)
        connector = StoreConnector(make_settings(), client_factory=factory)

        async def fetch_twice():
            errors = []
            for _ in range(2):
                try:
                    await connector.get_store()
                except StoreConnectionError as e:
                    errors.append(e)
            return errors

        errors = asyncio.run(fetch_twice())

        assert len(errors) == 2
        assert errors[0] is errors[1]
        assert client.closed is True
        factory.assert_called_once()

    def test_ping_timeout_is_connection_error(self):
        client = FakeMotorClient(ping_delay=0.5)
        factory = MagicMock(return_value=client)
        connector = StoreConnector(
            make_settings(connect_timeout_seconds=0.01), client_factory=factory
        )

        with pytest.raises(StoreConnectionError):
            asyncio.run(connector.get_store())

    def test_invalid_uri_is_connection_error(self):
        factory = MagicMock(side_effect=ConfigurationError("bad uri"))
        connector = StoreConnector(make_settings(mongo_uri="nonsense://"), client_factory=factory)

        with pytest.raises(StoreConnectionError):
            asyncio.run(connector.get_store())

    def test_close_resets_connector(self):
        clients = [FakeMotorClient(), FakeMotorClient()]
        factory = MagicMock(side_effect=clients)
        connector = StoreConnector(make_settings(), client_factory=factory)

        async def connect_close_connect():
            await connector.get_store()
            await connector.close()
            assert connector.initialized is False
            await connector.get_store()

        asyncio.run(connect_close_connect())

        assert clients[0].closed is True
        assert factory.call_count == 2

    def test_store_uses_configured_collection(self):
        client = FakeMotorClient()
        connector = StoreConnector(
            make_settings(mongo_database="mockdb", mongo_collection="snaps"),
            client_factory=MagicMock(return_value=client),
        )

        store = asyncio.run(connector.get_store())

        assert store.collection is client.collections["mockdb"]["snaps"]


class TestMongoSnapshotStore:
    """Tests for the Motor-backed store operations."""

    def setup_method(self):
        self.collection = MagicMock()
        self.store = MongoSnapshotStore(self.collection, operation_timeout=1.0, scan_timeout=2.0)

    def test_find_one_passes_filter(self):
        self.collection.find_one = AsyncMock(return_value={"client_name": "WEB1"})

        document = asyncio.run(self.store.find_one({"client_name": "WEB1"}))

        assert document == {"client_name": "WEB1"}
        self.collection.find_one.assert_awaited_once_with({"client_name": "WEB1"})

    def test_find_all_scans_without_filter(self):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=[{"a": 1}, {"b": 2}])
        self.collection.find = MagicMock(return_value=cursor)

        documents = asyncio.run(self.store.find_all())

        assert documents == [{"a": 1}, {"b": 2}]
        self.collection.find.assert_called_once_with({})
        cursor.to_list.assert_awaited_once_with(length=None)

    def test_insert_returns_inserted_id(self):
        inserted_id = ObjectId()
        self.collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=inserted_id))

        assert asyncio.run(self.store.insert_one({"a": 1})) == inserted_id

    def test_update_sets_fields(self):
        self.collection.update_one = AsyncMock(return_value=MagicMock(
            matched_count=1, modified_count=1, upserted_id=None,
        ))

        outcome = asyncio.run(self.store.update_one({"client_name": "WEB1"}, {"prefix": "p"}, False))

        assert (outcome.matched, outcome.modified, outcome.upserted_id) == (1, 1, None)
        self.collection.update_one.assert_awaited_once_with(
            {"client_name": "WEB1"}, {"$set": {"prefix": "p"}}, upsert=False,
        )

    def test_delete_returns_count(self):
        self.collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
        assert asyncio.run(self.store.delete_one({"client_name": "WEB1"})) == 1

    def test_driver_error_becomes_operation_error(self):
        self.collection.insert_one = AsyncMock(side_effect=PyMongoError("duplicate key"))

        with pytest.raises(StoreOperationError) as exc_info:
            asyncio.run(self.store.insert_one({"a": 1}))

        assert exc_info.value.operation == "insert_one"
        assert "duplicate key" in exc_info.value.detail

    @pytest.mark.parametrize("error", [
        OverflowError("MongoDB can only handle up to 8-byte ints"),
        InvalidDocument("cannot encode object"),
    ])
    def test_encoding_error_becomes_operation_error(self, error):
        self.collection.insert_one = AsyncMock(side_effect=error)

        with pytest.raises(StoreOperationError) as exc_info:
            asyncio.run(self.store.insert_one({"n": 2 ** 66}))

        assert exc_info.value.operation == "insert_one"
        assert str(error) in exc_info.value.detail

    def test_slow_operation_times_out(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(0.5)

        self.collection.delete_one = slow
        store = MongoSnapshotStore(self.collection, operation_timeout=0.01)

        with pytest.raises(StoreOperationError) as exc_info:
            asyncio.run(store.delete_one({}))

        assert "timed out" in exc_info.value.detail
