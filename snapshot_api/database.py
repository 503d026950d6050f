"""
Document store connection and the snapshot store capability.

The connector owns a single Motor client for the process. It connects
lazily: the first caller pays for connect + ping, every later caller gets
the cached store or the cached error.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from bson.errors import BSONError
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from snapshot_api import metrics
from snapshot_api.config import Settings
from snapshot_api.logging import TimedOperation, get_logger

logger = get_logger(__name__)


class StoreError(Exception):
    """Base class for document store failures."""


class StoreConfigurationError(StoreError):
    """Raised when no connection string can be resolved."""


class StoreConnectionError(StoreError):
    """Raised when the document store cannot be reached."""


class StoreOperationError(StoreError):
    """Raised when a single store operation fails or times out."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


@dataclass
class UpdateOutcome:
    """Counts reported by a single-document update."""
    matched: int
    modified: int
    upserted_id: Any = None


class SnapshotStore(Protocol):
    """Operations the HTTP layer needs from the snapshot collection."""

    async def find_one(self, filter: dict) -> Optional[dict]: ...

    async def find_all(self) -> list[dict]: ...

    async def insert_one(self, document: dict) -> Any: ...

    async def update_one(self, filter: dict, fields: dict, upsert: bool) -> UpdateOutcome: ...

    async def delete_one(self, filter: dict) -> int: ...


class MongoSnapshotStore:
    """SnapshotStore backed by a Motor collection."""

    def __init__(
        self,
        collection,
        operation_timeout: float = 10.0,
        scan_timeout: float = 30.0,
    ):
        self.collection = collection
        self.operation_timeout = operation_timeout
        self.scan_timeout = scan_timeout

    async def _run(self, operation: str, awaitable, timeout: float):
        """Await a store call with a deadline, logging and recording metrics."""
        timer = TimedOperation(f"store_{operation}", logger)
        try:
            with timer:
                result = await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            metrics.record_store_operation(operation, timer.duration_seconds, False, "timeout")
            raise StoreOperationError(operation, f"timed out after {timeout}s")
        except PyMongoError as e:
            metrics.record_store_operation(operation, timer.duration_seconds, False, "store_error")
            raise StoreOperationError(operation, str(e)) from e
        except (BSONError, OverflowError) as e:
            # documents the driver cannot encode, e.g. ints wider than 8 bytes
            metrics.record_store_operation(operation, timer.duration_seconds, False, "encode_error")
            raise StoreOperationError(operation, str(e)) from e

        metrics.record_store_operation(operation, timer.duration_seconds, True)
        return result

    async def find_one(self, filter: dict) -> Optional[dict]:
        return await self._run(
            "find_one", self.collection.find_one(filter), self.operation_timeout
        )

    async def find_all(self) -> list[dict]:
        cursor = self.collection.find({})
        return await self._run("find_all", cursor.to_list(length=None), self.scan_timeout)

    async def insert_one(self, document: dict) -> Any:
        result = await self._run(
            "insert_one", self.collection.insert_one(document), self.operation_timeout
        )
        return result.inserted_id

    async def update_one(self, filter: dict, fields: dict, upsert: bool) -> UpdateOutcome:
        result = await self._run(
            "update_one",
            self.collection.update_one(filter, {"$set": fields}, upsert=upsert),
            self.operation_timeout,
        )
        return UpdateOutcome(
            matched=result.matched_count,
            modified=result.modified_count,
            upserted_id=result.upserted_id,
        )

    async def delete_one(self, filter: dict) -> int:
        result = await self._run(
            "delete_one", self.collection.delete_one(filter), self.operation_timeout
        )
        return result.deleted_count


class StoreConnector:
    """
    Single-initialization guard around the document store client.

    Exactly one initialization attempt runs, even under concurrent first
    requests. Its outcome, store or error, is cached until close().
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
    ):
        self.settings = settings
        self.client_factory = client_factory
        self._lock = asyncio.Lock()
        self._initialized = False
        self._client = None
        self._store: Optional[MongoSnapshotStore] = None
        self._error: Optional[StoreError] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def get_store(self) -> SnapshotStore:
        """
        Return the shared store handle.

        Raises:
            StoreConfigurationError: If no connection string was configured
            StoreConnectionError: If the store could not be reached
        """
        if not self._initialized:
            async with self._lock:
                if not self._initialized:
                    await self._initialize()
                    self._initialized = True

        if self._error is not None:
            raise self._error
        return self._store

    async def _initialize(self) -> None:
        uri = self.settings.mongo_uri
        if not uri:
            logger.error("store_connect_failed", error="missing MONGO_URI", outcome="config_error")
            metrics.record_store_connect("config_error")
            self._error = StoreConfigurationError("missing MONGO_URI")
            return

        timeout = self.settings.connect_timeout_seconds
        client = None
        try:
            with TimedOperation("store_connect", logger, database=self.settings.mongo_database):
                client = self.client_factory(uri, serverSelectionTimeoutMS=int(timeout * 1000))
                await asyncio.wait_for(client.admin.command("ping"), timeout=timeout)
        except (PyMongoError, asyncio.TimeoutError) as e:
            metrics.record_store_connect("connection_error")
            if client is not None:
                client.close()
            self._error = StoreConnectionError(str(e) or "ping timed out")
            return

        metrics.record_store_connect("success")
        self._client = client
        collection = client[self.settings.mongo_database][self.settings.mongo_collection]
        self._store = MongoSnapshotStore(
            collection,
            operation_timeout=self.settings.operation_timeout_seconds,
            scan_timeout=self.settings.scan_timeout_seconds,
        )

    async def close(self) -> None:
        """Close the client and forget the cached outcome."""
        async with self._lock:
            if self._client is not None:
                self._client.close()
                logger.info("store_closed", database=self.settings.mongo_database)
            self._client = None
            self._store = None
            self._error = None
            self._initialized = False


async def get_snapshot_store(request: Request) -> SnapshotStore:
    """Dependency that provides the shared snapshot store."""
    connector: StoreConnector = request.app.state.connector
    return await connector.get_store()
