"""Snapshot service: win/lose lookups and CRUD on the snapshot collection."""
from typing import Any

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from fastapi.encoders import jsonable_encoder

from snapshot_api import metrics
from snapshot_api.database import SnapshotStore
from snapshot_api.schemas import (
    DeleteRequest, DeleteResponse,
    InsertResponse,
    LookupRequest, WinLoseData,
    UpdateRequest, UpdateResponse,
)
from snapshot_api.services.filters import build_lookup_filter
from snapshot_api.services.resolver import RecordNotFoundError, Resolution, resolve_record

logger = structlog.get_logger()

ID_FIELD = "_id"


def encode_document(value: Any) -> Any:
    """Make a stored value JSON-safe, rendering ObjectIds as hex strings."""
    return jsonable_encoder(value, custom_encoder={ObjectId: str})


def normalize_id_filter(filter: dict) -> dict:
    """
    Convert a filter's _id to an ObjectId where possible.

    Accepts a hex string or a {"$oid": "..."} reference. Values that do
    not convert are passed through untouched.
    """
    if ID_FIELD not in filter:
        return filter

    value = filter[ID_FIELD]
    if isinstance(value, dict) and set(value) == {"$oid"}:
        raw = value["$oid"]
    elif isinstance(value, str):
        raw = value
    else:
        return filter

    try:
        object_id = ObjectId(raw)
    except (InvalidId, TypeError):
        return filter

    return {**filter, ID_FIELD: object_id}


class SnapshotService:
    """
    Service for the snapshot endpoints.

    This service orchestrates:
    1. Building the lookup filter and resolving the best record
    2. Returning every stored snapshot verbatim
    3. Insert, partial update and delete of single snapshots
    """

    def __init__(self, store: SnapshotStore):
        """
        Initialize the snapshot service.

        Args:
            store: Snapshot store handle from the connector
        """
        self.store = store

    async def lookup(self, request: LookupRequest) -> Resolution:
        """
        Find the win/lose record for a lookup request.

        Raises:
            RecordNotFoundError: If no document matches or it has no usable data
        """
        query = build_lookup_filter(request)
        logger.debug("lookup_filter_built", filter=query)

        document = await self.store.find_one(query)
        if document is None:
            raise RecordNotFoundError()

        return resolve_record(
            document.get("data"),
            username=request.username,
            cur=request.cur,
            web=request.web,
        )

    async def list_all(self) -> list:
        """Return every document in the collection, JSON-safe."""
        documents = await self.store.find_all()
        logger.info("snapshot_list_completed", document_count=len(documents))
        return encode_document(documents)

    async def insert(self, document: dict[str, Any]) -> InsertResponse:
        """Store a caller-supplied document verbatim."""
        inserted_id = await self.store.insert_one(document)
        metrics.record_mutation("insert")
        logger.info("snapshot_inserted", inserted_id=str(inserted_id))
        return InsertResponse(insertedId=encode_document(inserted_id))

    async def update(self, request: UpdateRequest) -> UpdateResponse:
        """Apply a $set partial merge to the first matching snapshot."""
        query = normalize_id_filter(request.filter)
        outcome = await self.store.update_one(query, request.update, request.upsert)

        metrics.record_mutation("update", outcome.modified)
        if outcome.upserted_id is not None:
            metrics.record_mutation("upsert")

        logger.info(
            "snapshot_updated",
            matched=outcome.matched,
            modified=outcome.modified,
            upserted=outcome.upserted_id is not None,
        )
        return UpdateResponse(
            matched=outcome.matched,
            modified=outcome.modified,
            upserted=encode_document(outcome.upserted_id),
        )

    async def delete(self, request: DeleteRequest) -> DeleteResponse:
        """Delete at most one matching snapshot."""
        query = normalize_id_filter(request.filter)
        deleted = await self.store.delete_one(query)

        metrics.record_mutation("delete", deleted)
        logger.info("snapshot_deleted", deleted=deleted)
        return DeleteResponse(deleted=deleted)


def to_winlose_data(resolution: Resolution) -> WinLoseData:
    """Project a resolved record onto the lookup response fields."""
    record = resolution.record
    return WinLoseData(
        username=record.username,
        prefix=record.prefix,
        currency=record.currency,
        betAmt=record.betAmt,
        validAmount=record.validAmount,
        memberWl=record.memberWl,
        memberComm=record.memberComm,
        memberTotal=record.memberTotal,
    )
