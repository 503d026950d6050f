"""API route handlers for the snapshot mock API."""
import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import TypeAdapter, ValidationError

from snapshot_api.database import SnapshotStore, get_snapshot_store
from snapshot_api.logging import get_logger, log_lookup
from snapshot_api.schemas import (
    DeleteRequest, DeleteResponse,
    InsertResponse,
    LookupRequest, WinLoseResponse,
    UpdateRequest, UpdateResponse,
)
from snapshot_api.services.resolver import RecordNotFoundError
from snapshot_api.services.snapshot import SnapshotService, to_winlose_data
from snapshot_api import metrics

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/ext", tags=["snapshots"])

LOOKUP_PATH = "/winloseEsByMonthMulti"


def json_body(model):
    """
    Dependency that decodes the raw request body as JSON into model.

    The body is read as JSON whatever Content-Type the caller sent.
    """
    adapter = TypeAdapter(model)

    async def dependency(request: Request):
        raw = await request.body()
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            raise RequestValidationError(
                [{**error, "loc": ("body", *error["loc"])} for error in e.errors()]
            )

    return dependency


@router.post(LOOKUP_PATH, response_model=WinLoseResponse)
async def winlose_by_month(
    request_body: LookupRequest = Depends(json_body(LookupRequest)),
    store: SnapshotStore = Depends(get_snapshot_store),
):
    """
    Return the win/lose summary record for a member and month.

    The lookup tolerates month as "1" or "01", currency as cur or
    currency, and fields stored at the document root or under data.
    """
    start_time = time.perf_counter()

    logger.info("lookup_requested", **request_body.model_dump(exclude_none=True))

    try:
        resolution = await SnapshotService(store).lookup(request_body)
    except RecordNotFoundError:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.warning(
            "lookup_not_found",
            duration_ms=round(duration_ms, 2),
            outcome="not_found",
        )
        metrics.record_lookup(found=False)
        raise

    duration_ms = (time.perf_counter() - start_time) * 1000
    log_lookup(
        logger=logger,
        username=resolution.record.username,
        currency=resolution.record.currency,
        candidate_count=resolution.candidate_count,
        refined=resolution.refined,
        duration_ms=duration_ms,
    )
    metrics.record_lookup(
        found=True,
        candidate_count=resolution.candidate_count,
        refined=resolution.refined,
    )

    return WinLoseResponse(data=to_winlose_data(resolution))


@router.get("/snapshotAll")
async def snapshot_all(store: SnapshotStore = Depends(get_snapshot_store)) -> list[Any]:
    """Return every snapshot document verbatim. No filter, no pagination."""
    return await SnapshotService(store).list_all()


@router.post("/insertSnapshot", response_model=InsertResponse)
async def insert_snapshot(
    document: dict[str, Any] = Depends(json_body(dict[str, Any])),
    store: SnapshotStore = Depends(get_snapshot_store),
):
    """Store an arbitrary non-empty JSON object as a new snapshot."""
    if not document:
        raise HTTPException(status_code=400, detail="Document must not be empty")
    return await SnapshotService(store).insert(document)


@router.post("/updateSnapshot", response_model=UpdateResponse)
async def update_snapshot(
    request_body: UpdateRequest = Depends(json_body(UpdateRequest)),
    store: SnapshotStore = Depends(get_snapshot_store),
):
    """
    Set the named fields on the first snapshot matching filter.

    With upsert, a snapshot is created when nothing matches.
    """
    return await SnapshotService(store).update(request_body)


@router.post("/deleteSnapshot", response_model=DeleteResponse)
async def delete_snapshot(
    request_body: DeleteRequest = Depends(json_body(DeleteRequest)),
    store: SnapshotStore = Depends(get_snapshot_store),
):
    """Delete at most one snapshot matching filter."""
    return await SnapshotService(store).delete(request_body)
