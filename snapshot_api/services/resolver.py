"""Record selection from a matched snapshot document."""
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from snapshot_api.schemas import SnapshotData, SnapshotRecord

logger = structlog.get_logger()


class RecordNotFoundError(Exception):
    """Raised when no usable record exists for a lookup."""

    def __init__(self, detail: str = "Record not found"):
        self.detail = detail
        super().__init__(detail)


@dataclass
class Resolution:
    """The selected record and how it was chosen."""
    record: SnapshotRecord
    candidate_count: int
    refined: bool


def normalize_candidates(data: Any) -> list[SnapshotRecord]:
    """
    Decode a snapshot's data into an ordered list of records.

    data may be a single record or a list of records. Anything that does
    not decode as either yields no candidates.
    """
    if data is None:
        return []

    try:
        decoded = SnapshotData.validate_python(data)
    except ValidationError as e:
        logger.warning("snapshot_data_undecodable", error_count=e.error_count())
        return []

    if isinstance(decoded, SnapshotRecord):
        return [decoded]
    return decoded


def _matches(
    candidate: SnapshotRecord,
    username: Optional[str],
    cur: Optional[str],
    web: Optional[str],
) -> bool:
    if username and candidate.username != username:
        return False
    if cur and candidate.currency != cur:
        return False
    if web and candidate.web and candidate.web != web:
        return False
    return True


def resolve_record(
    data: Any,
    username: Optional[str] = None,
    cur: Optional[str] = None,
    web: Optional[str] = None,
) -> Resolution:
    """
    Pick the best record from a snapshot's data.

    The first candidate satisfying every requested predicate wins;
    otherwise the first candidate is returned. Only the primary currency
    alias (cur) narrows candidates here. A request that sends "currency"
    is filtered by the store query alone.

    Raises:
        RecordNotFoundError: If data holds no candidates
    """
    candidates = normalize_candidates(data)
    if not candidates:
        raise RecordNotFoundError()

    for candidate in candidates:
        if _matches(candidate, username, cur, web):
            return Resolution(record=candidate, candidate_count=len(candidates), refined=True)

    return Resolution(record=candidates[0], candidate_count=len(candidates), refined=False)
