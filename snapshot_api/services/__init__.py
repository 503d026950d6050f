"""Service layer for the snapshot mock API."""
from snapshot_api.services.filters import build_lookup_filter
from snapshot_api.services.resolver import RecordNotFoundError, resolve_record
from snapshot_api.services.snapshot import SnapshotService

__all__ = ["build_lookup_filter", "RecordNotFoundError", "resolve_record", "SnapshotService"]
