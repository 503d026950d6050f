"""API routes for the snapshot mock API."""
from snapshot_api.api.routes import router

__all__ = ["router"]
