"""Shared fixtures: an in-memory snapshot store and a wired test client."""
import pytest
from fastapi.testclient import TestClient

from snapshot_api.database import get_snapshot_store
from snapshot_api.main import app
from tests.fakes import FakeSnapshotStore


@pytest.fixture
def store():
    """An empty in-memory store."""
    return FakeSnapshotStore()


@pytest.fixture
def client(store):
    """Test client whose snapshot store dependency is the in-memory store."""
    app.dependency_overrides[get_snapshot_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
