"""
Pytest configuration and shared fixtures for backend tests.
"""
import os

# In-memory store for the module-level database created on import
os.environ.setdefault("DATABASE_URL", "sqlite://")

import itertools
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from rentals.access import AccessEngine
from rentals.auth import create_access_token
from rentals.database import Database
from rentals.errors import StoreReadError
from rentals.main import app
from rentals.models import Property, ResourceKind, Subscription, Tenant
from rentals.routes.deps import get_access_engine, get_db

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
OWNER = "owner-1"


class FakeStore:
    """In-memory AccessStore with the same ordering rules as the SQL store."""

    def __init__(self):
        self.subscriptions: dict[str, Subscription] = {}
        self.resources: dict[ResourceKind, list[dict]] = {kind: [] for kind in ResourceKind}
        self.documents: dict[str, int] = {}
        self._ids = itertools.count(1)

    def add(self, owner_id: str, kind: ResourceKind, created_at: datetime,
            archived: bool = False, resource_id: Optional[str] = None) -> str:
        resource_id = resource_id or f"{kind.value}-{next(self._ids):03d}"
        self.resources[kind].append({
            "id": resource_id, "owner_id": owner_id,
            "created_at": created_at, "archived": archived,
        })
        return resource_id

    def add_many(self, owner_id: str, kind: ResourceKind, n: int) -> list[str]:
        """Add n resources, one day apart, returned oldest first."""
        start = NOW - timedelta(days=n + 1)
        return [self.add(owner_id, kind, start + timedelta(days=i)) for i in range(n)]

    def remove(self, kind: ResourceKind, resource_id: str):
        self.resources[kind] = [r for r in self.resources[kind] if r["id"] != resource_id]

    def _live(self, owner_id: str, kind: ResourceKind) -> list[dict]:
        return [r for r in self.resources[kind] if r["owner_id"] == owner_id and not r["archived"]]

    def get_subscription(self, owner_id):
        return self.subscriptions.get(owner_id)

    def count_live_resources(self, owner_id, kind):
        return len(self._live(owner_id, kind))

    def list_resource_ids_ordered_by_creation_descending(self, owner_id, kind, offset, limit_count):
        ordered = sorted(
            self._live(owner_id, kind), key=lambda r: (r["created_at"], r["id"]), reverse=True
        )
        return [r["id"] for r in ordered[offset:offset + limit_count]]

    def count_documents(self, owner_id):
        return self.documents.get(owner_id, 0)


class FailingStore:
    """AccessStore whose reads all fail."""

    def _fail(self, *args, **kwargs):
        raise StoreReadError("store unavailable")

    get_subscription = _fail
    count_live_resources = _fail
    list_resource_ids_ordered_by_creation_descending = _fail
    count_documents = _fail


def make_subscription(plan="free", status="active", expires_in=None, trial_in=None,
                      grace_in=None, owner_id=OWNER) -> Subscription:
    """Subscription whose dates are offsets (timedelta) from NOW."""
    return Subscription(
        owner_id=owner_id,
        plan=plan,
        status=status,
        expires_at=NOW + expires_in if expires_in is not None else None,
        trial_ends_at=NOW + trial_in if trial_in is not None else None,
        grace_period_ends_at=NOW + grace_in if grace_in is not None else None,
    )


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def engine(fake_store):
    return AccessEngine(fake_store, clock=lambda: NOW)


@pytest.fixture
def store():
    """Fresh in-memory SQL store."""
    return Database("sqlite://")


@pytest.fixture
def seed(store):
    """Insert properties/tenants directly with controlled creation times."""
    def _seed(kind: ResourceKind, n: int, owner_id: str = OWNER) -> list[str]:
        start = NOW - timedelta(days=n + 1)
        ids = []
        for i in range(n):
            created_at = start + timedelta(days=i)
            if kind == ResourceKind.PROPERTY:
                item = Property(owner_id=owner_id, name=f"P{i}", address=f"Street {i}",
                                created_at=created_at)
                store.save_property(item)
            else:
                item = Tenant(owner_id=owner_id, name=f"T{i}", created_at=created_at)
                store.save_tenant(item)
            ids.append(item.id)
        return ids
    return _seed


@pytest.fixture
def client(store):
    """TestClient wired to the per-test store and a fixed clock."""
    app.dependency_overrides[get_db] = lambda: store
    app.dependency_overrides[get_access_engine] = lambda: AccessEngine(store, clock=lambda: NOW)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_access_token({"sub": OWNER, "email": "owner@example.com"})
    return {"Authorization": f"Bearer {token}"}
