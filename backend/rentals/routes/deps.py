"""Shared route dependencies."""
from fastapi import Depends, HTTPException

from rentals.access import AccessEngine
from rentals.database import Database, db
from rentals.models import ResourceKind


def get_db() -> Database:
    return db


def get_access_engine(store: Database = Depends(get_db)) -> AccessEngine:
    return AccessEngine(store)


def upgrade_required(engine: AccessEngine, owner_id: str, kind: ResourceKind) -> HTTPException:
    """403 carrying the upgrade prompt the UI should show."""
    prompt = engine.upgrade_prompt(owner_id, kind)
    return HTTPException(
        status_code=403,
        detail={"code": "upgrade_required", "prompt": prompt.model_dump(mode="json")},
    )
