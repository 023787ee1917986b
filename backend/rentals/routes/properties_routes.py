"""Property management routes."""
import logging
from fastapi import APIRouter, HTTPException, Depends, status
from rentals.access import AccessEngine
from rentals.database import Database
from rentals.models import Property, PropertyCreate, ResourceKind, TokenData
from rentals.auth import require_auth
from rentals.routes.deps import get_access_engine, get_db, upgrade_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["properties"])


def _owned_property(store: Database, property_id: str, owner_id: str) -> Property:
    prop = store.get_property(property_id)
    if not prop or prop.archived_at is not None:
        raise HTTPException(status_code=404, detail="Property not found")
    # User isolation: owners only see their own properties
    if prop.owner_id != owner_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return prop


@router.get("")
async def list_properties(
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    # One blocked-set lookup for the whole list
    blocked = set(engine.get_blocked_properties(current_user.user_id))
    return [
        {**p.model_dump(mode="json"), "blocked": p.id in blocked}
        for p in store.list_properties(current_user.user_id)
    ]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(
    data: PropertyCreate,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    if not engine.can_add_property(current_user.user_id):
        logger.info(f"[Properties] {current_user.user_id} reached the property limit")
        raise upgrade_required(engine, current_user.user_id, ResourceKind.PROPERTY)
    prop = Property(owner_id=current_user.user_id, name=data.name, address=data.address)
    store.save_property(prop)
    return prop


@router.get("/{property_id}")
async def get_property(
    property_id: str,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    prop = _owned_property(store, property_id, current_user.user_id)
    if not engine.can_view_property_details(current_user.user_id, property_id):
        raise upgrade_required(engine, current_user.user_id, ResourceKind.PROPERTY)
    return prop


@router.post("/{property_id}/archive")
async def archive_property(
    property_id: str,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
):
    _owned_property(store, property_id, current_user.user_id)
    store.archive_property(property_id)
    return {"status": "archived"}


@router.delete("/{property_id}")
async def delete_property(
    property_id: str,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
):
    _owned_property(store, property_id, current_user.user_id)
    store.delete_property(property_id)
    return {"status": "deleted"}
