"""Tenant management routes."""
import logging
from fastapi import APIRouter, HTTPException, Depends, status
from rentals.access import AccessEngine
from rentals.database import Database
from rentals.models import (
    ResourceKind, Tenant, TenantCreate, TenantDocument, TenantDocumentCreate, TokenData
)
from rentals.auth import require_auth
from rentals.routes.deps import get_access_engine, get_db, upgrade_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


def _owned_tenant(store: Database, tenant_id: str, owner_id: str) -> Tenant:
    tenant = store.get_tenant(tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    if tenant.owner_id != owner_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return tenant


@router.get("")
async def list_tenants(
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    blocked = set(engine.get_blocked_tenants(current_user.user_id))
    return [
        {**t.model_dump(mode="json"), "blocked": t.id in blocked}
        for t in store.list_tenants(current_user.user_id)
    ]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tenant(
    data: TenantCreate,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    if not engine.can_add_tenant(current_user.user_id):
        logger.info(f"[Tenants] {current_user.user_id} reached the tenant limit")
        raise upgrade_required(engine, current_user.user_id, ResourceKind.TENANT)
    tenant = Tenant(
        owner_id=current_user.user_id,
        name=data.name,
        email=data.email,
        phone=data.phone,
    )
    store.save_tenant(tenant)
    return tenant


@router.get("/{tenant_id}")
async def get_tenant(
    tenant_id: str,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    tenant = _owned_tenant(store, tenant_id, current_user.user_id)
    if not engine.can_view_tenant_details(current_user.user_id, tenant_id):
        raise upgrade_required(engine, current_user.user_id, ResourceKind.TENANT)
    return tenant


@router.delete("/{tenant_id}")
async def delete_tenant(
    tenant_id: str,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
):
    _owned_tenant(store, tenant_id, current_user.user_id)
    store.delete_tenant(tenant_id)
    return {"status": "deleted"}


@router.post("/{tenant_id}/documents", status_code=status.HTTP_201_CREATED)
async def create_tenant_document(
    tenant_id: str,
    data: TenantDocumentCreate,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    _owned_tenant(store, tenant_id, current_user.user_id)
    if not engine.can_add_document(current_user.user_id):
        raise HTTPException(
            status_code=403,
            detail="Free plan allows only 1 document. Upgrade to add more.",
        )
    document = TenantDocument(
        owner_id=current_user.user_id, tenant_id=tenant_id, file_name=data.file_name
    )
    store.save_document(document)
    return document
