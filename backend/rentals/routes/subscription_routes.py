"""Subscription status and downgrade routes."""
from fastapi import APIRouter, HTTPException, Depends
from rentals.access import AccessEngine
from rentals.database import Database
from rentals.limits import required_plan, subscription_limits
from rentals.models import ResourceKind, TokenData
from rentals.auth import require_auth
from rentals.routes.deps import get_access_engine, get_db
from rentals.subscription import prompt_variant
from rentals import subscription_service

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("/status")
async def subscription_status(
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    owner_id = current_user.user_id
    subscription = store.get_subscription(owner_id)
    status = engine.resolve_subscription_status(owner_id)
    property_count = store.count_live_resources(owner_id, ResourceKind.PROPERTY)
    tenant_count = store.count_live_resources(owner_id, ResourceKind.TENANT)
    return {
        "status": status,
        "prompt_variant": prompt_variant(status),
        "plan": subscription.plan if subscription else None,
        "expires_at": subscription.expires_at if subscription else None,
        "limits": subscription_limits(subscription.plan if subscription else None),
        "property_count": property_count,
        "tenant_count": tenant_count,
        "required_plan": required_plan(max(property_count, tenant_count)),
        "blocked_properties": engine.get_blocked_properties(owner_id),
        "blocked_tenants": engine.get_blocked_tenants(owner_id),
        "can_add_property": engine.can_add_property(owner_id),
        "can_add_tenant": engine.can_add_tenant(owner_id),
        "can_add_document": engine.can_add_document(owner_id),
        "can_add_financial_transaction": engine.can_add_financial_transaction(owner_id),
    }


@router.post("/downgrade")
async def downgrade_subscription(
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    return subscription_service.downgrade(store, current_user.user_id, engine.clock())


@router.post("/cancel")
async def cancel_subscription(
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
):
    subscription = subscription_service.mark_cancelled(store, current_user.user_id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription
