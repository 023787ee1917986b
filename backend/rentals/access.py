"""
Subscription-gated resource access.

Decides whether an owner may create properties, tenants, documents and
financial transactions, and which existing properties/tenants are blocked
because usage exceeds the active plan's quota.

Nothing is cached or persisted: every answer is recomputed from the current
counts, the current time and the subscription record. The blocked set for a
resource kind is always the ``count - limit`` oldest live resources, so an
upgrade shrinks it on the very next call.

Read failures make the ``can_add_*`` checks deny; the blocked-set and
visibility checks let StoreReadError propagate instead of guessing.
"""
import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from rentals.errors import StoreReadError
from rentals.limits import (
    FREE_LIMIT, allows_financial_transactions, document_limit, has_room, limit_for,
    surplus,
)
from rentals.models import EffectiveStatus, ResourceKind, Subscription, UpgradePrompt, utcnow
from rentals.subscription import resolve_status, upgrade_prompt as build_upgrade_prompt

logger = logging.getLogger(__name__)


class AccessStore(Protocol):
    """Read queries the engine needs from the backing store."""

    def get_subscription(self, owner_id: str) -> Optional[Subscription]: ...

    def count_live_resources(self, owner_id: str, kind: ResourceKind) -> int: ...

    def list_resource_ids_ordered_by_creation_descending(
        self, owner_id: str, kind: ResourceKind, offset: int, limit_count: int
    ) -> list[str]: ...

    def count_documents(self, owner_id: str) -> int: ...


def effective_limit(
    subscription: Optional[Subscription], status: EffectiveStatus, kind: ResourceKind
) -> Optional[int]:
    """
    Quota that applies to an owner right now. None means unlimited.

    Trial and grace periods lift the quota entirely; an active subscription
    uses its plan's quota; no record or an inactive one falls back to free.
    """
    if subscription is None:
        return FREE_LIMIT
    if status.trial or status.grace_period:
        return None
    if status.active:
        return limit_for(subscription.plan, kind)
    return FREE_LIMIT


class AccessEngine:
    """Stateless access decisions over an AccessStore."""

    def __init__(self, store: AccessStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    # ==================== STATUS ====================

    def resolve_subscription_status(self, owner_id: str) -> EffectiveStatus:
        return resolve_status(self.store.get_subscription(owner_id), self.clock())

    def _subscription_and_status(self, owner_id: str):
        subscription = self.store.get_subscription(owner_id)
        return subscription, resolve_status(subscription, self.clock())

    def upgrade_prompt(self, owner_id: str, kind: ResourceKind) -> UpgradePrompt:
        count = self.store.count_live_resources(owner_id, kind)
        subscription, status = self._subscription_and_status(owner_id)
        return build_upgrade_prompt(status, subscription.plan if subscription else None, count, kind)

    # ==================== RESOURCE ACCESS GATE ====================

    def can_add(self, owner_id: str, kind: ResourceKind) -> bool:
        """Whether one more live resource of this kind may be created."""
        try:
            count = self.store.count_live_resources(owner_id, kind)
            subscription, status = self._subscription_and_status(owner_id)
        except StoreReadError as e:
            logger.warning(f"[Access] Denying new {kind.value} for {owner_id}, store read failed: {e}")
            return False
        return has_room(count, effective_limit(subscription, status, kind))

    def can_add_property(self, owner_id: str) -> bool:
        return self.can_add(owner_id, ResourceKind.PROPERTY)

    def can_add_tenant(self, owner_id: str) -> bool:
        return self.can_add(owner_id, ResourceKind.TENANT)

    def can_add_financial_transaction(self, owner_id: str) -> bool:
        """Plan entitlement only; there is no count to check."""
        try:
            subscription = self.store.get_subscription(owner_id)
        except StoreReadError as e:
            logger.warning(f"[Access] Denying transaction for {owner_id}, store read failed: {e}")
            return False
        if subscription is None:
            return False
        return allows_financial_transactions(subscription.plan)

    def can_add_document(self, owner_id: str) -> bool:
        try:
            subscription = self.store.get_subscription(owner_id)
            limit = document_limit(subscription.plan if subscription else None)
            if limit is None:
                return True
            return self.store.count_documents(owner_id) < limit
        except StoreReadError as e:
            logger.warning(f"[Access] Denying document for {owner_id}, store read failed: {e}")
            return False

    # ==================== BLOCKED-SET SELECTOR ====================

    def blocked_ids(self, owner_id: str, kind: ResourceKind) -> list[str]:
        """
        Ids of the live resources of this kind that are over quota.

        Listing is newest-first, so skipping the first ``limit`` rows leaves
        exactly the oldest surplus resources. Raises StoreReadError on any
        read failure.
        """
        count = self.store.count_live_resources(owner_id, kind)
        subscription, status = self._subscription_and_status(owner_id)
        limit = effective_limit(subscription, status, kind)

        excess = surplus(count, limit)
        logger.debug(
            f"[Access] {kind.value} owner={owner_id} count={count} "
            f"limit={'unlimited' if limit is None else limit} blocked={excess}"
        )
        if excess == 0:
            return []
        return self.store.list_resource_ids_ordered_by_creation_descending(
            owner_id, kind, offset=limit, limit_count=count - limit
        )

    def get_blocked_properties(self, owner_id: str) -> list[str]:
        return self.blocked_ids(owner_id, ResourceKind.PROPERTY)

    def get_blocked_tenants(self, owner_id: str) -> list[str]:
        return self.blocked_ids(owner_id, ResourceKind.TENANT)

    def is_property_blocked(self, owner_id: str, property_id: Optional[str] = None) -> bool:
        """With an id, whether that property is blocked; without, whether any is."""
        blocked = self.get_blocked_properties(owner_id)
        if property_id is None:
            return len(blocked) > 0
        return property_id in blocked

    # ==================== DETAIL VISIBILITY ====================

    def can_view_details(self, owner_id: str, kind: ResourceKind, resource_id: str) -> bool:
        # List views should call blocked_ids once per render instead
        return resource_id not in set(self.blocked_ids(owner_id, kind))

    def can_view_property_details(self, owner_id: str, property_id: str) -> bool:
        return self.can_view_details(owner_id, ResourceKind.PROPERTY, property_id)

    def can_view_tenant_details(self, owner_id: str, tenant_id: str) -> bool:
        return self.can_view_details(owner_id, ResourceKind.TENANT, tenant_id)
