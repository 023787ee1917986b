"""
Plan catalog: quotas and entitlements for each subscription plan.
These constants define what users can do at each plan.
"""
import logging
from typing import Optional, Union

from rentals.models import Plan, PlanLimits, ResourceKind

logger = logging.getLogger(__name__)

# ==================== PLAN DEFINITIONS ====================
# subscription plan on the Subscription record:
# free    = default when no record exists or the plan is unknown
# basic   = paid, bounded quota
# premium = paid, unlimited quota

UNLIMITED = None  # Quota value meaning "no limit"

# ==================== RESOURCE QUOTAS ====================
# Properties and tenants share one quota number per plan
PLAN_LIMITS = {
    Plan.FREE: 2,
    Plan.BASIC: 10,
    Plan.PREMIUM: UNLIMITED,
}

FREE_LIMIT = PLAN_LIMITS[Plan.FREE]

# ==================== FEATURE ENTITLEMENTS ====================
DOCUMENT_LIMITS = {
    Plan.FREE: 1,
    Plan.BASIC: UNLIMITED,
    Plan.PREMIUM: UNLIMITED,
}

FINANCIAL_TRANSACTIONS = {
    Plan.FREE: False,
    Plan.BASIC: True,
    Plan.PREMIUM: True,
}

PAID_PLANS = frozenset({Plan.BASIC, Plan.PREMIUM})

PLAN_NAMES = {
    Plan.FREE: "Free",
    Plan.BASIC: "Basic",
    Plan.PREMIUM: "Premium",
}


def resolve_plan(plan: Optional[Union[str, Plan]]) -> Plan:
    """
    Map a raw plan identifier to a catalog plan.

    Empty and unrecognized identifiers fall back to the free tier; this is
    never reported as an error.
    """
    if not plan:
        return Plan.FREE
    try:
        return Plan(plan)
    except ValueError:
        logger.debug(f"[Limits] Unknown plan '{plan}', using free tier limits")
        return Plan.FREE


def is_paid_plan(plan: Optional[Union[str, Plan]]) -> bool:
    """Check if the raw plan identifier is one of the paid plans."""
    if not plan:
        return False
    try:
        return Plan(plan) in PAID_PLANS
    except ValueError:
        return False


def limit_for(plan: Optional[Union[str, Plan]], kind: ResourceKind) -> Optional[int]:
    """Quota for a resource kind on a plan. None means unlimited."""
    # Both kinds currently share the same quota
    return PLAN_LIMITS[resolve_plan(plan)]


def allows_financial_transactions(plan: Optional[Union[str, Plan]]) -> bool:
    return FINANCIAL_TRANSACTIONS[resolve_plan(plan)]


def document_limit(plan: Optional[Union[str, Plan]]) -> Optional[int]:
    return DOCUMENT_LIMITS[resolve_plan(plan)]


def has_room(count: int, limit: Optional[int]) -> bool:
    """True if one more resource fits under the limit."""
    return limit is UNLIMITED or count < limit


def surplus(count: int, limit: Optional[int]) -> int:
    """Number of resources above the limit (0 when within it)."""
    if limit is UNLIMITED:
        return 0
    return max(0, count - limit)


def required_plan(count: int) -> Plan:
    """Smallest plan whose quota covers the given number of resources."""
    for plan in (Plan.FREE, Plan.BASIC):
        if count <= PLAN_LIMITS[plan]:
            return plan
    return Plan.PREMIUM


def subscription_limits(plan: Optional[Union[str, Plan]]) -> PlanLimits:
    """
    Get the limits for a plan.

    Args:
        plan: Raw plan identifier from the subscription record (may be None)

    Returns:
        PlanLimits with all applicable quotas and entitlements
    """
    resolved = resolve_plan(plan)
    return PlanLimits(
        plan=resolved,
        max_properties=limit_for(resolved, ResourceKind.PROPERTY),
        max_tenants=limit_for(resolved, ResourceKind.TENANT),
        max_documents=document_limit(resolved),
        allows_financial_transactions=allows_financial_transactions(resolved),
    )
