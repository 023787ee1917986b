"""
Subscription status resolution.

Turns a raw, possibly stale subscription record into an EffectiveStatus for a
given instant. Nothing here touches the store; callers fetch the record and
pass the current time in.

The rules for each plan family are ordered guard clauses: the first rule that
returns a status wins. Paid plans check the expiry date before the status
field, so an elapsed ``expires_at`` always reads as "expired" even when the
status still says "active" or "cancelled".
"""
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from rentals.limits import PLAN_NAMES, is_paid_plan, required_plan, resolve_plan
from rentals.models import (
    EffectiveStatus, Plan, PromptVariant, ResourceKind, Subscription,
    SubscriptionStatus, UpgradePrompt,
)

REASON_NOT_FOUND = "not found"
REASON_EXPIRED = "expired"
REASON_CANCELLED_AND_EXPIRED = "cancelled and expired"
REASON_NO_VALID_EXPIRY = "no valid expiration date"
REASON_TRIAL = "trial active"
REASON_GRACE_PERIOD = "grace period active"
REASON_ACTIVE = "active"

EXPIRED_REASONS = frozenset({
    REASON_EXPIRED,
    REASON_CANCELLED_AND_EXPIRED,
    f"status: {SubscriptionStatus.EXPIRED.value}",
})

_PLAN_ORDER = [Plan.FREE, Plan.BASIC, Plan.PREMIUM]

Rule = Callable[[Subscription, datetime], Optional[EffectiveStatus]]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _status_label(record: Subscription) -> str:
    return record.status if record.status else "none"


# ==================== RULES SHARED BY BOTH PLAN FAMILIES ====================

def _expiry_elapsed(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    if record.expires_at and now >= record.expires_at:
        return EffectiveStatus(active=False, reason=REASON_EXPIRED)
    return None


# ==================== PAID PLAN RULES (basic, premium) ====================

def _paid_cancelled(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    if record.status != SubscriptionStatus.CANCELLED.value:
        return None
    if record.expires_at and now < record.expires_at:
        # Already-paid period is honoured until it runs out
        return EffectiveStatus(
            active=True,
            cancelled_active_until_expiry=True,
            reason=f"{record.plan} plan active until expiry (cancelled)",
        )
    return EffectiveStatus(active=False, reason=REASON_CANCELLED_AND_EXPIRED)


def _paid_status_expired(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    if record.status == SubscriptionStatus.EXPIRED.value:
        return EffectiveStatus(active=False, reason=f"status: {record.status}")
    return None


def _paid_default(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    # Records edited by hand may carry only the plan
    return EffectiveStatus(active=True, reason=f"{record.plan} plan active")


PAID_RULES: Sequence[Rule] = (
    _expiry_elapsed,
    _paid_cancelled,
    _paid_status_expired,
    _paid_default,
)


# ==================== FREE PLAN RULES ====================

def _free_trial(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    if record.trial_ends_at and now < record.trial_ends_at:
        return EffectiveStatus(active=True, trial=True, reason=REASON_TRIAL)
    return None


def _free_grace_period(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    if record.grace_period_ends_at and now < record.grace_period_ends_at:
        return EffectiveStatus(active=True, grace_period=True, reason=REASON_GRACE_PERIOD)
    return None


def _free_standard(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    if (
        record.status == SubscriptionStatus.ACTIVE.value
        and record.expires_at
        and now < record.expires_at
    ):
        return EffectiveStatus(active=True, reason=REASON_ACTIVE)
    return None


def _free_not_active(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    if record.status != SubscriptionStatus.ACTIVE.value:
        return EffectiveStatus(active=False, reason=f"status: {_status_label(record)}")
    return None


def _free_no_valid_expiry(record: Subscription, now: datetime) -> Optional[EffectiveStatus]:
    return EffectiveStatus(active=False, reason=REASON_NO_VALID_EXPIRY)


FREE_RULES: Sequence[Rule] = (
    _free_trial,
    _free_grace_period,
    _free_standard,
    _expiry_elapsed,
    _free_not_active,
    _free_no_valid_expiry,
)


def _normalized(subscription: Subscription) -> Subscription:
    return subscription.model_copy(update={
        "expires_at": as_utc(subscription.expires_at),
        "trial_ends_at": as_utc(subscription.trial_ends_at),
        "grace_period_ends_at": as_utc(subscription.grace_period_ends_at),
    })


def resolve_status(subscription: Optional[Subscription], now: datetime) -> EffectiveStatus:
    """
    Resolve the effective status of a subscription record at ``now``.

    Args:
        subscription: The owner's record, or None when the owner has none
        now: Current instant (naive values are taken as UTC)

    Returns:
        EffectiveStatus; never raises for odd or incomplete records
    """
    if subscription is None:
        return EffectiveStatus(active=False, reason=REASON_NOT_FOUND)

    record = _normalized(subscription)
    now = as_utc(now)
    rules = PAID_RULES if is_paid_plan(record.plan) else FREE_RULES
    for rule in rules:
        status = rule(record, now)
        if status is not None:
            return status
    # Both rule lists end in an unconditional rule
    raise AssertionError("subscription rules did not produce a status")


def prompt_variant(status: EffectiveStatus) -> PromptVariant:
    """Pick which upgrade-prompt copy fits the resolved status."""
    if status.trial:
        return PromptVariant.TRIAL
    if status.grace_period:
        return PromptVariant.GRACE
    if not status.active and status.reason in EXPIRED_REASONS:
        return PromptVariant.EXPIRED
    return PromptVariant.STANDARD


def upgrade_prompt(
    status: EffectiveStatus,
    plan: Optional[str],
    count: int,
    kind: ResourceKind,
) -> UpgradePrompt:
    """Build the payload the UI shows when an action is refused for quota reasons."""
    current = resolve_plan(plan)
    variant = prompt_variant(status)
    if variant == PromptVariant.EXPIRED and current != Plan.FREE:
        target = current
    elif current in (Plan.BASIC, Plan.PREMIUM):
        target = Plan.PREMIUM
    else:
        target = max(required_plan(count + 1), Plan.BASIC, key=_PLAN_ORDER.index)
    noun = "properties" if kind == ResourceKind.PROPERTY else "tenants"
    if variant == PromptVariant.EXPIRED:
        message = (
            f"Your subscription has expired. Renew the {PLAN_NAMES[target]} plan "
            f"to access all of your {noun}."
        )
    else:
        message = (
            f"You have {count} {noun}. Upgrade to the {PLAN_NAMES[target]} plan "
            f"to add more {noun}."
        )
    return UpgradePrompt(
        variant=variant,
        current_plan=current,
        required_plan=target,
        resource_kind=kind,
        count=count,
        message=message,
    )
