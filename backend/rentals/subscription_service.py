"""
Writers for the subscription record.

These are the flows that mutate subscription fields after a purchase has been
validated elsewhere, when the owner downgrades, and when the owner reports a
cancellation made in the store app. Access decisions never depend on anything
written here beyond the record's fields.
"""
import calendar
import logging
from datetime import datetime
from typing import Optional

from rentals.database import Database
from rentals.limits import is_paid_plan
from rentals.models import Plan, Subscription, SubscriptionStatus
from rentals.subscription import as_utc

logger = logging.getLogger(__name__)


def add_one_month(value: datetime) -> datetime:
    """Same day next month, clamped to the last day of a shorter month."""
    year = value.year + (1 if value.month == 12 else 0)
    month = 1 if value.month == 12 else value.month + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def record_purchase(
    store: Database, owner_id: str, plan: Plan, transaction_id: Optional[str], now: datetime
) -> Subscription:
    """
    Activate a paid plan for one month.

    Trial and grace periods are cleared so the new plan's quota applies
    immediately.
    """
    now = as_utc(now)
    subscription = Subscription(
        owner_id=owner_id,
        plan=plan.value,
        status=SubscriptionStatus.ACTIVE.value,
        started_at=now,
        expires_at=add_one_month(now),
        trial_ends_at=None,
        grace_period_ends_at=None,
        external_transaction_id=transaction_id,
    )
    store.save_subscription(subscription)
    logger.info(f"[Subscription] {owner_id} purchased {plan.value} until {subscription.expires_at}")
    return subscription


def downgrade(store: Database, owner_id: str, now: datetime) -> Subscription:
    """
    Move an owner towards the free plan.

    A paid plan with time left is only marked cancelled so the paid period is
    kept; anything else is reset to free right away.
    """
    now = as_utc(now)
    current = store.get_subscription(owner_id)
    expires_at = as_utc(current.expires_at) if current else None

    if current and is_paid_plan(current.plan) and expires_at and expires_at > now:
        subscription = current.model_copy(update={"status": SubscriptionStatus.CANCELLED.value})
        logger.info(f"[Subscription] {owner_id} cancelled {current.plan}, access kept until {expires_at}")
    else:
        subscription = Subscription(
            owner_id=owner_id,
            plan=Plan.FREE.value,
            status=SubscriptionStatus.ACTIVE.value,
            started_at=current.started_at if current else None,
            expires_at=None,
            trial_ends_at=None,
            grace_period_ends_at=None,
            external_transaction_id=None,
        )
        logger.info(f"[Subscription] {owner_id} downgraded to free")
    store.save_subscription(subscription)
    return subscription


def mark_cancelled(store: Database, owner_id: str) -> Optional[Subscription]:
    """Set only the status to cancelled. Returns None if there is no record."""
    current = store.get_subscription(owner_id)
    if current is None:
        return None
    subscription = current.model_copy(update={"status": SubscriptionStatus.CANCELLED.value})
    store.save_subscription(subscription)
    return subscription
