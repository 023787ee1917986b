"""
Access engine tests: creation gate, blocked-set selection, detail visibility,
and failure behaviour. Uses the in-memory FakeStore with a fixed clock.
"""
from datetime import timedelta

import pytest

from conftest import NOW, OWNER, FailingStore, make_subscription
from rentals.access import AccessEngine
from rentals.errors import StoreReadError
from rentals.models import Plan, PromptVariant, ResourceKind

DAY = timedelta(days=1)
KINDS = list(ResourceKind)


class TestCanAdd:
    """Resource Access Gate for properties and tenants."""

    @pytest.mark.parametrize("kind", KINDS)
    def test_no_record_uses_free_quota(self, engine, fake_store, kind):
        fake_store.add_many(OWNER, kind, 1)
        assert engine.can_add(OWNER, kind) is True
        fake_store.add_many(OWNER, kind, 1)
        assert engine.can_add(OWNER, kind) is False

    def test_basic_active_with_twelve_tenants(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "active")
        fake_store.add_many(OWNER, ResourceKind.TENANT, 12)
        assert engine.can_add_tenant(OWNER) is False

    def test_basic_active_below_quota(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "active", expires_in=DAY)
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 9)
        assert engine.can_add_property(OWNER) is True

    def test_premium_is_unlimited(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("premium", "active")
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 300)
        assert engine.can_add_property(OWNER) is True

    @pytest.mark.parametrize("record", [
        make_subscription("free", "active", trial_in=DAY),
        make_subscription("free", "expired", grace_in=DAY),
    ])
    def test_trial_and_grace_bypass_quota(self, engine, fake_store, record):
        fake_store.subscriptions[OWNER] = record
        fake_store.add_many(OWNER, ResourceKind.TENANT, 50)
        assert engine.can_add_tenant(OWNER) is True

    def test_inactive_subscription_falls_back_to_free_quota(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "active", expires_in=-DAY)
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 1)
        assert engine.can_add_property(OWNER) is True
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 1)
        assert engine.can_add_property(OWNER) is False

    def test_unknown_plan_gets_free_quota(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("gold", "active", expires_in=DAY)
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 2)
        assert engine.can_add_property(OWNER) is False

    def test_archived_properties_do_not_count(self, engine, fake_store):
        fake_store.add(OWNER, ResourceKind.PROPERTY, NOW - DAY, archived=True)
        fake_store.add(OWNER, ResourceKind.PROPERTY, NOW - DAY, archived=True)
        fake_store.add(OWNER, ResourceKind.PROPERTY, NOW - DAY)
        assert engine.can_add_property(OWNER) is True

    def test_kinds_are_counted_independently(self, engine, fake_store):
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 2)
        assert engine.can_add_property(OWNER) is False
        assert engine.can_add_tenant(OWNER) is True


class TestEntitlementGates:

    def test_financial_transactions(self, engine, fake_store):
        assert engine.can_add_financial_transaction(OWNER) is False
        for plan, expected in [("free", False), ("basic", True), ("premium", True), ("gold", False)]:
            fake_store.subscriptions[OWNER] = make_subscription(plan, "active")
            assert engine.can_add_financial_transaction(OWNER) is expected

    def test_financial_transactions_ignore_expiry(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "active", expires_in=-DAY)
        assert engine.can_add_financial_transaction(OWNER) is True

    def test_free_plan_allows_one_document(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("free", "active")
        assert engine.can_add_document(OWNER) is True
        fake_store.documents[OWNER] = 1
        assert engine.can_add_document(OWNER) is False

    def test_no_record_allows_one_document(self, engine, fake_store):
        assert engine.can_add_document(OWNER) is True
        fake_store.documents[OWNER] = 1
        assert engine.can_add_document(OWNER) is False

    def test_basic_plan_documents_unlimited(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "active")
        fake_store.documents[OWNER] = 50
        assert engine.can_add_document(OWNER) is True


class TestBlockedIds:
    """Blocked-Set Selector."""

    def test_free_owner_with_five_properties(self, engine, fake_store):
        t1, t2, t3, t4, t5 = fake_store.add_many(OWNER, ResourceKind.PROPERTY, 5)
        blocked = engine.get_blocked_properties(OWNER)
        assert set(blocked) == {t1, t2, t3}
        assert engine.can_view_property_details(OWNER, t4) is True
        assert engine.can_view_property_details(OWNER, t5) is True
        assert engine.can_view_property_details(OWNER, t1) is False

    def test_basic_owner_with_twelve_tenants(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "active")
        ids = fake_store.add_many(OWNER, ResourceKind.TENANT, 12)
        assert set(engine.get_blocked_tenants(OWNER)) == set(ids[:2])
        assert engine.can_view_tenant_details(OWNER, ids[0]) is False
        assert engine.can_view_tenant_details(OWNER, ids[2]) is True

    def test_within_quota_blocks_nothing(self, engine, fake_store):
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 2)
        assert engine.get_blocked_properties(OWNER) == []

    def test_upgrade_unblocks_on_next_call(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("free", "active")
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 7)
        assert len(engine.get_blocked_properties(OWNER)) == 5

        fake_store.subscriptions[OWNER] = make_subscription("basic", "active", expires_in=30 * DAY)
        assert engine.get_blocked_properties(OWNER) == []

    def test_expiry_reblocks_oldest(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "active", expires_in=-DAY)
        ids = fake_store.add_many(OWNER, ResourceKind.PROPERTY, 12)
        assert set(engine.get_blocked_properties(OWNER)) == set(ids[:10])

    def test_cancelled_until_expiry_keeps_plan_quota(self, engine, fake_store):
        fake_store.subscriptions[OWNER] = make_subscription("basic", "cancelled", expires_in=DAY)
        fake_store.add_many(OWNER, ResourceKind.TENANT, 8)
        assert engine.get_blocked_tenants(OWNER) == []

    @pytest.mark.parametrize("record", [
        make_subscription("free", "active", trial_in=DAY),
        make_subscription("free", "cancelled", grace_in=DAY),
    ])
    def test_trial_and_grace_block_nothing(self, engine, fake_store, record):
        fake_store.subscriptions[OWNER] = record
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 40)
        assert engine.get_blocked_properties(OWNER) == []

    def test_deleting_resources_shrinks_blocked_set(self, engine, fake_store):
        ids = fake_store.add_many(OWNER, ResourceKind.TENANT, 4)
        assert set(engine.get_blocked_tenants(OWNER)) == set(ids[:2])
        fake_store.remove(ResourceKind.TENANT, ids[3])
        assert set(engine.get_blocked_tenants(OWNER)) == {ids[0]}

    def test_new_resource_pushes_oldest_into_blocked_set(self, engine, fake_store):
        ids = fake_store.add_many(OWNER, ResourceKind.PROPERTY, 2)
        assert engine.get_blocked_properties(OWNER) == []
        newest = fake_store.add(OWNER, ResourceKind.PROPERTY, NOW)
        assert engine.get_blocked_properties(OWNER) == [ids[0]]
        assert engine.can_view_property_details(OWNER, newest) is True

    def test_other_owners_are_ignored(self, engine, fake_store):
        fake_store.add_many("someone-else", ResourceKind.PROPERTY, 6)
        ids = fake_store.add_many(OWNER, ResourceKind.PROPERTY, 3)
        assert engine.get_blocked_properties(OWNER) == [ids[0]]

    def test_idempotent(self, engine, fake_store):
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 6)
        assert engine.get_blocked_properties(OWNER) == engine.get_blocked_properties(OWNER)

    def test_is_property_blocked(self, engine, fake_store):
        assert engine.is_property_blocked(OWNER) is False
        ids = fake_store.add_many(OWNER, ResourceKind.PROPERTY, 3)
        assert engine.is_property_blocked(OWNER) is True
        assert engine.is_property_blocked(OWNER, ids[0]) is True
        assert engine.is_property_blocked(OWNER, ids[2]) is False


RECORDS = {
    "no record": (None, 2),
    "free standard": (make_subscription("free", "active"), 2),
    "free trial": (make_subscription("free", "active", trial_in=DAY), None),
    "free grace": (make_subscription("free", "expired", grace_in=DAY), None),
    "basic active": (make_subscription("basic", "active"), 10),
    "basic cancelled, paid period left": (make_subscription("basic", "cancelled", expires_in=DAY), 10),
    "basic expired": (make_subscription("basic", "active", expires_in=-DAY), 2),
    "premium active": (make_subscription("premium", None), None),
    "premium status expired": (make_subscription("premium", "expired"), 2),
    "unknown plan": (make_subscription("gold", "active", expires_in=DAY), 2),
}


class TestBlockedSetInvariant:
    """Blocked set is always the max(0, count - limit) oldest live resources."""

    @pytest.mark.parametrize("label", list(RECORDS))
    @pytest.mark.parametrize("kind", KINDS)
    def test_size_and_oldest_first(self, fake_store, label, kind):
        record, limit = RECORDS[label]
        engine = AccessEngine(fake_store, clock=lambda: NOW)
        if record is not None:
            fake_store.subscriptions[OWNER] = record
        created = []
        for count in range(0, 15):
            expected = 0 if limit is None else max(0, count - limit)
            blocked = engine.blocked_ids(OWNER, kind)
            assert len(blocked) == expected
            assert set(blocked) == set(created[:expected])
            assert engine.can_add(OWNER, kind) is (limit is None or count < limit)
            created.append(fake_store.add(OWNER, kind, NOW - timedelta(days=100 - count)))

    def test_equal_timestamps_break_ties_by_id(self, engine, fake_store):
        for resource_id in ["c", "a", "b"]:
            fake_store.add(OWNER, ResourceKind.TENANT, NOW - DAY, resource_id=resource_id)
        # Newest-first with id descending: c, b, a; the window past 2 is "a"
        assert engine.get_blocked_tenants(OWNER) == ["a"]


class TestFailures:
    """Reads that fail deny creation but never declare anything unblocked."""

    @pytest.fixture
    def failing_engine(self):
        return AccessEngine(FailingStore(), clock=lambda: NOW)

    def test_can_add_denies(self, failing_engine):
        assert failing_engine.can_add_property(OWNER) is False
        assert failing_engine.can_add_tenant(OWNER) is False
        assert failing_engine.can_add_document(OWNER) is False
        assert failing_engine.can_add_financial_transaction(OWNER) is False

    def test_blocked_ids_raises(self, failing_engine):
        with pytest.raises(StoreReadError):
            failing_engine.get_blocked_properties(OWNER)
        with pytest.raises(StoreReadError):
            failing_engine.get_blocked_tenants(OWNER)

    def test_visibility_raises(self, failing_engine):
        with pytest.raises(StoreReadError):
            failing_engine.can_view_property_details(OWNER, "p1")

    def test_status_raises(self, failing_engine):
        with pytest.raises(StoreReadError):
            failing_engine.resolve_subscription_status(OWNER)

    def test_listing_failure_after_counts_succeed(self, engine, fake_store, monkeypatch):
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 5)

        def broken(*args, **kwargs):
            raise StoreReadError("listing failed")

        monkeypatch.setattr(fake_store, "list_resource_ids_ordered_by_creation_descending", broken)
        with pytest.raises(StoreReadError):
            engine.get_blocked_properties(OWNER)

    def test_document_count_failure_denies(self, engine, fake_store, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreReadError("count failed")

        monkeypatch.setattr(fake_store, "count_documents", broken)
        assert engine.can_add_document(OWNER) is False


class TestStatusAndPrompt:

    def test_resolve_subscription_status(self, engine, fake_store):
        assert engine.resolve_subscription_status(OWNER).reason == "not found"
        fake_store.subscriptions[OWNER] = make_subscription("basic", "cancelled", expires_in=DAY)
        status = engine.resolve_subscription_status(OWNER)
        assert status.active is True
        assert status.cancelled_active_until_expiry is True

    def test_upgrade_prompt(self, engine, fake_store):
        fake_store.add_many(OWNER, ResourceKind.PROPERTY, 2)
        prompt = engine.upgrade_prompt(OWNER, ResourceKind.PROPERTY)
        assert prompt.required_plan == Plan.BASIC
        assert prompt.variant == PromptVariant.STANDARD
        assert prompt.count == 2
