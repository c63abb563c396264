"""Tests for EntitlementLedger and LedgerStore."""

import pytest

from fanlive.domain.entitlement import EntitlementLedger, LedgerStore
from fanlive.schemas import SubscriptionStatus
from tests.fixtures.live_fixtures import CREATOR_ID, make_subscription


class TestFromRecords:
    """Tests for EntitlementLedger.from_records."""

    def test_keys_subscriptions_by_creator(self):
        sub = make_subscription()
        ledger = EntitlementLedger.from_records([sub], ["post_1"])
        assert ledger.subscription_for(CREATOR_ID) == sub
        assert ledger.has_purchase("post_1") is True
        assert ledger.has_purchase("post_2") is False

    def test_drops_expired_rows(self):
        sub = make_subscription(status=SubscriptionStatus.EXPIRED)
        ledger = EntitlementLedger.from_records([sub], [])
        assert ledger.subscription_for(CREATOR_ID) is None

    def test_prefers_active_over_canceled(self):
        """Test duplicate rows for one creator collapse to the ACTIVE one."""
        canceled = make_subscription(sub_id="sb_old", status=SubscriptionStatus.CANCELED, end_in_days=60)
        active = make_subscription(sub_id="sb_new", end_in_days=10)
        ledger = EntitlementLedger.from_records([canceled, active], [])
        assert ledger.subscription_for(CREATOR_ID).id == "sb_new"

    def test_prefers_latest_end_date(self):
        early = make_subscription(sub_id="sb_a", status=SubscriptionStatus.CANCELED, end_in_days=2)
        late = make_subscription(sub_id="sb_b", status=SubscriptionStatus.CANCELED, end_in_days=20)
        ledger = EntitlementLedger.from_records([late, early], [])
        assert ledger.subscription_for(CREATOR_ID).id == "sb_b"


class TestImmutability:
    def test_with_purchase_returns_new_snapshot(self):
        ledger = EntitlementLedger.empty()
        updated = ledger.with_purchase("post_1")
        assert updated is not ledger
        assert ledger.has_purchase("post_1") is False
        assert updated.has_purchase("post_1") is True

    def test_subscriptions_mapping_is_read_only(self):
        ledger = EntitlementLedger.from_records([make_subscription()], [])
        with pytest.raises(TypeError):
            ledger.subscriptions["x"] = make_subscription()  # type: ignore[index]


class TestLedgerStore:
    """Tests for LedgerStore versioning."""

    def test_replace_swaps_snapshot(self):
        # Arrange
        store = LedgerStore()
        old = store.snapshot
        new = EntitlementLedger.from_records([make_subscription()], ["post_1"])

        # Act
        store.replace(new)

        # Assert
        assert store.snapshot is new
        assert old.subscription_for(CREATOR_ID) is None
        assert store.version == 1

    def test_add_purchase_bumps_version_once(self):
        store = LedgerStore()
        store.add_purchase("post_1")
        store.add_purchase("post_1")
        assert store.version == 1
        assert store.snapshot.purchases == frozenset({"post_1"})

    def test_clear(self):
        store = LedgerStore(EntitlementLedger.from_records([make_subscription()], ["post_1"]))
        store.clear()
        assert store.snapshot.subscription_for(CREATOR_ID) is None
        assert store.snapshot.purchases == frozenset()
