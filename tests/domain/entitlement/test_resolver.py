"""Tests for the entitlement resolver."""

from datetime import timedelta
from decimal import Decimal

from fanlive.domain.entitlement import (
    AccessReason,
    EntitlementLedger,
    LedgerStore,
    is_subscription_valid,
    resolve,
    resolve_row,
)
from fanlive.schemas import ContentItem, SubscriptionStatus
from fanlive.shared.timeutils import utc_now
from tests.fixtures.live_fixtures import CREATOR_ID, FAN_ID, make_subscription


def _content(price: str = "0", tier_id: str | None = None, content_id: str = "post_1") -> ContentItem:
    return ContentItem(id=content_id, creator_id=CREATOR_ID, price=Decimal(price), tier_id=tier_id)


def _ledger(*subs, purchases=()) -> EntitlementLedger:
    return EntitlementLedger.from_records(subs, purchases)


class TestOwnerAndPublic:
    """Owner bypass and public content."""

    def test_owner_always_granted(self):
        """Test the creator sees every item they own, even with an empty ledger."""
        for content in (_content("4.99"), _content("0", "t_vip"), _content("9.99", "t_basic")):
            decision = resolve(content, CREATOR_ID, EntitlementLedger.empty())
            assert decision.granted is True
            assert decision.reason == AccessReason.OWNER

    def test_public_content_granted_to_anyone(self):
        """Test price 0 without tier is granted for any viewer and empty ledger."""
        for viewer in ("u.other", FAN_ID, None):
            decision = resolve(_content(), viewer, EntitlementLedger.empty())
            assert decision.granted is True
            assert decision.reason == AccessReason.PUBLIC

    def test_anonymous_viewer_denied_gated_content(self):
        """Test anonymous viewers only pass the public rule."""
        ledger = _ledger(make_subscription(), purchases={"post_1"})
        decision = resolve(_content("4.99"), None, ledger)
        assert decision.granted is False

    def test_anonymous_viewer_empty_string(self):
        """Test an empty viewer id is treated as anonymous, not as an owner match."""
        content = ContentItem(id="post_x", creator_id="", price=Decimal("1"))
        assert resolve(content, "", EntitlementLedger.empty()).granted is False


class TestPurchases:
    """Pay-per-view purchases."""

    def test_purchased_item_granted(self):
        """Test a purchased item is granted without any subscription."""
        decision = resolve(_content("4.99"), FAN_ID, _ledger(purchases={"post_1"}))
        assert decision.granted is True
        assert decision.reason == AccessReason.PURCHASED

    def test_purchase_unlocks_tier_content(self):
        """Test a purchased tier item is granted even for another tier's subscriber."""
        ledger = _ledger(make_subscription(tier_id="t_basic"), purchases={"post_1"})
        assert resolve(_content("4.99", "t_vip"), FAN_ID, ledger).granted is True

    def test_idempotent_purchase(self):
        """Test purchasing the same item twice leaves the purchase set unchanged."""
        # Arrange
        store = LedgerStore()
        store.add_purchase("post_1")
        before = store.snapshot

        # Act
        after = store.add_purchase("post_1")

        # Assert
        assert after is before
        assert len(after.purchases) == 1
        assert resolve(_content("4.99"), FAN_ID, after).granted is True


class TestSubscriptions:
    """Subscription-based access."""

    def test_no_subscription_denied(self):
        decision = resolve(_content("4.99"), FAN_ID, EntitlementLedger.empty())
        assert decision.granted is False
        assert decision.reason == AccessReason.NO_SUBSCRIPTION

    def test_any_tier_ppv_granted_to_active_subscriber(self):
        """Test price > 0 without tier unlocks for any active subscriber."""
        decision = resolve(_content("4.99"), FAN_ID, _ledger(make_subscription(tier_id="t_basic")))
        assert decision.granted is True
        assert decision.reason == AccessReason.SUBSCRIBED_ANY_TIER

    def test_exact_tier_match_granted(self):
        decision = resolve(_content("0", "t_basic"), FAN_ID, _ledger(make_subscription(tier_id="t_basic")))
        assert decision.granted is True
        assert decision.reason == AccessReason.SUBSCRIBED_TIER

    def test_tier_mismatch_denied(self):
        """Test a higher tier does not unlock another tier's content."""
        decision = resolve(_content("0", "t_basic"), FAN_ID, _ledger(make_subscription(tier_id="t_vip")))
        assert decision.granted is False
        assert decision.reason == AccessReason.TIER_MISMATCH

    def test_subscription_to_other_creator_ignored(self):
        ledger = _ledger(make_subscription(creator_id="u.someone_else"))
        assert resolve(_content("4.99"), FAN_ID, ledger).granted is False


class TestGracePeriod:
    """CANCELED subscriptions stay valid until end_date."""

    def test_canceled_within_grace_period(self):
        """Test CANCELED with end_date in the future grants its tier and denies others."""
        ledger = _ledger(
            make_subscription(tier_id="T", status=SubscriptionStatus.CANCELED, end_in_days=1)
        )
        assert resolve(_content("0", "T"), FAN_ID, ledger).granted is True
        assert resolve(_content("0", "T2"), FAN_ID, ledger).granted is False

    def test_canceled_after_grace_period(self):
        """Test CANCELED with end_date in the past behaves like no subscription."""
        ledger = _ledger(
            make_subscription(tier_id="T", status=SubscriptionStatus.CANCELED, end_in_days=-1)
        )
        for content in (_content("0", "T"), _content("4.99")):
            decision = resolve(content, FAN_ID, ledger)
            assert decision.granted is False
            assert decision.reason == AccessReason.SUBSCRIPTION_INVALID

    def test_canceled_without_end_date_invalid(self):
        sub = make_subscription(status=SubscriptionStatus.CANCELED, end_in_days=None)
        assert is_subscription_valid(sub) is False

    def test_validity_uses_supplied_clock(self):
        """Test the grace window is evaluated against the given `now`."""
        sub = make_subscription(status=SubscriptionStatus.CANCELED, end_in_days=1)
        assert is_subscription_valid(sub, utc_now()) is True
        assert is_subscription_valid(sub, utc_now() + timedelta(days=2)) is False

    def test_auto_renew_not_consulted(self):
        """Test auto_renew has no effect on the decision."""
        on = _ledger(make_subscription(status=SubscriptionStatus.CANCELED, end_in_days=-1, auto_renew=True))
        off = _ledger(make_subscription(status=SubscriptionStatus.CANCELED, end_in_days=-1, auto_renew=False))
        assert resolve(_content("4.99"), FAN_ID, on) == resolve(_content("4.99"), FAN_ID, off)


class TestResolveRow:
    """Raw backend rows fail closed."""

    def test_valid_row(self):
        row = {"id": "post_9", "creator_id": CREATOR_ID, "price": "0", "tier_id": None}
        assert resolve_row(row, FAN_ID, EntitlementLedger.empty()).granted is True

    def test_negative_price_denied(self):
        row = {"id": "post_9", "creator_id": CREATOR_ID, "price": "-1"}
        decision = resolve_row(row, FAN_ID, EntitlementLedger.empty())
        assert decision.granted is False
        assert decision.reason == AccessReason.MALFORMED

    def test_missing_creator_denied(self):
        """Test a row without creator is denied even though price is 0."""
        decision = resolve_row({"id": "post_9", "price": 0}, FAN_ID, EntitlementLedger.empty())
        assert decision.reason == AccessReason.MALFORMED
