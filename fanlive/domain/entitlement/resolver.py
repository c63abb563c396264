"""Entitlement resolver.

Pure decision function shared by feed posts and live streams. It never
touches the network and keeps no state between calls, so it is safe to run
on every render.

Decision order (first match wins):
1. Owner bypass
2. Public content
3. Already purchased (pay-per-view)
4. Subscription: valid status, then any-tier content or exact tier match
5. Denied
"""

from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import ValidationError

from fanlive.schemas import ContentItem, SubscriptionRecord, SubscriptionStatus
from fanlive.shared.timeutils import ensure_utc, utc_now

from .entitlement_models import AccessDecision, AccessReason
from .ledger import EntitlementLedger


def is_subscription_valid(subscription: SubscriptionRecord, now: datetime | None = None) -> bool:
    """ACTIVE, or CANCELED with an end date still in the future (grace period)."""
    if subscription.status == SubscriptionStatus.ACTIVE:
        return True
    if subscription.status == SubscriptionStatus.CANCELED and subscription.end_date is not None:
        return subscription.end_date > ensure_utc(now or utc_now())
    return False


def resolve(
    content: ContentItem,
    viewer_id: str | None,
    ledger: EntitlementLedger,
    now: datetime | None = None,
) -> AccessDecision:
    """Decide whether `viewer_id` may see `content`.

    Anonymous viewers (`viewer_id` None or empty) are only checked against the
    public rule.
    """
    if not viewer_id:
        if content.is_public:
            return AccessDecision.grant(AccessReason.PUBLIC)
        return AccessDecision.deny(AccessReason.NO_SUBSCRIPTION)

    if content.creator_id == viewer_id:
        return AccessDecision.grant(AccessReason.OWNER)

    if content.is_public:
        return AccessDecision.grant(AccessReason.PUBLIC)

    if ledger.has_purchase(content.id):
        return AccessDecision.grant(AccessReason.PURCHASED)

    subscription = ledger.subscription_for(content.creator_id)
    if subscription is None:
        return AccessDecision.deny(AccessReason.NO_SUBSCRIPTION)

    if not is_subscription_valid(subscription, now):
        return AccessDecision.deny(AccessReason.SUBSCRIPTION_INVALID)

    if content.tier_id is None:
        return AccessDecision.grant(AccessReason.SUBSCRIBED_ANY_TIER)

    if content.tier_id == subscription.tier_id:
        return AccessDecision.grant(AccessReason.SUBSCRIBED_TIER)

    return AccessDecision.deny(AccessReason.TIER_MISMATCH)


def resolve_row(
    row: dict[str, Any],
    viewer_id: str | None,
    ledger: EntitlementLedger,
    now: datetime | None = None,
) -> AccessDecision:
    """Resolve a raw backend content row. Rows that fail validation are denied."""
    try:
        content = ContentItem.model_validate(row)
    except ValidationError as e:
        row_id = row.get("id") if isinstance(row, dict) else None
        logger.warning(f"Malformed content row {row_id!r}, denying access: {e.error_count()} errors")
        return AccessDecision.deny(AccessReason.MALFORMED)
    return resolve(content, viewer_id, ledger, now)
