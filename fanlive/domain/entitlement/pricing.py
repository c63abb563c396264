"""Pricing negotiator for subscribe, upgrade and downgrade actions."""

from decimal import ROUND_HALF_UP, Decimal

from fanlive.schemas import SubscriptionRecord, SubscriptionStatus, TierDefinition
from fanlive.shared.errors import AppError, AppErrorCode, HttpStatusCode

from .entitlement_models import NegotiationKind, NegotiationResult

_CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def negotiate(
    target_tier: TierDefinition,
    current_subscription: SubscriptionRecord | None,
) -> NegotiationResult:
    """Compute what the viewer pays to move to `target_tier`.

    The current tier's price is the price recorded on the subscription, which
    is what the viewer has already paid for the running period.

    - no subscription, or not ACTIVE: NEW, full target price
    - same tier: NOOP, not selectable
    - cheaper current tier: UPGRADE, charged the difference now
    - pricier current tier: DOWNGRADE, nothing due, applies at `end_date`
    - same price, different tier: immediate switch with nothing due (UPGRADE, 0)
    """
    if current_subscription is not None and current_subscription.creator_id != target_tier.creator_id:
        raise AppError(
            errcode=AppErrorCode.E_INVALID_REQUEST,
            errmesg=(
                f"Subscription {current_subscription.id} belongs to creator "
                f"{current_subscription.creator_id}, tier {target_tier.id} to {target_tier.creator_id}"
            ),
            status_code=HttpStatusCode.BAD_REQUEST,
        )

    target_price = to_money(target_tier.price)

    if current_subscription is None or current_subscription.status != SubscriptionStatus.ACTIVE:
        return NegotiationResult(
            kind=NegotiationKind.NEW,
            amount_due=target_price,
            target_tier_id=target_tier.id,
        )

    if current_subscription.tier_id == target_tier.id:
        return NegotiationResult(
            kind=NegotiationKind.NOOP,
            amount_due=to_money(0),
            target_tier_id=target_tier.id,
            selectable=False,
        )

    current_price = to_money(current_subscription.price)

    if current_price > target_price:
        return NegotiationResult(
            kind=NegotiationKind.DOWNGRADE,
            amount_due=to_money(0),
            target_tier_id=target_tier.id,
            effective_at=current_subscription.end_date,
        )

    return NegotiationResult(
        kind=NegotiationKind.UPGRADE,
        amount_due=target_price - current_price,
        target_tier_id=target_tier.id,
    )
