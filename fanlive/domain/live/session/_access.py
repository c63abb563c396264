"""Access gate for live broadcasts."""

from datetime import datetime

from fanlive.domain.entitlement import AccessDecision, AccessReason, EntitlementLedger, resolve
from fanlive.schemas import ContentItem, CreatorLiveProfile, LiveAccessConfig, TierDefinition

from .session_models import PromptKind, UnlockPrompt


def live_content_id(creator_id: str) -> str:
    return f"live:{creator_id}"


def live_content_for(creator_id: str, access: LiveAccessConfig) -> ContentItem:
    """Synthetic content item the resolver gates a broadcast with.

    - requires_subscription False: public
    - required_tier_id set: that tier only
    - otherwise: any valid subscriber, not purchasable
    """
    if not access.requires_subscription:
        return ContentItem(id=live_content_id(creator_id), creator_id=creator_id)
    return ContentItem(
        id=live_content_id(creator_id),
        creator_id=creator_id,
        tier_id=access.required_tier_id,
        subscribers_only=access.required_tier_id is None,
    )


def check_live_access(
    profile: CreatorLiveProfile,
    viewer_id: str | None,
    ledger: EntitlementLedger,
    is_streamer: bool = False,
    now: datetime | None = None,
) -> AccessDecision:
    if is_streamer:
        return AccessDecision.grant(AccessReason.OWNER)
    return resolve(live_content_for(profile.creator_id, profile.access), viewer_id, ledger, now)


def build_unlock_prompt(access: LiveAccessConfig, tiers: list[TierDefinition]) -> UnlockPrompt:
    """Lock screen offer: the required tier, else the cheapest active tier."""
    active = [t for t in tiers if t.active]

    if access.required_tier_id is not None:
        required = next((t for t in active if t.id == access.required_tier_id), None)
        if required is not None:
            return UnlockPrompt(
                kind=PromptKind.TIER,
                tier_id=required.id,
                tier_name=required.name,
                price=required.price,
            )

    if not active:
        return UnlockPrompt(kind=PromptKind.UNAVAILABLE)

    cheapest = min(active, key=lambda t: t.price)
    return UnlockPrompt(
        kind=PromptKind.CHEAPEST,
        tier_id=cheapest.id,
        tier_name=cheapest.name,
        price=cheapest.price,
    )
