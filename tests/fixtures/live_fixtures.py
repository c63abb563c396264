"""Record factories and in-memory backend / realtime fixtures."""

from datetime import timedelta
from decimal import Decimal

import pytest

from fanlive.schemas import (
    CreatorLiveProfile,
    LiveAccessConfig,
    SubscriptionRecord,
    SubscriptionStatus,
    TierDefinition,
)
from fanlive.services.backend import InMemoryBackend
from fanlive.services.realtime import InMemoryRealtimeHub
from fanlive.shared.timeutils import utc_now

CREATOR_ID = "u.creator"
FAN_ID = "u.fan"


def make_tier(
    tier_id: str = "t_basic",
    price: str = "9.99",
    creator_id: str = CREATOR_ID,
    name: str | None = None,
    position: int = 0,
    active: bool = True,
) -> TierDefinition:
    return TierDefinition(
        id=tier_id,
        creator_id=creator_id,
        name=name or tier_id,
        price=Decimal(price),
        position=position,
        active=active,
    )


def make_subscription(
    tier_id: str | None = "t_basic",
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    price: str = "9.99",
    end_in_days: float | None = 30,
    fan_id: str = FAN_ID,
    creator_id: str = CREATOR_ID,
    sub_id: str = "sb_1",
    auto_renew: bool = True,
) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=sub_id,
        fan_id=fan_id,
        creator_id=creator_id,
        tier_id=tier_id,
        status=status,
        price=Decimal(price),
        end_date=utc_now() + timedelta(days=end_in_days) if end_in_days is not None else None,
        auto_renew=auto_renew,
    )


@pytest.fixture
def hub() -> InMemoryRealtimeHub:
    return InMemoryRealtimeHub()


@pytest.fixture
def backend(hub: InMemoryRealtimeHub) -> InMemoryBackend:
    """In-memory backend with one live creator offering two tiers."""
    backend = InMemoryBackend(hub=hub)
    backend.add_tier(make_tier("t_basic", "9.99", name="Basic", position=0))
    backend.add_tier(make_tier("t_vip", "19.99", name="VIP", position=1))
    backend.add_profile(
        CreatorLiveProfile(
            creator_id=CREATOR_ID,
            is_live=True,
            access=LiveAccessConfig(requires_subscription=True, required_tier_id=None),
            playback_id="pb_123",
        )
    )
    return backend
