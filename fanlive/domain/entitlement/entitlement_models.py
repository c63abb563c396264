"""Entitlement domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict


class AccessReason(str, Enum):
    # Granted
    OWNER = "owner"
    PUBLIC = "public"
    PURCHASED = "purchased"
    SUBSCRIBED_ANY_TIER = "subscribed_any_tier"
    SUBSCRIBED_TIER = "subscribed_tier"
    # Denied
    NO_SUBSCRIPTION = "no_subscription"
    SUBSCRIPTION_INVALID = "subscription_invalid"
    TIER_MISMATCH = "tier_mismatch"
    MALFORMED = "malformed"

    def __str__(self) -> str:
        return self.value


class AccessDecision(BaseModel):
    """Result of resolving one content item for one viewer."""

    granted: bool
    reason: AccessReason

    model_config = ConfigDict(frozen=True)

    def __bool__(self) -> bool:
        return self.granted

    @classmethod
    def grant(cls, reason: AccessReason) -> "AccessDecision":
        return cls(granted=True, reason=reason)

    @classmethod
    def deny(cls, reason: AccessReason) -> "AccessDecision":
        return cls(granted=False, reason=reason)


class NegotiationKind(str, Enum):
    NEW = "NEW"
    UPGRADE = "UPGRADE"
    DOWNGRADE = "DOWNGRADE"
    NOOP = "NOOP"

    def __str__(self) -> str:
        return self.value


class NegotiationResult(BaseModel):
    """Amount payable for a subscribe / tier change action.

    `effective_at` is set for downgrades: the lower tier only applies from the
    next billing boundary. `selectable` is False for the viewer's current tier.
    """

    kind: NegotiationKind
    amount_due: Decimal
    target_tier_id: str
    effective_at: datetime | None = None
    selectable: bool = True

    model_config = ConfigDict(frozen=True)
