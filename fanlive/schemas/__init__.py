"""Pydantic schemas for records exchanged with the managed backend."""

from .content import ContentItem
from .live import CreatorLiveProfile, LiveAccessConfig, LiveMessage, PresenceEntry, Tipper
from .states import LiveState, MessageKind, SubscriptionStatus
from .subscription import PurchaseRecord, SubscriptionRecord
from .tier import TierDefinition, sort_tiers

__all__ = [
    "ContentItem",
    "CreatorLiveProfile",
    "LiveAccessConfig",
    "LiveMessage",
    "LiveState",
    "MessageKind",
    "PresenceEntry",
    "PurchaseRecord",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "TierDefinition",
    "Tipper",
    "sort_tiers",
]
