"""Common enums used across schemas."""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle states.

    ACTIVE → CANCELED → EXPIRED

    - ACTIVE: Created on checkout confirmation (or restored by resume).
    - CANCELED: Set by cancel. Still entitles the fan until `end_date` (grace period).
    - EXPIRED: Set by the backend once `end_date` has passed. Never entitles.
    """

    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"

    def __str__(self) -> str:
        return self.value


class LiveState(str, Enum):
    """Broadcast state of a creator's live session.

    OFFLINE → LIVE (creator picks access level and goes live)
    LIVE → OFFLINE (creator ends the stream; chat history is cleared)
    """

    OFFLINE = "offline"
    LIVE = "live"

    def __str__(self) -> str:
        return self.value


class MessageKind(str, Enum):
    CHAT = "CHAT"
    TIP = "TIP"

    def __str__(self) -> str:
        return self.value


__all__ = ["LiveState", "MessageKind", "SubscriptionStatus"]
