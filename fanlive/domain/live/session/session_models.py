"""Live session domain models."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fanlive.domain.entitlement import AccessDecision
from fanlive.schemas import LiveAccessConfig, LiveMessage, LiveState, Tipper


class PromptKind(str, Enum):
    TIER = "TIER"
    CHEAPEST = "CHEAPEST"
    UNAVAILABLE = "UNAVAILABLE"

    def __str__(self) -> str:
        return self.value


class UnlockPrompt(BaseModel):
    """What the lock screen offers a denied viewer."""

    kind: PromptKind
    tier_id: str | None = None
    tier_name: str | None = None
    price: Decimal | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        if self.kind == PromptKind.TIER:
            return f"{self.tier_name} ({self.price}€)"
        if self.kind == PromptKind.CHEAPEST:
            return f"from {self.price}€"
        return "unavailable"


class SessionPhase(str, Enum):
    IDLE = "idle"
    LOCKED = "locked"
    JOINED = "joined"
    ENDED = "ended"
    LEFT = "left"

    def __str__(self) -> str:
        return self.value


class LiveSessionSnapshot(BaseModel):
    """Read-only view of a joined live session, as rendered by the client."""

    creator_id: str
    viewer_id: str | None = None
    is_streamer: bool = False
    phase: SessionPhase
    live_state: LiveState
    access: LiveAccessConfig
    decision: AccessDecision | None = None
    unlock_prompt: UnlockPrompt | None = None
    viewer_count: int = 0
    messages: list[LiveMessage] = Field(default_factory=list)
    leaderboard: list[Tipper] = Field(default_factory=list)
    hearts: int = 0
    playback_id: str | None = None
