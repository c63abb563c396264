"""Live broadcast schemas: chat rows, tippers, presence and the creator's live profile."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from fanlive.shared.timeutils import ensure_utc

from .states import MessageKind


class LiveMessage(BaseModel):
    """A chat or tip-display row of one broadcast.

    Ordering is by arrival from the transport; `server_timestamp` is the
    backend-assigned creation time, never the sender's clock.
    """

    id: str
    creator_stream_id: str = Field(
        validation_alias=AliasChoices("creator_stream_id", "creator_id", "creatorId")
    )
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))
    display_name: str = Field(
        default="", validation_alias=AliasChoices("display_name", "user_name", "displayName")
    )
    avatar: str | None = Field(
        default=None, validation_alias=AliasChoices("avatar", "user_avatar")
    )
    content: str
    kind: MessageKind = Field(
        default=MessageKind.CHAT, validation_alias=AliasChoices("kind", "message_type")
    )
    tip_amount: Decimal | None = Field(
        default=None, validation_alias=AliasChoices("tip_amount", "tipAmount")
    )
    server_timestamp: datetime = Field(
        validation_alias=AliasChoices("server_timestamp", "created_at", "createdAt")
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("kind", mode="before")
    @classmethod
    def _default_kind(cls, v: Any) -> Any:
        return v or MessageKind.CHAT

    @field_validator("server_timestamp", mode="after")
    @classmethod
    def _utc_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Tipper(BaseModel):
    """Leaderboard row. Aggregated by the backend from authoritative tip records."""

    user_id: str
    display_name: str = Field(
        default="", validation_alias=AliasChoices("display_name", "user_name")
    )
    avatar: str | None = Field(default=None, validation_alias=AliasChoices("avatar", "user_avatar"))
    total_tipped: Decimal = Field(default=Decimal("0"), ge=0)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class PresenceEntry(BaseModel):
    """One open viewer connection. Ephemeral, bound to the socket lifetime."""

    connection_key: str
    user_id: str | None = None

    model_config = ConfigDict(frozen=True)


class LiveAccessConfig(BaseModel):
    """Who may watch the next broadcast. Chosen by the creator while offline."""

    requires_subscription: bool = Field(
        default=True,
        validation_alias=AliasChoices("requires_subscription", "live_stream_requires_subscription"),
    )
    required_tier_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("required_tier_id", "live_stream_tier_id"),
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class CreatorLiveProfile(BaseModel):
    """The public part of a creator profile relevant to a broadcast."""

    creator_id: str = Field(validation_alias=AliasChoices("creator_id", "id"))
    is_live: bool = False
    access: LiveAccessConfig = Field(default_factory=LiveAccessConfig)
    playback_id: str | None = Field(
        default=None, validation_alias=AliasChoices("playback_id", "mux_playback_id")
    )
    stream_key: str | None = Field(
        default=None, validation_alias=AliasChoices("stream_key", "mux_stream_key")
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CreatorLiveProfile":
        """Build from a flat profile row (live access columns inline)."""
        data = dict(row)
        if "access" not in data:
            data["access"] = LiveAccessConfig.model_validate(row)
        return cls.model_validate(data)
