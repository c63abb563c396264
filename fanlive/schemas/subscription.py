"""Subscription and purchase schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from fanlive.shared.timeutils import ensure_utc

from .states import SubscriptionStatus


class SubscriptionRecord(BaseModel):
    """A fan's subscription to one creator.

    At most one non-EXPIRED record exists per (fan_id, creator_id). A CANCELED
    record stays entitlement-valid until `end_date`.
    """

    id: str
    fan_id: str = Field(validation_alias=AliasChoices("fan_id", "fanId"))
    creator_id: str = Field(validation_alias=AliasChoices("creator_id", "creatorId"))
    tier_id: str | None = Field(default=None, validation_alias=AliasChoices("tier_id", "tierId"))
    status: SubscriptionStatus
    price: Decimal = Field(default=Decimal("0"), ge=0)
    end_date: datetime | None = Field(
        default=None, validation_alias=AliasChoices("end_date", "endDate")
    )
    auto_renew: bool = Field(default=True, validation_alias=AliasChoices("auto_renew", "autoRenew"))

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("end_date", mode="after")
    @classmethod
    def _utc_end_date(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class PurchaseRecord(BaseModel):
    """One-time pay-per-view purchase. Created once, never mutated."""

    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    content_id: str = Field(
        validation_alias=AliasChoices("content_id", "contentId", "post_id")
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)
