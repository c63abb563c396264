"""Gated content schema."""

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ContentItem(BaseModel):
    """A feed post or live broadcast as seen by the entitlement resolver.

    - price == 0 and tier_id is None: public
    - price > 0 and tier_id is None: pay-per-view, also unlocked for any active subscriber
    - tier_id set: unlocked for that tier's subscribers, or via pay-per-view when price > 0

    `subscribers_only` marks items that are gated to any active subscriber
    without being purchasable (the live stream "all subscribers" level).
    """

    id: str
    creator_id: str = Field(validation_alias=AliasChoices("creator_id", "creatorId"))
    price: Decimal = Field(default=Decimal("0"), ge=0)
    tier_id: str | None = Field(default=None, validation_alias=AliasChoices("tier_id", "tierId"))
    subscribers_only: bool = False

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def is_public(self) -> bool:
        return self.price == 0 and self.tier_id is None and not self.subscribers_only
