"""Subscription tier schema."""

from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TierDefinition(BaseModel):
    """A named subscription level offered by exactly one creator."""

    id: str
    creator_id: str = Field(validation_alias=AliasChoices("creator_id", "creatorId"))
    name: str
    price: Decimal = Field(ge=0)
    benefits: list[str] = Field(default_factory=list)
    position: int = 0
    active: bool = Field(default=True, validation_alias=AliasChoices("active", "is_active"))

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("benefits", mode="before")
    @classmethod
    def _null_benefits(cls, v: Any) -> Any:
        return [] if v is None else v


def sort_tiers(tiers: list[TierDefinition]) -> list[TierDefinition]:
    """Display order: explicit position first, then price."""
    return sorted(tiers, key=lambda t: (t.position, t.price))
