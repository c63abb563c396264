"""Managed backend interface.

The backend owns persistent users, subscriptions, tiers, purchases and chat
rows, and enforces row-level authorization. This core only issues typed calls
against it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from fanlive.schemas import (
    CreatorLiveProfile,
    LiveAccessConfig,
    LiveMessage,
    SubscriptionRecord,
    TierDefinition,
    Tipper,
)


class LiveBackend(Protocol):
    # Entitlement records
    async def get_user_subscriptions(self, fan_id: str) -> list[SubscriptionRecord]: ...

    async def get_paid_content_ids(self, user_id: str) -> set[str]: ...

    async def get_creator_tiers(self, creator_id: str) -> list[TierDefinition]: ...

    async def cancel_subscription(self, subscription_id: str, fan_id: str) -> SubscriptionRecord: ...

    async def resume_subscription(self, subscription_id: str, fan_id: str) -> SubscriptionRecord: ...

    # Live profile
    async def get_creator_live_profile(self, creator_id: str) -> CreatorLiveProfile: ...

    async def update_live_profile(
        self, creator_id: str, access: LiveAccessConfig, is_live: bool
    ) -> CreatorLiveProfile: ...

    # Live chat
    async def get_chat_history(self, creator_id: str, limit: int) -> list[LiveMessage]: ...

    async def insert_chat_message(
        self,
        creator_id: str,
        user_id: str,
        display_name: str,
        avatar: str | None,
        content: str,
    ) -> None: ...

    async def send_tip_message(
        self,
        creator_id: str,
        user_id: str,
        display_name: str,
        avatar_marker: str,
        content: str,
        tip_amount: Decimal,
    ) -> None: ...

    async def delete_chat_message(self, message_id: str, creator_id: str) -> None: ...

    # Authoritative aggregates and termination
    async def get_stream_leaderboard(self, creator_id: str) -> list[Tipper]: ...

    async def clear_live_chat_and_go_offline(self, creator_id: str) -> None: ...
