"""In-memory backend used in DEMO_MODE and tests.

Mirrors the managed backend's behavior closely enough for the core:
chat inserts/deletes are relayed to the realtime hub as row events, and the
leaderboard is aggregated from the tip ledger (`record_tip`), which only the
payment confirmation path writes. Tip display rows never feed it.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loguru import logger

from fanlive.domain.utils.idgen import new_message_id
from fanlive.schemas import (
    CreatorLiveProfile,
    LiveAccessConfig,
    LiveMessage,
    MessageKind,
    SubscriptionRecord,
    SubscriptionStatus,
    TierDefinition,
    Tipper,
    sort_tiers,
)
from fanlive.services.realtime import InMemoryRealtimeHub, live_topic
from fanlive.shared.errors import AppError, AppErrorCode, HttpStatusCode
from fanlive.shared.timeutils import utc_now


@dataclass
class _TipRecord:
    creator_id: str
    user_id: str
    display_name: str
    amount: Decimal
    created_at: datetime


class InMemoryBackend:
    def __init__(self, hub: InMemoryRealtimeHub | None = None):
        self.hub = hub
        self.tiers: dict[str, TierDefinition] = {}
        self.subscriptions: dict[str, SubscriptionRecord] = {}
        self.purchases: dict[str, set[str]] = defaultdict(set)
        self.profiles: dict[str, CreatorLiveProfile] = {}
        self.chat: dict[str, list[LiveMessage]] = defaultdict(list)
        self.tip_ledger: list[_TipRecord] = []

    # ==================== SEEDING / PAYMENT CONFIRMATION ====================

    def add_tier(self, tier: TierDefinition) -> TierDefinition:
        self.tiers[tier.id] = tier
        return tier

    def add_subscription(self, subscription: SubscriptionRecord) -> SubscriptionRecord:
        self.subscriptions[subscription.id] = subscription
        return subscription

    def add_profile(self, profile: CreatorLiveProfile) -> CreatorLiveProfile:
        self.profiles[profile.creator_id] = profile
        return profile

    def record_purchase(self, user_id: str, content_id: str) -> None:
        self.purchases[user_id].add(content_id)

    def record_tip(self, creator_id: str, user_id: str, display_name: str, amount: Decimal) -> None:
        self.tip_ledger.append(
            _TipRecord(
                creator_id=creator_id,
                user_id=user_id,
                display_name=display_name,
                amount=Decimal(amount),
                created_at=utc_now(),
            )
        )

    # ==================== ENTITLEMENT ====================

    async def get_user_subscriptions(self, fan_id: str) -> list[SubscriptionRecord]:
        return [
            sub
            for sub in self.subscriptions.values()
            if sub.fan_id == fan_id
            and sub.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED)
        ]

    async def get_paid_content_ids(self, user_id: str) -> set[str]:
        return set(self.purchases.get(user_id, ()))

    async def get_creator_tiers(self, creator_id: str) -> list[TierDefinition]:
        return sort_tiers(
            [t for t in self.tiers.values() if t.creator_id == creator_id and t.active]
        )

    def _own_subscription(self, subscription_id: str, fan_id: str) -> SubscriptionRecord:
        sub = self.subscriptions.get(subscription_id)
        if sub is None or sub.fan_id != fan_id:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"Subscription not found: {subscription_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return sub

    async def cancel_subscription(self, subscription_id: str, fan_id: str) -> SubscriptionRecord:
        sub = self._own_subscription(subscription_id, fan_id)
        updated = sub.model_copy(update={"status": SubscriptionStatus.CANCELED, "auto_renew": False})
        self.subscriptions[subscription_id] = updated
        return updated

    async def resume_subscription(self, subscription_id: str, fan_id: str) -> SubscriptionRecord:
        sub = self._own_subscription(subscription_id, fan_id)
        if sub.status == SubscriptionStatus.EXPIRED:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_STATE,
                errmesg=f"Subscription {subscription_id} has expired",
                status_code=HttpStatusCode.CONFLICT,
            )
        updated = sub.model_copy(update={"status": SubscriptionStatus.ACTIVE, "auto_renew": True})
        self.subscriptions[subscription_id] = updated
        return updated

    # ==================== LIVE PROFILE ====================

    async def get_creator_live_profile(self, creator_id: str) -> CreatorLiveProfile:
        profile = self.profiles.get(creator_id)
        if profile is None:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"Creator not found: {creator_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return profile

    async def update_live_profile(
        self, creator_id: str, access: LiveAccessConfig, is_live: bool
    ) -> CreatorLiveProfile:
        profile = self.profiles.get(creator_id) or CreatorLiveProfile(creator_id=creator_id)
        updated = profile.model_copy(update={"access": access, "is_live": is_live})
        self.profiles[creator_id] = updated
        return updated

    # ==================== LIVE CHAT ====================

    async def get_chat_history(self, creator_id: str, limit: int) -> list[LiveMessage]:
        if limit <= 0:
            return []
        rows = sorted(self.chat.get(creator_id, []), key=lambda m: m.server_timestamp)
        return rows[-limit:]

    async def _insert_row(self, message: LiveMessage) -> None:
        self.chat[message.creator_stream_id].append(message)
        if self.hub is not None:
            await self.hub.publish_row_insert(
                live_topic(message.creator_stream_id), message.model_dump(mode="json")
            )

    async def insert_chat_message(
        self,
        creator_id: str,
        user_id: str,
        display_name: str,
        avatar: str | None,
        content: str,
    ) -> None:
        await self._insert_row(
            LiveMessage(
                id=new_message_id(),
                creator_stream_id=creator_id,
                user_id=user_id,
                display_name=display_name,
                avatar=avatar,
                content=content,
                kind=MessageKind.CHAT,
                server_timestamp=utc_now(),
            )
        )

    async def send_tip_message(
        self,
        creator_id: str,
        user_id: str,
        display_name: str,
        avatar_marker: str,
        content: str,
        tip_amount: Decimal,
    ) -> None:
        await self._insert_row(
            LiveMessage(
                id=new_message_id(),
                creator_stream_id=creator_id,
                user_id=user_id,
                display_name=display_name,
                avatar=avatar_marker,
                content=content,
                kind=MessageKind.TIP,
                tip_amount=Decimal(tip_amount),
                server_timestamp=utc_now(),
            )
        )

    async def delete_chat_message(self, message_id: str, creator_id: str) -> None:
        rows = self.chat.get(creator_id, [])
        remaining = [m for m in rows if m.id != message_id]
        if len(remaining) == len(rows):
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"Chat message not found: {message_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        self.chat[creator_id] = remaining
        if self.hub is not None:
            await self.hub.publish_row_delete(live_topic(creator_id), message_id)

    # ==================== LEADERBOARD / TERMINATION ====================

    async def get_stream_leaderboard(self, creator_id: str) -> list[Tipper]:
        totals: dict[str, Decimal] = defaultdict(Decimal)
        names: dict[str, str] = {}
        for tip in self.tip_ledger:
            if tip.creator_id != creator_id:
                continue
            totals[tip.user_id] += tip.amount
            names[tip.user_id] = tip.display_name
        ranking = sorted(totals.items(), key=lambda item: (-item[1], names[item[0]]))
        return [
            Tipper(user_id=user_id, display_name=names[user_id], total_tipped=total)
            for user_id, total in ranking
        ]

    async def clear_live_chat_and_go_offline(self, creator_id: str) -> None:
        self.chat.pop(creator_id, None)
        profile = self.profiles.get(creator_id)
        if profile is not None:
            self.profiles[creator_id] = profile.model_copy(update={"is_live": False})
        logger.info(f"Cleared live chat for {creator_id} and went offline")
