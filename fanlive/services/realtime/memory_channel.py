"""In-process realtime hub.

Delivers events synchronously to every subscribed channel of a topic. Used in
DEMO_MODE and in tests; also lets the in-memory backend relay row events the
way the managed backend does.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from loguru import logger

from fanlive.domain.utils.idgen import new_connection_key

from .channel_base import (
    EVENT_CHAT_DELETE,
    EVENT_CHAT_INSERT,
    EVENT_PRESENCE_SYNC,
    ChannelStatus,
    RealtimeChannel,
    StatusHandler,
)


class InMemoryRealtimeHub:
    def __init__(self):
        self._channels: dict[str, list[InMemoryChannel]] = defaultdict(list)
        self._presence: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)

    def channel(self, topic: str) -> "InMemoryChannel":
        return InMemoryChannel(self, topic)

    def presence_state(self, topic: str) -> dict[str, dict[str, Any]]:
        return dict(self._presence.get(topic, {}))

    def subscribers(self, topic: str) -> int:
        return len(self._channels.get(topic, ()))

    async def _attach(self, channel: "InMemoryChannel") -> None:
        if channel not in self._channels[channel.topic]:
            self._channels[channel.topic].append(channel)
        await channel._dispatch(EVENT_PRESENCE_SYNC, {"state": self.presence_state(channel.topic)})

    def _detach(self, channel: "InMemoryChannel") -> None:
        members = self._channels.get(channel.topic, [])
        if channel in members:
            members.remove(channel)

    async def _set_presence(self, topic: str, key: str, meta: dict[str, Any] | None) -> None:
        if meta is None:
            self._presence[topic].pop(key, None)
        else:
            self._presence[topic][key] = dict(meta)
        await self._fanout(topic, EVENT_PRESENCE_SYNC, {"state": self.presence_state(topic)})

    async def _fanout(
        self,
        topic: str,
        event: str,
        payload: dict[str, Any],
        sender: "InMemoryChannel | None" = None,
    ) -> None:
        for channel in list(self._channels.get(topic, ())):
            if channel is sender:
                continue
            await channel._dispatch(event, payload)

    # ==================== BACKEND-SIDE EVENTS ====================

    async def publish_row_insert(self, topic: str, row: dict[str, Any]) -> None:
        await self._fanout(topic, EVENT_CHAT_INSERT, {"new": row})

    async def publish_row_delete(self, topic: str, row_id: str) -> None:
        await self._fanout(topic, EVENT_CHAT_DELETE, {"old": {"id": row_id}})

    async def publish(self, topic: str, event: str, payload: dict[str, Any] | None = None) -> None:
        await self._fanout(topic, event, payload or {})

    # ==================== FAULT INJECTION ====================

    async def drop_connection(self, channel: "InMemoryChannel") -> None:
        """Simulate a transport drop: the server forgets the connection's presence."""
        logger.info(f"Dropping connection {channel.connection_key} on {channel.topic}")
        self._detach(channel)
        await channel._set_status(ChannelStatus.RECONNECTING)
        await self._set_presence(channel.topic, channel.connection_key, None)

    async def restore_connection(self, channel: "InMemoryChannel") -> None:
        await self._attach(channel)
        await channel._set_status(ChannelStatus.SUBSCRIBED)


class InMemoryChannel(RealtimeChannel):
    def __init__(self, hub: InMemoryRealtimeHub, topic: str):
        super().__init__(topic, new_connection_key())
        self._hub = hub

    async def subscribe(self, on_status: StatusHandler | None = None) -> None:
        self._status_handler = on_status
        await self._hub._attach(self)
        await self._set_status(ChannelStatus.SUBSCRIBED)

    async def track(self, payload: dict[str, Any]) -> None:
        await self._hub._set_presence(self.topic, self.connection_key, payload)

    async def untrack(self) -> None:
        await self._hub._set_presence(self.topic, self.connection_key, None)

    async def send_broadcast(self, event: str, payload: dict[str, Any] | None = None) -> None:
        await self._hub._fanout(self.topic, event, payload or {}, sender=self)

    async def unsubscribe(self) -> None:
        self._hub._detach(self)
        await self._set_status(ChannelStatus.CLOSED)
        self._status_handler = None
