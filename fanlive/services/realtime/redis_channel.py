"""Redis-backed realtime channel.

Events travel over Redis pub/sub on the broadcast topic. Presence lives in a
hash (`presence:<topic>`, field = connection key) whose entries carry a
heartbeat timestamp; entries older than the presence TTL are ignored and
pruned. A membership change publishes a `presence_sync` notice and every
listener re-reads the whole hash, so a missed notice heals on the next one.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

import orjson
from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from fanlive.domain.utils.idgen import new_connection_key
from fanlive.shared.errors import format_error
from fanlive.shared.timeutils import utc_now_ms

from .channel_base import (
    EVENT_CHAT_DELETE,
    EVENT_CHAT_INSERT,
    EVENT_PRESENCE_SYNC,
    ChannelStatus,
    RealtimeChannel,
    StatusHandler,
)

# Row events are relayed to every connection, including the one that caused them.
_ECHO_EVENTS = {EVENT_CHAT_INSERT, EVENT_CHAT_DELETE, EVENT_PRESENCE_SYNC}


def presence_key(topic: str) -> str:
    return f"presence:{topic}"


class RedisRealtimeChannel(RealtimeChannel):
    def __init__(
        self,
        redis_client: Redis,
        topic: str,
        *,
        presence_ttl_seconds: int = 90,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
    ):
        super().__init__(topic, new_connection_key())
        self._redis = redis_client
        self._presence_ttl_ms = int(presence_ttl_seconds * 1000)
        self._heartbeat_interval = max(presence_ttl_seconds / 3, 1.0)
        self._reconnect_base_delay = reconnect_base_delay
        self._reconnect_max_delay = reconnect_max_delay

        self._listen_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._tracked_meta: dict[str, Any] | None = None
        self._closing = False

    # ==================== PUBLISH ====================

    async def _publish(self, event: str, payload: dict[str, Any] | None = None) -> None:
        message = orjson.dumps(
            {"event": event, "payload": payload or {}, "sender": self.connection_key}
        )
        await self._redis.publish(self.topic, message)

    async def send_broadcast(self, event: str, payload: dict[str, Any] | None = None) -> None:
        await self._publish(event, payload)

    # ==================== PRESENCE ====================

    async def presence_state(self) -> dict[str, dict[str, Any]]:
        """Read the live presence set, pruning entries whose heartbeat expired."""
        raw = await self._redis.hgetall(presence_key(self.topic))
        now_ms = utc_now_ms()
        state: dict[str, dict[str, Any]] = {}
        stale: list[str] = []
        for key, value in raw.items():
            try:
                entry = orjson.loads(value)
            except orjson.JSONDecodeError:
                stale.append(key)
                continue
            if now_ms - int(entry.get("ts", 0)) > self._presence_ttl_ms:
                stale.append(key)
                continue
            state[key] = entry.get("meta") or {}
        if stale:
            await self._redis.hdel(presence_key(self.topic), *stale)
            logger.debug(f"Pruned {len(stale)} stale presence entries on {self.topic}")
        return state

    async def _write_presence(self) -> None:
        if self._tracked_meta is None:
            return
        value = orjson.dumps({"meta": self._tracked_meta, "ts": utc_now_ms()})
        await self._redis.hset(presence_key(self.topic), self.connection_key, value)

    async def _heartbeat(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._heartbeat_interval)
                await self._write_presence()
            except asyncio.CancelledError:
                break
            except RedisError as e:
                logger.warning(f"Presence heartbeat failed on {self.topic}: {e}")

    async def track(self, payload: dict[str, Any]) -> None:
        self._tracked_meta = dict(payload)
        await self._write_presence()
        await self._publish(EVENT_PRESENCE_SYNC)
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat())

    async def untrack(self) -> None:
        self._tracked_meta = None
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None
        await self._redis.hdel(presence_key(self.topic), self.connection_key)
        await self._publish(EVENT_PRESENCE_SYNC)

    async def _sync_presence(self) -> None:
        await self._dispatch(EVENT_PRESENCE_SYNC, {"state": await self.presence_state()})

    # ==================== SUBSCRIPTION ====================

    async def subscribe(self, on_status: StatusHandler | None = None) -> None:
        self._status_handler = on_status
        self._closing = False
        ready = asyncio.Event()
        self._listen_task = asyncio.create_task(self._listen(ready))
        await ready.wait()

    async def _handle_message(self, data: Any) -> None:
        try:
            message = orjson.loads(data)
        except orjson.JSONDecodeError:
            logger.warning(f"Unexpected message on {self.topic}: {data!r}")
            return
        if not isinstance(message, dict) or "event" not in message:
            logger.warning(f"Unexpected message on {self.topic}: {message!r}")
            return

        event = message["event"]
        if event not in _ECHO_EVENTS and message.get("sender") == self.connection_key:
            return
        if event == EVENT_PRESENCE_SYNC:
            await self._sync_presence()
            return
        await self._dispatch(event, message.get("payload") or {})

    async def _listen(self, ready: asyncio.Event) -> None:
        retry_count = 0
        while not self._closing:
            pubsub = self._redis.pubsub()
            try:
                await pubsub.subscribe(self.topic)
                logger.info(f"Subscribed to {self.topic} as {self.connection_key}")
                retry_count = 0
                await self._sync_presence()
                await self._set_status(ChannelStatus.SUBSCRIBED)
                ready.set()

                async for msg in pubsub.listen():
                    if msg.get("type") != "message":
                        continue
                    await self._handle_message(msg["data"])
                    if self._closing:
                        break
            except asyncio.CancelledError:
                break
            except RedisError as e:
                delay = min(self._reconnect_base_delay * (2**retry_count), self._reconnect_max_delay)
                retry_count += 1
                logger.warning(
                    f"Realtime connection lost on {self.topic}: {e}; retrying in {delay}s (attempt {retry_count})"
                )
                ready.set()
                await self._set_status(ChannelStatus.RECONNECTING)
                await asyncio.sleep(delay)
            except Exception as e:
                logger.error(f"Realtime listener on {self.topic} crashed: {format_error(e)}")
                ready.set()
                await self._set_status(ChannelStatus.RECONNECTING)
                await asyncio.sleep(self._reconnect_base_delay)
            finally:
                with contextlib.suppress(Exception):
                    await pubsub.aclose()

    async def unsubscribe(self) -> None:
        self._closing = True
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None
        # A handler may unsubscribe from inside the listener; it then exits on its own.
        if self._listen_task is not None and self._listen_task is not asyncio.current_task():
            self._listen_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listen_task
        self._listen_task = None
        await self._set_status(ChannelStatus.CLOSED)
        self._status_handler = None
        logger.info(f"Unsubscribed from {self.topic} as {self.connection_key}")
