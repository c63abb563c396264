"""Row-change relay for Redis broadcast topics.

The managed backend only stores chat rows. Once a write is confirmed the REST
client hands the stored row to this relay, which publishes it on the broadcast
topic in the same envelope `RedisRealtimeChannel` listeners decode.
"""

from __future__ import annotations

from typing import Any

import orjson
from loguru import logger
from redis.asyncio import Redis

from .channel_base import EVENT_CHAT_DELETE, EVENT_CHAT_INSERT

RELAY_SENDER = "backend"


class RedisRowRelay:
    def __init__(self, redis_client: Redis):
        self._redis = redis_client

    async def _publish(self, topic: str, event: str, payload: dict[str, Any]) -> None:
        message = orjson.dumps({"event": event, "payload": payload, "sender": RELAY_SENDER})
        receivers = await self._redis.publish(topic, message)
        logger.debug(f"Relayed {event} on {topic} to {receivers} listeners")

    async def publish_row_insert(self, topic: str, row: dict[str, Any]) -> None:
        await self._publish(topic, EVENT_CHAT_INSERT, {"new": row})

    async def publish_row_delete(self, topic: str, row_id: str) -> None:
        await self._publish(topic, EVENT_CHAT_DELETE, {"old": {"id": row_id}})
