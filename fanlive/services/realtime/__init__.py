"""Realtime transport for live broadcast topics."""

from fanlive.app_config import get_app_environ_config
from fanlive.shared.storage.redis import get_redis_client

from .channel_base import (
    EVENT_CHAT_DELETE,
    EVENT_CHAT_INSERT,
    EVENT_HEART,
    EVENT_PRESENCE_SYNC,
    EVENT_STREAM_END,
    ChannelFactory,
    ChannelStatus,
    RealtimeChannel,
    RowEventRelay,
    live_topic,
)
from .memory_channel import InMemoryChannel, InMemoryRealtimeHub
from .redis_channel import RedisRealtimeChannel
from .redis_relay import RedisRowRelay

_demo_hub: InMemoryRealtimeHub | None = None


def get_demo_hub() -> InMemoryRealtimeHub:
    global _demo_hub
    if _demo_hub is None:
        _demo_hub = InMemoryRealtimeHub()
    return _demo_hub


def get_channel_factory() -> ChannelFactory:
    """Channel factory for the configured transport (in-memory hub in DEMO_MODE)."""
    cfg = get_app_environ_config()

    if cfg.DEMO_MODE:
        return get_demo_hub().channel

    redis_client = get_redis_client(cfg.REDIS_REALTIME_LABEL)

    def factory(topic: str) -> RealtimeChannel:
        return RedisRealtimeChannel(
            redis_client,
            topic,
            presence_ttl_seconds=cfg.REALTIME_PRESENCE_TTL_SECONDS,
            reconnect_max_delay=cfg.REALTIME_RECONNECT_MAX_DELAY,
        )

    return factory


def get_row_relay() -> RowEventRelay:
    """Relay that carries confirmed chat row changes to the configured transport."""
    cfg = get_app_environ_config()

    if cfg.DEMO_MODE:
        return get_demo_hub()

    return RedisRowRelay(get_redis_client(cfg.REDIS_REALTIME_LABEL))


__all__ = [
    "EVENT_CHAT_DELETE",
    "EVENT_CHAT_INSERT",
    "EVENT_HEART",
    "EVENT_PRESENCE_SYNC",
    "EVENT_STREAM_END",
    "ChannelFactory",
    "ChannelStatus",
    "InMemoryChannel",
    "InMemoryRealtimeHub",
    "RealtimeChannel",
    "RedisRealtimeChannel",
    "RedisRowRelay",
    "RowEventRelay",
    "get_channel_factory",
    "get_demo_hub",
    "get_row_relay",
    "live_topic",
]
