"""Tests for RedisRealtimeChannel.

TestRedisChannel needs a real server (REDIS_URL_FLC_MAJOR); the reconnect and
relay tests run against the in-process FakeRedis.
"""

import asyncio

import orjson
from redis.asyncio import Redis

from fanlive.services.realtime import (
    EVENT_CHAT_DELETE,
    EVENT_CHAT_INSERT,
    EVENT_HEART,
    EVENT_PRESENCE_SYNC,
    ChannelStatus,
    RedisRealtimeChannel,
    RedisRowRelay,
)
from fanlive.services.realtime.redis_channel import presence_key
from fanlive.shared.timeutils import utc_now_ms
from tests.fixtures.fake_redis import FakeRedis

TOPIC = "live:stream:u.redis_test"


async def _eventually(predicate, timeout: float = 2.0) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.02)
    return predicate()


class TestRedisChannel:
    """Pub/sub delivery and hash-backed presence."""

    async def test_broadcast_reaches_other_connection_only(self, clean_redis_client: Redis):
        # Arrange
        a = RedisRealtimeChannel(clean_redis_client, TOPIC)
        b = RedisRealtimeChannel(clean_redis_client, TOPIC)
        a_hearts, b_hearts = [], []
        a.on(EVENT_HEART, a_hearts.append)
        b.on(EVENT_HEART, b_hearts.append)
        await a.subscribe()
        await b.subscribe()

        try:
            # Act
            await a.send_broadcast(EVENT_HEART, {"n": 1})

            # Assert
            assert await _eventually(lambda: b_hearts == [{"n": 1}])
            assert a_hearts == []
        finally:
            await a.unsubscribe()
            await b.unsubscribe()

    async def test_presence_sync_is_full_snapshot(self, clean_redis_client: Redis):
        a = RedisRealtimeChannel(clean_redis_client, TOPIC)
        b = RedisRealtimeChannel(clean_redis_client, TOPIC)
        latest: dict = {}
        a.on(EVENT_PRESENCE_SYNC, lambda p: latest.update(state=p["state"]))
        await a.subscribe()
        await b.subscribe()

        try:
            await a.track({"user_id": "u.a"})
            await b.track({"user_id": "u.b"})
            assert await _eventually(lambda: len(latest.get("state", {})) == 2)

            await b.untrack()
            assert await _eventually(lambda: set(latest["state"]) == {a.connection_key})
        finally:
            await a.unsubscribe()
            await b.unsubscribe()

    async def test_stale_presence_pruned(self, clean_redis_client: Redis):
        channel = RedisRealtimeChannel(clean_redis_client, TOPIC, presence_ttl_seconds=1)
        stale = orjson.dumps({"meta": {"user_id": "u.ghost"}, "ts": utc_now_ms() - 60_000})
        await clean_redis_client.hset(presence_key(TOPIC), "cn_ghost", stale)

        state = await channel.presence_state()

        assert state == {}
        assert not await clean_redis_client.hexists(presence_key(TOPIC), "cn_ghost")

    async def test_status_lifecycle(self, clean_redis_client: Redis):
        channel = RedisRealtimeChannel(clean_redis_client, TOPIC)
        statuses = []
        await channel.subscribe(on_status=statuses.append)
        await channel.unsubscribe()
        assert statuses == [ChannelStatus.SUBSCRIBED, ChannelStatus.CLOSED]


class TestReconnect:
    """Listener connection loss: resubscribe with backoff and re-track presence."""

    async def test_resubscribes_after_connection_error(self, fake_redis: FakeRedis):
        # Arrange
        channel = RedisRealtimeChannel(fake_redis, TOPIC, reconnect_base_delay=0.01)
        statuses: list[ChannelStatus] = []
        await channel.subscribe(on_status=statuses.append)

        try:
            # Act
            fake_redis.drop_connections()

            # Assert
            assert await _eventually(lambda: len(statuses) >= 3)
            assert statuses[:3] == [
                ChannelStatus.SUBSCRIBED,
                ChannelStatus.RECONNECTING,
                ChannelStatus.SUBSCRIBED,
            ]
            assert fake_redis.subscriber_count(TOPIC) == 1
        finally:
            await channel.unsubscribe()

    async def test_presence_re_registered_after_restart(self, fake_redis: FakeRedis):
        """A server restart wipes the presence hash; the SUBSCRIBED callback tracks again."""
        # Arrange
        channel = RedisRealtimeChannel(fake_redis, TOPIC, reconnect_base_delay=0.01)
        statuses: list[ChannelStatus] = []

        async def on_status(status: ChannelStatus) -> None:
            statuses.append(status)
            if status == ChannelStatus.SUBSCRIBED:
                await channel.track({"user_id": "u.fan"})

        await channel.subscribe(on_status=on_status)
        assert await fake_redis.hexists(presence_key(TOPIC), channel.connection_key)

        try:
            # Act
            fake_redis.drop_connections(flush=True)
            assert not await fake_redis.hexists(presence_key(TOPIC), channel.connection_key)

            # Assert
            assert await _eventually(lambda: statuses.count(ChannelStatus.SUBSCRIBED) == 2)
            assert ChannelStatus.RECONNECTING in statuses
            assert await fake_redis.hexists(presence_key(TOPIC), channel.connection_key)
            assert set(await channel.presence_state()) == {channel.connection_key}
        finally:
            await channel.untrack()
            await channel.unsubscribe()

    async def test_events_delivered_after_reconnect(self, fake_redis: FakeRedis):
        sender = RedisRealtimeChannel(fake_redis, TOPIC, reconnect_base_delay=0.01)
        receiver = RedisRealtimeChannel(fake_redis, TOPIC, reconnect_base_delay=0.01)
        statuses: list[ChannelStatus] = []
        hearts: list[dict] = []
        receiver.on(EVENT_HEART, hearts.append)
        await receiver.subscribe(on_status=statuses.append)

        try:
            fake_redis.drop_connections()
            assert await _eventually(lambda: statuses.count(ChannelStatus.SUBSCRIBED) == 2)

            await sender.send_broadcast(EVENT_HEART, {"n": 1})

            assert await _eventually(lambda: hearts == [{"n": 1}])
        finally:
            await receiver.unsubscribe()


class TestRowRelay:
    """RedisRowRelay publishes row events every listener receives, sender included."""

    async def test_insert_and_delete_reach_listener(self, fake_redis: FakeRedis):
        # Arrange
        channel = RedisRealtimeChannel(fake_redis, TOPIC)
        received: list[tuple[str, dict]] = []
        channel.on(EVENT_CHAT_INSERT, lambda p: received.append((EVENT_CHAT_INSERT, p)))
        channel.on(EVENT_CHAT_DELETE, lambda p: received.append((EVENT_CHAT_DELETE, p)))
        await channel.subscribe()
        relay = RedisRowRelay(fake_redis)

        try:
            # Act
            await relay.publish_row_insert(TOPIC, {"id": "m1", "content": "hi"})
            await relay.publish_row_delete(TOPIC, "m1")

            # Assert
            assert await _eventually(lambda: len(received) == 2)
            assert received == [
                (EVENT_CHAT_INSERT, {"new": {"id": "m1", "content": "hi"}}),
                (EVENT_CHAT_DELETE, {"old": {"id": "m1"}}),
            ]
        finally:
            await channel.unsubscribe()

    async def test_envelope_format(self, fake_redis: FakeRedis):
        await RedisRowRelay(fake_redis).publish_row_delete(TOPIC, "m9")

        ((topic, raw),) = fake_redis.published
        assert topic == TOPIC
        assert orjson.loads(raw) == {
            "event": EVENT_CHAT_DELETE,
            "payload": {"old": {"id": "m9"}},
            "sender": "backend",
        }
