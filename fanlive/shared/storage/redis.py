"""
Label-based Redis client registry.

Connection strings come from REDIS_URL_<LABEL> (or REDIS_URL / REDIS_URL_DEFAULT
for the `default` label). Clients are created lazily and shared per label.
"""

import threading

from loguru import logger
from redis.asyncio import Redis

from ..config import config


class RedisManager:
    """Creates and tracks async Redis clients keyed by label."""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return
        self._clients: dict[str, Redis] = {}
        self._initialized = True

    def get_client(self, label: str = "default") -> Redis:
        client = self._clients.get(label)
        if client is not None:
            return client

        url = config.get_redis_url(label)
        if not url:
            raise ValueError(f"Redis URL for label '{label}' is not configured (REDIS_URL_{label.upper()})")

        client = Redis.from_url(url, decode_responses=True)
        self._clients[label] = client
        logger.info("Created Redis client for label {}", label)
        return client

    async def close_all(self) -> None:
        clients, self._clients = self._clients, {}
        for label, client in clients.items():
            try:
                await client.aclose()
                logger.debug("Closed Redis client {}", label)
            except Exception as e:
                logger.warning("Failed to close Redis client {}: {}", label, e)


def get_redis_manager() -> RedisManager:
    return RedisManager()


def get_redis_client(label: str = "default") -> Redis:
    return get_redis_manager().get_client(label)
