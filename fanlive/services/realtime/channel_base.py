"""Realtime channel interface.

One channel per broadcast topic (`live:stream:{creator_id}`). A channel carries
three kinds of traffic:

- row events relayed from the backend (chat inserts / deletes)
- broadcast events sent by participants (`stream_end`, `heart`)
- presence: each connection tracks itself; every membership change is
  delivered as a full `presence_sync` snapshot, never as a delta
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from fanlive.shared.errors import format_error

EVENT_CHAT_INSERT = "chat_insert"
EVENT_CHAT_DELETE = "chat_delete"
EVENT_STREAM_END = "stream_end"
EVENT_HEART = "heart"
EVENT_PRESENCE_SYNC = "presence_sync"

EventHandler = Callable[[dict[str, Any]], Awaitable[None] | None]
StatusHandler = Callable[["ChannelStatus"], Awaitable[None] | None]


def live_topic(creator_id: str) -> str:
    return f"live:stream:{creator_id}"


class ChannelStatus(str, Enum):
    SUBSCRIBED = "SUBSCRIBED"
    RECONNECTING = "RECONNECTING"
    CLOSED = "CLOSED"

    def __str__(self) -> str:
        return self.value


class RealtimeChannel(ABC):
    """Base class with handler registry and isolated dispatch."""

    def __init__(self, topic: str, connection_key: str):
        self.topic = topic
        self.connection_key = connection_key
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._status_handler: StatusHandler | None = None
        self.status = ChannelStatus.CLOSED

    def on(self, event: str, handler: EventHandler) -> "RealtimeChannel":
        self._handlers[event].append(handler)
        return self

    async def _dispatch(self, event: str, payload: dict[str, Any]) -> None:
        """Invoke handlers for `event`. A failing handler never stops the others."""
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler for {event} on {self.topic} failed: {format_error(e)}")

    async def _set_status(self, status: ChannelStatus) -> None:
        self.status = status
        logger.debug(f"Channel {self.topic} [{self.connection_key}] status={status}")
        if self._status_handler is None:
            return
        try:
            result = self._status_handler(status)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Status handler on {self.topic} failed: {format_error(e)}")

    @abstractmethod
    async def subscribe(self, on_status: StatusHandler | None = None) -> None:
        """Start receiving events. `on_status` fires on every (re)subscription."""

    @abstractmethod
    async def track(self, payload: dict[str, Any]) -> None:
        """Register this connection in the presence set."""

    @abstractmethod
    async def untrack(self) -> None:
        """Remove this connection from the presence set."""

    @abstractmethod
    async def send_broadcast(self, event: str, payload: dict[str, Any] | None = None) -> None:
        """Send an ephemeral event to the other participants."""

    @abstractmethod
    async def unsubscribe(self) -> None:
        """Stop receiving events and release the connection."""


ChannelFactory = Callable[[str], RealtimeChannel]


class RowEventRelay(Protocol):
    """Publishes confirmed chat row changes onto a broadcast topic."""

    async def publish_row_insert(self, topic: str, row: dict[str, Any]) -> None: ...

    async def publish_row_delete(self, topic: str, row_id: str) -> None: ...
