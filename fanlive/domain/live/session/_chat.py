"""Arrival-ordered chat sequence of one broadcast."""

from collections.abc import Iterable

from fanlive.schemas import LiveMessage


class ChatLog:
    def __init__(self):
        self._messages: list[LiveMessage] = []
        self._ids: set[str] = set()

    def load(self, history: Iterable[LiveMessage]) -> None:
        """Replace the sequence with preloaded history (oldest first)."""
        self._messages = []
        self._ids = set()
        for message in history:
            self.append(message)

    def append(self, message: LiveMessage) -> bool:
        # Row events may be redelivered after a reconnect.
        if message.id in self._ids:
            return False
        self._messages.append(message)
        self._ids.add(message.id)
        return True

    def remove(self, message_id: str) -> bool:
        if message_id not in self._ids:
            return False
        self._ids.discard(message_id)
        self._messages = [m for m in self._messages if m.id != message_id]
        return True

    def clear(self) -> None:
        self._messages = []
        self._ids = set()

    @property
    def messages(self) -> list[LiveMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
