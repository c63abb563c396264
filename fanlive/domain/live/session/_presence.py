"""Viewer presence roster."""

from typing import Any

from loguru import logger

from fanlive.schemas import PresenceEntry


class PresenceRoster:
    """Local projection of the channel's presence set.

    Every sync replaces the whole set; nothing is counted incrementally, so a
    missed join or leave is corrected by the next sync.
    """

    def __init__(self):
        self._entries: dict[str, PresenceEntry] = {}

    def sync(self, state: dict[str, Any]) -> int:
        entries: dict[str, PresenceEntry] = {}
        for key, meta in (state or {}).items():
            user_id = meta.get("user_id") if isinstance(meta, dict) else None
            entries[key] = PresenceEntry(connection_key=key, user_id=user_id)
        self._entries = entries
        logger.debug(f"Presence synced: {len(entries)} connections")
        return len(entries)

    def clear(self) -> None:
        self._entries = {}

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[PresenceEntry]:
        return list(self._entries.values())
