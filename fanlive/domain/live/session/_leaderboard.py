"""Tip leaderboard, polled from the backend's authoritative tip records."""

import asyncio
import contextlib

from loguru import logger

from fanlive.schemas import Tipper
from fanlive.services.backend import LiveBackend
from fanlive.shared.errors import AppError, format_error


class LeaderboardPoller:
    """Periodically re-queries `get_stream_leaderboard`.

    Chat TIP rows are display only and never feed the ranking. A failed poll
    keeps the last known ranking.
    """

    def __init__(self, backend: LiveBackend, creator_id: str, interval_seconds: float = 30.0):
        self._backend = backend
        self.creator_id = creator_id
        self.interval_seconds = interval_seconds
        self._ranking: list[Tipper] = []
        self._task: asyncio.Task | None = None

    @property
    def ranking(self) -> list[Tipper]:
        return list(self._ranking)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> list[Tipper]:
        try:
            self._ranking = list(await self._backend.get_stream_leaderboard(self.creator_id))
        except AppError as e:
            logger.warning(f"Leaderboard refresh failed for {self.creator_id}: {e.errmesg}")
        except Exception as e:
            logger.warning(f"Leaderboard refresh failed for {self.creator_id}: {format_error(e)}")
        return self.ranking

    async def _poll(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.debug(f"Leaderboard poll for {self.creator_id} cancelled")
                break
            await self.refresh()

    async def start(self) -> None:
        if self.running:
            return
        await self.refresh()
        self._task = asyncio.create_task(self._poll())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
