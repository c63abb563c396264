"""Live session coordinator - per-broadcast realtime state for one participant."""

from decimal import Decimal
from typing import Any

from loguru import logger
from pydantic import ValidationError

from fanlive.app_config import get_app_environ_config
from fanlive.domain.entitlement import AccessDecision, EntitlementService
from fanlive.domain.utils.idgen import new_guest_id
from fanlive.schemas import (
    CreatorLiveProfile,
    LiveAccessConfig,
    LiveMessage,
    LiveState,
    MessageKind,
    TierDefinition,
)
from fanlive.services.backend import LiveBackend
from fanlive.services.realtime import (
    EVENT_CHAT_DELETE,
    EVENT_CHAT_INSERT,
    EVENT_HEART,
    EVENT_PRESENCE_SYNC,
    EVENT_STREAM_END,
    ChannelFactory,
    ChannelStatus,
    RealtimeChannel,
    live_topic,
)
from fanlive.shared.errors import AppError, AppErrorCode, HttpStatusCode, format_error

from ._access import build_unlock_prompt, check_live_access
from ._chat import ChatLog
from ._leaderboard import LeaderboardPoller
from ._presence import PresenceRoster
from ._stream import StreamControl
from .session_models import LiveSessionSnapshot, SessionPhase, UnlockPrompt
from .session_state_machine import LiveStateMachine


class LiveSessionCoordinator:
    """One participant's view of a creator's broadcast.

    Local state (chat, presence, leaderboard) is a projection of the backend
    and the realtime channel. Writes go to the backend or the channel and are
    only reflected locally once they come back as events.

    Lifecycle:
    - join(): gate access, then (if granted) preload chat, start the
      leaderboard poll and subscribe to the broadcast topic
    - leave(): stop the poll, untrack presence, unsubscribe (all three, always)
    - `stream_end` from the creator ends the session for every viewer
    """

    def __init__(
        self,
        backend: LiveBackend,
        channel_factory: ChannelFactory,
        creator_id: str,
        entitlements: EntitlementService,
        display_name: str = "",
        avatar: str | None = None,
        leaderboard_interval: float | None = None,
        history_limit: int | None = None,
    ):
        cfg = get_app_environ_config()
        self._backend = backend
        self._channel_factory = channel_factory
        self.entitlements = entitlements
        self.creator_id = creator_id
        self.viewer_id = entitlements.viewer_id
        self.display_name = display_name
        self.avatar = avatar
        self.is_streamer = self.viewer_id == creator_id
        self.history_limit = history_limit or cfg.CHAT_HISTORY_LIMIT

        # Guests get one random presence id for the whole session.
        self._presence_id = self.viewer_id or new_guest_id()

        self.phase = SessionPhase.IDLE
        self.live_state = LiveState.OFFLINE
        self.profile: CreatorLiveProfile | None = None
        self.tiers: list[TierDefinition] = []
        self.decision: AccessDecision | None = None
        self.unlock_prompt: UnlockPrompt | None = None
        self.hearts = 0

        self.roster = PresenceRoster()
        self.chat = ChatLog()
        self.poller = LeaderboardPoller(
            backend,
            creator_id,
            interval_seconds=leaderboard_interval or cfg.LEADERBOARD_POLL_SECONDS,
        )
        self.stream_control = StreamControl(backend, creator_id)
        self._channel: RealtimeChannel | None = None

    # ==================== LIFECYCLE ====================

    async def join(self) -> LiveSessionSnapshot:
        """Gate the viewer and connect to the broadcast.

        Raises AppError E_INVALID_STATE when a viewer joins an offline stream.
        A denied viewer stays LOCKED with an unlock prompt and no channel.
        """
        if self.phase in (SessionPhase.JOINED, SessionPhase.LOCKED):
            return self.snapshot()

        if self.entitlements.store.version == 0:
            await self.entitlements.refresh()

        self.profile = await self._backend.get_creator_live_profile(self.creator_id)
        self.live_state = LiveStateMachine.from_flag(self.profile.is_live)
        if self.live_state != LiveState.LIVE and not self.is_streamer:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_STATE,
                errmesg=f"Creator {self.creator_id} is not live",
                status_code=HttpStatusCode.CONFLICT,
            )

        self.decision = self._evaluate()
        if not self.decision.granted:
            self.tiers = await self._backend.get_creator_tiers(self.creator_id)
            self.unlock_prompt = build_unlock_prompt(self.profile.access, self.tiers)
            self.phase = SessionPhase.LOCKED
            logger.info(
                f"Viewer {self._presence_id} locked out of {self.creator_id}: "
                f"{self.decision.reason} ({self.unlock_prompt.label})"
            )
            return self.snapshot()

        await self._connect()
        return self.snapshot()

    def _evaluate(self) -> AccessDecision:
        return check_live_access(
            self.profile,
            self.viewer_id,
            self.entitlements.ledger,
            is_streamer=self.is_streamer,
        )

    async def _connect(self) -> None:
        try:
            self.chat.load(await self._backend.get_chat_history(self.creator_id, self.history_limit))
        except AppError as e:
            logger.warning(f"Chat history unavailable for {self.creator_id}: {e.errmesg}")

        await self.poller.start()

        channel = self._channel_factory(live_topic(self.creator_id))
        channel.on(EVENT_CHAT_INSERT, self._on_chat_insert)
        channel.on(EVENT_CHAT_DELETE, self._on_chat_delete)
        channel.on(EVENT_STREAM_END, self._on_stream_end)
        channel.on(EVENT_PRESENCE_SYNC, self._on_presence_sync)
        channel.on(EVENT_HEART, self._on_heart)
        self._channel = channel
        self.phase = SessionPhase.JOINED

        await channel.subscribe(on_status=self._on_status)
        logger.info(f"{self._presence_id} joined live session of {self.creator_id}")

    async def leave(self) -> None:
        """Tear down the session. Safe to call repeatedly."""
        await self._teardown(SessionPhase.LEFT)

    async def _teardown(self, final_phase: SessionPhase) -> None:
        try:
            await self.poller.stop()
        except Exception as e:
            logger.error(f"Failed to stop leaderboard poll for {self.creator_id}: {format_error(e)}")

        channel, self._channel = self._channel, None
        if channel is not None:
            try:
                await channel.untrack()
            except Exception as e:
                logger.warning(f"Failed to untrack presence on {channel.topic}: {format_error(e)}")
            try:
                await channel.unsubscribe()
            except Exception as e:
                logger.warning(f"Failed to unsubscribe from {channel.topic}: {format_error(e)}")

        self.roster.clear()
        if self.phase != SessionPhase.ENDED:
            self.phase = final_phase

    # ==================== CHANNEL EVENTS ====================

    async def _on_status(self, status: ChannelStatus) -> None:
        if status == ChannelStatus.SUBSCRIBED and self._channel is not None:
            # Also re-tracks after a reconnect
            await self._channel.track({"user_id": self._presence_id})
        elif status == ChannelStatus.RECONNECTING:
            logger.warning(f"Live session of {self.creator_id} reconnecting")

    async def _on_chat_insert(self, payload: dict[str, Any]) -> None:
        try:
            message = LiveMessage.model_validate(payload.get("new") or {})
        except ValidationError as e:
            logger.warning(f"Dropping malformed chat row on {self.creator_id}: {e.error_count()} errors")
            return
        if message.creator_stream_id != self.creator_id:
            return
        if not self.chat.append(message):
            return
        if message.kind == MessageKind.TIP:
            await self.poller.refresh()

    def _on_chat_delete(self, payload: dict[str, Any]) -> None:
        old = payload.get("old") or {}
        message_id = old.get("id") if isinstance(old, dict) else None
        if message_id:
            self.chat.remove(message_id)

    async def _on_stream_end(self, payload: dict[str, Any]) -> None:
        self.live_state = LiveState.OFFLINE
        if self.is_streamer:
            return
        logger.info(f"Stream of {self.creator_id} ended, leaving")
        self.phase = SessionPhase.ENDED
        self.chat.clear()
        await self._teardown(SessionPhase.ENDED)

    def _on_presence_sync(self, payload: dict[str, Any]) -> None:
        self.roster.sync(payload.get("state") or {})

    def _on_heart(self, payload: dict[str, Any]) -> None:
        self.hearts += 1

    # ==================== PARTICIPANT ACTIONS ====================

    def _require_participant(self) -> str:
        if self.phase != SessionPhase.JOINED or self._channel is None:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_STATE,
                errmesg=f"Not joined to the live session of {self.creator_id}",
                status_code=HttpStatusCode.CONFLICT,
            )
        if not self.viewer_id:
            raise AppError(
                errcode=AppErrorCode.E_UNAUTHORIZED,
                errmesg="Sign in required",
                status_code=HttpStatusCode.UNAUTHORIZED,
            )
        return self.viewer_id

    def _require_streamer(self) -> str:
        viewer_id = self._require_participant()
        if not self.is_streamer:
            raise AppError(
                errcode=AppErrorCode.E_ACCESS_DENIED,
                errmesg=f"Only {self.creator_id} can do this",
                status_code=HttpStatusCode.FORBIDDEN,
            )
        return viewer_id

    async def send_chat(self, content: str) -> None:
        """Send a chat message. Failures raise to the sender only."""
        viewer_id = self._require_participant()
        text = (content or "").strip()
        if not text:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Message is empty",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        try:
            await self._backend.insert_chat_message(
                self.creator_id, viewer_id, self.display_name, self.avatar, text
            )
        except Exception as e:
            raise self._send_failed("chat message", e) from e

    async def send_tip_message(self, tip_amount: Decimal, content: str = "") -> None:
        """Post the display-only TIP row for a tip whose payment already went through."""
        viewer_id = self._require_participant()
        amount = Decimal(tip_amount)
        if amount <= 0:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Invalid tip amount: {tip_amount}",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        try:
            await self._backend.send_tip_message(
                self.creator_id,
                viewer_id,
                self.display_name,
                self.avatar or "",
                (content or "").strip(),
                amount,
            )
        except Exception as e:
            raise self._send_failed("tip message", e) from e

    async def send_heart(self) -> None:
        if self.phase != SessionPhase.JOINED or self._channel is None:
            return
        try:
            await self._channel.send_broadcast(EVENT_HEART)
        except Exception as e:
            logger.warning(f"Failed to send heart on {self.creator_id}: {format_error(e)}")
            return
        # The sender is not echoed its own broadcast.
        self.hearts += 1

    async def delete_message(self, message_id: str) -> None:
        self._require_streamer()
        await self._backend.delete_chat_message(message_id, self.creator_id)

    async def end_stream(self) -> None:
        """Creator ends the broadcast: notify viewers, clear chat, go offline."""
        self._require_streamer()
        await self.stream_control.end_stream(self._channel)
        self.live_state = LiveState.OFFLINE
        self.chat.clear()
        self.phase = SessionPhase.ENDED
        await self._teardown(SessionPhase.ENDED)

    def _send_failed(self, what: str, e: Exception) -> AppError:
        logger.warning(f"Failed to send {what} on {self.creator_id}: {format_error(e)}")
        if isinstance(e, AppError):
            return e
        return AppError(
            errcode=AppErrorCode.E_SEND_FAILED,
            errmesg=f"Failed to send {what}",
            status_code=HttpStatusCode.BAD_GATEWAY,
        )

    # ==================== ACCESS ====================

    async def recheck_access(self) -> AccessDecision:
        """Re-evaluate access against the current ledger.

        A locked viewer who is now entitled is connected without rejoining. A
        connected viewer is never cut off here: the fresh decision is returned
        but the session keeps its join-time decision until the next join.
        """
        if self.profile is None or self.phase not in (SessionPhase.LOCKED, SessionPhase.JOINED):
            raise AppError(
                errcode=AppErrorCode.E_INVALID_STATE,
                errmesg=f"Live session of {self.creator_id} is not active",
                status_code=HttpStatusCode.CONFLICT,
            )

        decision = self._evaluate()
        if self.phase == SessionPhase.JOINED:
            if not decision.granted:
                logger.info(
                    f"Viewer {self._presence_id} lost access to {self.creator_id} ({decision.reason}); "
                    f"applies on next join"
                )
            return decision

        self.decision = decision
        if decision.granted:
            self.unlock_prompt = None
            logger.info(f"Viewer {self._presence_id} unlocked {self.creator_id}: {decision.reason}")
            await self._connect()
        return decision

    # ==================== VIEW ====================

    def snapshot(self) -> LiveSessionSnapshot:
        return LiveSessionSnapshot(
            creator_id=self.creator_id,
            viewer_id=self.viewer_id,
            is_streamer=self.is_streamer,
            phase=self.phase,
            live_state=self.live_state,
            access=self.profile.access if self.profile else LiveAccessConfig(),
            decision=self.decision,
            unlock_prompt=self.unlock_prompt,
            viewer_count=self.roster.count,
            messages=self.chat.messages,
            leaderboard=self.poller.ranking,
            hearts=self.hearts,
            playback_id=self._playback_id(),
        )

    def _playback_id(self) -> str | None:
        if self.profile is None or self.decision is None or not self.decision.granted:
            return None
        return self.profile.playback_id
