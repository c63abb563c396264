"""Creator-side stream control operations."""

from loguru import logger

from fanlive.schemas import CreatorLiveProfile, LiveAccessConfig, LiveState
from fanlive.services.backend import LiveBackend
from fanlive.services.realtime import EVENT_STREAM_END, RealtimeChannel
from fanlive.shared.errors import AppError, AppErrorCode, HttpStatusCode, format_error

from .session_state_machine import LiveStateMachine


class StreamControl:
    """Access configuration and live/offline transitions for one creator."""

    def __init__(self, backend: LiveBackend, creator_id: str):
        self._backend = backend
        self.creator_id = creator_id

    async def _current_state(self) -> tuple[CreatorLiveProfile, LiveState]:
        profile = await self._backend.get_creator_live_profile(self.creator_id)
        return profile, LiveStateMachine.from_flag(profile.is_live)

    def _require_transition(self, current: LiveState, new: LiveState) -> None:
        if not LiveStateMachine.can_transition(current, new):
            allowed = ", ".join(sorted(str(s) for s in LiveStateMachine.get_valid_sources(new)))
            raise AppError(
                errcode=AppErrorCode.E_INVALID_STATE,
                errmesg=(
                    f"Cannot transition stream of {self.creator_id} from {current} to {new} "
                    f"(allowed from: {allowed})"
                ),
                status_code=HttpStatusCode.CONFLICT,
            )

    async def configure_access(self, access: LiveAccessConfig) -> CreatorLiveProfile:
        """Set who may watch the next broadcast.

        Raises AppError E_INVALID_STATE while the creator is live.
        """
        _, state = await self._current_state()
        if not LiveStateMachine.can_configure(state):
            raise AppError(
                errcode=AppErrorCode.E_INVALID_STATE,
                errmesg=f"Live access of {self.creator_id} cannot change while {state}",
                status_code=HttpStatusCode.CONFLICT,
            )
        logger.info(
            f"Live access for {self.creator_id}: requires_subscription={access.requires_subscription}, "
            f"required_tier_id={access.required_tier_id}"
        )
        return await self._backend.update_live_profile(self.creator_id, access, is_live=False)

    async def go_live(self, access: LiveAccessConfig | None = None) -> CreatorLiveProfile:
        """OFFLINE -> LIVE, optionally setting the access level in the same step."""
        profile, state = await self._current_state()
        self._require_transition(state, LiveState.LIVE)
        updated = await self._backend.update_live_profile(
            self.creator_id, access or profile.access, is_live=True
        )
        logger.info(f"Creator {self.creator_id} is live")
        return updated

    async def end_stream(self, channel: RealtimeChannel) -> None:
        """LIVE -> OFFLINE.

        Broadcasts `stream_end` so viewers leave, then clears the broadcast's
        chat and flips the live flag in one backend call.
        """
        _, state = await self._current_state()
        self._require_transition(state, LiveState.OFFLINE)

        try:
            await channel.send_broadcast(EVENT_STREAM_END)
        except Exception as e:
            # Continue going offline even if the broadcast fails
            logger.warning(f"Failed to broadcast stream_end for {self.creator_id}: {format_error(e)}")

        await self._backend.clear_live_chat_and_go_offline(self.creator_id)
        logger.info(f"Creator {self.creator_id} ended the stream")
