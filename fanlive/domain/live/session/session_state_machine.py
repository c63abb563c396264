"""Live state machine for a creator's broadcast."""

from fanlive.schemas import LiveState


class LiveStateMachine:
    """State machine for a creator's broadcast.

    State flow with triggers:
    - OFFLINE -> LIVE (creator picked the access level and started streaming)
    - LIVE -> OFFLINE (creator ended the stream; `stream_end` broadcast, chat cleared)

    Access configuration may only change while OFFLINE.
    """

    TRANSITIONS: dict[LiveState, set[LiveState]] = {
        LiveState.OFFLINE: {LiveState.LIVE},
        LiveState.LIVE: {LiveState.OFFLINE},
    }

    CONFIGURABLE_STATES: set[LiveState] = {LiveState.OFFLINE}

    @classmethod
    def can_transition(cls, current: LiveState, new: LiveState) -> bool:
        """Check if state transition is valid.

        Args:
            current: Current live state
            new: Target state to transition to

        Returns:
            True if transition is valid, False otherwise
        """
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def can_configure(cls, state: LiveState) -> bool:
        return state in cls.CONFIGURABLE_STATES

    @classmethod
    def get_valid_transitions(cls, state: LiveState) -> set[LiveState]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: LiveState) -> set[LiveState]:
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}

    @staticmethod
    def from_flag(is_live: bool) -> LiveState:
        return LiveState.LIVE if is_live else LiveState.OFFLINE
