"""State machine for one subscription sync."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class SyncState(str, Enum):
    """Sync lifecycle states.

    State transitions:
    - IDLE -> RUNNING
    - RUNNING -> SUCCESS | FAILED
    """

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


_VALID_TRANSITIONS: dict[SyncState, set[SyncState]] = {
    SyncState.IDLE: {SyncState.RUNNING},
    SyncState.RUNNING: {SyncState.SUCCESS, SyncState.FAILED},
    SyncState.SUCCESS: set(),
    SyncState.FAILED: set(),
}


class SyncStateTransitionError(Exception):
    """Raised when an invalid sync state transition is attempted."""

    def __init__(self, from_state: SyncState, to_state: SyncState) -> None:
        """Initialize the transition error.

        Args:
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid sync transition: {from_state.value} -> {to_state.value}"
        )


class SyncStateMachine:
    """Tracks the state of a single subscription sync."""

    def __init__(self, subscription_id: str) -> None:
        """Initialize in IDLE.

        Args:
            subscription_id: Subscription being synced.
        """
        self._state = SyncState.IDLE
        self._subscription_id = subscription_id
        self._log = logger.bind(
            component="subscription", subscription_id=subscription_id
        )

    @property
    def state(self) -> SyncState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if the sync has finished."""
        return self._state in (SyncState.SUCCESS, SyncState.FAILED)

    def can_transition_to(self, target: SyncState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: SyncState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            SyncStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise SyncStateTransitionError(self._state, target)

        self._log.debug(
            "sync_state_transition",
            from_state=self._state.value,
            to_state=target.value,
        )
        self._state = target
