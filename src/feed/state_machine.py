"""State machine for one feed composition."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class ComposeState(str, Enum):
    """Stages of a feed composition.

    - INIT: Request accepted
    - BUCKETS_FETCHED: Hot, latest and personalized buckets fetched
    - MERGED: Buckets concatenated in priority order
    - DEDUPED: Repeated (type, id) keys dropped
    - SHUFFLED: Merged window permuted
    - PAGINATED: Page sliced; terminal
    """

    INIT = "INIT"
    BUCKETS_FETCHED = "BUCKETS_FETCHED"
    MERGED = "MERGED"
    DEDUPED = "DEDUPED"
    SHUFFLED = "SHUFFLED"
    PAGINATED = "PAGINATED"


_VALID_TRANSITIONS: dict[ComposeState, set[ComposeState]] = {
    ComposeState.INIT: {ComposeState.BUCKETS_FETCHED},
    ComposeState.BUCKETS_FETCHED: {ComposeState.MERGED},
    ComposeState.MERGED: {ComposeState.DEDUPED},
    ComposeState.DEDUPED: {ComposeState.SHUFFLED},
    ComposeState.SHUFFLED: {ComposeState.PAGINATED},
    ComposeState.PAGINATED: set(),
}


class ComposeStateTransitionError(Exception):
    """Raised when a composition stage is skipped or repeated."""

    def __init__(self, from_state: ComposeState, to_state: ComposeState) -> None:
        """Initialize the transition error.

        Args:
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal compose transition: {from_state.value} -> {to_state.value}"
        )


class ComposeStateMachine:
    """Tracks the stage of a single feed composition."""

    def __init__(self, request_id: str) -> None:
        """Initialize in INIT.

        Args:
            request_id: Identifier of the composed request.
        """
        self._state = ComposeState.INIT
        self._log = logger.bind(component="feed", request_id=request_id)

    @property
    def state(self) -> ComposeState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if composition has finished."""
        return self._state == ComposeState.PAGINATED

    def can_transition_to(self, target: ComposeState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: ComposeState) -> None:
        """Advance to the next stage.

        Args:
            target: The target state.

        Raises:
            ComposeStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise ComposeStateTransitionError(self._state, target)

        self._log.debug(
            "compose_state_transition",
            from_state=self._state.value,
            to_state=target.value,
        )
        self._state = target
