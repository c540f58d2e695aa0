"""State machine for a single ranking call."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class RankingState(str, Enum):
    """State of one ranking call.

    - PENDING: Call accepted, nothing fetched yet
    - SIGNALS_COLLECTED: Context queries and pools have settled
    - MERGED: Pools merged by priority with exclusions applied
    - ORDERED: Candidates sorted and truncated
    - FAILED: Call cancelled or every pool failed
    """

    PENDING = "PENDING"
    SIGNALS_COLLECTED = "SIGNALS_COLLECTED"
    MERGED = "MERGED"
    ORDERED = "ORDERED"
    FAILED = "FAILED"


_VALID_TRANSITIONS: dict[RankingState, set[RankingState]] = {
    RankingState.PENDING: {RankingState.SIGNALS_COLLECTED, RankingState.FAILED},
    RankingState.SIGNALS_COLLECTED: {RankingState.MERGED, RankingState.FAILED},
    RankingState.MERGED: {RankingState.ORDERED},
    RankingState.ORDERED: set(),
    RankingState.FAILED: set(),
}


class RankingStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        call_id: str,
        from_state: RankingState,
        to_state: RankingState,
    ) -> None:
        """Initialize the transition error.

        Args:
            call_id: Identifier of the ranking call.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.call_id = call_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal ranking state transition for call '{call_id}': "
            f"{from_state.value} -> {to_state.value}"
        )


class RankingStateMachine:
    """Manages state transitions for one ranking call."""

    def __init__(self, call_id: str) -> None:
        """Initialize the state machine.

        Args:
            call_id: Identifier for the ranking call.
        """
        self._call_id = call_id
        self._state = RankingState.PENDING
        self._log = logger.bind(component="ranking", call_id=call_id)

    @property
    def state(self) -> RankingState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in (RankingState.ORDERED, RankingState.FAILED)

    def can_transition_to(self, target: RankingState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: RankingState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            RankingStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_ranking_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise RankingStateTransitionError(self._call_id, self._state, target)

        old_state = self._state
        self._state = target
        self._log.debug(
            "ranking_state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_signals_collected(self) -> None:
        """Transition to SIGNALS_COLLECTED state."""
        self.transition_to(RankingState.SIGNALS_COLLECTED)

    def to_merged(self) -> None:
        """Transition to MERGED state."""
        self.transition_to(RankingState.MERGED)

    def to_ordered(self) -> None:
        """Transition to ORDERED state."""
        self.transition_to(RankingState.ORDERED)

    def to_failed(self) -> None:
        """Transition to FAILED state."""
        self.transition_to(RankingState.FAILED)
