"""State machine for a reader's path through one story."""

from enum import Enum

import structlog

from branchfeed.paths.errors import TrackerStateError


logger = structlog.get_logger()


class TrackerState(str, Enum):
    """State of a path tracking session.

    - UNINITIALIZED: Session created, no path yet
    - AT_DEPTH: Reader is on a path that can still be extended
    - TERMINAL: Path is at max_depth or its node has no children
    """

    UNINITIALIZED = "UNINITIALIZED"
    AT_DEPTH = "AT_DEPTH"
    TERMINAL = "TERMINAL"


# Valid state transitions
_VALID_TRANSITIONS: dict[TrackerState, set[TrackerState]] = {
    TrackerState.UNINITIALIZED: {TrackerState.AT_DEPTH, TrackerState.TERMINAL},
    TrackerState.AT_DEPTH: {TrackerState.AT_DEPTH, TrackerState.TERMINAL},
    # URL navigation can move back up from a terminal path
    TrackerState.TERMINAL: {TrackerState.AT_DEPTH, TrackerState.TERMINAL},
}


class PathStateMachine:
    """Manages state transitions for one (reader, story) session.

    Enforces valid transitions and logs all state changes.
    """

    def __init__(self, reader_id: str, story_id: str) -> None:
        """Initialize the state machine.

        Args:
            reader_id: Reader owning the session.
            story_id: Story being read.
        """
        self._state = TrackerState.UNINITIALIZED
        self._log = logger.bind(
            component="tracker",
            reader_id=reader_id,
            story_id=story_id,
        )

    @property
    def state(self) -> TrackerState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if the current path is at the end of its branch."""
        return self._state == TrackerState.TERMINAL

    def can_transition_to(self, target: TrackerState) -> bool:
        """Check if a transition to the target state is valid.

        Args:
            target: The target state.

        Returns:
            True if the transition is valid.
        """
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: TrackerState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            TrackerStateError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_tracker_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise TrackerStateError(self._state.value, f"enter {target.value}")

        old_state = self._state
        self._state = target
        self._log.debug(
            "tracker_state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_position(self, *, terminal: bool) -> None:
        """Transition to AT_DEPTH or TERMINAL.

        Args:
            terminal: Whether the new path is terminal.
        """
        self.transition_to(TrackerState.TERMINAL if terminal else TrackerState.AT_DEPTH)
