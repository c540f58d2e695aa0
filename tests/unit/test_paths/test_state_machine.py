"""Unit tests for the path tracker state machine."""

import pytest

from branchfeed.paths.errors import TrackerStateError
from branchfeed.paths.state_machine import PathStateMachine, TrackerState


class TestPathStateMachine:
    """Tests for PathStateMachine."""

    def test_initial_state(self) -> None:
        """Test sessions start UNINITIALIZED."""
        sm = PathStateMachine("reader", "story")
        assert sm.state == TrackerState.UNINITIALIZED
        assert not sm.is_terminal

    def test_enter_at_depth(self) -> None:
        """Test UNINITIALIZED -> AT_DEPTH."""
        sm = PathStateMachine("reader", "story")
        sm.to_position(terminal=False)
        assert sm.state == TrackerState.AT_DEPTH

    def test_enter_terminal_directly(self) -> None:
        """Test UNINITIALIZED -> TERMINAL for a restored finished path."""
        sm = PathStateMachine("reader", "story")
        sm.to_position(terminal=True)
        assert sm.is_terminal

    def test_terminal_back_to_depth(self) -> None:
        """Test TERMINAL -> AT_DEPTH is allowed for URL navigation."""
        sm = PathStateMachine("reader", "story")
        sm.to_position(terminal=True)
        sm.to_position(terminal=False)
        assert sm.state == TrackerState.AT_DEPTH

    def test_cannot_return_to_uninitialized(self) -> None:
        """Test no state leads back to UNINITIALIZED."""
        sm = PathStateMachine("reader", "story")
        sm.to_position(terminal=False)
        assert not sm.can_transition_to(TrackerState.UNINITIALIZED)
        with pytest.raises(TrackerStateError):
            sm.transition_to(TrackerState.UNINITIALIZED)
        assert sm.state == TrackerState.AT_DEPTH
