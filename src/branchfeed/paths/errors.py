"""Path tracker errors."""

from collections.abc import Sequence

from branchfeed.tree.models import ChoiceToken, format_path


class TrackerError(Exception):
    """Base exception for path tracker errors."""


class StaleTreeError(TrackerError):
    """Raised when a choice leads to a node the tree does not contain.

    The caller's view of the tree no longer matches stored structure.
    """

    def __init__(self, story_id: str, path: Sequence[ChoiceToken]) -> None:
        """Initialize the error.

        Args:
            story_id: Story being navigated.
            path: Path that failed to resolve.
        """
        self.story_id = story_id
        self.path = tuple(path)
        super().__init__(
            f"Path '{format_path(path)}' does not resolve in story '{story_id}'"
        )


class PathTerminalError(TrackerError):
    """Raised when a choice is made at the end of a branch."""

    def __init__(self, story_id: str, path: Sequence[ChoiceToken]) -> None:
        """Initialize the error.

        Args:
            story_id: Story being navigated.
            path: Terminal path.
        """
        self.story_id = story_id
        self.path = tuple(path)
        super().__init__(
            f"Path '{format_path(path)}' in story '{story_id}' is terminal"
        )


class TrackerStateError(TrackerError):
    """Raised when an operation is not legal in the tracker's state."""

    def __init__(self, state: str, action: str) -> None:
        """Initialize the error.

        Args:
            state: Current tracker state.
            action: Attempted operation or target state.
        """
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} while tracker is {state}")


class PersistenceWriteFailed(TrackerError):
    """Progress could not be written after every attempt.

    Non-fatal: recorded on the tracker and logged, never raised to callers.
    """

    def __init__(
        self,
        reader_id: str,
        story_id: str,
        attempts: int,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            reader_id: Reader whose progress was being saved.
            story_id: Story being read.
            attempts: Number of write attempts made.
            cause: Last underlying error.
        """
        self.reader_id = reader_id
        self.story_id = story_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Progress write for reader '{reader_id}' story '{story_id}' "
            f"failed after {attempts} attempts: {cause}"
        )
