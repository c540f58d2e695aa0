"""Data models for path tracking."""

from typing import Annotated

from pydantic import Field

from branchfeed.data_model import StrictBaseModel
from branchfeed.paths.state_machine import TrackerState
from branchfeed.tree.models import Choice, ChoiceToken, StoryNode


class TrackerSnapshot(StrictBaseModel):
    """Externally observed state of a tracking session.

    ``url_token`` is always the encoding of ``path``.

    Attributes:
        reader_id: Reader owning the session.
        story_id: Story being read.
        state: Tracker state.
        path: Current path.
        max_depth: Story's maximum depth.
        url_token: Encoded path for the URL.
        current_node: Node reached by the path, None at the root.
        choice_a: Next A choice, None if unavailable.
        choice_b: Next B choice, None if unavailable.
        is_terminal: Whether no further choice is possible.
        progress_percent: Depth as a percentage of max_depth.
        persisted: Whether the last change reached the progress store.
    """

    reader_id: str
    story_id: str
    state: TrackerState
    path: tuple[ChoiceToken, ...] = ()
    max_depth: Annotated[int, Field(ge=0)]
    url_token: str = ""
    current_node: StoryNode | None = None
    choice_a: Choice | None = None
    choice_b: Choice | None = None
    is_terminal: bool = False
    progress_percent: Annotated[float, Field(ge=0.0, le=100.0)] = 0.0
    persisted: bool = False

    @property
    def depth(self) -> int:
        """Current depth (path length)."""
        return len(self.path)

    @property
    def available_choices(self) -> tuple[ChoiceToken, ...]:
        """Tokens the reader can choose next."""
        return tuple(
            token
            for token, choice in ((ChoiceToken.A, self.choice_a), (ChoiceToken.B, self.choice_b))
            if choice is not None
        )
