"""Data models for the branch store."""

from datetime import UTC, datetime
from typing import Annotated

from pydantic import Field

from branchfeed.data_model import StrictBaseModel
from branchfeed.tree.models import ChoiceToken


class Profile(StrictBaseModel):
    """Public profile of a reader or author."""

    id: Annotated[str, Field(min_length=1)]
    username: Annotated[str, Field(min_length=1, max_length=100)]
    bio: str | None = None
    avatar_url: str | None = None


class Progress(StrictBaseModel):
    """A reader's saved position in one story.

    Attributes:
        reader_id: Reader who owns the progress.
        story_id: Story being read.
        path: Saved path from the root.
        last_node_id: Node reached by the path, if known.
        completed: Whether the reader reached the end of a branch.
        last_viewed_at: When the path was last changed.
    """

    reader_id: Annotated[str, Field(min_length=1)]
    story_id: Annotated[str, Field(min_length=1)]
    path: tuple[ChoiceToken, ...] = ()
    last_node_id: str | None = None
    completed: bool = False
    last_viewed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def current_depth(self) -> int:
        """Depth reached by the saved path."""
        return len(self.path)
