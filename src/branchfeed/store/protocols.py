"""Collaborator protocol for progress persistence."""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from branchfeed.store.models import Progress
from branchfeed.tree.models import ChoiceToken


class ProgressStore(Protocol):
    """Persists each reader's current path per story.

    Implementations may raise any exception on failure; callers treat
    failures as non-fatal.
    """

    def load_progress(self, reader_id: str, story_id: str) -> Progress | None:
        """Load saved progress, or None if the reader never opened the story."""
        ...

    def save_progress(
        self,
        reader_id: str,
        story_id: str,
        path: Sequence[ChoiceToken],
        timestamp: datetime,
        *,
        last_node_id: str | None = None,
        completed: bool = False,
    ) -> Progress:
        """Create or replace saved progress."""
        ...
