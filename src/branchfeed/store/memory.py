"""In-process progress store."""

import threading
from collections.abc import Sequence
from datetime import datetime

from branchfeed.store.models import Progress
from branchfeed.tree.models import ChoiceToken


class MemoryProgressStore:
    """Thread-safe in-memory progress store.

    Serves as the local fallback when the primary store cannot be written,
    and as a lightweight store for tests.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._rows: dict[tuple[str, str], Progress] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Number of saved progress rows."""
        with self._lock:
            return len(self._rows)

    def load_progress(self, reader_id: str, story_id: str) -> Progress | None:
        """Load saved progress for a reader and story."""
        with self._lock:
            return self._rows.get((reader_id, story_id))

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
        progress = Progress(
            reader_id=reader_id,
            story_id=story_id,
            path=tuple(path),
            last_node_id=last_node_id,
            completed=completed,
            last_viewed_at=timestamp,
        )
        with self._lock:
            self._rows[(reader_id, story_id)] = progress
        return progress
