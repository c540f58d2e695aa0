"""Session registry for path trackers."""

import threading
from collections.abc import Callable
from datetime import datetime

import structlog

from branchfeed.paths.tracker import PathTracker
from branchfeed.store.protocols import ProgressStore
from branchfeed.tree.tree import StoryTree


logger = structlog.get_logger()


class TrackerRegistry:
    """Hands out one PathTracker per (reader, story).

    Sessions share the progress stores but no mutable state. Sessions stay
    open until the caller closes them with close(), typically when the reader
    navigates away from the story.
    """

    def __init__(
        self,
        store: ProgressStore,
        fallback_store: ProgressStore | None = None,
        persist_attempts: int = 2,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            store: Primary progress store.
            fallback_store: Local store used when primary writes fail.
            persist_attempts: Write attempts per transition.
            clock: Source of timestamps for saved progress.
        """
        self._store = store
        self._fallback_store = fallback_store
        self._persist_attempts = persist_attempts
        self._clock = clock
        self._sessions: dict[tuple[str, str], PathTracker] = {}
        self._lock = threading.Lock()
        self._log = logger.bind(component="tracker_registry")

    def __len__(self) -> int:
        """Number of open sessions."""
        with self._lock:
            return len(self._sessions)

    def session(self, reader_id: str, tree: StoryTree) -> PathTracker:
        """Get or create the session for a reader and story.

        Args:
            reader_id: Reader owning the session.
            tree: Built tree of the story.

        Returns:
            The session's tracker.
        """
        key = (reader_id, tree.story_id)
        with self._lock:
            tracker = self._sessions.get(key)
            if tracker is None:
                tracker = PathTracker(
                    reader_id,
                    tree,
                    self._store,
                    fallback_store=self._fallback_store,
                    persist_attempts=self._persist_attempts,
                    clock=self._clock,
                )
                self._sessions[key] = tracker
                self._log.debug(
                    "tracker_session_opened",
                    reader_id=reader_id,
                    story_id=tree.story_id,
                )
            return tracker

    def get(self, reader_id: str, story_id: str) -> PathTracker | None:
        """Get an existing session, if open."""
        with self._lock:
            return self._sessions.get((reader_id, story_id))

    def close(self, reader_id: str, story_id: str) -> bool:
        """Close a session.

        Returns:
            True if a session was closed.
        """
        with self._lock:
            removed = self._sessions.pop((reader_id, story_id), None)
        if removed is not None:
            self._log.debug("tracker_session_closed", reader_id=reader_id, story_id=story_id)
        return removed is not None
