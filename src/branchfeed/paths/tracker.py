"""Per-session path tracking with progress persistence and URL sync."""

import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import structlog

from branchfeed.paths.codec import build_share_url, decode_path, encode_path
from branchfeed.paths.errors import (
    PathTerminalError,
    PersistenceWriteFailed,
    StaleTreeError,
    TrackerStateError,
)
from branchfeed.paths.metrics import TrackerMetrics
from branchfeed.paths.models import TrackerSnapshot
from branchfeed.paths.state_machine import PathStateMachine, TrackerState
from branchfeed.store.models import Progress
from branchfeed.store.protocols import ProgressStore
from branchfeed.tree.errors import InvalidPathToken, PathDepthExceeded
from branchfeed.tree.models import ChoicePair, ChoiceToken, Path, format_path, validate_path
from branchfeed.tree.tree import StoryTree


logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PathTracker:
    """Tracks one reader's path through one story.

    Implements a state machine:
        UNINITIALIZED -> AT_DEPTH <-> TERMINAL

    All operations on a session are serialized by a per-session lock, and
    every transition reads the current path inside that lock. Persistence
    failures never undo or block an in-memory transition.
    """

    def __init__(  # noqa: PLR0913
        self,
        reader_id: str,
        tree: StoryTree,
        store: ProgressStore,
        fallback_store: ProgressStore | None = None,
        persist_attempts: int = 2,
        clock: Callable[[], datetime] | None = None,
        metrics: TrackerMetrics | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            reader_id: Reader owning the session.
            tree: Built story tree.
            store: Primary progress store.
            fallback_store: Local store used when the primary write fails.
            persist_attempts: Write attempts before giving up.
            clock: Source of timestamps for saved progress.
            metrics: Optional metrics instance.
        """
        if persist_attempts < 1:
            msg = f"persist_attempts must be at least 1, got {persist_attempts}"
            raise ValueError(msg)

        self._reader_id = reader_id
        self._tree = tree
        self._store = store
        self._fallback_store = fallback_store
        self._persist_attempts = persist_attempts
        self._clock = clock or _utc_now
        self._metrics = metrics or TrackerMetrics.get_instance()
        self._state_machine = PathStateMachine(reader_id, tree.story_id)
        self._lock = threading.Lock()

        self._path: Path = ()
        self._initialized = False
        self._persisted = False
        self._last_persistence_error: PersistenceWriteFailed | None = None

        self._log = logger.bind(
            component="tracker",
            reader_id=reader_id,
            story_id=tree.story_id,
        )

    @property
    def reader_id(self) -> str:
        """Get the reader identifier."""
        return self._reader_id

    @property
    def story_id(self) -> str:
        """Get the story identifier."""
        return self._tree.story_id

    @property
    def max_depth(self) -> int:
        """Get the story's maximum depth."""
        return self._tree.max_depth

    @property
    def state(self) -> TrackerState:
        """Get the current state."""
        with self._lock:
            return self._state_machine.state

    @property
    def path(self) -> Path:
        """Get the current path."""
        with self._lock:
            return self._path

    @property
    def initialized(self) -> bool:
        """Check if initialize() has run."""
        with self._lock:
            return self._initialized

    @property
    def last_persistence_error(self) -> PersistenceWriteFailed | None:
        """Most recent persistence failure, cleared by a successful write."""
        with self._lock:
            return self._last_persistence_error

    # ===== Transitions =====

    def initialize(self, url_token: str | None = None) -> TrackerSnapshot:
        """Enter the first state of the session.

        Runs at most once; later calls return the current snapshot without
        touching saved progress. A non-empty URL token wins over saved
        progress: it is decoded leniently, cut to max_depth and to the
        longest resolvable prefix, and persisted. Otherwise the most recent
        valid saved progress is restored, or the session starts at the root.

        Args:
            url_token: Path token from a shared link, if any.

        Returns:
            Snapshot after initialization.
        """
        with self._lock:
            if self._initialized:
                self._log.debug("tracker_already_initialized")
                return self._snapshot()

            url_path = decode_path(url_token, self.max_depth)
            if url_path:
                path = self._trim(url_path)
                self._enter(path)
                self._persisted = self._persist()
                self._metrics.record_url_override()
                source = "url"
            else:
                progress = self._load_progress()
                path = self._trim(progress.path) if progress else ()
                self._enter(path)
                self._persisted = progress is not None
                source = "progress" if progress else "root"

            self._initialized = True
            self._metrics.record_initialized(restored=source == "progress")
            self._log.info(
                "tracker_initialized",
                source=source,
                path=encode_path(self._path),
                state=self._state_machine.state.value,
            )
            return self._snapshot()

    def make_choice(self, token: ChoiceToken | str) -> TrackerSnapshot:
        """Extend the path by one choice.

        Args:
            token: 'A' or 'B'.

        Returns:
            Snapshot after the choice.

        Raises:
            TrackerStateError: If the session is not initialized.
            PathTerminalError: If the path cannot be extended.
            InvalidPathToken: If the token is not exactly 'A' or 'B'.
            StaleTreeError: If the extended path does not resolve.
        """
        with self._lock:
            self._require_initialized("make a choice")

            if self._state_machine.is_terminal:
                self._metrics.record_rejection("terminal")
                self._log.warning("tracker_choice_rejected", reason="terminal")
                raise PathTerminalError(self.story_id, self._path)

            try:
                (checked,) = validate_path([token])
            except InvalidPathToken:
                self._metrics.record_rejection("invalid_token")
                self._log.warning("tracker_choice_rejected", reason="invalid_token")
                raise

            new_path = (*self._path, checked)
            if self._tree.resolve_node(new_path) is None:
                self._metrics.record_rejection("stale_tree")
                self._log.warning(
                    "tracker_choice_rejected",
                    reason="stale_tree",
                    path=encode_path(new_path),
                )
                raise StaleTreeError(self.story_id, new_path)

            self._enter(new_path)
            self._persisted = self._persist()
            self._metrics.record_choice()
            self._log.info(
                "tracker_choice_made",
                choice=checked.value,
                path=encode_path(new_path),
                state=self._state_machine.state.value,
            )
            return self._snapshot()

    def set_path_from_url(self, path: Sequence[object]) -> TrackerSnapshot:
        """Replace the path from an external navigation.

        Validation is strict and happens before any change. A path that
        outlives the tree is cut back to its longest resolvable prefix.

        Args:
            path: Tokens from the URL ('A'/'B' or ChoiceToken).

        Returns:
            Snapshot after the change.

        Raises:
            TrackerStateError: If the session is not initialized.
            InvalidPathToken: If any token is not exactly 'A' or 'B'.
            PathDepthExceeded: If the path is longer than max_depth.
        """
        with self._lock:
            self._require_initialized("set the path from a URL")

            try:
                checked = validate_path(path)
            except InvalidPathToken:
                self._metrics.record_rejection("invalid_token")
                self._log.warning("tracker_url_rejected", reason="invalid_token")
                raise
            if len(checked) > self.max_depth:
                self._metrics.record_rejection("depth_exceeded")
                self._log.warning(
                    "tracker_url_rejected",
                    reason="depth_exceeded",
                    length=len(checked),
                )
                raise PathDepthExceeded(len(checked), self.max_depth)

            new_path = self._trim(checked)
            self._enter(new_path)
            self._persisted = self._persist()
            self._metrics.record_url_override()
            self._log.info(
                "tracker_path_set_from_url",
                path=encode_path(new_path),
                state=self._state_machine.state.value,
            )
            return self._snapshot()

    def navigate_to_token(self, token: str | None) -> TrackerSnapshot:
        """Replace the path from a raw URL token.

        The token is decoded leniently and cut to max_depth first.

        Args:
            token: Raw URL token.

        Returns:
            Snapshot after the change.
        """
        return self.set_path_from_url(decode_path(token, self.max_depth))

    # ===== URL sync =====

    def export_url_token(self) -> str:
        """Encode the current path for the URL."""
        with self._lock:
            return encode_path(self._path)

    def import_url_token(self, token: str | None) -> Path:
        """Decode a URL token for this story without changing state."""
        return decode_path(token, self.max_depth)

    def share_url(self, base_url: str) -> str:
        """Build a share link for the current path."""
        with self._lock:
            return build_share_url(base_url, self.story_id, self._path)

    def snapshot(self) -> TrackerSnapshot:
        """Get the current externally observed state."""
        with self._lock:
            return self._snapshot()

    # ===== Internals (caller holds the lock) =====

    def _require_initialized(self, action: str) -> None:
        if not self._initialized:
            self._metrics.record_rejection("uninitialized")
            raise TrackerStateError(self._state_machine.state.value, action)

    def _trim(self, path: Path) -> Path:
        trimmed = self._tree.longest_resolvable_prefix(path)
        if trimmed != path:
            self._metrics.record_trimmed()
            self._log.info(
                "tracker_path_trimmed",
                requested=encode_path(path),
                trimmed=encode_path(trimmed),
            )
        return trimmed

    def _enter(self, path: Path) -> None:
        self._state_machine.to_position(terminal=self._tree.is_terminal(path))
        self._path = path

    def _load_progress(self) -> Progress | None:
        """Load the most recent valid saved progress.

        Both stores are consulted; read failures and paths longer than
        max_depth are ignored.
        """
        candidates: list[Progress] = []
        stores = [("primary", self._store)]
        if self._fallback_store is not None:
            stores.append(("fallback", self._fallback_store))

        for name, store in stores:
            try:
                progress = store.load_progress(self._reader_id, self.story_id)
            except Exception as e:  # noqa: BLE001
                self._log.warning("progress_read_failed", store=name, error=str(e))
                continue
            if progress is None:
                continue
            if len(progress.path) > self.max_depth:
                self._log.warning(
                    "progress_ignored",
                    store=name,
                    reason="depth_exceeded",
                    length=len(progress.path),
                )
                continue
            candidates.append(progress)

        if not candidates:
            return None
        return max(candidates, key=lambda p: p.last_viewed_at)

    def _persist(self) -> bool:
        """Save the current path, retrying, then falling back.

        Returns:
            True if the primary store accepted the write.
        """
        timestamp = self._clock()
        node = self._tree.resolve_node(self._path)
        last_node_id = node.id if node else None
        completed = self._state_machine.is_terminal

        last_error: Exception | None = None
        for attempt in range(1, self._persist_attempts + 1):
            try:
                self._store.save_progress(
                    self._reader_id,
                    self.story_id,
                    self._path,
                    timestamp,
                    last_node_id=last_node_id,
                    completed=completed,
                )
            except Exception as e:  # noqa: BLE001
                last_error = e
                if attempt < self._persist_attempts:
                    self._metrics.record_persistence_retry()
                    self._log.warning("progress_write_retry", attempt=attempt, error=str(e))
                continue
            self._last_persistence_error = None
            return True

        failure = PersistenceWriteFailed(
            self._reader_id, self.story_id, self._persist_attempts, last_error
        )
        self._last_persistence_error = failure
        self._metrics.record_persistence_failure()
        self._log.error(
            "progress_write_failed",
            error_type="PersistenceWriteFailed",
            attempts=self._persist_attempts,
            error=str(last_error),
        )

        if self._fallback_store is not None:
            try:
                self._fallback_store.save_progress(
                    self._reader_id,
                    self.story_id,
                    self._path,
                    timestamp,
                    last_node_id=last_node_id,
                    completed=completed,
                )
            except Exception as e:  # noqa: BLE001
                self._log.error("fallback_write_failed", error=str(e))
            else:
                self._metrics.record_fallback_write()
                self._log.info("progress_saved_to_fallback")
        return False

    def _snapshot(self) -> TrackerSnapshot:
        path = self._path
        terminal = self._state_machine.is_terminal
        choices = ChoicePair() if terminal else self._tree.choices_at(path)
        max_depth = self.max_depth
        percent = 100.0 if max_depth == 0 else min(len(path) / max_depth * 100, 100.0)
        return TrackerSnapshot(
            reader_id=self._reader_id,
            story_id=self.story_id,
            state=self._state_machine.state,
            path=path,
            max_depth=max_depth,
            url_token=encode_path(path),
            current_node=self._tree.resolve_node(path),
            choice_a=choices.a,
            choice_b=choices.b,
            is_terminal=terminal,
            progress_percent=percent,
            persisted=self._persisted,
        )

    def __repr__(self) -> str:
        return (
            f"PathTracker(reader_id={self._reader_id!r}, story_id={self.story_id!r}, "
            f"state={self._state_machine.state.value}, path='{format_path(self._path)}')"
        )
