"""SQLite branch store implementation."""

import sqlite3
import threading
import time
import uuid
from collections.abc import Generator, Iterable, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from branchfeed.store.errors import (
    ConnectionError as StoreConnectionError,
    StoryNotFoundError,
)
from branchfeed.store.metrics import StoreMetrics, TransactionContext
from branchfeed.store.migrations import CURRENT_VERSION, MigrationManager
from branchfeed.store.models import Profile, Progress
from branchfeed.tree.errors import InvalidPathToken
from branchfeed.tree.models import Choice, ChoiceToken, Story, StoryNode, validate_path
from branchfeed.tree.tree import StoryTree


logger = structlog.get_logger()

_PATH_DELIMITER = ","


def _serialize_path(path: Sequence[ChoiceToken]) -> str:
    return _PATH_DELIMITER.join(token.value for token in path)


def _deserialize_path(raw: str | None) -> tuple[ChoiceToken, ...]:
    if not raw:
        return ()
    return validate_path(raw.split(_PATH_DELIMITER))


def _choice_columns(choice_a: Choice | None, choice_b: Choice | None) -> tuple[Any, ...]:
    return (
        choice_a.label if choice_a else None,
        choice_a.content if choice_a else None,
        choice_a.media_url if choice_a else None,
        choice_b.label if choice_b else None,
        choice_b.content if choice_b else None,
        choice_b.media_url if choice_b else None,
    )


def _row_choice(row: sqlite3.Row, prefix: str) -> Choice | None:
    label = row[f"{prefix}_label"]
    if not label:
        return None
    return Choice(
        label=label,
        content=row[f"{prefix}_content"],
        media_url=row[f"{prefix}_media_url"],
    )


class BranchStore:
    """SQLite store for stories, the social graph, and reader progress.

    Implements the ProgressStore protocol and backs the SQLite signal
    source. Uses WAL mode and versioned migrations. The connection is
    shared across threads and serialized with a re-entrant lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ':memory:'.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        in_memory = str(self._db_path) == ":memory:"
        if not in_memory:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._log.info("connecting_to_database")

        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        if not in_memory:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._log.info("database_closed")

    def __enter__(self) -> "BranchStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        with self._lock:
            conn = self._ensure_connected()
            tx_id = str(uuid.uuid4())[:8]
            start_ns = time.perf_counter_ns()
            ctx = TransactionContext(
                tx_id=tx_id, start_time_ns=start_ns, operation=operation
            )

            self._log.debug("transaction_started", tx_id=tx_id, op=operation)

            try:
                yield ctx
                conn.commit()
            except Exception:
                conn.rollback()
                self._metrics.record_tx_failure()
                duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
                self._log.error(
                    "transaction_failed",
                    tx_id=tx_id,
                    op=operation,
                    duration_ms=round(duration_ms, 2),
                )
                raise

            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._metrics.record_tx_duration(duration_ms)
            self._log.debug(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                affected_rows=ctx.affected_rows,
                duration_ms=round(duration_ms, 2),
            )

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        """Run a read-only query and return all rows.

        Args:
            sql: SQL statement with '?' placeholders.
            params: Statement parameters.

        Returns:
            All result rows.
        """
        with self._lock:
            conn = self._ensure_connected()
            return conn.execute(sql, tuple(params)).fetchall()

    # ===== Profiles & Social Graph =====

    def upsert_profile(self, profile: Profile) -> None:
        """Create or update a profile.

        Args:
            profile: Profile to store.
        """
        with self._transaction("upsert_profile") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO profiles (id, username, bio, avatar_url, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    bio = excluded.bio,
                    avatar_url = excluded.avatar_url
                """,
                (
                    profile.id,
                    profile.username,
                    profile.bio,
                    profile.avatar_url,
                    datetime.now(UTC).isoformat(),
                ),
            )
            ctx.add_affected_rows(1)

    def add_follow(self, follower_id: str, following_id: str) -> bool:
        """Record that one account follows another.

        Args:
            follower_id: Account that follows.
            following_id: Account being followed.

        Returns:
            True if a new edge was created, False if it already existed.
        """
        with self._transaction("add_follow") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO followers (follower_id, following_id, created_at)
                VALUES (?, ?, ?)
                """,
                (follower_id, following_id, datetime.now(UTC).isoformat()),
            )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount > 0

    def remove_follow(self, follower_id: str, following_id: str) -> bool:
        """Remove a follow edge.

        Returns:
            True if an edge was removed.
        """
        with self._transaction("remove_follow") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "DELETE FROM followers WHERE follower_id = ? AND following_id = ?",
                (follower_id, following_id),
            )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount > 0

    def add_like(self, user_id: str, story_id: str) -> bool:
        """Record a like and bump the story's like counter.

        Returns:
            True if the like is new.
        """
        with self._transaction("add_like") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO story_likes (user_id, story_id, created_at)
                VALUES (?, ?, ?)
                """,
                (user_id, story_id, datetime.now(UTC).isoformat()),
            )
            if cursor.rowcount > 0:
                conn.execute(
                    "UPDATE stories SET likes_count = likes_count + 1 WHERE id = ?",
                    (story_id,),
                )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount > 0

    def add_bookmark(self, user_id: str, story_id: str) -> bool:
        """Record a bookmark.

        Returns:
            True if the bookmark is new.
        """
        with self._transaction("add_bookmark") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO bookmarks (user_id, story_id, created_at)
                VALUES (?, ?, ?)
                """,
                (user_id, story_id, datetime.now(UTC).isoformat()),
            )
            ctx.add_affected_rows(cursor.rowcount)
            return cursor.rowcount > 0

    def increment_views(self, story_id: str) -> None:
        """Increment a story's view counter atomically."""
        with self._transaction("increment_views") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "UPDATE stories SET views_count = views_count + 1 WHERE id = ?",
                (story_id,),
            )
            ctx.add_affected_rows(cursor.rowcount)

    # ===== Stories & Nodes =====

    def save_story(
        self,
        story: Story,
        nodes: Iterable[StoryNode] = (),
        *,
        is_root: bool = True,
    ) -> None:
        """Create or replace a story together with all of its nodes.

        Args:
            story: Story to store.
            nodes: The story's nodes; existing nodes are replaced.
            is_root: Whether the story is shown in feeds.
        """
        now = datetime.now(UTC).isoformat()
        node_list = list(nodes)

        with self._transaction("save_story") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO stories (
                    id, author_id, title, description, media_url, media_type,
                    is_root, max_depth, likes_count, views_count, paths_count,
                    shares_count,
                    choice_a_label, choice_a_content, choice_a_media_url,
                    choice_b_label, choice_b_content, choice_b_media_url,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    author_id = excluded.author_id,
                    title = excluded.title,
                    description = excluded.description,
                    media_url = excluded.media_url,
                    media_type = excluded.media_type,
                    is_root = excluded.is_root,
                    max_depth = excluded.max_depth,
                    likes_count = excluded.likes_count,
                    views_count = excluded.views_count,
                    paths_count = excluded.paths_count,
                    shares_count = excluded.shares_count,
                    choice_a_label = excluded.choice_a_label,
                    choice_a_content = excluded.choice_a_content,
                    choice_a_media_url = excluded.choice_a_media_url,
                    choice_b_label = excluded.choice_b_label,
                    choice_b_content = excluded.choice_b_content,
                    choice_b_media_url = excluded.choice_b_media_url
                """,
                (
                    story.id,
                    story.author_id,
                    story.title,
                    story.description,
                    story.media_url,
                    story.media_type,
                    1 if is_root else 0,
                    story.max_depth,
                    story.likes_count,
                    story.views_count,
                    story.paths_count,
                    story.shares_count,
                    *_choice_columns(story.choice_a, story.choice_b),
                    now,
                ),
            )
            ctx.add_affected_rows(1)

            conn.execute("DELETE FROM story_nodes WHERE story_id = ?", (story.id,))
            for node in node_list:
                conn.execute(
                    """
                    INSERT INTO story_nodes (
                        id, story_id, parent_node_id, choice_label, depth,
                        content, media_url, media_type,
                        choice_a_label, choice_a_content, choice_a_media_url,
                        choice_b_label, choice_b_content, choice_b_media_url,
                        created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        node.id,
                        node.story_id,
                        node.parent_node_id,
                        node.choice_label.value,
                        node.depth,
                        node.content,
                        node.media_url,
                        node.media_type,
                        *_choice_columns(node.choice_a, node.choice_b),
                        now,
                    ),
                )
            ctx.add_affected_rows(len(node_list))

    def get_story(self, story_id: str) -> Story | None:
        """Get a story by ID.

        Args:
            story_id: Story to look up.

        Returns:
            The story, or None if not found.
        """
        rows = self.fetch_all("SELECT * FROM stories WHERE id = ?", (story_id,))
        if not rows:
            return None
        return self._row_to_story(rows[0])

    def get_nodes(self, story_id: str) -> list[StoryNode]:
        """Get all valid nodes of a story, shallowest first.

        Rows that fail validation are skipped and logged.

        Args:
            story_id: Story whose nodes to load.

        Returns:
            Story nodes ordered by depth, then insertion order.
        """
        rows = self.fetch_all(
            """
            SELECT * FROM story_nodes
            WHERE story_id = ?
            ORDER BY depth ASC, rowid ASC
            """,
            (story_id,),
        )
        nodes: list[StoryNode] = []
        for row in rows:
            try:
                nodes.append(self._row_to_node(row))
            except ValidationError as e:
                self._metrics.record_invalid_row()
                self._log.warning(
                    "node_row_invalid",
                    node_id=row["id"],
                    error_count=e.error_count(),
                )
        return nodes

    def load_tree(self, story_id: str) -> StoryTree:
        """Load a story and build its tree.

        Args:
            story_id: Story to load.

        Returns:
            The built StoryTree.

        Raises:
            StoryNotFoundError: If the story does not exist.
        """
        story = self.get_story(story_id)
        if story is None:
            raise StoryNotFoundError(story_id)
        return StoryTree.build(story, self.get_nodes(story_id))

    def _row_to_story(self, row: sqlite3.Row) -> Story:
        return Story(
            id=row["id"],
            author_id=row["author_id"],
            title=row["title"],
            description=row["description"],
            media_url=row["media_url"],
            media_type=row["media_type"],
            max_depth=row["max_depth"],
            likes_count=row["likes_count"],
            views_count=row["views_count"],
            paths_count=row["paths_count"],
            shares_count=row["shares_count"],
            choice_a=_row_choice(row, "choice_a"),
            choice_b=_row_choice(row, "choice_b"),
        )

    def _row_to_node(self, row: sqlite3.Row) -> StoryNode:
        return StoryNode(
            id=row["id"],
            story_id=row["story_id"],
            parent_node_id=row["parent_node_id"],
            choice_label=ChoiceToken(row["choice_label"]),
            depth=row["depth"],
            content=row["content"],
            media_url=row["media_url"],
            media_type=row["media_type"],
            choice_a=_row_choice(row, "choice_a"),
            choice_b=_row_choice(row, "choice_b"),
        )

    # ===== Progress =====

    def load_progress(self, reader_id: str, story_id: str) -> Progress | None:
        """Load a reader's saved progress for a story.

        A stored path with unknown tokens is treated as missing.

        Args:
            reader_id: Reader to look up.
            story_id: Story to look up.

        Returns:
            Saved progress, or None.
        """
        self._metrics.record_progress_read()
        rows = self.fetch_all(
            """
            SELECT * FROM user_story_progress
            WHERE user_id = ? AND story_id = ?
            """,
            (reader_id, story_id),
        )
        if not rows:
            return None

        row = rows[0]
        try:
            path = _deserialize_path(row["path"])
        except InvalidPathToken as e:
            self._metrics.record_invalid_row()
            self._log.warning(
                "progress_row_invalid",
                reader_id=reader_id,
                story_id=story_id,
                error=str(e),
            )
            return None

        return Progress(
            reader_id=row["user_id"],
            story_id=row["story_id"],
            path=path,
            last_node_id=row["last_node_id"],
            completed=bool(row["completed"]),
            last_viewed_at=datetime.fromisoformat(row["last_viewed_at"]),
        )

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
        """Create or replace a reader's progress for a story.

        Args:
            reader_id: Reader who owns the progress.
            story_id: Story being read.
            path: Current path.
            timestamp: When the path changed.
            last_node_id: Node reached by the path.
            completed: Whether the path reached the end of a branch.

        Returns:
            The saved progress.
        """
        progress = Progress(
            reader_id=reader_id,
            story_id=story_id,
            path=tuple(path),
            last_node_id=last_node_id,
            completed=completed,
            last_viewed_at=timestamp,
        )

        with self._transaction("save_progress") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO user_story_progress (
                    user_id, story_id, path, current_depth, last_node_id,
                    completed, last_viewed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, story_id) DO UPDATE SET
                    path = excluded.path,
                    current_depth = excluded.current_depth,
                    last_node_id = excluded.last_node_id,
                    completed = excluded.completed,
                    last_viewed_at = excluded.last_viewed_at
                """,
                (
                    reader_id,
                    story_id,
                    _serialize_path(progress.path),
                    progress.current_depth,
                    last_node_id,
                    1 if completed else 0,
                    timestamp.isoformat(),
                ),
            )
            ctx.add_affected_rows(1)

        self._metrics.record_progress_write()
        return progress

    def list_progress_paths(self, story_id: str) -> list[tuple[ChoiceToken, ...]]:
        """List every reader's saved path for a story.

        Rows with unreadable paths are skipped.

        Args:
            story_id: Story to summarise.

        Returns:
            One path per reader with saved progress.
        """
        rows = self.fetch_all(
            "SELECT path FROM user_story_progress WHERE story_id = ?",
            (story_id,),
        )
        paths: list[tuple[ChoiceToken, ...]] = []
        for row in rows:
            try:
                paths.append(_deserialize_path(row["path"]))
            except InvalidPathToken:
                self._metrics.record_invalid_row()
        return paths

    # ===== Stats =====

    def get_stats(self) -> dict[str, int]:
        """Get row counts for all tables.

        Returns:
            Dictionary mapping table name to row count.
        """
        stats: dict[str, int] = {}
        for table in (
            "profiles",
            "stories",
            "story_nodes",
            "followers",
            "story_likes",
            "bookmarks",
            "user_story_progress",
        ):
            rows = self.fetch_all(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
            stats[table] = rows[0][0]
        return stats

    def get_schema_version(self) -> int:
        """Get current schema version."""
        with self._lock:
            return MigrationManager(self._ensure_connected()).get_current_version()
