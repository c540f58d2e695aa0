"""SQLite schema migrations for the branch store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from branchfeed.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 2


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
        down_sql: SQL to rollback the migration.
    """

    version: int
    description: str
    up_sql: str
    down_sql: str


_CHOICE_COLUMNS = """
    choice_a_label TEXT,
    choice_a_content TEXT,
    choice_a_media_url TEXT,
    choice_b_label TEXT,
    choice_b_content TEXT,
    choice_b_media_url TEXT,
"""


# All migrations in order
MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Content and social graph tables",
        up_sql=f"""
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    username TEXT NOT NULL,
    bio TEXT,
    avatar_url TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS stories (
    id TEXT PRIMARY KEY,
    author_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    media_url TEXT,
    media_type TEXT,
    is_root INTEGER NOT NULL DEFAULT 1,
    max_depth INTEGER NOT NULL DEFAULT 5 CHECK (max_depth >= 0),
    likes_count INTEGER NOT NULL DEFAULT 0,
    views_count INTEGER NOT NULL DEFAULT 0,
    paths_count INTEGER NOT NULL DEFAULT 0,
    shares_count INTEGER NOT NULL DEFAULT 0,
    {_CHOICE_COLUMNS}
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_stories_author_id ON stories(author_id);
CREATE INDEX IF NOT EXISTS idx_stories_popularity
    ON stories(likes_count DESC, views_count DESC);

-- Nodes are keyed by (story, parent, choice_label): one child per token
CREATE TABLE IF NOT EXISTS story_nodes (
    id TEXT PRIMARY KEY,
    story_id TEXT NOT NULL REFERENCES stories(id) ON DELETE CASCADE,
    parent_node_id TEXT,
    choice_label TEXT NOT NULL CHECK (choice_label IN ('A', 'B')),
    depth INTEGER NOT NULL CHECK (depth >= 1),
    content TEXT,
    media_url TEXT,
    media_type TEXT,
    {_CHOICE_COLUMNS}
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_story_nodes_story_id ON story_nodes(story_id);

CREATE TABLE IF NOT EXISTS followers (
    follower_id TEXT NOT NULL,
    following_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (follower_id, following_id),
    CHECK (follower_id <> following_id)
);
CREATE INDEX IF NOT EXISTS idx_followers_following_id ON followers(following_id);

CREATE TABLE IF NOT EXISTS story_likes (
    user_id TEXT NOT NULL,
    story_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, story_id)
);

CREATE TABLE IF NOT EXISTS bookmarks (
    user_id TEXT NOT NULL,
    story_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, story_id)
);
""",
        down_sql="""
DROP TABLE IF EXISTS bookmarks;
DROP TABLE IF EXISTS story_likes;
DROP INDEX IF EXISTS idx_followers_following_id;
DROP TABLE IF EXISTS followers;
DROP INDEX IF EXISTS idx_story_nodes_story_id;
DROP TABLE IF EXISTS story_nodes;
DROP INDEX IF EXISTS idx_stories_popularity;
DROP INDEX IF EXISTS idx_stories_author_id;
DROP TABLE IF EXISTS stories;
DROP TABLE IF EXISTS profiles;
""",
    ),
    Migration(
        version=2,
        description="Reader progress table",
        up_sql="""
CREATE TABLE IF NOT EXISTS user_story_progress (
    user_id TEXT NOT NULL,
    story_id TEXT NOT NULL,
    path TEXT NOT NULL DEFAULT '',
    current_depth INTEGER NOT NULL DEFAULT 0,
    last_node_id TEXT,
    completed INTEGER NOT NULL DEFAULT 0,
    last_viewed_at TEXT NOT NULL,
    PRIMARY KEY (user_id, story_id)
);
CREATE INDEX IF NOT EXISTS idx_progress_story_id ON user_story_progress(story_id);
""",
        down_sql="""
DROP INDEX IF EXISTS idx_progress_story_id;
DROP TABLE IF EXISTS user_story_progress;
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations that need to be applied.

    Args:
        current_version: The current schema version.

    Returns:
        List of migrations to apply in order.
    """
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Manages SQLite schema migrations."""

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize the migration manager.

        Args:
            connection: SQLite connection to manage.
        """
        self._conn = connection
        self._log = logger.bind(component="store", operation="migration")

    def ensure_version_table(self) -> None:
        """Ensure the schema_version table exists."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self.ensure_version_table()
        cursor = self._conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration fails to apply.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)

        if not pending:
            self._log.info("no_migrations_pending", current_version=current)
            return []

        applied: list[int] = []

        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )

            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
                applied.append(migration.version)
                self._log.info("migration_applied", version=migration.version)

            except sqlite3.Error as e:
                self._log.error(
                    "migration_failed",
                    version=migration.version,
                    error=str(e),
                )
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

        return applied

    def rollback_to(self, target_version: int) -> list[int]:
        """Rollback to a specific version.

        Args:
            target_version: The version to rollback to.

        Returns:
            List of version numbers that were rolled back.

        Raises:
            ValueError: If target version is invalid.
        """
        if target_version < 0:
            msg = f"Invalid target version: {target_version}"
            raise ValueError(msg)

        rolled_back: list[int] = []
        by_version = {m.version: m for m in MIGRATIONS}

        while (current := self.get_current_version()) > target_version:
            migration = by_version.get(current)
            if migration is None:
                break

            self._log.info(
                "rolling_back_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.down_sql)
                self._conn.execute(
                    "DELETE FROM schema_version WHERE version = ?",
                    (migration.version,),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._log.error(
                    "rollback_failed",
                    version=migration.version,
                    error=str(e),
                )
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

            rolled_back.append(migration.version)
            self._log.info("migration_rolled_back", version=migration.version)

        return rolled_back
