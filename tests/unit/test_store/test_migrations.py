"""Unit tests for schema migrations."""

import sqlite3

import pytest

from branchfeed.store.migrations import (
    CURRENT_VERSION,
    MIGRATIONS,
    MigrationManager,
    get_migrations_to_apply,
)


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


class TestMigrations:
    """Tests for the migration list and manager."""

    def test_versions_are_sequential(self) -> None:
        """Test migrations run 1..CURRENT_VERSION without gaps."""
        assert [m.version for m in MIGRATIONS] == list(range(1, CURRENT_VERSION + 1))

    def test_pending_from_version(self) -> None:
        """Test only newer migrations are pending."""
        assert [m.version for m in get_migrations_to_apply(1)] == [2]
        assert get_migrations_to_apply(CURRENT_VERSION) == []

    def test_apply_creates_schema(self) -> None:
        """Test applying all migrations creates every table."""
        conn = sqlite3.connect(":memory:")
        manager = MigrationManager(conn)

        assert manager.apply_migrations() == [1, 2]
        assert manager.get_current_version() == CURRENT_VERSION
        assert {
            "profiles",
            "stories",
            "story_nodes",
            "followers",
            "story_likes",
            "bookmarks",
            "user_story_progress",
        } <= _tables(conn)

        assert manager.apply_migrations() == []
        conn.close()

    def test_rollback(self) -> None:
        """Test rolling back removes the progress table."""
        conn = sqlite3.connect(":memory:")
        manager = MigrationManager(conn)
        manager.apply_migrations()

        assert manager.rollback_to(1) == [2]
        assert "user_story_progress" not in _tables(conn)
        assert manager.get_current_version() == 1
        conn.close()

    def test_invalid_rollback_target(self) -> None:
        """Test negative targets are rejected."""
        manager = MigrationManager(sqlite3.connect(":memory:"))
        with pytest.raises(ValueError, match="Invalid target"):
            manager.rollback_to(-1)

    def test_self_follow_rejected(self) -> None:
        """Test the schema refuses self-follow edges."""
        conn = sqlite3.connect(":memory:")
        MigrationManager(conn).apply_migrations()
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO followers (follower_id, following_id, created_at) "
                "VALUES ('a', 'a', 'now')"
            )
        conn.close()
