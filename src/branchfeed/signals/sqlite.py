"""Signal source backed by the SQLite branch store."""

import sqlite3
from collections.abc import Sequence
from typing import Any

import structlog

from branchfeed.signals.errors import SignalQueryError
from branchfeed.signals.models import FollowEdge, ProfileSnapshot, StorySnapshot
from branchfeed.store.errors import StoreError
from branchfeed.store.store import BranchStore


logger = structlog.get_logger()

_STORY_SELECT = """
SELECT
    s.id, s.author_id, s.title, s.description, s.media_url, s.media_type,
    s.likes_count, s.views_count,
    (SELECT COUNT(*) FROM story_nodes n WHERE n.story_id = s.id) AS branches_count,
    p.username AS author_username
FROM stories s
LEFT JOIN profiles p ON p.id = s.author_id
"""

_PROFILE_SELECT = """
SELECT
    p.id, p.username, p.avatar_url,
    (SELECT COUNT(*) FROM followers f WHERE f.following_id = p.id) AS followers_count,
    (SELECT COUNT(*) FROM stories s
        WHERE s.author_id = p.id AND s.is_root = 1) AS stories_count
FROM profiles p
"""


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


class StoreSignalSource:
    """SignalSource implementation over a connected BranchStore."""

    def __init__(self, store: BranchStore) -> None:
        """Initialize the source.

        Args:
            store: Connected branch store.
        """
        self._store = store
        self._log = logger.bind(component="signals", backend="sqlite")

    def _query(
        self, name: str, sql: str, params: Sequence[Any] = ()
    ) -> list[sqlite3.Row]:
        try:
            return self._store.fetch_all(sql, params)
        except (sqlite3.Error, StoreError) as e:
            self._log.warning("signal_query_failed", query=name, error=str(e))
            raise SignalQueryError(name, str(e)) from e

    def list_following(self, reader_id: str) -> list[str]:
        rows = self._query(
            "following",
            "SELECT following_id FROM followers WHERE follower_id = ? ORDER BY rowid",
            (reader_id,),
        )
        return [row["following_id"] for row in rows]

    def list_follow_edges_into(self, account_ids: Sequence[str]) -> list[FollowEdge]:
        if not account_ids:
            return []
        rows = self._query(
            "follow_edges",
            f"""
            SELECT follower_id, following_id FROM followers
            WHERE following_id IN ({_placeholders(account_ids)})
            ORDER BY rowid
            """,  # noqa: S608
            list(account_ids),
        )
        return [
            FollowEdge(follower_id=row["follower_id"], following_id=row["following_id"])
            for row in rows
        ]

    def list_liked_story_ids(self, reader_id: str) -> list[str]:
        rows = self._query(
            "liked",
            "SELECT story_id FROM story_likes WHERE user_id = ? ORDER BY rowid",
            (reader_id,),
        )
        return [row["story_id"] for row in rows]

    def list_bookmarked_story_ids(self, reader_id: str) -> list[str]:
        rows = self._query(
            "bookmarked",
            "SELECT story_id FROM bookmarks WHERE user_id = ? ORDER BY rowid",
            (reader_id,),
        )
        return [row["story_id"] for row in rows]

    def list_viewed_story_ids(self, reader_id: str) -> list[str]:
        rows = self._query(
            "viewed",
            """
            SELECT story_id FROM user_story_progress
            WHERE user_id = ?
            ORDER BY last_viewed_at DESC
            """,
            (reader_id,),
        )
        return [row["story_id"] for row in rows]

    def list_stories(self, story_ids: Sequence[str]) -> list[StorySnapshot]:
        if not story_ids:
            return []
        rows = self._query(
            "stories",
            f"{_STORY_SELECT} WHERE s.id IN ({_placeholders(story_ids)}) ORDER BY s.rowid",
            list(story_ids),
        )
        return [self._row_to_story(row) for row in rows]

    def list_stories_by_authors(
        self, author_ids: Sequence[str], limit: int
    ) -> list[StorySnapshot]:
        if not author_ids or limit <= 0:
            return []
        rows = self._query(
            "stories_by_authors",
            f"""
            {_STORY_SELECT}
            WHERE s.is_root = 1 AND s.author_id IN ({_placeholders(author_ids)})
            ORDER BY s.created_at DESC, s.rowid DESC
            LIMIT ?
            """,
            [*author_ids, limit],
        )
        return [self._row_to_story(row) for row in rows]

    def get_profiles(self, profile_ids: Sequence[str]) -> list[ProfileSnapshot]:
        if not profile_ids:
            return []
        rows = self._query(
            "profiles",
            f"{_PROFILE_SELECT} WHERE p.id IN ({_placeholders(profile_ids)}) ORDER BY p.rowid",
            list(profile_ids),
        )
        return [self._row_to_profile(row) for row in rows]

    def list_popular_profiles(
        self, exclude_id: str | None, limit: int
    ) -> list[ProfileSnapshot]:
        if limit <= 0:
            return []
        rows = self._query(
            "popular_profiles",
            f"""
            {_PROFILE_SELECT}
            WHERE p.id IS NOT ?
            ORDER BY followers_count DESC, stories_count DESC, p.rowid
            LIMIT ?
            """,
            (exclude_id, limit),
        )
        return [self._row_to_profile(row) for row in rows]

    def list_popular_stories(
        self, limit: int, exclude_id: str | None = None
    ) -> list[StorySnapshot]:
        if limit <= 0:
            return []
        rows = self._query(
            "popular_stories",
            f"""
            {_STORY_SELECT}
            WHERE s.is_root = 1 AND s.id IS NOT ?
            ORDER BY s.likes_count DESC, s.views_count DESC, s.rowid
            LIMIT ?
            """,
            (exclude_id, limit),
        )
        return [self._row_to_story(row) for row in rows]

    @staticmethod
    def _row_to_story(row: sqlite3.Row) -> StorySnapshot:
        return StorySnapshot(
            id=row["id"],
            author_id=row["author_id"],
            title=row["title"],
            description=row["description"],
            media_url=row["media_url"],
            media_type=row["media_type"],
            likes_count=row["likes_count"],
            views_count=row["views_count"],
            branches_count=row["branches_count"],
            author_username=row["author_username"],
        )

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> ProfileSnapshot:
        return ProfileSnapshot(
            id=row["id"],
            username=row["username"],
            avatar_url=row["avatar_url"],
            followers_count=row["followers_count"],
            stories_count=row["stories_count"],
        )
