"""Signal source backed by a PostgREST-style HTTP API."""

from collections import Counter
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from branchfeed.signals.errors import SignalQueryError
from branchfeed.signals.models import FollowEdge, ProfileSnapshot, StorySnapshot


logger = structlog.get_logger()

REST_PATH = "/rest/v1"

STORY_COLUMNS = (
    "id,author_id,title,description,media_url,media_type,"
    "likes_count,views_count,author:profiles(username),story_nodes(count)"
)

PROFILE_COLUMNS = "id,username,avatar_url"


def _in_filter(values: Sequence[str]) -> str:
    """Build a PostgREST ``in`` filter with quoted values."""
    quoted = ",".join('"{}"'.format(v.replace('"', '\\"')) for v in values)
    return f"in.({quoted})"


class RestSignalSource:
    """SignalSource implementation over HTTP.

    Talks to a PostgREST endpoint (as exposed by Supabase) with the anon or
    service key. Transport errors, non-2xx responses and malformed bodies are
    raised as SignalQueryError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            base_url: Project URL, without the REST path.
            api_key: API key sent as ``apikey`` and bearer token.
            timeout: Request timeout in seconds.
            transport: Optional transport override (used by tests).
        """
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + REST_PATH,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
        self._log = logger.bind(component="signals", backend="rest")

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> "RestSignalSource":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _get(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        """Run a filtered GET against one table.

        Args:
            table: Table or view name.
            params: PostgREST query parameters.

        Returns:
            Decoded JSON rows.

        Raises:
            SignalQueryError: On transport, status or decoding failure.
        """
        try:
            response = self._client.get(f"/{table}", params=params)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            self._log.warning(
                "signal_query_failed",
                query=table,
                status_code=e.response.status_code,
            )
            raise SignalQueryError(table, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self._log.warning("signal_query_failed", query=table, error=str(e))
            raise SignalQueryError(table, str(e)) from e
        except ValueError as e:
            self._log.warning("signal_query_failed", query=table, error="invalid_json")
            raise SignalQueryError(table, "Response body is not valid JSON") from e

        if not isinstance(rows, list):
            raise SignalQueryError(table, "Response body is not a JSON array")
        return rows

    def _ids(self, table: str, column: str, params: dict[str, str]) -> list[str]:
        return [row[column] for row in self._get(table, {"select": column, **params})]

    def list_following(self, reader_id: str) -> list[str]:
        return self._ids(
            "followers", "following_id", {"follower_id": f"eq.{reader_id}"}
        )

    def list_follow_edges_into(self, account_ids: Sequence[str]) -> list[FollowEdge]:
        if not account_ids:
            return []
        rows = self._get(
            "followers",
            {
                "select": "follower_id,following_id",
                "following_id": _in_filter(account_ids),
            },
        )
        return [FollowEdge.model_validate(row) for row in rows]

    def list_liked_story_ids(self, reader_id: str) -> list[str]:
        return self._ids("story_likes", "story_id", {"user_id": f"eq.{reader_id}"})

    def list_bookmarked_story_ids(self, reader_id: str) -> list[str]:
        return self._ids("bookmarks", "story_id", {"user_id": f"eq.{reader_id}"})

    def list_viewed_story_ids(self, reader_id: str) -> list[str]:
        return self._ids(
            "user_story_progress",
            "story_id",
            {"user_id": f"eq.{reader_id}", "order": "last_viewed_at.desc"},
        )

    def list_stories(self, story_ids: Sequence[str]) -> list[StorySnapshot]:
        if not story_ids:
            return []
        rows = self._get(
            "stories", {"select": STORY_COLUMNS, "id": _in_filter(story_ids)}
        )
        return [self._row_to_story(row) for row in rows]

    def list_stories_by_authors(
        self, author_ids: Sequence[str], limit: int
    ) -> list[StorySnapshot]:
        if not author_ids or limit <= 0:
            return []
        rows = self._get(
            "stories",
            {
                "select": STORY_COLUMNS,
                "author_id": _in_filter(author_ids),
                "is_root": "eq.true",
                "order": "created_at.desc",
                "limit": str(limit),
            },
        )
        return [self._row_to_story(row) for row in rows]

    def get_profiles(self, profile_ids: Sequence[str]) -> list[ProfileSnapshot]:
        if not profile_ids:
            return []
        rows = self._get(
            "profiles", {"select": PROFILE_COLUMNS, "id": _in_filter(profile_ids)}
        )
        return [self._row_to_profile(row) for row in rows]

    def list_popular_profiles(
        self, exclude_id: str | None, limit: int
    ) -> list[ProfileSnapshot]:
        if limit <= 0:
            return []
        params = {"select": PROFILE_COLUMNS, "limit": str(limit)}
        if exclude_id is not None:
            params["id"] = f"neq.{exclude_id}"
        rows = self._get("profiles", params)
        ids = [row["id"] for row in rows]
        if not ids:
            return []

        followers = Counter(
            self._ids("followers", "following_id", {"following_id": _in_filter(ids)})
        )
        stories = Counter(
            self._ids(
                "stories",
                "author_id",
                {"author_id": _in_filter(ids), "is_root": "eq.true"},
            )
        )
        return [
            self._row_to_profile(
                row,
                followers_count=followers[row["id"]],
                stories_count=stories[row["id"]],
            )
            for row in rows
        ]

    def list_popular_stories(
        self, limit: int, exclude_id: str | None = None
    ) -> list[StorySnapshot]:
        if limit <= 0:
            return []
        params = {
            "select": STORY_COLUMNS,
            "is_root": "eq.true",
            "order": "likes_count.desc,views_count.desc",
            "limit": str(limit),
        }
        if exclude_id is not None:
            params["id"] = f"neq.{exclude_id}"
        rows = self._get("stories", params)
        return [self._row_to_story(row) for row in rows]

    @staticmethod
    def _row_to_story(row: dict[str, Any]) -> StorySnapshot:
        author = row.get("author") or {}
        nodes = row.get("story_nodes") or []
        branches = nodes[0].get("count", 0) if nodes else 0
        return StorySnapshot(
            id=row["id"],
            author_id=row["author_id"],
            title=row["title"],
            description=row.get("description"),
            media_url=row.get("media_url"),
            media_type=row.get("media_type"),
            likes_count=row.get("likes_count") or 0,
            views_count=row.get("views_count") or 0,
            branches_count=branches,
            author_username=author.get("username"),
        )

    @staticmethod
    def _row_to_profile(
        row: dict[str, Any], followers_count: int = 0, stories_count: int = 0
    ) -> ProfileSnapshot:
        return ProfileSnapshot(
            id=row["id"],
            username=row["username"],
            avatar_url=row.get("avatar_url"),
            followers_count=followers_count,
            stories_count=stories_count,
        )
