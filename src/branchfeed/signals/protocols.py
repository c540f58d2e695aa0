"""Collaborator protocol for ranking signals."""

from collections.abc import Sequence
from typing import Protocol

from branchfeed.signals.models import FollowEdge, ProfileSnapshot, StorySnapshot


class SignalSource(Protocol):
    """Filtered read queries over the social graph and story catalogue.

    Every method may raise; the ranking engine isolates each failure to the
    pools that depend on it. Result order is meaningful: ranking keeps source
    order between equal scores.
    """

    def list_following(self, reader_id: str) -> list[str]:
        """Ids of accounts the reader follows."""
        ...

    def list_follow_edges_into(self, account_ids: Sequence[str]) -> list[FollowEdge]:
        """Follow edges whose target is one of ``account_ids``."""
        ...

    def list_liked_story_ids(self, reader_id: str) -> list[str]:
        """Stories the reader liked."""
        ...

    def list_bookmarked_story_ids(self, reader_id: str) -> list[str]:
        """Stories the reader bookmarked."""
        ...

    def list_viewed_story_ids(self, reader_id: str) -> list[str]:
        """Stories the reader has progress in."""
        ...

    def list_stories(self, story_ids: Sequence[str]) -> list[StorySnapshot]:
        """Stories by id, in any order."""
        ...

    def list_stories_by_authors(
        self, author_ids: Sequence[str], limit: int
    ) -> list[StorySnapshot]:
        """Root stories written by any of ``author_ids``, newest first."""
        ...

    def get_profiles(self, profile_ids: Sequence[str]) -> list[ProfileSnapshot]:
        """Profiles by id, in any order."""
        ...

    def list_popular_profiles(
        self, exclude_id: str | None, limit: int
    ) -> list[ProfileSnapshot]:
        """Profiles other than ``exclude_id`` with follower and story counts."""
        ...

    def list_popular_stories(
        self, limit: int, exclude_id: str | None = None
    ) -> list[StorySnapshot]:
        """Root stories ordered by likes, then views, descending."""
        ...
