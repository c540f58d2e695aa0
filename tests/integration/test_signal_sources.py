"""Integration tests for SQLite signal queries and end-to-end ranking."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from branchfeed.ranking.engine import RankingEngine
from branchfeed.ranking.metrics import RankingMetrics
from branchfeed.ranking.models import CandidateReason, PoolPriority
from branchfeed.signals.errors import SignalQueryError
from branchfeed.signals.sqlite import StoreSignalSource
from branchfeed.store.metrics import StoreMetrics
from branchfeed.store.models import Profile
from branchfeed.store.store import BranchStore
from tests.helpers.builders import full_nodes, make_story
from tests.helpers.time import FIXED_NOW


def _seed(store: BranchStore) -> None:
    """Readers u1..u4, authors a and b, and a small follow graph.

    u1 follows a. u2 and u3 also follow a. u4 follows b.
    a wrote s-a1 and s-a2, b wrote s-b1 (popular) and a draft.
    """
    for profile_id in ("u1", "u2", "u3", "u4", "a", "b"):
        store.upsert_profile(Profile(id=profile_id, username=f"user_{profile_id}"))

    store.save_story(make_story("s-a1", author_id="a", max_depth=1), full_nodes("s-a1", 1))
    store.save_story(make_story("s-a2", author_id="a", likes_count=3))
    store.save_story(
        make_story("s-b1", author_id="b", likes_count=50, views_count=900)
    )
    store.save_story(make_story("s-b-draft", author_id="b"), is_root=False)

    for follower, following in (("u1", "a"), ("u2", "a"), ("u3", "a"), ("u4", "b")):
        store.add_follow(follower, following)
    store.add_like("u1", "s-b1")
    store.add_bookmark("u2", "s-a1")
    store.save_progress("u1", "s-a2", (), FIXED_NOW)


@pytest.fixture
def store() -> Generator[BranchStore]:
    """Create a seeded store."""
    StoreMetrics.reset()
    RankingMetrics.reset()
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BranchStore(Path(tmpdir) / "signals.sqlite")
        store.connect()
        _seed(store)
        yield store
        store.close()


@pytest.fixture
def source(store: BranchStore) -> StoreSignalSource:
    """Create a signal source over the seeded store."""
    return StoreSignalSource(store)


class TestStoreSignalSource:
    """Tests for individual signal queries."""

    def test_context_queries(self, source: StoreSignalSource) -> None:
        """Test per-reader id lists."""
        assert source.list_following("u1") == ["a"]
        assert source.list_liked_story_ids("u1") == ["s-b1"]
        assert source.list_bookmarked_story_ids("u2") == ["s-a1"]
        assert source.list_viewed_story_ids("u1") == ["s-a2"]
        assert source.list_following("nobody") == []

    def test_follow_edges_in_insertion_order(self, source: StoreSignalSource) -> None:
        """Test edges into an account come back oldest first."""
        edges = source.list_follow_edges_into(["a"])
        assert [e.follower_id for e in edges] == ["u1", "u2", "u3"]
        assert source.list_follow_edges_into([]) == []

    def test_story_snapshots(self, source: StoreSignalSource) -> None:
        """Test stories carry author handle and branch count."""
        (snapshot,) = source.list_stories(["s-a1"])
        assert snapshot.author_username == "user_a"
        assert snapshot.branches_count == 2

    def test_stories_by_authors_excludes_drafts(self, source: StoreSignalSource) -> None:
        """Test only root stories are returned, newest first."""
        stories = source.list_stories_by_authors(["a", "b"], limit=10)
        ids = [s.id for s in stories]
        assert "s-b-draft" not in ids
        assert set(ids) == {"s-a1", "s-a2", "s-b1"}
        assert source.list_stories_by_authors(["a"], limit=0) == []

    def test_popular_profiles(self, source: StoreSignalSource) -> None:
        """Test profiles are ranked by followers and exclude the reader."""
        profiles = source.list_popular_profiles("u1", limit=2)
        assert [p.id for p in profiles] == ["a", "b"]
        assert profiles[0].followers_count == 3
        assert profiles[0].stories_count == 2
        assert profiles[1].stories_count == 1

    def test_popular_stories(self, source: StoreSignalSource) -> None:
        """Test stories are ranked by likes then views."""
        stories = source.list_popular_stories(limit=2)
        assert [s.id for s in stories] == ["s-b1", "s-a2"]
        assert [s.id for s in source.list_popular_stories(1, exclude_id="s-b1")] == ["s-a2"]

    def test_closed_store_raises_signal_error(self, store: BranchStore) -> None:
        """Test store failures surface as SignalQueryError."""
        source = StoreSignalSource(store)
        store.close()
        with pytest.raises(SignalQueryError) as exc_info:
            source.list_following("u1")
        assert exc_info.value.query == "following"


class TestRankingOverStore:
    """End-to-end ranking against the SQLite source."""

    def test_suggest_follows(self, source: StoreSignalSource) -> None:
        """Test u2 and u3 are suggested to u1 through the shared follow of a."""
        result = RankingEngine(source).suggest_follows("u1")

        mutuals = [c for c in result.candidates if c.reason == CandidateReason.MUTUAL_CONNECTIONS]
        assert [(c.entity_id, c.score) for c in mutuals] == [("u2", 110), ("u3", 110)]
        assert "a" not in result.entity_ids
        assert "u1" not in result.entity_ids
        assert result.entity_ids == ["u2", "u3", "b", "u4"]
        liked = result.candidates[2]
        assert liked.reason == CandidateReason.LIKED_AUTHOR
        assert liked.score == 50

    def test_recommend_stories(self, source: StoreSignalSource) -> None:
        """Test followed authors' unread stories rank above popular ones."""
        result = RankingEngine(source).recommend_stories("u1", limit=5)

        first = result.candidates[0]
        assert first.entity_id == "s-a1"
        assert first.pool == PoolPriority.AFFINITY
        assert "s-b-draft" not in result.entity_ids
        assert result.pools_failed == ()

    def test_anonymous_recommendations(self, source: StoreSignalSource) -> None:
        """Test anonymous readers get the popular feed."""
        result = RankingEngine(source, max_workers=1).recommend_stories(
            None, limit=2, exclude_id="s-b1"
        )
        assert result.entity_ids == ["s-a2", "s-a1"]
