"""Unit tests for priority merge and ordering."""

from branchfeed.ranking.merge import merge_by_priority, order_candidates, rank_pools_pure
from branchfeed.ranking.models import Candidate, CandidateReason, PoolPriority, PoolResult


def _make_candidate(
    entity_id: str,
    score: float,
    pool: PoolPriority = PoolPriority.POPULARITY,
) -> Candidate:
    return Candidate(
        entity_id=entity_id,
        score=score,
        reason=CandidateReason.POPULAR_STORY,
        pool=pool,
        detail="test",
    )


class TestMergeByPriority:
    """Tests for merge_by_priority."""

    def test_higher_priority_wins(self) -> None:
        """Test a P1 candidate is never overwritten by a higher-scoring P3 one."""
        p1 = PoolResult(
            pool=PoolPriority.AFFINITY,
            candidates=[_make_candidate("x", 100, PoolPriority.AFFINITY)],
        )
        p3 = PoolResult(
            pool=PoolPriority.POPULARITY,
            candidates=[_make_candidate("x", 500), _make_candidate("y", 5)],
        )

        merged = merge_by_priority([p3, p1], excluded_ids=set())

        assert [c.entity_id for c in merged] == ["x", "y"]
        assert merged[0].pool == PoolPriority.AFFINITY
        assert merged[0].score == 100

    def test_exclusions_dropped(self) -> None:
        """Test excluded ids never survive the merge."""
        pool = PoolResult(
            pool=PoolPriority.POPULARITY,
            candidates=[_make_candidate("me", 9), _make_candidate("you", 1)],
        )
        merged = merge_by_priority([pool], excluded_ids={"me"})
        assert [c.entity_id for c in merged] == ["you"]

    def test_failed_pool_contributes_nothing(self) -> None:
        """Test failed pools are treated as empty."""
        failed = PoolResult(
            pool=PoolPriority.AFFINITY,
            candidates=[_make_candidate("x", 100, PoolPriority.AFFINITY)],
            error="boom",
        )
        ok = PoolResult(pool=PoolPriority.POPULARITY, candidates=[_make_candidate("x", 3)])

        merged = merge_by_priority([failed, ok], excluded_ids=())

        assert merged[0].pool == PoolPriority.POPULARITY

    def test_duplicates_within_pool(self) -> None:
        """Test the first occurrence within a pool wins."""
        pool = PoolResult(
            pool=PoolPriority.POPULARITY,
            candidates=[_make_candidate("x", 1), _make_candidate("x", 2)],
        )
        merged = merge_by_priority([pool], excluded_ids=())
        assert len(merged) == 1
        assert merged[0].score == 1


class TestOrderCandidates:
    """Tests for order_candidates."""

    def test_score_descending_and_truncated(self) -> None:
        """Test candidates are sorted by score and cut to the limit."""
        candidates = [_make_candidate(str(i), score) for i, score in enumerate([1, 5, 3, 4])]
        ordered = order_candidates(candidates, limit=3)
        assert [c.entity_id for c in ordered] == ["1", "3", "2"]

    def test_ties_keep_merge_order(self) -> None:
        """Test equal scores keep their incoming order."""
        candidates = [_make_candidate(name, 110) for name in ("u2", "u3", "u4")]
        ordered = order_candidates(candidates, limit=10)
        assert [c.entity_id for c in ordered] == ["u2", "u3", "u4"]

    def test_zero_limit(self) -> None:
        """Test a zero limit returns nothing."""
        assert order_candidates([_make_candidate("x", 1)], limit=0) == []


class TestRankPoolsPure:
    """Tests for the pure ranking entry point."""

    def test_end_to_end(self) -> None:
        """Test merge, exclusion and ordering together."""
        result = rank_pools_pure(
            [
                (PoolPriority.POPULARITY, [_make_candidate("a", 80), _make_candidate("b", 7)]),
                (
                    PoolPriority.AFFINITY,
                    [_make_candidate("b", 100, PoolPriority.AFFINITY)],
                ),
                (PoolPriority.DERIVED_INTEREST, [_make_candidate("c", 50)]),
            ],
            excluded_ids={"c"},
            limit=5,
        )
        assert [(c.entity_id, c.score) for c in result] == [("b", 100), ("a", 80)]
