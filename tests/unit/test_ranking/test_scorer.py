"""Unit tests for CandidateScorer."""

import pytest

from branchfeed.config.schemas import FollowScoringConfig, RankingConfig
from branchfeed.ranking.scorer import CandidateScorer


class TestCandidateScorer:
    """Tests for the default scoring formulas."""

    def test_mutual_connections(self) -> None:
        """Test 100 + 10 per mutual connection."""
        scorer = CandidateScorer()
        assert scorer.mutual_connections(1) == 110
        assert scorer.mutual_connections(3) == 130

    def test_liked_author(self) -> None:
        """Test authors of liked stories score a flat 50."""
        assert CandidateScorer().liked_author() == 50

    def test_popular_creator(self) -> None:
        """Test followers x2 + stories x5."""
        assert CandidateScorer().popular_creator(10, 4) == 40

    def test_story_scores(self) -> None:
        """Test the three story formulas."""
        scorer = CandidateScorer()
        assert scorer.followed_author_story() == 100
        assert scorer.enjoyed_author_story(20, 300) == pytest.approx(55.0)
        assert scorer.popular_story(10, 100) == pytest.approx(4.0)

    def test_weights_from_config(self) -> None:
        """Test configured weights replace the defaults."""
        config = RankingConfig(
            follow_scoring=FollowScoringConfig(mutual_base_score=0, per_mutual_weight=1)
        )
        assert CandidateScorer(config).mutual_connections(4) == 4
