"""Deterministic candidate scoring."""

from branchfeed.config.schemas import RankingConfig


class CandidateScorer:
    """Computes pool scores from signal counts.

    Weights come from RankingConfig; defaults reproduce the platform's
    published formulas.
    """

    def __init__(self, config: RankingConfig | None = None) -> None:
        """Initialize the scorer.

        Args:
            config: Ranking configuration, defaults if None.
        """
        config = config or RankingConfig()
        self._follow = config.follow_scoring
        self._story = config.story_scoring

    def mutual_connections(self, mutual_count: int) -> float:
        """Score a follow suggestion from mutual connections."""
        return self._follow.mutual_base_score + self._follow.per_mutual_weight * mutual_count

    def liked_author(self) -> float:
        """Score a follow suggestion for an author the reader liked."""
        return self._follow.derived_interest_score

    def popular_creator(self, followers_count: int, stories_count: int) -> float:
        """Score a popular creator."""
        return (
            followers_count * self._follow.followers_weight
            + stories_count * self._follow.stories_weight
        )

    def followed_author_story(self) -> float:
        """Score a story by a followed author."""
        return self._story.affinity_score

    def enjoyed_author_story(self, likes_count: int, views_count: int) -> float:
        """Score another story by an author the reader interacted with."""
        return (
            self._story.derived_base_score
            + likes_count * self._story.derived_likes_weight
            + views_count * self._story.derived_views_weight
        )

    def popular_story(self, likes_count: int, views_count: int) -> float:
        """Score a globally popular story."""
        return (
            likes_count * self._story.popular_likes_weight
            + views_count * self._story.popular_views_weight
        )
