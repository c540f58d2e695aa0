"""Ranking configuration schema."""

from typing import Annotated

from pydantic import Field, model_validator

from branchfeed.data_model import StrictBaseModel


class FollowScoringConfig(StrictBaseModel):
    """Scoring weights for follow suggestions.

    Attributes:
        mutual_base_score: Base score for a mutual-connection candidate.
        per_mutual_weight: Added per mutual connection.
        derived_interest_score: Flat score for authors of liked stories.
        followers_weight: Popularity weight per follower.
        stories_weight: Popularity weight per root story.
    """

    mutual_base_score: Annotated[float, Field(ge=0.0)] = 100.0
    per_mutual_weight: Annotated[float, Field(ge=0.0)] = 10.0
    derived_interest_score: Annotated[float, Field(ge=0.0)] = 50.0
    followers_weight: Annotated[float, Field(ge=0.0)] = 2.0
    stories_weight: Annotated[float, Field(ge=0.0)] = 5.0


class StoryScoringConfig(StrictBaseModel):
    """Scoring weights for story recommendations.

    Attributes:
        affinity_score: Flat score for stories by followed authors.
        derived_base_score: Base score for stories by authors the reader enjoyed.
        derived_likes_weight: Derived-interest weight per like.
        derived_views_weight: Derived-interest weight per view.
        popular_likes_weight: Popularity weight per like.
        popular_views_weight: Popularity weight per view.
    """

    affinity_score: Annotated[float, Field(ge=0.0)] = 100.0
    derived_base_score: Annotated[float, Field(ge=0.0)] = 50.0
    derived_likes_weight: Annotated[float, Field(ge=0.0)] = 0.1
    derived_views_weight: Annotated[float, Field(ge=0.0)] = 0.01
    popular_likes_weight: Annotated[float, Field(ge=0.0)] = 0.2
    popular_views_weight: Annotated[float, Field(ge=0.0)] = 0.02


class PoolSizeConfig(StrictBaseModel):
    """How many rows each pool fetches, as a multiple of the limit.

    Attributes:
        story_pool_multiplier: Rows per story pool.
        popular_profile_multiplier: Rows for the popular-creators pool.
    """

    story_pool_multiplier: Annotated[int, Field(ge=1, le=20)] = 2
    popular_profile_multiplier: Annotated[int, Field(ge=1, le=20)] = 3


class RankingConfig(StrictBaseModel):
    """Complete ranking configuration.

    Attributes:
        follow_scoring: Follow suggestion weights.
        story_scoring: Story recommendation weights.
        pool_sizes: Pool fetch multipliers.
        interaction_lookup_cap: Max interacted stories used to find authors.
        default_limit: Limit used when the caller passes none.
        max_limit: Largest accepted limit.
    """

    follow_scoring: FollowScoringConfig = Field(default_factory=FollowScoringConfig)
    story_scoring: StoryScoringConfig = Field(default_factory=StoryScoringConfig)
    pool_sizes: PoolSizeConfig = Field(default_factory=PoolSizeConfig)
    interaction_lookup_cap: Annotated[int, Field(ge=1, le=1000)] = 100
    default_limit: Annotated[int, Field(ge=1)] = 10
    max_limit: Annotated[int, Field(ge=1, le=500)] = 100

    @model_validator(mode="after")
    def validate_limits(self) -> "RankingConfig":
        """Ensure the default limit fits under the maximum."""
        if self.default_limit > self.max_limit:
            msg = (
                f"default_limit ({self.default_limit}) must not exceed "
                f"max_limit ({self.max_limit})"
            )
            raise ValueError(msg)
        return self
