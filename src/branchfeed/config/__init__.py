"""Ranking configuration schema and YAML loader."""

from branchfeed.config.loader import (
    ConfigValidationError,
    RankingConfigLoader,
    load_ranking_config,
)
from branchfeed.config.schemas import (
    FollowScoringConfig,
    PoolSizeConfig,
    RankingConfig,
    StoryScoringConfig,
)


__all__ = [
    "ConfigValidationError",
    "FollowScoringConfig",
    "PoolSizeConfig",
    "RankingConfig",
    "RankingConfigLoader",
    "StoryScoringConfig",
    "load_ranking_config",
]
