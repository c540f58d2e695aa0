"""Multi-signal ranking for story recommendations and follow suggestions."""

from branchfeed.ranking.engine import RankingEngine
from branchfeed.ranking.errors import RankingCancelled, RankingError, RankingUnavailable
from branchfeed.ranking.merge import merge_by_priority, order_candidates, rank_pools_pure
from branchfeed.ranking.metrics import RankingMetrics
from branchfeed.ranking.models import (
    Candidate,
    CandidateReason,
    PoolPriority,
    PoolResult,
    RankingProduct,
    RankingResult,
)
from branchfeed.ranking.scorer import CandidateScorer
from branchfeed.ranking.state_machine import (
    RankingState,
    RankingStateMachine,
    RankingStateTransitionError,
)


__all__ = [
    "Candidate",
    "CandidateReason",
    "CandidateScorer",
    "PoolPriority",
    "PoolResult",
    "RankingCancelled",
    "RankingEngine",
    "RankingError",
    "RankingMetrics",
    "RankingProduct",
    "RankingResult",
    "RankingState",
    "RankingStateMachine",
    "RankingStateTransitionError",
    "RankingUnavailable",
    "merge_by_priority",
    "order_candidates",
    "rank_pools_pure",
]
