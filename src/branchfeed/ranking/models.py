"""Data models for the ranking engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated

from pydantic import Field

from branchfeed.data_model import StrictBaseModel
from branchfeed.signals.models import ProfileSnapshot, StorySnapshot


class RankingProduct(str, Enum):
    """Output produced by a ranking call."""

    STORY_RECOMMENDATIONS = "story_recommendations"
    FOLLOW_SUGGESTIONS = "follow_suggestions"


class PoolPriority(int, Enum):
    """Candidate pools in merge order (lower value wins)."""

    AFFINITY = 1
    DERIVED_INTEREST = 2
    POPULARITY = 3

    @property
    def label(self) -> str:
        """Short pool label (P1, P2, P3)."""
        return f"P{self.value}"


class CandidateReason(str, Enum):
    """Signal that produced a candidate."""

    MUTUAL_CONNECTIONS = "mutual_connections"
    LIKED_AUTHOR = "liked_author"
    POPULAR_CREATOR = "popular_creator"
    FOLLOWED_AUTHOR = "followed_author"
    ENJOYED_AUTHOR = "enjoyed_author"
    POPULAR_STORY = "popular_story"


class Candidate(StrictBaseModel):
    """A scored entity produced during one ranking call.

    Attributes:
        entity_id: Profile or story identifier.
        score: Deterministic score.
        reason: Signal that produced the candidate.
        pool: Pool the candidate came from.
        detail: Human-readable reason.
        metadata: Signal counts behind the score.
        profile: Profile snapshot for follow suggestions.
        story: Story snapshot for recommendations.
    """

    entity_id: Annotated[str, Field(min_length=1)]
    score: float
    reason: CandidateReason
    pool: PoolPriority
    detail: str
    metadata: dict[str, int] = Field(default_factory=dict)
    profile: ProfileSnapshot | None = None
    story: StorySnapshot | None = None


@dataclass
class PoolResult:
    """Outcome of fetching one pool.

    Attributes:
        pool: Pool priority.
        candidates: Scored candidates in source order.
        error: Failure description, None on success.
        duration_ms: Fetch duration.
    """

    pool: PoolPriority
    candidates: list[Candidate] = field(default_factory=list)
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def failed(self) -> bool:
        """Check if the pool failed."""
        return self.error is not None


class RankingResult(StrictBaseModel):
    """Complete result of a ranking call.

    Attributes:
        product: Output that was ranked.
        reader_id: Requesting reader, None when anonymous.
        candidates: Ordered candidates, at most ``limit``.
        pools_used: Pools that were fetched successfully.
        pools_failed: Pools that failed and were treated as empty.
    """

    product: RankingProduct
    reader_id: str | None = None
    candidates: list[Candidate] = Field(default_factory=list)
    pools_used: tuple[PoolPriority, ...] = ()
    pools_failed: tuple[PoolPriority, ...] = ()

    @property
    def entity_ids(self) -> list[str]:
        """Ordered entity identifiers."""
        return [c.entity_id for c in self.candidates]

    @property
    def degraded(self) -> bool:
        """Check if any pool failed."""
        return bool(self.pools_failed)
