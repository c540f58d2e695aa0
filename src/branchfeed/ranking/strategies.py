"""Product-specific signal collection for the ranking engine.

Each strategy names the context queries it needs, the exclusion set, and
the three pools (P1 affinity, P2 derived interest, P3 popularity) it feeds
into the shared merge and ordering pipeline.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from branchfeed.config.schemas import RankingConfig
from branchfeed.ranking.constants import (
    REASON_ENJOYED_AUTHOR,
    REASON_FOLLOWED_AUTHOR,
    REASON_LIKED_AUTHOR,
    REASON_MUTUAL_PLURAL,
    REASON_MUTUAL_SINGULAR,
    REASON_POPULAR_CREATOR,
    REASON_POPULAR_STORY,
)
from branchfeed.ranking.models import (
    Candidate,
    CandidateReason,
    PoolPriority,
    RankingProduct,
)
from branchfeed.ranking.scorer import CandidateScorer
from branchfeed.signals.models import StorySnapshot
from branchfeed.signals.protocols import SignalSource


class ContextKey(str, Enum):
    """Per-reader context queried before the pools."""

    FOLLOWING = "following"
    LIKED = "liked"
    BOOKMARKED = "bookmarked"
    VIEWED = "viewed"


@dataclass(frozen=True)
class RankingRequest:
    """Parameters of one ranking call."""

    reader_id: str | None
    limit: int
    exclude_id: str | None = None


@dataclass
class SignalContext:
    """Results of the context queries for one call.

    Attributes:
        reader_id: Requesting reader.
        values: Ids returned per successful query.
        failed: Queries that failed.
    """

    reader_id: str | None
    values: dict[ContextKey, list[str]] = field(default_factory=dict)
    failed: set[ContextKey] = field(default_factory=set)

    def get(self, key: ContextKey) -> list[str]:
        """Ids for a query, empty if it failed or never ran."""
        return self.values.get(key, [])

    def ids(self, *keys: ContextKey) -> list[str]:
        """Union of ids across queries, first occurrence order."""
        return list(dict.fromkeys(i for key in keys for i in self.get(key)))

    @property
    def is_empty(self) -> bool:
        """Check if every query succeeded and returned nothing."""
        return not self.failed and not any(self.values.values())


@dataclass(frozen=True)
class PoolSpec:
    """One pool to fetch.

    Attributes:
        pool: Pool priority.
        requires: Context queries the pool depends on.
        fetch: Produces scored candidates in source order.
    """

    pool: PoolPriority
    requires: tuple[ContextKey, ...]
    fetch: Callable[[], list[Candidate]]


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


class RankingStrategy(ABC):
    """Abstract base class for ranking products."""

    product: ClassVar[RankingProduct]

    def __init__(
        self,
        source: SignalSource,
        scorer: CandidateScorer,
        config: RankingConfig,
    ) -> None:
        """Initialize the strategy.

        Args:
            source: Signal source collaborator.
            scorer: Candidate scorer.
            config: Ranking configuration.
        """
        self._source = source
        self._scorer = scorer
        self._config = config

    def context_queries(
        self, request: RankingRequest
    ) -> dict[ContextKey, Callable[[], list[str]]]:
        """Context queries to run for a request.

        Args:
            request: Ranking request.

        Returns:
            Mapping of context key to a zero-argument query.
        """
        reader_id = request.reader_id
        if reader_id is None:
            return {}
        available: dict[ContextKey, Callable[[], list[str]]] = {
            ContextKey.FOLLOWING: lambda: self._source.list_following(reader_id),
            ContextKey.LIKED: lambda: self._source.list_liked_story_ids(reader_id),
            ContextKey.BOOKMARKED: lambda: self._source.list_bookmarked_story_ids(
                reader_id
            ),
            ContextKey.VIEWED: lambda: self._source.list_viewed_story_ids(reader_id),
        }
        return {key: available[key] for key in self.context_keys}

    def pools(self, request: RankingRequest, context: SignalContext) -> list[PoolSpec]:
        """Pools to fetch for a request.

        Readers with no qualifying signals (or no identity) only get the
        popularity pool.

        Args:
            request: Ranking request.
            context: Settled context queries.

        Returns:
            Pool specs in priority order.
        """
        popular = self.popularity_pool(request)
        if request.reader_id is None or context.is_empty:
            return [popular]
        return [
            self.affinity_pool(request, context),
            self.derived_interest_pool(request, context),
            popular,
        ]

    @property
    @abstractmethod
    def context_keys(self) -> tuple[ContextKey, ...]:
        """Context queries this product needs."""
        ...

    @abstractmethod
    def excluded_ids(self, request: RankingRequest, context: SignalContext) -> set[str]:
        """Ids that must never be returned."""
        ...

    @abstractmethod
    def affinity_pool(self, request: RankingRequest, context: SignalContext) -> PoolSpec:
        """P1 pool."""
        ...

    @abstractmethod
    def derived_interest_pool(
        self, request: RankingRequest, context: SignalContext
    ) -> PoolSpec:
        """P2 pool."""
        ...

    @abstractmethod
    def popularity_pool(self, request: RankingRequest) -> PoolSpec:
        """P3 pool."""
        ...


class FollowSuggestionStrategy(RankingStrategy):
    """Accounts the reader may want to follow.

    Every pool requires the following query: it defines the exclusion set.
    """

    product = RankingProduct.FOLLOW_SUGGESTIONS

    @property
    def context_keys(self) -> tuple[ContextKey, ...]:
        return (ContextKey.FOLLOWING, ContextKey.LIKED, ContextKey.BOOKMARKED)

    def excluded_ids(self, request: RankingRequest, context: SignalContext) -> set[str]:
        excluded = set(context.get(ContextKey.FOLLOWING))
        if request.reader_id is not None:
            excluded.add(request.reader_id)
        return excluded

    def affinity_pool(self, request: RankingRequest, context: SignalContext) -> PoolSpec:
        return PoolSpec(
            pool=PoolPriority.AFFINITY,
            requires=(ContextKey.FOLLOWING,),
            fetch=lambda: self._mutual_connections(request, context),
        )

    def derived_interest_pool(
        self, request: RankingRequest, context: SignalContext
    ) -> PoolSpec:
        return PoolSpec(
            pool=PoolPriority.DERIVED_INTEREST,
            requires=(ContextKey.FOLLOWING, ContextKey.LIKED, ContextKey.BOOKMARKED),
            fetch=lambda: self._liked_authors(request, context),
        )

    def popularity_pool(self, request: RankingRequest) -> PoolSpec:
        return PoolSpec(
            pool=PoolPriority.POPULARITY,
            requires=(ContextKey.FOLLOWING,),
            fetch=lambda: self._popular_creators(request),
        )

    def _mutual_connections(
        self, request: RankingRequest, context: SignalContext
    ) -> list[Candidate]:
        """Accounts that follow accounts the reader follows."""
        following = context.get(ContextKey.FOLLOWING)
        if not following:
            return []
        following_set = set(following)

        mutual_counts: dict[str, int] = {}
        for edge in self._source.list_follow_edges_into(following):
            follower = edge.follower_id
            if follower == request.reader_id or follower in following_set:
                continue
            mutual_counts[follower] = mutual_counts.get(follower, 0) + 1
        if not mutual_counts:
            return []

        profiles = {p.id: p for p in self._source.get_profiles(list(mutual_counts))}
        candidates: list[Candidate] = []
        for account_id, count in mutual_counts.items():
            profile = profiles.get(account_id)
            if profile is None:
                continue
            template = REASON_MUTUAL_SINGULAR if count == 1 else REASON_MUTUAL_PLURAL
            candidates.append(
                Candidate(
                    entity_id=account_id,
                    score=self._scorer.mutual_connections(count),
                    reason=CandidateReason.MUTUAL_CONNECTIONS,
                    pool=PoolPriority.AFFINITY,
                    detail=template.format(count=count),
                    metadata={"mutual_count": count},
                    profile=profile,
                )
            )
        return candidates

    def _liked_authors(
        self, request: RankingRequest, context: SignalContext
    ) -> list[Candidate]:
        """Authors of stories the reader liked or bookmarked."""
        interacted = context.ids(ContextKey.LIKED, ContextKey.BOOKMARKED)
        if not interacted:
            return []
        stories = self._source.list_stories(interacted[: self._config.interaction_lookup_cap])
        skip = self.excluded_ids(request, context)
        authors = _unique(s.author_id for s in stories if s.author_id not in skip)
        if not authors:
            return []

        profiles = {p.id: p for p in self._source.get_profiles(authors)}
        return [
            Candidate(
                entity_id=author_id,
                score=self._scorer.liked_author(),
                reason=CandidateReason.LIKED_AUTHOR,
                pool=PoolPriority.DERIVED_INTEREST,
                detail=REASON_LIKED_AUTHOR,
                profile=profiles[author_id],
            )
            for author_id in authors
            if author_id in profiles
        ]

    def _popular_creators(self, request: RankingRequest) -> list[Candidate]:
        """Profiles ranked by follower and story counts."""
        fetch_limit = request.limit * self._config.pool_sizes.popular_profile_multiplier
        return [
            Candidate(
                entity_id=profile.id,
                score=self._scorer.popular_creator(
                    profile.followers_count, profile.stories_count
                ),
                reason=CandidateReason.POPULAR_CREATOR,
                pool=PoolPriority.POPULARITY,
                detail=REASON_POPULAR_CREATOR,
                metadata={
                    "followers_count": profile.followers_count,
                    "stories_count": profile.stories_count,
                },
                profile=profile,
            )
            for profile in self._source.list_popular_profiles(
                request.reader_id, fetch_limit
            )
        ]


class StoryRecommendationStrategy(RankingStrategy):
    """Root stories the reader may want to read next."""

    product = RankingProduct.STORY_RECOMMENDATIONS

    _INTERACTIONS = (ContextKey.LIKED, ContextKey.BOOKMARKED, ContextKey.VIEWED)

    @property
    def context_keys(self) -> tuple[ContextKey, ...]:
        return (*self._INTERACTIONS, ContextKey.FOLLOWING)

    def excluded_ids(self, request: RankingRequest, context: SignalContext) -> set[str]:
        return {request.exclude_id} if request.exclude_id else set()

    def affinity_pool(self, request: RankingRequest, context: SignalContext) -> PoolSpec:
        return PoolSpec(
            pool=PoolPriority.AFFINITY,
            requires=(ContextKey.FOLLOWING,),
            fetch=lambda: self._followed_authors(request, context),
        )

    def derived_interest_pool(
        self, request: RankingRequest, context: SignalContext
    ) -> PoolSpec:
        return PoolSpec(
            pool=PoolPriority.DERIVED_INTEREST,
            requires=self._INTERACTIONS,
            fetch=lambda: self._enjoyed_authors(request, context),
        )

    def popularity_pool(self, request: RankingRequest) -> PoolSpec:
        return PoolSpec(
            pool=PoolPriority.POPULARITY,
            requires=(),
            fetch=lambda: self._popular_stories(request),
        )

    @property
    def _fetch_multiplier(self) -> int:
        return self._config.pool_sizes.story_pool_multiplier

    def _followed_authors(
        self, request: RankingRequest, context: SignalContext
    ) -> list[Candidate]:
        following = context.get(ContextKey.FOLLOWING)
        if not following:
            return []
        interacted = set(context.ids(*self._INTERACTIONS))
        stories = self._source.list_stories_by_authors(
            following, request.limit * self._fetch_multiplier
        )
        return [
            self._candidate(
                story,
                score=self._scorer.followed_author_story(),
                reason=CandidateReason.FOLLOWED_AUTHOR,
                pool=PoolPriority.AFFINITY,
                detail=REASON_FOLLOWED_AUTHOR,
            )
            for story in stories
            if story.id not in interacted
        ]

    def _enjoyed_authors(
        self, request: RankingRequest, context: SignalContext
    ) -> list[Candidate]:
        interacted = context.ids(*self._INTERACTIONS)
        if not interacted:
            return []
        seed = self._source.list_stories(interacted[: self._config.interaction_lookup_cap])
        authors = _unique(s.author_id for s in seed)
        if not authors:
            return []

        seen = set(interacted)
        stories = self._source.list_stories_by_authors(
            authors, request.limit * self._fetch_multiplier
        )
        return [
            self._candidate(
                story,
                score=self._scorer.enjoyed_author_story(
                    story.likes_count, story.views_count
                ),
                reason=CandidateReason.ENJOYED_AUTHOR,
                pool=PoolPriority.DERIVED_INTEREST,
                detail=REASON_ENJOYED_AUTHOR,
            )
            for story in stories
            if story.id not in seen
        ]

    def _popular_stories(self, request: RankingRequest) -> list[Candidate]:
        stories = self._source.list_popular_stories(
            request.limit * self._fetch_multiplier, request.exclude_id
        )
        return [
            self._candidate(
                story,
                score=self._scorer.popular_story(story.likes_count, story.views_count),
                reason=CandidateReason.POPULAR_STORY,
                pool=PoolPriority.POPULARITY,
                detail=REASON_POPULAR_STORY,
            )
            for story in stories
        ]

    @staticmethod
    def _candidate(
        story: StorySnapshot,
        score: float,
        reason: CandidateReason,
        pool: PoolPriority,
        detail: str,
    ) -> Candidate:
        return Candidate(
            entity_id=story.id,
            score=score,
            reason=reason,
            pool=pool,
            detail=detail,
            metadata={
                "likes_count": story.likes_count,
                "views_count": story.views_count,
                "branches_count": story.branches_count,
            },
            story=story,
        )
