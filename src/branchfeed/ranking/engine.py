"""Ranking engine orchestrator."""

import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import (
    FIRST_COMPLETED,
    Future,
    ThreadPoolExecutor,
    as_completed,
    wait,
)

import structlog

from branchfeed.config.schemas import RankingConfig
from branchfeed.ranking.constants import CANCEL_POLL_SECONDS, DEFAULT_MAX_WORKERS
from branchfeed.ranking.errors import RankingCancelled, RankingUnavailable
from branchfeed.ranking.merge import merge_by_priority, order_candidates
from branchfeed.ranking.metrics import RankingMetrics
from branchfeed.ranking.models import PoolResult, RankingResult
from branchfeed.ranking.scorer import CandidateScorer
from branchfeed.ranking.state_machine import RankingState, RankingStateMachine
from branchfeed.ranking.strategies import (
    ContextKey,
    FollowSuggestionStrategy,
    PoolSpec,
    RankingRequest,
    RankingStrategy,
    SignalContext,
    StoryRecommendationStrategy,
)
from branchfeed.signals.protocols import SignalSource


logger = structlog.get_logger()


class RankingEngine:
    """Multi-signal ranking for story recommendations and follow suggestions.

    Implements a state machine flow per call:
        PENDING -> SIGNALS_COLLECTED -> MERGED -> ORDERED

    Context queries run concurrently, then the pools run concurrently. Each
    query and pool is isolated: a failure empties only the pools that depend
    on it. RankingUnavailable is raised only when every attempted pool
    failed.
    """

    def __init__(
        self,
        source: SignalSource,
        config: RankingConfig | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        metrics: RankingMetrics | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            source: Signal source collaborator.
            config: Ranking configuration, defaults if None.
            max_workers: Threads used for concurrent queries.
            metrics: Optional metrics instance.
        """
        self._source = source
        self._config = config or RankingConfig()
        self._scorer = CandidateScorer(self._config)
        self._max_workers = max_workers
        self._metrics = metrics or RankingMetrics.get_instance()
        self._log = logger.bind(component="ranking")

    @property
    def config(self) -> RankingConfig:
        """Get the ranking configuration."""
        return self._config

    def recommend_stories(
        self,
        reader_id: str | None,
        limit: int | None = None,
        exclude_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RankingResult:
        """Recommend root stories for a reader.

        Args:
            reader_id: Requesting reader, None for anonymous feeds.
            limit: Maximum results, config default if None.
            exclude_id: Story being viewed, never recommended.
            cancel_event: Set by the caller to abandon the call.

        Returns:
            RankingResult with ordered story candidates.

        Raises:
            RankingUnavailable: If every attempted pool failed.
            RankingCancelled: If cancel_event was set.
        """
        strategy = StoryRecommendationStrategy(self._source, self._scorer, self._config)
        request = RankingRequest(
            reader_id=reader_id,
            limit=self._resolve_limit(limit),
            exclude_id=exclude_id,
        )
        return self._rank(strategy, request, cancel_event)

    def suggest_follows(
        self,
        reader_id: str,
        limit: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RankingResult:
        """Suggest accounts for a reader to follow.

        Args:
            reader_id: Requesting reader.
            limit: Maximum results, config default if None.
            cancel_event: Set by the caller to abandon the call.

        Returns:
            RankingResult with ordered profile candidates.

        Raises:
            RankingUnavailable: If every attempted pool failed.
            RankingCancelled: If cancel_event was set.
        """
        strategy = FollowSuggestionStrategy(self._source, self._scorer, self._config)
        request = RankingRequest(reader_id=reader_id, limit=self._resolve_limit(limit))
        return self._rank(strategy, request, cancel_event)

    def _resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._config.default_limit
        if limit < 0:
            msg = f"limit must be non-negative, got {limit}"
            raise ValueError(msg)
        if limit > self._config.max_limit:
            self._log.warning(
                "ranking_limit_clamped",
                requested=limit,
                max_limit=self._config.max_limit,
            )
            return self._config.max_limit
        return limit

    def _rank(
        self,
        strategy: RankingStrategy,
        request: RankingRequest,
        cancel_event: threading.Event | None,
    ) -> RankingResult:
        call_id = str(uuid.uuid4())[:8]
        product = strategy.product
        state_machine = RankingStateMachine(call_id)
        log = self._log.bind(
            call_id=call_id,
            product=product.value,
            reader_id=request.reader_id,
        )
        start_time = time.perf_counter()
        self._metrics.record_call(product.value)
        log.info("ranking_started", limit=request.limit, exclude_id=request.exclude_id)

        if request.limit == 0:
            state_machine.to_signals_collected()
            state_machine.to_merged()
            state_machine.to_ordered()
            return RankingResult(product=product, reader_id=request.reader_id)

        context = self._collect_context(strategy, request, log)
        self._check_cancelled(cancel_event, state_machine, strategy, log)

        pool_results = self._fetch_pools(
            strategy.pools(request, context), context, cancel_event, log
        )
        self._check_cancelled(cancel_event, state_machine, strategy, log)
        state_machine.to_signals_collected()

        pools_used = tuple(sorted(r.pool for r in pool_results if not r.failed))
        pools_failed = tuple(sorted(r.pool for r in pool_results if r.failed))
        if pool_results and not pools_used:
            state_machine.to_failed()
            self._metrics.record_unavailable()
            log.error(
                "ranking_unavailable",
                pools_failed=[p.label for p in pools_failed],
            )
            raise RankingUnavailable(product, pools_failed)

        merged = merge_by_priority(pool_results, strategy.excluded_ids(request, context))
        state_machine.to_merged()

        ordered = order_candidates(merged, request.limit)
        state_machine.to_ordered()

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._metrics.record_complete(len(ordered), duration_ms)
        log.info(
            "ranking_complete",
            candidates_merged=len(merged),
            candidates_out=len(ordered),
            pools_used=[p.label for p in pools_used],
            pools_failed=[p.label for p in pools_failed],
            duration_ms=round(duration_ms, 2),
        )

        return RankingResult(
            product=product,
            reader_id=request.reader_id,
            candidates=ordered,
            pools_used=pools_used,
            pools_failed=pools_failed,
        )

    def _collect_context(
        self,
        strategy: RankingStrategy,
        request: RankingRequest,
        log: structlog.stdlib.BoundLogger,
    ) -> SignalContext:
        """Run the strategy's context queries concurrently.

        Args:
            strategy: Product strategy.
            request: Ranking request.
            log: Bound logger.

        Returns:
            Settled context; failed queries are recorded, not raised.
        """
        context = SignalContext(reader_id=request.reader_id)
        queries = strategy.context_queries(request)
        if not queries:
            return context

        def run(key: ContextKey, query: Callable[[], list[str]]) -> None:
            try:
                context.values[key] = query()
            except Exception as e:  # noqa: BLE001
                context.failed.add(key)
                self._metrics.record_context_failure(key.value)
                log.warning("context_query_failed", query=key.value, error=str(e))

        self._run_all([lambda k=k, q=q: run(k, q) for k, q in queries.items()])
        return context

    def _fetch_pools(
        self,
        specs: list[PoolSpec],
        context: SignalContext,
        cancel_event: threading.Event | None,
        log: structlog.stdlib.BoundLogger,
    ) -> list[PoolResult]:
        """Fetch every pool whose context is available.

        Args:
            specs: Pools to fetch.
            context: Settled context queries.
            cancel_event: Caller cancellation flag.
            log: Bound logger.

        Returns:
            One PoolResult per spec.
        """
        results: list[PoolResult] = []
        runnable: list[PoolSpec] = []
        for spec in specs:
            missing = [key.value for key in spec.requires if key in context.failed]
            if missing:
                self._metrics.record_pool_failure(spec.pool.label)
                log.warning("pool_failed", pool=spec.pool.label, missing_context=missing)
                results.append(
                    PoolResult(
                        pool=spec.pool,
                        error=f"context unavailable: {', '.join(missing)}",
                    )
                )
            else:
                runnable.append(spec)

        if self._max_workers <= 1:
            for spec in runnable:
                if cancel_event is not None and cancel_event.is_set():
                    break
                results.append(self._run_pool(spec, log))
            return results

        executor = ThreadPoolExecutor(max_workers=self._max_workers)
        in_flight: set[Future[PoolResult]] = {
            executor.submit(self._run_pool, spec, log) for spec in runnable
        }
        poll = CANCEL_POLL_SECONDS if cancel_event is not None else None
        cancelled = False
        try:
            while in_flight:
                done, in_flight = wait(
                    in_flight, timeout=poll, return_when=FIRST_COMPLETED
                )
                results.extend(future.result() for future in done)
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
        finally:
            # A cancelled call abandons queries still running.
            executor.shutdown(wait=not cancelled, cancel_futures=cancelled)
        if cancelled:
            log.info("pools_abandoned", in_flight=len(in_flight))
        return results

    def _run_pool(
        self, spec: PoolSpec, log: structlog.stdlib.BoundLogger
    ) -> PoolResult:
        """Fetch one pool, isolating any failure.

        Args:
            spec: Pool to fetch.
            log: Bound logger.

        Returns:
            PoolResult with candidates or an error.
        """
        start_time = time.perf_counter()
        try:
            candidates = spec.fetch()
        except Exception as e:  # noqa: BLE001
            self._metrics.record_pool_failure(spec.pool.label)
            log.warning("pool_failed", pool=spec.pool.label, error=str(e))
            return PoolResult(pool=spec.pool, error=str(e))

        duration_ms = (time.perf_counter() - start_time) * 1000
        log.debug(
            "pool_fetched",
            pool=spec.pool.label,
            candidates=len(candidates),
            duration_ms=round(duration_ms, 2),
        )
        return PoolResult(pool=spec.pool, candidates=candidates, duration_ms=duration_ms)

    def _run_all(self, tasks: list[Callable[[], None]]) -> None:
        if self._max_workers <= 1:
            for task in tasks:
                task()
            return
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            for future in as_completed([executor.submit(task) for task in tasks]):
                future.result()

    def _check_cancelled(
        self,
        cancel_event: threading.Event | None,
        state_machine: RankingStateMachine,
        strategy: RankingStrategy,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        if cancel_event is None or not cancel_event.is_set():
            return
        if state_machine.state is not RankingState.FAILED:
            state_machine.to_failed()
        self._metrics.record_cancelled()
        log.info("ranking_cancelled")
        raise RankingCancelled(strategy.product)
