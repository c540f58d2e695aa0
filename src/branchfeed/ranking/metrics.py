"""Metrics collection for the ranking engine."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class RankingMetrics:
    """Metrics for ranking operations.

    Attributes:
        calls_total: Ranking calls per product.
        pool_failures_total: Failed pools per pool label.
        context_failures_total: Failed context queries per query name.
        unavailable_total: Calls where every pool failed.
        cancelled_total: Calls cancelled by the caller.
        candidates_out: Candidates returned by the last call.
        duration_ms: Durations of completed calls.
    """

    calls_total: dict[str, int] = field(default_factory=dict)
    pool_failures_total: dict[str, int] = field(default_factory=dict)
    context_failures_total: dict[str, int] = field(default_factory=dict)
    unavailable_total: int = 0
    cancelled_total: int = 0
    candidates_out: int = 0
    duration_ms: list[float] = field(default_factory=list)

    _instance: ClassVar["RankingMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RankingMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_call(self, product: str) -> None:
        """Record a ranking call.

        Args:
            product: Product being ranked.
        """
        self.calls_total[product] = self.calls_total.get(product, 0) + 1

    def record_pool_failure(self, pool: str) -> None:
        """Record a failed pool.

        Args:
            pool: Pool label.
        """
        self.pool_failures_total[pool] = self.pool_failures_total.get(pool, 0) + 1

    def record_context_failure(self, query: str) -> None:
        """Record a failed context query.

        Args:
            query: Context query name.
        """
        self.context_failures_total[query] = (
            self.context_failures_total.get(query, 0) + 1
        )

    def record_unavailable(self) -> None:
        """Record a call where every pool failed."""
        self.unavailable_total += 1

    def record_cancelled(self) -> None:
        """Record a cancelled call."""
        self.cancelled_total += 1

    def record_complete(self, candidates: int, duration_ms: float) -> None:
        """Record a completed call.

        Args:
            candidates: Number of candidates returned.
            duration_ms: Call duration in milliseconds.
        """
        self.candidates_out = candidates
        self.duration_ms.append(duration_ms)

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "calls_total": dict(self.calls_total),
            "pool_failures_total": dict(self.pool_failures_total),
            "context_failures_total": dict(self.context_failures_total),
            "unavailable_total": self.unavailable_total,
            "cancelled_total": self.cancelled_total,
            "candidates_out": self.candidates_out,
            "calls_completed": len(self.duration_ms),
        }
