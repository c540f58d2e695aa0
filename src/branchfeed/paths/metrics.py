"""Metrics collection for path tracking."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class TrackerMetrics:
    """Metrics for path tracker operations.

    Attributes:
        sessions_initialized: Sessions that completed initialize().
        progress_restored: Sessions resumed from saved progress.
        choices_total: Accepted choices.
        url_overrides_total: Paths set from URLs.
        paths_trimmed_total: Paths cut back to their resolvable prefix.
        rejections_total: Rejected operations per reason.
        persistence_retries_total: Progress write retries.
        persistence_failures_total: Progress writes that gave up.
        fallback_writes_total: Progress written to the fallback store.
    """

    sessions_initialized: int = 0
    progress_restored: int = 0
    choices_total: int = 0
    url_overrides_total: int = 0
    paths_trimmed_total: int = 0
    rejections_total: dict[str, int] = field(default_factory=dict)
    persistence_retries_total: int = 0
    persistence_failures_total: int = 0
    fallback_writes_total: int = 0

    _instance: ClassVar["TrackerMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "TrackerMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_initialized(self, *, restored: bool) -> None:
        """Record a completed initialize().

        Args:
            restored: Whether saved progress was used.
        """
        self.sessions_initialized += 1
        if restored:
            self.progress_restored += 1

    def record_choice(self) -> None:
        """Record an accepted choice."""
        self.choices_total += 1

    def record_url_override(self) -> None:
        """Record a path set from a URL."""
        self.url_overrides_total += 1

    def record_trimmed(self) -> None:
        """Record a path trimmed to its resolvable prefix."""
        self.paths_trimmed_total += 1

    def record_rejection(self, reason: str) -> None:
        """Record a rejected operation.

        Args:
            reason: Rejection reason (e.g. 'terminal', 'invalid_token').
        """
        self.rejections_total[reason] = self.rejections_total.get(reason, 0) + 1

    def record_persistence_retry(self) -> None:
        """Record a progress write retry."""
        self.persistence_retries_total += 1

    def record_persistence_failure(self) -> None:
        """Record a progress write that gave up."""
        self.persistence_failures_total += 1

    def record_fallback_write(self) -> None:
        """Record a write to the fallback store."""
        self.fallback_writes_total += 1

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "sessions_initialized": self.sessions_initialized,
            "progress_restored": self.progress_restored,
            "choices_total": self.choices_total,
            "url_overrides_total": self.url_overrides_total,
            "paths_trimmed_total": self.paths_trimmed_total,
            "rejections_total": dict(self.rejections_total),
            "persistence_retries_total": self.persistence_retries_total,
            "persistence_failures_total": self.persistence_failures_total,
            "fallback_writes_total": self.fallback_writes_total,
        }
