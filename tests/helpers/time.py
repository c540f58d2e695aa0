"""Shared, deterministic timestamps for tests."""

from datetime import UTC, datetime, timedelta


# Fixed timestamp so saved progress compares deterministically.
FIXED_NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=UTC)


class StepClock:
    """Clock that advances one second per call."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self._current = start

    def __call__(self) -> datetime:
        value = self._current
        self._current += timedelta(seconds=1)
        return value
