"""Clocks injected into the reducer and dashboard."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """Clock that only moves when told to.

    Used for replaying recorded events and in tests.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2017, 1, 1, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        """Move forward; accepts timedelta keyword arguments too."""
        self._now += timedelta(seconds=seconds, **kwargs)
        return self._now
