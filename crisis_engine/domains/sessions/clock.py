"""
Scenario clock

Maps wall-clock time onto elapsed scenario time for a session, excluding the
time spent paused.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from .schemas import SessionSnapshot


class SystemClock:
    """Wall clock; tests substitute an object with the same `now()`."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ScenarioClock:
    """
    Elapsed scenario time of one session

    Usage:
    ```python
    clock = ScenarioClock.for_session(session)
    if clock.elapsed_minutes(now) >= inject.trigger_time_minutes:
        ...
    ```
    """

    def __init__(
        self,
        started_at: Optional[datetime],
        total_paused_seconds: int = 0,
        paused_at: Optional[datetime] = None,
    ) -> None:
        self._started_at = started_at
        self._total_pause_duration = timedelta(seconds=total_paused_seconds or 0)
        self._paused_at = paused_at

    @classmethod
    def for_session(cls, session: SessionSnapshot) -> "ScenarioClock":
        return cls(session.started_at, session.total_paused_seconds, session.paused_at)

    @property
    def started(self) -> bool:
        return self._started_at is not None

    def elapsed(self, now: datetime) -> timedelta:
        if self._started_at is None:
            return timedelta()

        # while paused, scenario time stands still at the pause moment
        reference = self._paused_at if self._paused_at is not None else now
        elapsed = reference - self._started_at - self._total_pause_duration
        return max(elapsed, timedelta())

    def elapsed_minutes(self, now: datetime) -> float:
        return self.elapsed(now).total_seconds() / 60.0
