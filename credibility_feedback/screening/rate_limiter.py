"""Sliding-window rate limiter for per-submitter feedback throttling."""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Deque, Dict, Optional

from loguru import logger

from credibility_feedback.clock import Clock, SystemClock

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


@dataclass(frozen=True)
class RateCheck:
    """Prior activity of one submitter inside each window."""

    allowed: bool
    last_minute: int
    last_hour: int
    last_day: int


class SlidingWindowRateLimiter:
    """
    Minute / hour / day sliding windows over a submitter's past actions.

    Each submitter owns a deque of action timestamps in arrival order.
    Entries older than a day are evicted from the left on every check, so a
    deque never holds more than a day of activity. Submitters whose deque
    empties out are dropped by prune(), which record() also runs at most
    once a day, so idle submitters do not accumulate.

    Attributes:
        per_minute: Actions allowed in the last 60 seconds
        per_hour: Actions allowed in the last hour
        per_day: Actions allowed in the last 24 hours
    """

    def __init__(
        self,
        per_minute: Optional[int] = None,
        per_hour: Optional[int] = None,
        per_day: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the limiter.

        Args:
            per_minute: Per-minute ceiling (defaults to settings)
            per_hour: Per-hour ceiling (defaults to settings)
            per_day: Per-day ceiling (defaults to settings)
            clock: Time source (defaults to SystemClock)
        """
        # Import here to avoid circular dependency
        from credibility_feedback.config.settings import settings

        self.per_minute = per_minute or settings.rate_limit_per_minute
        self.per_hour = per_hour or settings.rate_limit_per_hour
        self.per_day = per_day or settings.rate_limit_per_day
        self._clock = clock or SystemClock()
        self._windows: Dict[str, Deque[datetime]] = {}
        self._last_pruned_at = self._clock.now()

        logger.debug(
            f"SlidingWindowRateLimiter initialized: {self.per_minute}/min, "
            f"{self.per_hour}/h, {self.per_day}/day"
        )

    def _evict(self, window: Deque[datetime], now: datetime) -> None:
        while window and now - window[0] >= DAY:
            window.popleft()

    def check(self, submitter_id: str) -> RateCheck:
        """
        Count prior actions in each window. Does not record a new action.

        Args:
            submitter_id: Submitter to check

        Returns:
            RateCheck; ``allowed`` is False once any ceiling is reached
        """
        now = self._clock.now()
        window = self._windows.get(submitter_id)
        if not window:
            return RateCheck(allowed=True, last_minute=0, last_hour=0, last_day=0)

        self._evict(window, now)
        last_minute = sum(1 for t in window if now - t < MINUTE)
        last_hour = sum(1 for t in window if now - t < HOUR)
        last_day = len(window)

        allowed = (
            last_minute < self.per_minute
            and last_hour < self.per_hour
            and last_day < self.per_day
        )
        if not allowed:
            logger.debug(
                f"Rate ceiling reached: {last_minute}/min, {last_hour}/h, {last_day}/day"
            )
        return RateCheck(allowed, last_minute, last_hour, last_day)

    def record(self, submitter_id: str) -> None:
        """Append an action at the current time."""
        now = self._clock.now()
        if now - self._last_pruned_at >= DAY:
            self.prune()
        window = self._windows.setdefault(submitter_id, deque())
        self._evict(window, now)
        window.append(now)

    def forget(self, submitter_id: str) -> None:
        self._windows.pop(submitter_id, None)

    def prune(self) -> int:
        """
        Drop submitters with no activity in the last day.

        Returns:
            Number of submitters dropped
        """
        now = self._clock.now()
        idle = []
        for submitter_id, window in self._windows.items():
            self._evict(window, now)
            if not window:
                idle.append(submitter_id)
        for submitter_id in idle:
            del self._windows[submitter_id]
        self._last_pruned_at = now
        if idle:
            logger.debug(f"Pruned {len(idle)} idle rate windows")
        return len(idle)

    @property
    def tracked_submitters(self) -> int:
        return len(self._windows)


__all__ = ["SlidingWindowRateLimiter", "RateCheck"]
