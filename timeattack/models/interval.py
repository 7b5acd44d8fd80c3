"""Pause intervals and the elapsed/remaining time arithmetic built on them.

Every function here is pure: interval sequences are tuples and the
operations return new tuples instead of mutating their input.
"""
from datetime import datetime
from typing import Optional, Sequence, Tuple
from pydantic import BaseModel, ConfigDict, Field

from timeattack.services.errors import AlreadyPausedError, NotPausedError

class PausedInterval(BaseModel):
    """A span during which a task was paused. ``end`` is None while paused."""
    model_config = ConfigDict(frozen=True)

    start: datetime = Field(description="When the pause began")
    end: Optional[datetime] = Field(
        default=None,
        description="When the pause ended, None if still paused"
    )

    @property
    def is_open(self) -> bool:
        return self.end is None

    def duration(self, now: Optional[datetime] = None) -> float:
        """Length in seconds, measured up to ``now`` for an open interval"""
        end = self.end or now or datetime.now()
        return (end - self.start).total_seconds()

    def with_end(self, end: datetime) -> "PausedInterval":
        return PausedInterval(start=self.start, end=end)

Intervals = Tuple[PausedInterval, ...]

def is_paused(intervals: Sequence[PausedInterval]) -> bool:
    return bool(intervals) and intervals[-1].is_open

def open_pause(intervals: Sequence[PausedInterval], at: datetime) -> Intervals:
    """Append an open interval starting at ``at``"""
    if is_paused(intervals):
        raise AlreadyPausedError(f"Already paused since {intervals[-1].start.isoformat()}")
    return tuple(intervals) + (PausedInterval(start=at),)

def close_pause(intervals: Sequence[PausedInterval], at: datetime) -> Intervals:
    """Close the trailing open interval at ``at``"""
    if not is_paused(intervals):
        raise NotPausedError("No open pause to close")
    return tuple(intervals[:-1]) + (intervals[-1].with_end(at),)

def total_paused_time(intervals: Sequence[PausedInterval]) -> float:
    """Sum of closed intervals only; an open interval counts as zero"""
    return sum(
        (interval.end - interval.start).total_seconds()
        for interval in intervals
        if interval.end is not None
    )

def elapsed(
    start: datetime,
    intervals: Sequence[PausedInterval],
    now: datetime
) -> float:
    """Seconds from ``start`` to ``now`` minus closed pause time.

    Not clamped: a negative value means the recorded pauses outlast the
    wall-clock span, which points at clock skew in the stored data.
    """
    return (now - start).total_seconds() - total_paused_time(intervals)

def remaining(
    start: datetime,
    intervals: Sequence[PausedInterval],
    now: datetime,
    budget: Optional[float]
) -> Optional[float]:
    """Budget left at ``now``, negative once overrun, None without a budget"""
    if budget is None:
        return None
    return budget - elapsed(start, intervals, now)
