"""
Countdown clock for a live session.

The clock never calls back into the controller. It only counts: the
controller polls it on each turn of the host loop and consumes whatever
whole seconds have elapsed, one tick at a time.
"""

from __future__ import annotations

import time
from typing import Callable


class Clock:
    """Monotonic 1 Hz countdown."""

    def __init__(self, seconds: int, time_source: Callable[[], float] = time.monotonic):
        if seconds < 0:
            raise ValueError("Countdown cannot start below zero")
        self._remaining = int(seconds)
        self._time_source = time_source
        self._anchor: float | None = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def running(self) -> bool:
        return self._anchor is not None

    @property
    def expired(self) -> bool:
        return self._remaining == 0

    def arm(self) -> None:
        """Start measuring elapsed time from now."""
        self._anchor = self._time_source()

    def disarm(self) -> None:
        self._anchor = None

    def tick(self) -> int:
        """Consume one second. Ticking an expired clock changes nothing."""
        if self._remaining > 0:
            self._remaining -= 1
        if self._anchor is not None:
            self._anchor += 1.0
        return self._remaining

    def pending_ticks(self) -> int:
        """Whole seconds elapsed since the last consumed tick, capped at what is left."""
        if self._anchor is None:
            return 0
        elapsed = int(self._time_source() - self._anchor)
        return max(0, min(elapsed, self._remaining))


def format_clock(seconds: int) -> str:
    """HH:MM:SS countdown display."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration(seconds: int) -> str:
    """Human duration such as ``1 hour 30 minutes``."""
    hours, rest = divmod(max(0, int(seconds)), 3600)
    minutes = rest // 60

    def plural(n: int, unit: str) -> str:
        return f"{n} {unit}{'' if n == 1 else 's'}"

    if hours == 0:
        return plural(minutes, "minute")
    if minutes == 0:
        return plural(hours, "hour")
    return f"{plural(hours, 'hour')} {plural(minutes, 'minute')}"


def format_remaining(seconds: int) -> str:
    """Compact remaining-time label used for saved progress."""
    if seconds <= 0:
        return "Expired"
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m remaining"
    if minutes > 0:
        return f"{minutes}m {secs}s remaining"
    return f"{secs}s remaining"
