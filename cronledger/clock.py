"""
clock.py - Day sources

The ledgers consult a DaySource at call time to decide which calendar day it
is. Nothing is pushed on a timer: "a day has passed" is derived from the
stored last-execution day and current_day().

Classes:
- Clock: Logical clock that only moves forward (simulation and tests)
- SystemClock: Wall-clock UTC time
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from .core import day_of, unix_seconds


class Clock:
    """
    Logical clock for simulations.

    Time can only move forward, never backward.

    Example:
        clock = Clock(datetime(2025, 1, 1))
        clock.current_day()      # 20089
        clock.advance_days(3)
        clock.current_day()      # 20092
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

    @property
    def current_time(self) -> datetime:
        """Current logical time."""
        return self._current_time

    @property
    def timestamp(self) -> int:
        """Current time in whole unix seconds."""
        return unix_seconds(self._current_time)

    def current_day(self) -> int:
        return day_of(self._current_time)

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def advance_seconds(self, seconds: int) -> None:
        self.advance_time(self._current_time + timedelta(seconds=seconds))

    def advance_days(self, days: int = 1) -> None:
        self.advance_time(self._current_time + timedelta(days=days))

    def __repr__(self):
        return f"Clock({self._current_time.isoformat()}, day={self.current_day()})"


class SystemClock:
    """Wall-clock UTC time."""

    @property
    def current_time(self) -> datetime:
        return datetime.now(timezone.utc)

    def current_day(self) -> int:
        return day_of(self.current_time)
