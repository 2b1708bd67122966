"""
Clock Module

Supplies the business date used by the payment runner and generators.
Production code uses SystemClock; tests and replays pin the date with FixedClock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional


class Clock(ABC):
    """Source of the current business date"""

    @abstractmethod
    def today(self) -> date:
        """Return the current business date"""
        pass


class SystemClock(Clock):
    """Wall-clock date in the given timezone (UTC by default)"""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or timezone.utc

    def today(self) -> date:
        return datetime.now(self.tz).date()


class FixedClock(Clock):
    """Clock pinned to a specific date"""

    def __init__(self, current: date):
        self._current = current

    def today(self) -> date:
        return self._current

    def set(self, current: date) -> None:
        self._current = current

    def advance(self, days: int = 1) -> date:
        self._current = self._current + timedelta(days=days)
        return self._current
