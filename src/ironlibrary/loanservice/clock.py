"""Clock abstraction so date logic can be driven by tests."""

from abc import ABC, abstractmethod
from datetime import date, timedelta


class Clock(ABC):
    """Source of the current calendar date."""

    @abstractmethod
    def today(self) -> date:
        pass


class SystemClock(Clock):
    """Wall-clock date of the running host."""

    def today(self) -> date:
        return date.today()


class FixedClock(Clock):
    """Clock pinned to a given date. Can be moved forward manually."""

    def __init__(self, current: date):
        self.current = current

    def today(self) -> date:
        return self.current

    def advance(self, days: int = 1) -> date:
        """Move the clock by ``days`` and return the new date."""
        self.current = self.current + timedelta(days=days)
        return self.current
