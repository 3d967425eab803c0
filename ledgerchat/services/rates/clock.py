"""Time source for rate cache expiry, injectable so tests control TTLs."""

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    @abstractmethod
    def now(self) -> float:
        """Seconds on a monotonic scale."""
        pass


class SystemClock(Clock):
    def now(self) -> float:
        return time.monotonic()
