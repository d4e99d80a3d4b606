"""Timestamp and duration utilities."""

import time
from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def iso_timestamp(dt: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp for result records (crawled_at etc.)."""
    if dt is None:
        dt = now_utc()
    return dt.isoformat()


class Stopwatch:
    """Monotonic elapsed-time tracker for scan time budgets.
    
    Wall-clock time can jump; budgets are measured on the monotonic clock.
    """
    
    def __init__(self):
        self._start = time.monotonic()
    
    def elapsed(self) -> float:
        """Seconds since the stopwatch was created."""
        return time.monotonic() - self._start
    
    def elapsed_ms(self) -> float:
        return self.elapsed() * 1000
    
    def exceeded(self, budget: float) -> bool:
        return self.elapsed() > budget
