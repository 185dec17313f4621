"""
Clock Module

Time sources injected into the ledger store. The store stamps every
transaction from its clock and the withdrawal limit uses the same clock's
calendar date, so tests can pin "today".
"""

from datetime import datetime, date, timedelta
import threading


class SystemClock:
    """Server-local wall clock"""
    
    def now(self) -> datetime:
        return datetime.now()
    
    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """
    Deterministic clock for tests.
    
    Every call to now() returns the pinned instant plus a microsecond tick so
    that records written in sequence still sort strictly by time.
    """
    
    def __init__(self, start: datetime):
        self._current = start
        self._lock = threading.Lock()
    
    def now(self) -> datetime:
        with self._lock:
            self._current = self._current + timedelta(microseconds=1)
            return self._current
    
    def today(self) -> date:
        with self._lock:
            return self._current.date()
    
    def advance(self, **kwargs) -> None:
        """Move forward by a timedelta expressed as keyword arguments"""
        with self._lock:
            self._current = self._current + timedelta(**kwargs)
