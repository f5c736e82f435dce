"""
Rate Limiter - Fixed-Interval Pacing Gate

Alpha Vantage's free tier tolerates roughly one request per second. Calls
made through one adapter invocation share that budget and are serialized
through a gate enforcing a minimum interval between consecutive calls.

The gate blocks cooperatively; it never retries. Clock and sleep functions
are injectable so pacing can be tested without real waiting.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from .config import LOGGER


class FixedIntervalGate:
    """
    Enforce a minimum delay between consecutive acquisitions.

    The first acquisition passes immediately; every later one waits until
    interval seconds have elapsed since the previous acquisition.
    """

    def __init__(
        self,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize FixedIntervalGate.

        Args:
            interval_seconds: Minimum spacing between calls
            clock: Monotonic time source
            sleep: Blocking sleep function

        Raises:
            ValueError: If interval_seconds is negative
        """
        if interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {interval_seconds}")

        self.interval_seconds = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_call_time: float = 0.0
        self._has_fired = False
        self._lock = threading.Lock()
        self._wait_count = 0

    def acquire(self) -> float:
        """
        Block until the next call is allowed.

        Returns:
            Seconds spent waiting
        """
        with self._lock:
            waited = 0.0
            if self._has_fired:
                elapsed = self._clock() - self._last_call_time
                if elapsed < self.interval_seconds:
                    waited = self.interval_seconds - elapsed
                    LOGGER.info(f"Rate limit: waiting {waited:.1f}s")
                    self._sleep(waited)
                    self._wait_count += 1

            self._last_call_time = self._clock()
            self._has_fired = True
            return waited

    def reset(self) -> None:
        """Forget the previous call so the next acquisition is immediate."""
        with self._lock:
            self._has_fired = False
            self._last_call_time = 0.0

    @property
    def wait_count(self) -> int:
        """Number of acquisitions that had to wait."""
        return self._wait_count
