"""
Minimum-interval gate for scrapes.

Every Couchbase scrape costs nine sequential REST calls, so the exporter
refuses to scrape more often than a configured threshold (25 seconds by
default). A rejected scrape produces no metrics at all; it is not queued.

The throttle has two states:
- READY: the next attempt is accepted and moves the throttle to COOLING
- COOLING: attempts are rejected until the threshold has elapsed since
  the last accepted attempt

The threshold is re-read on every attempt, so changing EMX_THROTTLE_TIME
takes effect without a restart.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable

from couchbase_emx.config import load_throttle_seconds

logger = logging.getLogger(__name__)


class ThrottleState(str, Enum):
    READY = "ready"
    COOLING = "cooling"


class ScrapeThrottle:
    """
    Tracks the last accepted scrape and gates new ones.

    The last-call time is owned by the instance and guarded by a lock, so
    two concurrent scrapes can never both be accepted.

    Example:
        throttle = ScrapeThrottle(threshold=lambda: 25.0)
        if throttle.try_acquire():
            snapshot = aggregator.collect()
    """

    def __init__(
        self,
        threshold: Callable[[], float] = load_throttle_seconds,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize in READY state.

        Args:
            threshold: Returns the minimum seconds between accepted scrapes.
                Called on every attempt.
            clock: Monotonic time source in seconds.
        """
        self._threshold = threshold
        self._clock = clock
        # None means no scrape has been accepted yet
        self._last_call: float | None = None
        self._lock = threading.Lock()

    @property
    def last_call(self) -> float | None:
        """Clock value of the last accepted attempt, None before the first."""
        return self._last_call

    def state(self) -> ThrottleState:
        """Current state, evaluated against the current threshold."""
        with self._lock:
            return self._state(self._clock(), self._threshold())

    def _state(self, now: float, threshold: float) -> ThrottleState:
        if self._last_call is None or now - self._last_call >= threshold:
            return ThrottleState.READY
        return ThrottleState.COOLING

    def try_acquire(self) -> bool:
        """
        Attempt to start a scrape.

        Returns:
            True if the scrape may proceed (last-call time updated), False if
            it arrived too soon (last-call time unchanged).
        """
        with self._lock:
            now = self._clock()
            threshold = self._threshold()
            if self._state(now, threshold) is ThrottleState.COOLING:
                elapsed = now - self._last_call
                logger.error(
                    f"Less than {threshold:g} seconds between scrape attempts. "
                    f"Last call {elapsed:.1f} seconds ago."
                )
                return False
            self._last_call = now
            return True
