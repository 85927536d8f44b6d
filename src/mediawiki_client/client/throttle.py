"""
Write throttle shared by every thread using one session.

Only the start of write-class actions is serialized: two acquisitions are
always at least ``min_interval`` seconds apart, while the actions
themselves may overlap.
"""

import logging
import threading
import time
from typing import Callable, Optional


class Throttle:
    """Minimum-interval gate for write actions."""

    def __init__(
        self,
        min_interval: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize throttle.

        Args:
            min_interval: Minimum seconds between write starts; <= 0 disables
            clock: Monotonic time source
            sleep: Sleep function
            logger: Logger to use instead of the module logger
        """
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._last_action: Optional[float] = None

    @property
    def last_action(self) -> Optional[float]:
        """Timestamp of the most recent granted acquisition."""
        return self._last_action

    def acquire(self) -> float:
        """
        Block until a write action may start.

        The wait happens while holding the lock, so concurrent callers are
        granted one at a time in lock order.

        Returns:
            The timestamp at which this acquisition was granted
        """
        with self._lock:
            if self._last_action is not None and self.min_interval > 0:
                wait = self.min_interval - (self._clock() - self._last_action)
                if wait > 0:
                    self._logger.debug(f"Throttled: waiting {wait:.2f}s before next write")
                    self._sleep(wait)
            self._last_action = self._clock()
            return self._last_action

    def reset(self) -> None:
        """Forget the last action so the next acquire is immediate."""
        with self._lock:
            self._last_action = None

    def __enter__(self) -> "Throttle":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass
