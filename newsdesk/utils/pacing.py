"""
Pacing gate for calls to the generative API and image hosts.

At most one holder at a time, and a minimum spacing between one holder
leaving and the next entering. The queue worker wraps each item in the gate,
so the first item of a tick starts immediately and no delay follows the
last one.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PacingGate:

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_release: Optional[float] = None

    def __enter__(self):
        self._lock.acquire()
        if self._last_release is not None:
            remaining = self.min_interval - (self._clock() - self._last_release)
            if remaining > 0:
                logger.debug(f"[Pacing] Waiting {remaining:.1f}s before next call")
                self._sleep(remaining)
        return self

    def __exit__(self, exc_type, exc, tb):
        self._last_release = self._clock()
        self._lock.release()
        return False
