"""Process-wide request throttling shared by every service instance."""

import threading
import time
from typing import Callable


MIN_REQUEST_INTERVAL = 0.1  # 100ms between requests


class ThrottleGate:
    """
    Enforces a minimum interval between consecutive requests.

    One gate is shared by every client of the same external service in the
    process, so separate generation runs cannot exceed the service's rate.
    """

    def __init__(
        self,
        min_interval: float = MIN_REQUEST_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._last_request_time = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Block until the next request may be sent.

        Returns:
            Seconds spent sleeping
        """
        with self._lock:
            slept = 0.0
            if self._last_request_time is not None:
                elapsed = self.clock() - self._last_request_time
                if elapsed < self.min_interval:
                    slept = self.min_interval - elapsed
                    self.sleep(slept)
            self._last_request_time = self.clock()
            return slept

    def reset(self) -> None:
        with self._lock:
            self._last_request_time = None


SCRYFALL_GATE = ThrottleGate()
EDHREC_GATE = ThrottleGate()
