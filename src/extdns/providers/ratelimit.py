from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class TokenBucket:
    """Brief: Blocking token-bucket limiter for provider API calls.

    Inputs (constructor):
      - rate: Tokens added per second (e.g. 5.0 for 5 req/s, 5000/3600 for
        5000 req/hour). A rate <= 0 disables limiting.
      - capacity: Maximum burst size in tokens (>= 1).
      - clock/sleep: Injectable time source and sleep function for tests.

    Outputs:
      - TokenBucket with wait() and try_acquire().

    Example:
      >>> bucket = TokenBucket(rate=5.0, capacity=1)
      >>> bucket.wait()  # returns immediately for the first call
      0.0
    """

    def __init__(
        self,
        rate: float,
        capacity: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.rate = float(rate)
        self.capacity = max(1.0, float(capacity))
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.capacity
        self._last = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._last = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)

    def try_acquire(self, tokens: float = 1.0) -> bool:
        if self.rate <= 0:
            return True
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def wait(self, tokens: float = 1.0, timeout: Optional[float] = None) -> float:
        """Block until tokens are available; return the seconds spent waiting.

        Raises TimeoutError when timeout is given and would be exceeded.
        """
        if self.rate <= 0:
            return 0.0
        waited = 0.0
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return waited
                delay = (tokens - self._tokens) / self.rate
            if timeout is not None and waited + delay > timeout:
                raise TimeoutError("rate limiter wait exceeded timeout")
            self._sleep(delay)
            waited += delay
