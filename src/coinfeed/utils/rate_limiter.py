import threading
import time
from typing import Optional

class RateLimiter:
    """
    Enforces a minimum spacing between calls against a rate-limited API.

    CoinGecko's public tier bans clients that burst, so every unit of work
    ends with `acquire()`, which blocks until `delay_ms` have passed since the
    previous `acquire()` returned.

    Attributes:
        delay_ms (int): The minimum gap between two successive returns of `acquire()`.
    """

    def __init__(self, delay_ms: int) -> None:
        if delay_ms < 0:
            raise ValueError(f"Rate limit delay must be >= 0 ms, got {delay_ms}.")
        self.delay_ms: int = delay_ms
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None

    def acquire(self) -> None:
        """
        Blocks until the spacing since the previous call has elapsed.

        The first call returns immediately. The clock only moves once the wait
        has completed, so an interrupted sleep leaves the limiter untouched.
        """
        with self._lock:
            if self._last_call is not None:
                elapsed_ms = (time.monotonic() - self._last_call) * 1000
                if elapsed_ms < self.delay_ms:
                    time.sleep((self.delay_ms - elapsed_ms) / 1000)
            self._last_call = time.monotonic()
