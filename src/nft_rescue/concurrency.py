# ABOUTME: Thread-safe per-host rate limiting for outbound HTTP calls.
# ABOUTME: Spaces out metadata and media requests so one slow host does not throttle the others.

import logging
import threading
import time
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def host_key(url: str | None) -> str:
    """Lowercased host of a URL, '' when there is none (ipfs://, data:, junk)."""
    if not url:
        return ""
    try:
        return (urlparse(url.strip()).hostname or "").lower()
    except ValueError:
        return ""


class RateLimiter:
    """Thread-safe rate limiter keyed by host.

    Each key gets its own slot timer, so callers only block when they hit
    the same host faster than the configured rate.
    """

    def __init__(self, calls_per_second: float = 10.0):
        """Initialize rate limiter.

        Args:
            calls_per_second: Maximum requests per second per host.
        """
        if calls_per_second <= 0:
            raise ValueError(f"calls_per_second must be positive, got {calls_per_second}")
        self._min_interval = 1.0 / calls_per_second
        self._lock = threading.Lock()
        self._last_call: dict[str, float] = {}

    def acquire(self, key: str = "") -> float:
        """Block until a request slot for `key` is available.

        Returns:
            Seconds spent waiting.
        """
        with self._lock:
            now = time.monotonic()
            wait_time = self._last_call.get(key, float("-inf")) + self._min_interval - now
            if wait_time > 0:
                logger.debug(f"Throttling {key or 'requests'} for {wait_time:.2f}s")
                time.sleep(wait_time)
            else:
                wait_time = 0.0
            self._last_call[key] = time.monotonic()
            return wait_time
