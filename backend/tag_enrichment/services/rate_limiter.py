"""Request pacing and retry policy for outbound platform calls."""

import threading
import time
from dataclasses import dataclass
from typing import Optional

from tag_enrichment.config import settings


class RequestPacer:
    """
    Enforce a minimum delay between consecutive calls to one platform.

    Each platform client owns one pacer. The lock keeps the last-call
    timestamp consistent when scheduled runs share a client across threads.
    """

    def __init__(self, min_interval_seconds: Optional[float] = None):
        """
        Initialize pacer.

        Args:
            min_interval_seconds: Pause between calls; defaults to MIN_REQUEST_DELAY_MS
        """
        if min_interval_seconds is None:
            min_interval_seconds = settings.min_request_delay_seconds

        self.min_interval = max(0.0, min_interval_seconds)
        self._last_call: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Block until the next call is allowed.

        Returns:
            Seconds actually slept
        """
        with self._lock:
            slept = 0.0
            if self._last_call is not None:
                elapsed = time.monotonic() - self._last_call
                if elapsed < self.min_interval:
                    slept = self.min_interval - elapsed
                    time.sleep(slept)

            self._last_call = time.monotonic()
            return slept

    def reset(self):
        with self._lock:
            self._last_call = None


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for rate-limited requests."""

    max_attempts: int = 3
    backoff_seconds: float = 2.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.MAX_RETRY_ATTEMPTS,
            backoff_seconds=settings.RATE_LIMIT_BACKOFF_SECONDS
        )

    def backoff_for(self, attempt: int) -> float:
        """
        Delay before retrying after the given (1-based) failed attempt.

        Args:
            attempt: Number of the attempt that was rate limited

        Returns:
            Seconds to wait
        """
        return self.backoff_seconds * (2 ** (attempt - 1))

    def wait_before_retry(self, attempt: int) -> float:
        delay = self.backoff_for(attempt)
        if delay > 0:
            time.sleep(delay)
        return delay
