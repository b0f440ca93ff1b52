"""Shared plumbing for platform API clients and tag fetchers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

import requests

from tag_enrichment.config import settings
from tag_enrichment.errors import (
    PlatformRequestError,
    PlatformResponseError,
    RateLimitExceeded,
    UnauthorizedError,
)
from tag_enrichment.models.schemas import Platform
from tag_enrichment.services.rate_limiter import RequestPacer, RetryPolicy

logger = logging.getLogger(__name__)


class PlatformClient:
    """
    Base HTTP client for one platform.

    Every call goes through the client's pacer and the retry policy:

    - 401: ``_on_unauthorized()`` gets one chance to refresh credentials,
      then the request is retried exactly once. A second 401 raises
      ``UnauthorizedError``.
    - Rate-limit statuses (429, plus whatever the subclass adds): back off
      exponentially and retry, raising ``RateLimitExceeded`` once
      ``max_attempts`` is used up.
    - 404: returns ``None``; callers treat it as "not found", not as failure.
    - Anything else >= 400, timeouts and connection errors raise
      ``PlatformRequestError``.
    """

    platform: Platform
    rate_limit_statuses: Tuple[int, ...] = (429,)

    def __init__(
        self,
        timeout: Optional[float] = None,
        pacer: Optional[RequestPacer] = None,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize platform client.

        Args:
            timeout: Per-request timeout in seconds (HTTP_TIMEOUT_SECONDS by default)
            pacer: Minimum-delay pacer shared by all calls of this client
            retry_policy: Backoff policy for rate-limited calls
            session: requests session (injected in tests)
        """
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.pacer = pacer or RequestPacer()
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        """Headers for the next request; re-read on every attempt."""
        return {}

    def _on_unauthorized(self) -> bool:
        """
        Refresh credentials after a 401.

        Returns:
            True if the request should be retried
        """
        return False

    def _request(self, method: str, url: str, **kwargs) -> Optional[requests.Response]:
        """
        Send a request under the pacing and retry rules.

        Args:
            method: HTTP method
            url: Absolute URL
            **kwargs: Passed through to ``requests.Session.request``

        Returns:
            The successful response, or None when the platform answered 404
        """
        reauthenticated = False
        rate_limited = 0

        while True:
            self.pacer.wait()

            try:
                response = self.session.request(
                    method,
                    url,
                    headers=self._headers(),
                    timeout=self.timeout,
                    **kwargs
                )
            except requests.RequestException as e:
                raise PlatformRequestError(self.platform.value, f"{method} {url} failed: {e}") from e

            status = response.status_code

            if status == 401:
                if reauthenticated or not self._on_unauthorized():
                    raise UnauthorizedError(self.platform.value, f"{method} {url} unauthorized", status)
                reauthenticated = True
                continue

            if status in self.rate_limit_statuses:
                rate_limited += 1
                if rate_limited >= self.retry_policy.max_attempts:
                    raise RateLimitExceeded(self.platform.value, rate_limited, status)
                delay = self.retry_policy.backoff_for(rate_limited)
                logger.warning(
                    f"Rate limited by {self.platform.value} (HTTP {status}), "
                    f"retrying in {delay:.1f}s (attempt {rate_limited}/{self.retry_policy.max_attempts})"
                )
                self.retry_policy.wait_before_retry(rate_limited)
                continue

            if status == 404:
                return None

            if status >= 400:
                raise PlatformRequestError(
                    self.platform.value,
                    f"{method} {url} returned HTTP {status}",
                    status
                )

            return response

    def _json(self, response: requests.Response) -> Any:
        """Decode a JSON body, turning garbage into PlatformResponseError."""
        try:
            return response.json()
        except ValueError as e:
            raise PlatformResponseError(self.platform.value, f"Invalid JSON from {response.url}: {e}") from e


class TagFetcher(ABC):
    """Fetch raw tag-like strings for identities on one platform."""

    platform: Platform
    supports_batch: bool = False
    max_batch_size: int = 1

    @abstractmethod
    def fetch_tags(self, username: str) -> List[str]:
        """
        Fetch raw tags for one identity.

        Returns:
            Platform tags plus the current game/category name, or [] when
            the identity has no data or does not exist
        """

    def fetch_tags_batch(self, usernames: Iterable[str]) -> Dict[str, List[str]]:
        """
        Fetch raw tags for several identities.

        Platforms without a batch endpoint fall back to one call per identity.

        Returns:
            Mapping of lower-cased username to tags
        """
        return {username.lower(): self.fetch_tags(username) for username in usernames}


class NullTagFetcher(TagFetcher):
    """Fetcher for platforms that expose no tag or category data."""

    def __init__(self, platform: Platform):
        self.platform = platform

    def fetch_tags(self, username: str) -> List[str]:
        return []
