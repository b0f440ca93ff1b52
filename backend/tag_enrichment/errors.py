"""Exceptions raised by the enrichment pipeline."""

from typing import Optional


class EnrichmentError(Exception):
    """Base class for all enrichment pipeline errors."""


class PlatformError(EnrichmentError):
    """A platform API call failed."""

    def __init__(self, platform: str, message: str, status_code: Optional[int] = None):
        self.platform = platform
        self.status_code = status_code
        super().__init__(f"[{platform}] {message}")


class UnauthorizedError(PlatformError):
    """The platform rejected our credentials even after re-authenticating."""


class RateLimitExceeded(PlatformError):
    """The platform kept rate limiting us after every retry was used."""

    def __init__(self, platform: str, attempts: int, status_code: Optional[int] = None):
        self.attempts = attempts
        super().__init__(platform, f"rate limited after {attempts} attempts", status_code)


class PlatformRequestError(PlatformError):
    """Network failure, timeout, or an unexpected HTTP status."""


class PlatformResponseError(PlatformError):
    """The platform answered with a body we could not interpret."""


class RecordStoreError(EnrichmentError):
    """The streamer record store could not be read or written."""


class StaleRecordError(RecordStoreError):
    """The record changed between our read and our write."""

    def __init__(self, record_id: str, expected_version: int):
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            f"Streamer {record_id} was modified concurrently (expected version {expected_version})"
        )
