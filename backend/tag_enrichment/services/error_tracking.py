"""
Error Tracking

Integrates with Sentry so per-record failures and fatal run errors are
visible outside the process logs.
"""

from typing import Optional, Dict, Any
import sentry_sdk
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from tag_enrichment.config import settings
from tag_enrichment.services.logging_service import logger


class ErrorTracker:
    """Centralized error tracking."""

    def __init__(self, dsn: Optional[str] = None):
        """Initialize error tracking; Sentry stays off without a DSN."""
        self.sentry_enabled = False

        sentry_dsn = dsn if dsn is not None else settings.SENTRY_DSN
        if sentry_dsn:
            self._initialize_sentry(sentry_dsn)

    def _initialize_sentry(self, dsn: str):
        """Initialize Sentry SDK."""
        try:
            sentry_sdk.init(
                dsn=dsn,
                environment=settings.ENVIRONMENT,
                traces_sample_rate=0.0,
                integrations=[SqlalchemyIntegration()],
                attach_stacktrace=True,
                send_default_pii=False
            )

            self.sentry_enabled = True
            logger.info("Sentry error tracking enabled", environment=settings.ENVIRONMENT)

        except Exception as e:
            logger.error(f"Failed to initialize Sentry: {e}")

    def capture_exception(
        self,
        exception: Exception,
        context: Optional[Dict[str, Any]] = None,
        level: str = "error",
        tags: Optional[Dict[str, str]] = None
    ):
        """
        Capture an exception.

        Args:
            exception: The exception to capture
            context: Additional context data
            level: Severity level (debug, info, warning, error, fatal)
            tags: Custom tags for filtering (platform, username, ...)
        """
        if not self.sentry_enabled:
            return

        with sentry_sdk.new_scope() as scope:
            if context:
                for key, value in context.items():
                    scope.set_context(key, value)

            if tags:
                for key, value in tags.items():
                    scope.set_tag(key, value)

            scope.level = level
            sentry_sdk.capture_exception(exception)


# Global instance
error_tracker = ErrorTracker()
