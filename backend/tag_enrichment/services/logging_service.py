"""Structured logging and run metrics."""

import logging
import json
from datetime import datetime
from typing import Dict, Any, Optional

from tag_enrichment.config import settings


class StructuredLogger:
    """
    Structured JSON logger for production environments.

    Outputs logs in JSON format for easy parsing by log aggregation systems.
    """

    def __init__(self, name: str, log_file: Optional[str] = None, level: str = "INFO"):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_file: Optional file path for file logging
            level: Minimum level name (INFO, DEBUG, ...)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        # Handlers are attached once per logger name
        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(self._get_json_formatter())
            self.logger.addHandler(console_handler)

            if log_file:
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(self._get_json_formatter())
                self.logger.addHandler(file_handler)

    def _get_json_formatter(self):
        """Get JSON formatter for log records."""
        return logging.Formatter('%(message)s')

    def _format_log(
        self,
        level: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Format log message as JSON.

        Args:
            level: Log level
            message: Log message
            extra: Additional context

        Returns:
            JSON-formatted log string
        """
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": level,
            "message": message,
            "logger": self.logger.name
        }

        if extra:
            log_entry.update(extra)

        return json.dumps(log_entry, default=str)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(self._format_log("INFO", message, kwargs))

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(self._format_log("WARNING", message, kwargs))

    def error(self, message: str, **kwargs):
        """Log error message."""
        self.logger.error(self._format_log("ERROR", message, kwargs))


class EnrichmentMetrics:
    """
    Track enrichment counters per platform.

    Stored in memory; the CLI prints a snapshot at the end of each run.
    """

    def __init__(self):
        """Initialize metrics tracker."""
        self.reset()

    def reset(self):
        self.metrics = {
            "fetches": {
                "total": 0,
                "success": 0,
                "failed": 0,
                "by_platform": {}
            },
            "writes": {
                "updated": 0,
                "unchanged": 0,
                "failed": 0
            },
            "runs": {
                "total": 0,
                "completed": 0,
                "failed": 0
            },
            "last_updated": datetime.utcnow().isoformat()
        }

    def increment_fetch(self, platform: str, success: bool = True, count: int = 1):
        """
        Increment fetch counters.

        Args:
            platform: Platform name
            success: Whether the fetch succeeded
            count: Number of identities covered by the call
        """
        fetches = self.metrics["fetches"]
        fetches["total"] += count

        if platform not in fetches["by_platform"]:
            fetches["by_platform"][platform] = {"success": 0, "failed": 0}

        key = "success" if success else "failed"
        fetches[key] += count
        fetches["by_platform"][platform][key] += count

        self._update_timestamp()

    def increment_write(self, outcome: str):
        """
        Increment write counters.

        Args:
            outcome: 'updated', 'unchanged' or 'failed'
        """
        self.metrics["writes"][outcome] += 1
        self._update_timestamp()

    def increment_run(self, success: bool = True):
        self.metrics["runs"]["total"] += 1
        self.metrics["runs"]["completed" if success else "failed"] += 1
        self._update_timestamp()

    def _update_timestamp(self):
        self.metrics["last_updated"] = datetime.utcnow().isoformat()

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get current metrics.

        Returns:
            Metrics dictionary
        """
        return self.metrics

    def get_fetch_error_rate(self) -> float:
        """
        Calculate fetch error rate.

        Returns:
            Error rate percentage
        """
        total = self.metrics["fetches"]["total"]
        if total == 0:
            return 0.0

        return (self.metrics["fetches"]["failed"] / total) * 100


# Global instances
logger = StructuredLogger("tag-enrichment", log_file=settings.LOG_FILE, level=settings.LOG_LEVEL)
enrichment_metrics = EnrichmentMetrics()
