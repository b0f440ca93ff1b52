"""APScheduler service for periodic enrichment runs."""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.executors.pool import ThreadPoolExecutor
from typing import Any, Dict, Optional
import logging
import threading

from tag_enrichment.config import settings
from tag_enrichment.errors import EnrichmentError
from tag_enrichment.services.error_tracking import error_tracker
from tag_enrichment.services.logging_service import logger

logging.getLogger('apscheduler').setLevel(logging.INFO)

ENRICHMENT_JOB_ID = "tag_enrichment"

# Global scheduler instance
scheduler: Optional[BackgroundScheduler] = None

# Set on shutdown so a running job stops after its in-flight record
cancel_event = threading.Event()


def get_scheduler() -> Optional[BackgroundScheduler]:
    """Get the global scheduler instance."""
    return scheduler


def enrichment_job(only_missing_enrichment: bool = False):
    """
    Background job running one full enrichment pass.

    Failures are logged and reported; the scheduler keeps the job. The
    run stops early once ``cancel_event`` is set.
    """
    from tag_enrichment.services.orchestrator import EnrichmentOrchestrator, default_options

    try:
        summary = EnrichmentOrchestrator().run_full_enrichment(
            default_options(
                only_missing_enrichment=only_missing_enrichment,
                cancel_event=cancel_event
            )
        )
        logger.info(
            "Scheduled enrichment finished",
            processed=summary.processed,
            updated=summary.updated,
            errors=summary.errors,
            cancelled=summary.cancelled
        )
        return summary
    except EnrichmentError as e:
        logger.error("Scheduled enrichment failed", error=str(e))
        error_tracker.capture_exception(e, level="fatal", tags={"stage": "scheduled_run"})
        return None


def start_scheduler(jobstore_url: Optional[str] = None) -> BackgroundScheduler:
    """
    Initialize and start the APScheduler.

    Only one enrichment job instance may run at a time; missed runs are
    coalesced into one.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return scheduler

    cancel_event.clear()

    jobstores = {
        'default': SQLAlchemyJobStore(url=jobstore_url or settings.DATABASE_URL)
    }

    executors = {
        'default': ThreadPoolExecutor(1)
    }

    job_defaults = {
        'coalesce': settings.SCHEDULER_JOB_DEFAULTS_COALESCE,
        'max_instances': 1
    }

    scheduler = BackgroundScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone='UTC'
    )

    scheduler.start()
    logger.info("APScheduler started")
    return scheduler


def shutdown_scheduler(wait: bool = True):
    """Shutdown the APScheduler, asking a running enrichment job to stop first."""
    global scheduler

    if scheduler is None:
        return

    cancel_event.set()
    scheduler.shutdown(wait=wait)
    scheduler = None
    logger.info("APScheduler shut down")


def add_enrichment_job(
    interval_minutes: Optional[int] = None,
    only_missing_enrichment: bool = False
) -> str:
    """
    Schedule the enrichment job, replacing any existing one.

    Args:
        interval_minutes: Minutes between runs (defaults to settings)
        only_missing_enrichment: Only visit streamers never enriched

    Returns:
        Job ID
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not started")

    if scheduler.get_job(ENRICHMENT_JOB_ID):
        scheduler.remove_job(ENRICHMENT_JOB_ID)

    minutes = interval_minutes or settings.ENRICHMENT_INTERVAL_MINUTES
    scheduler.add_job(
        enrichment_job,
        trigger='interval',
        minutes=minutes,
        id=ENRICHMENT_JOB_ID,
        kwargs={'only_missing_enrichment': only_missing_enrichment},
        replace_existing=True,
        max_instances=1
    )

    logger.info("Scheduled enrichment job", interval_minutes=minutes)
    return ENRICHMENT_JOB_ID


def get_job_status() -> Dict[str, Any]:
    """Status of the enrichment job."""
    if scheduler is None:
        return {"exists": False, "error": "Scheduler not running"}

    job = scheduler.get_job(ENRICHMENT_JOB_ID)
    if not job:
        return {"exists": False}

    return {
        "exists": True,
        "job_id": job.id,
        "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        "is_paused": job.next_run_time is None
    }
