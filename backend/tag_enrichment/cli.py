"""
Command-line entry point for tag enrichment.

Usage:
    tag-enrichment enrich --dry-run
    tag-enrichment infer --batch-size 100
    tag-enrichment analyze
    tag-enrichment backfill-categories
    tag-enrichment schedule --interval 60
"""

from typing import List, Optional
import argparse
import json
import signal
import sys
import threading
import time

from tag_enrichment.errors import EnrichmentError
from tag_enrichment.models.schemas import Platform
from tag_enrichment.services.logging_service import enrichment_metrics, logger


def _print_json(payload):
    print(json.dumps(payload, indent=2, default=str))


def _install_cancel_handler(cancel_event: threading.Event):
    """First Ctrl+C asks the run to stop after the in-flight record; a second one aborts."""
    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Cancellation requested, finishing in-flight work")
        cancel_event.set()

    return signal.signal(signal.SIGINT, handler)


def _run_options(args, cancel_event: threading.Event, **overrides):
    from tag_enrichment.services.orchestrator import default_options

    def on_progress(processed: int, total: int, updated: int):
        print(f"Progress: {processed}/{total} processed, {updated} updated", file=sys.stderr)

    values = {
        "dry_run": args.dry_run,
        "platform_filter": Platform(args.platform) if args.platform else None,
        "only_missing_enrichment": args.only_missing,
        "on_progress": on_progress,
        "cancel_event": cancel_event
    }
    if args.batch_size:
        values["batch_size"] = args.batch_size
    values.update(overrides)
    return default_options(**values)


def _summary_payload(summary) -> dict:
    return {
        "processed": summary.processed,
        "updated": summary.updated,
        "skipped": summary.skipped,
        "errors": summary.errors,
        "cancelled": summary.cancelled,
        "proposed": len(summary.results),
        "metrics": enrichment_metrics.get_metrics()
    }


def cmd_enrich(args, orchestrator, cancel_event):
    summary = orchestrator.run_full_enrichment(_run_options(args, cancel_event))
    _print_json(_summary_payload(summary))


def cmd_infer(args, orchestrator, cancel_event):
    summary = orchestrator.run_tag_inference(_run_options(args, cancel_event))
    _print_json(_summary_payload(summary))


def cmd_analyze(args, orchestrator, cancel_event):
    report = orchestrator.analyze(batch_size=args.batch_size)
    _print_json(report.model_dump(mode="json"))


def cmd_suggest(args, orchestrator, cancel_event):
    suggestions = orchestrator.get_suggestions(limit=args.limit)
    _print_json([suggestion.model_dump(mode="json") for suggestion in suggestions])


def cmd_backfill(args, orchestrator, cancel_event):
    summary = orchestrator.backfill_categories(
        dry_run=args.dry_run,
        batch_size=args.batch_size or 100,
        cancel_event=cancel_event
    )
    _print_json(summary.model_dump(mode="json"))


def cmd_coverage(args, orchestrator, cancel_event):
    _print_json(orchestrator.tag_coverage().model_dump(mode="json"))


def cmd_schedule(args, orchestrator, cancel_event):
    from tag_enrichment.services import scheduler_service

    scheduler_service.start_scheduler()
    scheduler_service.add_enrichment_job(
        interval_minutes=args.interval,
        only_missing_enrichment=args.only_missing
    )
    try:
        while not cancel_event.is_set():
            time.sleep(1)
    finally:
        scheduler_service.shutdown_scheduler(wait=True)


def cmd_init_db(args, orchestrator, cancel_event):
    from tag_enrichment.database import init_db

    init_db()
    logger.info("Database tables created")


COMMANDS = {
    "enrich": cmd_enrich,
    "infer": cmd_infer,
    "analyze": cmd_analyze,
    "suggest": cmd_suggest,
    "backfill-categories": cmd_backfill,
    "coverage": cmd_coverage,
    "schedule": cmd_schedule,
    "init-db": cmd_init_db
}

# Commands that don't need an orchestrator (and so no platform clients)
STANDALONE_COMMANDS = {"schedule", "init-db"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tag-enrichment",
        description="Enrich streamer records with platform and inferred content tags"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--dry-run", action="store_true", help="Compute results without writing")
    common.add_argument("--batch-size", type=int, default=None, help="Records per page")
    common.add_argument(
        "--platform",
        choices=[platform.value for platform in Platform],
        help="Only process one platform"
    )
    common.add_argument(
        "--only-missing",
        action="store_true",
        help="Only process streamers that were never enriched"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("enrich", parents=[common], help="Fetch platform tags and infer content tags")
    subparsers.add_parser("infer", parents=[common], help="Infer tags from stored content only")
    subparsers.add_parser("analyze", parents=[common], help="Dry-run report of inference coverage")

    suggest = subparsers.add_parser("suggest", parents=[common], help="List inference proposals")
    suggest.add_argument("--limit", type=int, default=20, help="Maximum suggestions to list")

    subparsers.add_parser("backfill-categories", parents=[common], help="Assign categories to uncategorized streamers")
    subparsers.add_parser("coverage", help="Show how many streamers have tags")

    schedule = subparsers.add_parser("schedule", parents=[common], help="Run enrichment periodically")
    schedule.add_argument("--interval", type=int, default=None, help="Minutes between runs")

    subparsers.add_parser("init-db", help="Create database tables")

    return parser


def main(argv: Optional[List[str]] = None, orchestrator=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    cancel_event = threading.Event()
    previous_handler = _install_cancel_handler(cancel_event)

    try:
        if orchestrator is None and args.command not in STANDALONE_COMMANDS:
            from tag_enrichment.services.orchestrator import EnrichmentOrchestrator
            orchestrator = EnrichmentOrchestrator()

        COMMANDS[args.command](args, orchestrator, cancel_event)

    except EnrichmentError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning(f"{args.command} interrupted")
        return 130
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    return 0


if __name__ == "__main__":
    sys.exit(main())
