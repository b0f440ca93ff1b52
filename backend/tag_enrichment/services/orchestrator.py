"""Batch orchestration of tag enrichment over the whole streamer table."""

from collections import Counter
from typing import Dict, Iterator, List, Optional, Sequence
import threading

from tag_enrichment.classification.category import infer_category
from tag_enrichment.classification.classifier import infer_tags
from tag_enrichment.classification.patterns import PatternTable, load_pattern_table
from tag_enrichment.config import settings
from tag_enrichment.errors import EnrichmentError, PlatformError, RecordStoreError
from tag_enrichment.models.schemas import (
    AnalysisReport,
    CategoryBackfillSummary,
    Confidence,
    EnrichmentOptions,
    EnrichmentSummary,
    Platform,
    StreamerRecord,
    TagCoverage,
    TagInferenceResult,
)
from tag_enrichment.platforms.base import NullTagFetcher, TagFetcher
from tag_enrichment.platforms.registry import build_fetchers
from tag_enrichment.services.error_tracking import ErrorTracker, error_tracker
from tag_enrichment.services.logging_service import EnrichmentMetrics, enrichment_metrics, logger
from tag_enrichment.services.streamer_store import RejectedRow, StreamerFilter, StreamerPage, StreamerStore
from tag_enrichment.services.tag_merger import MergeOutcome, TagMerger


def group_by_platform(records: Sequence[StreamerRecord]) -> Dict[Platform, List[StreamerRecord]]:
    """Group a page by platform, in Platform enumeration order."""
    groups: Dict[Platform, List[StreamerRecord]] = {platform: [] for platform in Platform}
    for record in records:
        groups[record.platform].append(record)
    return {platform: group for platform, group in groups.items() if group}


def default_options(**overrides) -> EnrichmentOptions:
    """EnrichmentOptions with batch size and progress cadence from settings."""
    values = {
        "batch_size": settings.ENRICHMENT_BATCH_SIZE,
        "progress_interval": settings.PROGRESS_INTERVAL
    }
    values.update(overrides)
    return EnrichmentOptions(**values)


class EnrichmentOrchestrator:
    """
    Drive fetch, classify and merge over every streamer.

    Pages are read in ID order; within a page, platforms are handled in
    Platform order. Batch-capable platforms get one fetch per chunk,
    everyone else is fetched one identity at a time through the platform
    client's pacer. A failed fetch or write is counted against the records
    it affects and the run moves on; a failure to read the store ends the
    run.

    Only one run should write at a time. Writes are version-checked, so a
    second concurrent run produces StaleRecordError counts rather than lost
    tags.
    """

    def __init__(
        self,
        store: Optional[StreamerStore] = None,
        fetchers: Optional[Dict[Platform, TagFetcher]] = None,
        merger: Optional[TagMerger] = None,
        table: Optional[PatternTable] = None,
        target_tag: Optional[str] = None,
        metrics: Optional[EnrichmentMetrics] = None,
        tracker: Optional[ErrorTracker] = None
    ):
        self.store = store or StreamerStore()
        self.fetchers = fetchers if fetchers is not None else build_fetchers()
        self.merger = merger or TagMerger(self.store)
        self.table = table or load_pattern_table()
        self.target_tag = target_tag or settings.TARGET_TAG
        self.metrics = metrics or enrichment_metrics
        self.tracker = tracker or error_tracker

    # ============================================
    # Paging
    # ============================================

    def _iter_pages(
        self,
        streamer_filter: StreamerFilter,
        batch_size: int,
        cancel_event: Optional[threading.Event] = None
    ) -> Iterator[StreamerPage]:
        """
        Yield pages using keyset paging on the ID.

        Keyset paging keeps the walk correct when processed records drop
        out of the filter (e.g. once their enrichment timestamp is set).
        A page whose rows were all rejected is still yielded so those rows
        get counted.
        """
        last_id = None
        while cancel_event is None or not cancel_event.is_set():
            page = self.store.find_page(streamer_filter, take=batch_size, after_id=last_id)
            if page.last_id is None:
                return
            yield page
            last_id = page.last_id

    # ============================================
    # Full enrichment
    # ============================================

    def run_full_enrichment(self, options: Optional[EnrichmentOptions] = None) -> EnrichmentSummary:
        """
        Fetch platform tags, infer content tags and merge them into every streamer.

        Args:
            options: Run options (batch size, dry run, platform filter, ...)

        Returns:
            EnrichmentSummary with counters and the per-streamer proposals

        Raises:
            RecordStoreError: The streamer table could not be counted or paged
        """
        options = options or default_options()
        streamer_filter = StreamerFilter(
            platform=options.platform_filter,
            missing_enrichment=options.only_missing_enrichment
        )

        mode = "enrichment" if options.fetch_remote else "tag inference"
        logger.info(
            f"Starting {mode}",
            dry_run=options.dry_run,
            batch_size=options.batch_size,
            platform=options.platform_filter.value if options.platform_filter else None
        )

        summary = EnrichmentSummary()
        try:
            total = self.store.count(streamer_filter)
            logger.info(f"Found {total} streamers to process")

            for page in self._iter_pages(streamer_filter, options.batch_size, options.cancel_event):
                self._process_page(page, options, summary, total)
                if summary.cancelled:
                    break

        except RecordStoreError as e:
            self.metrics.increment_run(success=False)
            self.tracker.capture_exception(e, level="fatal", tags={"stage": "paging"})
            logger.error(f"{mode.capitalize()} aborted: cannot read streamers", error=str(e))
            raise

        if options.cancelled:
            summary.cancelled = True
            logger.warning(f"{mode.capitalize()} cancelled", processed=summary.processed)

        self.metrics.increment_run(success=True)
        logger.info(
            f"{mode.capitalize()} complete",
            processed=summary.processed,
            updated=summary.updated,
            skipped=summary.skipped,
            errors=summary.errors,
            total_new_tags=sum(len(result.new_tags) for result in summary.results)
        )
        return summary

    def run_tag_inference(self, options: Optional[EnrichmentOptions] = None) -> EnrichmentSummary:
        """Infer tags from stored content only; no platform calls."""
        options = options or default_options()
        return self.run_full_enrichment(options.model_copy(update={"fetch_remote": False}))

    def _process_page(
        self,
        page: StreamerPage,
        options: EnrichmentOptions,
        summary: EnrichmentSummary,
        total: int
    ):
        for rejected in page.rejected:
            summary.processed += 1
            self._record_rejected(rejected, summary)
            self._report_progress(options, summary, total)

        for platform, records in group_by_platform(page.records).items():
            fetcher = self.fetchers.get(platform) or NullTagFetcher(platform)

            if options.fetch_remote and fetcher.supports_batch:
                self._process_batched(fetcher, records, options, summary, total)
            else:
                self._process_serial(fetcher, records, options, summary, total)

            if summary.cancelled:
                return

    def _process_batched(
        self,
        fetcher: TagFetcher,
        records: List[StreamerRecord],
        options: EnrichmentOptions,
        summary: EnrichmentSummary,
        total: int
    ):
        platform = fetcher.platform.value

        for start in range(0, len(records), fetcher.max_batch_size):
            if options.cancelled:
                summary.cancelled = True
                return

            chunk = records[start:start + fetcher.max_batch_size]
            try:
                fetched = fetcher.fetch_tags_batch([record.username for record in chunk])
                self.metrics.increment_fetch(platform, success=True, count=len(chunk))
            except PlatformError as e:
                self.metrics.increment_fetch(platform, success=False, count=len(chunk))
                logger.error(
                    f"Failed to fetch {platform} tags batch",
                    error=str(e),
                    count=len(chunk)
                )
                self.tracker.capture_exception(e, tags={"platform": platform, "stage": "fetch_batch"})
                for record in chunk:
                    summary.processed += 1
                    summary.errors += 1
                    self._report_progress(options, summary, total)
                continue

            for record in chunk:
                if options.cancelled:
                    summary.cancelled = True
                    return
                self._process_record(record, fetched.get(record.username.lower(), []), options, summary, total)

    def _process_serial(
        self,
        fetcher: TagFetcher,
        records: List[StreamerRecord],
        options: EnrichmentOptions,
        summary: EnrichmentSummary,
        total: int
    ):
        for record in records:
            if options.cancelled:
                summary.cancelled = True
                return

            raw_tags: List[str] = []
            if options.fetch_remote:
                try:
                    raw_tags = fetcher.fetch_tags(record.username)
                    if not isinstance(fetcher, NullTagFetcher):
                        self.metrics.increment_fetch(fetcher.platform.value, success=True)
                except PlatformError as e:
                    self.metrics.increment_fetch(fetcher.platform.value, success=False)
                    summary.processed += 1
                    self._record_error(record, e, summary, stage="fetch")
                    self._report_progress(options, summary, total)
                    continue

            self._process_record(record, raw_tags, options, summary, total)

    def _process_record(
        self,
        record: StreamerRecord,
        raw_tags: List[str],
        options: EnrichmentOptions,
        summary: EnrichmentSummary,
        total: int
    ):
        summary.processed += 1

        result = self.build_result(record, raw_tags)
        new_tags = result.new_tags

        if not new_tags:
            summary.skipped += 1
        else:
            summary.results.append(result)

            if not options.dry_run:
                try:
                    outcome = self.merger.merge(record.id, new_tags)
                except RecordStoreError as e:
                    self.metrics.increment_write("failed")
                    self._record_error(record, e, summary, stage="merge")
                else:
                    if outcome == MergeOutcome.UPDATED:
                        summary.updated += 1
                        self.metrics.increment_write("updated")
                    else:
                        summary.skipped += 1
                        self.metrics.increment_write("unchanged")

        self._report_progress(options, summary, total)

    def build_result(self, record: StreamerRecord, raw_tags: Sequence[str] = ()) -> TagInferenceResult:
        """
        Proposal for one streamer: new platform tags plus inferred tags.

        Tags already on the record are left out of both lists.
        """
        result = infer_tags(record, extra_signals=raw_tags, table=self.table)
        existing = set(record.tags)
        fetched = [tag for tag in dict.fromkeys(raw_tags) if tag and tag not in existing]
        return result.model_copy(update={"fetched_tags": fetched})

    def _record_error(self, record: StreamerRecord, error: EnrichmentError, summary: EnrichmentSummary, stage: str):
        summary.errors += 1
        logger.error(
            f"Failed to enrich {record.username}",
            record_id=str(record.id),
            platform=record.platform.value,
            stage=stage,
            error=str(error)
        )
        self.tracker.capture_exception(
            error,
            context={"streamer": {"id": str(record.id), "username": record.username}},
            tags={"platform": record.platform.value, "stage": stage}
        )

    def _record_rejected(self, rejected: RejectedRow, summary) -> None:
        """Count a row that failed validation as a per-record error."""
        summary.errors += 1
        logger.error(
            f"Skipping malformed streamer {rejected.username}",
            record_id=str(rejected.record_id),
            platform=rejected.platform,
            stage="read",
            error=str(rejected.error)
        )
        self.tracker.capture_exception(
            rejected.error,
            context={"streamer": {"id": str(rejected.record_id), "username": rejected.username}},
            tags={"platform": str(rejected.platform), "stage": "read"}
        )

    def _report_progress(self, options: EnrichmentOptions, summary: EnrichmentSummary, total: int):
        if summary.processed % options.progress_interval != 0:
            return

        logger.info(
            f"Progress: {summary.processed}/{total} streamers processed",
            updated=summary.updated,
            errors=summary.errors
        )
        if options.on_progress:
            options.on_progress(summary.processed, total, summary.updated)

    # ============================================
    # Reporting
    # ============================================

    def analyze(self, batch_size: Optional[int] = None) -> AnalysisReport:
        """
        Dry-run tag inference and report how much coverage it would add.

        Returns:
            AnalysisReport; nothing is written
        """
        logger.info("Analyzing streamers for tag inference opportunities")

        total = self.store.count()
        summary = self.run_tag_inference(default_options(
            dry_run=True,
            batch_size=batch_size or settings.ENRICHMENT_BATCH_SIZE,
            progress_interval=500
        ))
        results = summary.results

        report = AnalysisReport(
            total_records=total,
            records_with_target_tag=self.store.count_with_tag(self.target_tag),
            records_matching_content=len(results),
            potential_new_tags=sum(len(result.inferred_tags) for result in results),
            sample_results=[result for result in results if result.confidence == Confidence.HIGH][:10],
            confidence_breakdown=dict(Counter(result.confidence.value for result in results)),
            tag_distribution=dict(Counter(tag for result in results for tag in result.inferred_tags))
        )

        logger.info(
            "Analysis complete",
            total_records=report.total_records,
            records_with_target_tag=report.records_with_target_tag,
            records_matching_content=report.records_matching_content,
            potential_new_tags=report.potential_new_tags
        )
        return report

    def get_suggestions(self, limit: int = 20) -> List[TagInferenceResult]:
        """First ``limit`` inference proposals among streamers with content signals."""
        suggestions: List[TagInferenceResult] = []

        for page in self._iter_pages(StreamerFilter(has_content=True), batch_size=max(limit * 2, 1)):
            for record in page.records:
                result = infer_tags(record, table=self.table)
                if result.inferred_tags:
                    suggestions.append(result)
                if len(suggestions) >= limit:
                    return suggestions

        return suggestions

    def backfill_categories(
        self,
        dry_run: bool = False,
        batch_size: int = 100,
        cancel_event: Optional[threading.Event] = None
    ) -> CategoryBackfillSummary:
        """
        Assign an inferred category to every streamer that has none.

        Args:
            dry_run: Compute the distribution without writing
            batch_size: Page size
            cancel_event: Checked between records

        Returns:
            CategoryBackfillSummary
        """
        summary = CategoryBackfillSummary(dry_run=dry_run)
        distribution: Counter = Counter()

        total = self.store.count(StreamerFilter(missing_category=True))
        logger.info(f"Found {total} streamers without category", dry_run=dry_run)

        for page in self._iter_pages(StreamerFilter(missing_category=True), batch_size, cancel_event):
            for rejected in page.rejected:
                summary.processed += 1
                self._record_rejected(rejected, summary)

            for record in page.records:
                if cancel_event is not None and cancel_event.is_set():
                    break

                category = infer_category(record.current_game, record.tags, record.top_games, table=self.table)
                distribution[category.value] += 1
                summary.processed += 1

                if dry_run:
                    continue

                try:
                    self.store.update_category(record.id, category.value)
                    summary.updated += 1
                except RecordStoreError as e:
                    self._record_category_error(record, e, summary)

        summary.distribution = dict(distribution)
        logger.info(
            "Category backfill complete",
            processed=summary.processed,
            updated=summary.updated,
            errors=summary.errors,
            distribution=summary.distribution
        )
        return summary

    def _record_category_error(self, record: StreamerRecord, error: RecordStoreError, summary: CategoryBackfillSummary):
        summary.errors += 1
        logger.error(
            f"Failed to set category for {record.username}",
            record_id=str(record.id),
            error=str(error)
        )
        self.tracker.capture_exception(error, tags={"platform": record.platform.value, "stage": "category"})

    def tag_coverage(self) -> TagCoverage:
        """How many streamers carry at least one tag."""
        total = self.store.count()
        with_tags = self.store.count(StreamerFilter(has_tags=True))
        percentage = round((with_tags / total) * 100, 2) if total else 0.0

        return TagCoverage(
            total=total,
            with_tags=with_tags,
            without_tags=total - with_tags,
            percentage=percentage
        )
