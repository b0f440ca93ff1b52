"""Merge newly discovered tags into stored streamer records."""

from datetime import datetime
from enum import Enum
from typing import Callable, List, Sequence
from uuid import UUID

from tag_enrichment.errors import RecordStoreError
from tag_enrichment.services.logging_service import logger
from tag_enrichment.services.streamer_store import StreamerStore


class MergeOutcome(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


def merge_tags(existing: Sequence[str], new: Sequence[str]) -> List[str]:
    """
    Union of two tag lists.

    Existing tags keep their order, new tags are appended, repeats are
    dropped. Comparison is case-sensitive.
    """
    return list(dict.fromkeys([*existing, *new]))


class TagMerger:
    """
    Reconcile new tags with a streamer's stored tags.

    The stored tags are re-read right before writing and the write is
    conditional on the version that was read, so a concurrent writer causes
    a StaleRecordError instead of a lost update. Applying the same tags
    twice leaves the record unchanged the second time.
    """

    def __init__(self, store: StreamerStore, clock: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.clock = clock

    def merge(self, record_id: UUID, new_tags: Sequence[str]) -> MergeOutcome:
        """
        Merge tags into one record.

        Args:
            record_id: Streamer ID
            new_tags: Tags to add (may be empty)

        Returns:
            SKIPPED when there was nothing to add, UNCHANGED when every tag
            was already present, UPDATED when the record was written

        Raises:
            RecordStoreError: Record missing, modified concurrently, or store failure
        """
        if not new_tags:
            return MergeOutcome.SKIPPED

        current = self.store.find_unique(record_id)
        if current is None:
            raise RecordStoreError(f"Streamer {record_id} no longer exists")

        merged = merge_tags(current.tags, new_tags)
        if merged == current.tags:
            return MergeOutcome.UNCHANGED

        self.store.update_tags(
            record_id,
            merged,
            last_enrichment_update=self.clock(),
            expected_version=current.version
        )

        logger.info(
            f"Updated tags for {current.username}",
            record_id=str(record_id),
            platform=current.platform.value,
            old_tags=current.tags,
            new_tags=list(new_tags),
            merged_tags=merged
        )
        return MergeOutcome.UPDATED

