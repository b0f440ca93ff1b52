"""Streamer record store backed by SQLAlchemy."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tag_enrichment.database import get_session_factory
from tag_enrichment.errors import RecordStoreError, StaleRecordError
from tag_enrichment.models.schemas import Platform, StreamerRecord
from tag_enrichment.models.streamer import Streamer
from tag_enrichment.services.logging_service import logger


@dataclass(frozen=True)
class StreamerFilter:
    """
    Predicates for selecting streamers.

    ``None`` means "don't care" for the tri-state fields.
    """

    platform: Optional[Platform] = None
    has_tags: Optional[bool] = None
    missing_enrichment: bool = False
    missing_category: bool = False
    has_content: bool = False


@dataclass(frozen=True)
class RejectedRow:
    """A stored row that could not be read as a StreamerRecord."""

    record_id: UUID
    platform: Optional[str]
    username: Optional[str]
    error: ValidationError


@dataclass
class StreamerPage:
    """
    One page of streamers.

    ``last_id`` is the ID of the last row read, valid or not, so keyset
    paging moves past rejected rows.
    """

    records: List[StreamerRecord] = field(default_factory=list)
    rejected: List[RejectedRow] = field(default_factory=list)
    last_id: Optional[UUID] = None


class StreamerStore:
    """
    Read and write streamer records.

    Every public method opens its own short-lived session and returns
    detached ``StreamerRecord`` snapshots, so callers never hold a session
    across network calls. Any database failure surfaces as
    ``RecordStoreError``.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory or get_session_factory()

    def _apply_filter(self, query, streamer_filter: Optional[StreamerFilter]):
        if streamer_filter is None:
            return query

        if streamer_filter.platform is not None:
            query = query.filter(Streamer.platform == streamer_filter.platform.value)

        if streamer_filter.has_tags is True:
            query = query.filter(func.json_array_length(Streamer.tags) > 0)
        elif streamer_filter.has_tags is False:
            query = query.filter(
                or_(Streamer.tags.is_(None), func.json_array_length(Streamer.tags) == 0)
            )

        if streamer_filter.missing_enrichment:
            query = query.filter(Streamer.last_enrichment_update.is_(None))

        if streamer_filter.missing_category:
            query = query.filter(Streamer.inferred_category.is_(None))

        if streamer_filter.has_content:
            query = query.filter(
                or_(
                    Streamer.current_game.isnot(None),
                    func.json_array_length(Streamer.top_games) > 0
                )
            )

        return query

    def count(self, streamer_filter: Optional[StreamerFilter] = None) -> int:
        """Count streamers matching the filter."""
        db = self.session_factory()
        try:
            return self._apply_filter(db.query(Streamer), streamer_filter).count()
        except SQLAlchemyError as e:
            raise RecordStoreError(f"Failed to count streamers: {e}") from e
        finally:
            db.close()

    def find_page(
        self,
        streamer_filter: Optional[StreamerFilter] = None,
        skip: int = 0,
        take: int = 100,
        after_id: Optional[UUID] = None
    ) -> StreamerPage:
        """
        Read one page of streamers in ID order.

        Rows that fail validation (e.g. a platform outside the enumeration)
        are returned in ``rejected`` instead of failing the page.

        Args:
            streamer_filter: Selection predicates
            skip: Offset
            take: Page size
            after_id: Only return records with an ID greater than this (keyset paging)

        Returns:
            StreamerPage with detached records
        """
        db = self.session_factory()
        try:
            query = self._apply_filter(db.query(Streamer), streamer_filter)
            if after_id is not None:
                query = query.filter(Streamer.id > after_id)
            rows = query.order_by(Streamer.id).offset(skip).limit(take).all()

            page = StreamerPage(last_id=rows[-1].id if rows else None)
            for row in rows:
                try:
                    page.records.append(StreamerRecord.model_validate(row))
                except ValidationError as e:
                    page.rejected.append(RejectedRow(row.id, row.platform, row.username, e))
            return page
        except SQLAlchemyError as e:
            raise RecordStoreError(f"Failed to read streamers (skip={skip}, take={take}): {e}") from e
        finally:
            db.close()

    def find_many(
        self,
        streamer_filter: Optional[StreamerFilter] = None,
        skip: int = 0,
        take: int = 100,
        after_id: Optional[UUID] = None
    ) -> List[StreamerRecord]:
        """Valid records of one page; malformed rows are logged and left out."""
        page = self.find_page(streamer_filter, skip=skip, take=take, after_id=after_id)
        for rejected in page.rejected:
            logger.warning(
                f"Skipping malformed streamer {rejected.username}",
                record_id=str(rejected.record_id),
                platform=rejected.platform,
                error_count=rejected.error.error_count()
            )
        return page.records

    def find_unique(self, record_id: UUID) -> Optional[StreamerRecord]:
        db = self.session_factory()
        try:
            row = db.query(Streamer).filter(Streamer.id == record_id).first()
            return StreamerRecord.model_validate(row) if row else None
        except ValidationError as e:
            raise RecordStoreError(f"Streamer {record_id} is malformed: {e.error_count()} invalid field(s)") from e
        except SQLAlchemyError as e:
            raise RecordStoreError(f"Failed to read streamer {record_id}: {e}") from e
        finally:
            db.close()

    def update_tags(
        self,
        record_id: UUID,
        tags: List[str],
        last_enrichment_update: datetime,
        expected_version: Optional[int] = None
    ) -> int:
        """
        Overwrite a streamer's tags and stamp the enrichment time.

        Args:
            record_id: Streamer ID
            tags: Complete new tag list
            last_enrichment_update: Timestamp to record
            expected_version: When given, only write if the row still has this version

        Returns:
            The new version number

        Raises:
            StaleRecordError: Version mismatch, or the row is gone
            RecordStoreError: Database failure
        """
        values = {
            "tags": list(tags),
            "last_enrichment_update": last_enrichment_update,
            "updated_at": datetime.utcnow(),
            "version": Streamer.version + 1
        }
        return self._conditional_update(record_id, values, expected_version)

    def update_category(self, record_id: UUID, category: str) -> int:
        """Set the inferred category for a streamer."""
        values = {
            "inferred_category": category,
            "updated_at": datetime.utcnow(),
            "version": Streamer.version + 1
        }
        return self._conditional_update(record_id, values, None)

    def _conditional_update(self, record_id: UUID, values: dict, expected_version: Optional[int]) -> int:
        db = self.session_factory()
        try:
            statement = update(Streamer).where(Streamer.id == record_id)
            if expected_version is not None:
                statement = statement.where(Streamer.version == expected_version)

            result = db.execute(statement.values(**values).execution_options(synchronize_session=False))
            if result.rowcount == 0:
                db.rollback()
                raise StaleRecordError(str(record_id), expected_version if expected_version is not None else -1)

            db.commit()
            return db.query(Streamer.version).filter(Streamer.id == record_id).scalar()
        except SQLAlchemyError as e:
            db.rollback()
            raise RecordStoreError(f"Failed to update streamer {record_id}: {e}") from e
        finally:
            db.close()

    def count_with_tag(self, tag: str, batch_size: int = 1000) -> int:
        """
        Count streamers carrying an exact tag.

        JSON containment differs between PostgreSQL and SQLite, so the tag
        column is scanned in pages instead.
        """
        db = self.session_factory()
        try:
            total = 0
            for (tags,) in db.query(Streamer.tags).yield_per(batch_size):
                if tags and tag in tags:
                    total += 1
            return total
        except SQLAlchemyError as e:
            raise RecordStoreError(f"Failed to count streamers tagged {tag}: {e}") from e
        finally:
            db.close()
