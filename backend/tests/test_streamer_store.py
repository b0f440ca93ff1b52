"""
Tests for the SQLAlchemy streamer store and tag merging.
"""

from datetime import datetime
from unittest.mock import Mock
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from tag_enrichment.errors import RecordStoreError, StaleRecordError
from tag_enrichment.models.schemas import Platform
from tag_enrichment.services.streamer_store import StreamerFilter, StreamerStore
from tag_enrichment.services.tag_merger import MergeOutcome, TagMerger, merge_tags


@pytest.mark.unit
class TestStreamerStore:
    """Test record store reads, filters and conditional writes."""

    def test_count_and_platform_filter(self, store, make_streamer):
        """Test counting with a platform filter."""
        make_streamer("alpha", platform="TWITCH")
        make_streamer("bravo", platform="KICK")
        make_streamer("charlie", platform="KICK")

        assert store.count() == 3
        assert store.count(StreamerFilter(platform=Platform.KICK)) == 2

    def test_has_tags_filter(self, store, make_streamer):
        """Test the has-tags filter."""
        make_streamer("alpha", tags=["GAMING"])
        make_streamer("bravo")

        assert store.count(StreamerFilter(has_tags=True)) == 1
        assert store.count(StreamerFilter(has_tags=False)) == 1

    def test_has_content_filter(self, store, make_streamer):
        """Test the has-content filter."""
        make_streamer("alpha", current_game="Slots")
        make_streamer("bravo", top_games=["Poker"])
        make_streamer("charlie")

        assert store.count(StreamerFilter(has_content=True)) == 2

    def test_missing_category_filter(self, store, make_streamer):
        """Test the missing-category filter."""
        make_streamer("alpha", inferred_category="Gaming")
        make_streamer("bravo")

        found = store.find_many(StreamerFilter(missing_category=True))
        assert [record.username for record in found] == ["bravo"]

    def test_find_many_pages_in_id_order(self, store, make_streamer):
        """Test find_many pages in ID order."""
        for name in ["alpha", "bravo", "charlie", "delta", "echo"]:
            make_streamer(name)

        first = store.find_many(take=2)
        second = store.find_many(take=2, after_id=first[-1].id)
        third = store.find_many(take=2, after_id=second[-1].id)
        rest = store.find_many(take=2, after_id=third[-1].id)

        ids = [record.id for record in first + second + third]
        assert len(ids) == 5
        assert len(set(ids)) == 5
        assert rest == []
        assert store.find_many(skip=2, take=2) == second

    def test_find_page_rejects_malformed_rows(self, store, make_streamer, make_raw_streamer):
        """Test a row with an unknown platform is rejected without failing the page."""
        good = make_streamer("good", current_game="Slots")
        legacy_id = make_raw_streamer("legacy", platform="twitch")

        page = store.find_page()

        assert [record.id for record in page.records] == [good.id]
        assert [rejected.record_id for rejected in page.rejected] == [legacy_id]
        assert page.rejected[0].platform == "twitch"
        assert page.rejected[0].username == "legacy"
        assert page.last_id == max(good.id, legacy_id)

    def test_find_page_advances_past_rejected_rows(self, store, make_raw_streamer):
        """Test keyset paging moves on when a whole page was rejected."""
        make_raw_streamer("legacy", platform="twitch")
        make_raw_streamer("broken", platform="KICK", top_games=[{"name": "Slots"}])

        first = store.find_page(take=1)
        second = store.find_page(take=1, after_id=first.last_id)
        rest = store.find_page(take=1, after_id=second.last_id)

        assert len(first.rejected) == 1
        assert len(second.rejected) == 1
        assert first.last_id != second.last_id
        assert rest.last_id is None
        assert rest.records == []

    def test_find_many_skips_malformed_rows(self, store, make_streamer, make_raw_streamer):
        """Test find_many returns only the rows that validate."""
        make_streamer("good")
        make_raw_streamer("legacy", platform="twitch")

        assert [record.username for record in store.find_many()] == ["good"]

    def test_find_unique_malformed_row(self, store, make_raw_streamer):
        """Test reading a malformed row by ID raises RecordStoreError."""
        legacy_id = make_raw_streamer("legacy", platform="twitch")

        with pytest.raises(RecordStoreError):
            store.find_unique(legacy_id)

    def test_find_unique(self, store, make_streamer):
        """Test finding a streamer by ID."""
        created = make_streamer("alpha", current_game="Slots", top_games=["Poker"])

        found = store.find_unique(created.id)

        assert found.username == "alpha"
        assert found.platform == Platform.TWITCH
        assert found.top_games == ["Poker"]
        assert found.version == 1
        assert store.find_unique(uuid.uuid4()) is None

    def test_update_tags_bumps_version(self, store, make_streamer):
        """Test that updating tags bumps the version."""
        created = make_streamer("alpha")
        stamp = datetime(2024, 1, 1, 12, 0, 0)

        version = store.update_tags(created.id, ["IGAMING"], stamp, expected_version=1)

        found = store.find_unique(created.id)
        assert version == 2
        assert found.tags == ["IGAMING"]
        assert found.last_enrichment_update == stamp
        assert found.version == 2

    def test_update_tags_stale_version(self, store, make_streamer):
        """Test that a stale version is not written."""
        created = make_streamer("alpha")
        store.update_tags(created.id, ["A"], datetime.utcnow(), expected_version=1)

        with pytest.raises(StaleRecordError):
            store.update_tags(created.id, ["B"], datetime.utcnow(), expected_version=1)

        assert store.find_unique(created.id).tags == ["A"]

    def test_update_missing_record(self, store):
        """Test that updating a missing record raises StaleRecordError."""
        with pytest.raises(StaleRecordError):
            store.update_category(uuid.uuid4(), "Gaming")

    def test_update_category(self, store, make_streamer):
        """Test updating the category."""
        created = make_streamer("alpha")

        store.update_category(created.id, "iGaming")

        assert store.find_unique(created.id).inferred_category == "iGaming"

    def test_count_with_tag(self, store, make_streamer):
        """Test counting streamers with an exact tag."""
        make_streamer("alpha", tags=["IGAMING", "English"])
        make_streamer("bravo", tags=["igaming"])
        make_streamer("charlie")

        assert store.count_with_tag("IGAMING") == 1

    def test_database_failure_is_record_store_error(self):
        """Test that database failures surface as RecordStoreError."""
        session = Mock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
        store = StreamerStore(session_factory=lambda: session)

        with pytest.raises(RecordStoreError):
            store.count()

        session.close.assert_called_once()


@pytest.mark.unit
class TestTagMerger:
    """Test merge-and-persist."""

    def test_merge_tags_union(self):
        """Test that tag merge keeps order and drops duplicates."""
        assert merge_tags(["GAMING", "English"], ["English", "IGAMING"]) == ["GAMING", "English", "IGAMING"]
        assert merge_tags([], []) == []

    def test_merge_is_case_sensitive(self):
        """Test that tag merging is case sensitive."""
        assert merge_tags(["igaming"], ["IGAMING"]) == ["igaming", "IGAMING"]

    def test_merge_is_idempotent(self, store, make_streamer):
        """Test that merging the same tags twice writes once."""
        created = make_streamer("alpha", tags=["GAMING"])
        stamp = datetime(2024, 5, 1)
        merger = TagMerger(store, clock=lambda: stamp)

        assert merger.merge(created.id, ["IGAMING"]) == MergeOutcome.UPDATED
        first = store.find_unique(created.id)
        assert first.tags == ["GAMING", "IGAMING"]
        assert first.last_enrichment_update == stamp

        assert merger.merge(created.id, ["IGAMING"]) == MergeOutcome.UNCHANGED
        second = store.find_unique(created.id)
        assert second.tags == ["GAMING", "IGAMING"]
        assert second.version == first.version

    def test_empty_tags_skip_write(self, store, make_streamer):
        """Test that merging no tags skips the write."""
        created = make_streamer("alpha")
        merger = TagMerger(store)

        assert merger.merge(created.id, []) == MergeOutcome.SKIPPED
        found = store.find_unique(created.id)
        assert found.last_enrichment_update is None
        assert found.version == 1

    def test_missing_record(self, store):
        """Test that merging into a missing record raises."""
        with pytest.raises(RecordStoreError):
            TagMerger(store).merge(uuid.uuid4(), ["IGAMING"])

    def test_concurrent_write_detected(self, make_streamer):
        """Test that a concurrent write surfaces as StaleRecordError."""
        created = make_streamer("alpha")
        store = Mock(spec=StreamerStore)
        store.find_unique.return_value = created
        store.update_tags.side_effect = StaleRecordError(str(created.id), created.version)

        with pytest.raises(StaleRecordError):
            TagMerger(store).merge(created.id, ["IGAMING"])

        assert store.update_tags.call_args.kwargs["expected_version"] == created.version
