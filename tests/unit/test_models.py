"""
Unit тесты для модели CleanupQueueItem.
"""

import pytest

from media_cleanup.models import (
    CleanupErrorKind,
    CleanupQueueItem,
    CleanupStatus,
)


class TestCleanupQueueItemModel:
    """Тесты для модели CleanupQueueItem."""

    def test_status_values(self):
        assert [s.value for s in CleanupStatus] == ["pending", "processing", "completed", "failed"]

    def test_pending_item(self):
        item = CleanupQueueItem(blob_object_id="pic", status=CleanupStatus.PENDING, retry_count=0)

        assert item.is_pending is True
        assert item.is_failed is False
        assert item.is_poison(3) is False

    @pytest.mark.parametrize(
        "retry_count,error_kind,expected",
        [
            (1, CleanupErrorKind.RETRIABLE, False),
            (3, CleanupErrorKind.RETRIABLE, True),
            (5, None, True),
            (1, CleanupErrorKind.PERMANENT, True),
        ],
    )
    def test_is_poison(self, retry_count, error_kind, expected):
        """Тест: poison = failed с исчерпанным retry budget или permanent ошибкой."""
        item = CleanupQueueItem(
            blob_object_id="pic",
            status=CleanupStatus.FAILED,
            retry_count=retry_count,
            error_kind=error_kind,
        )

        assert item.is_poison(3) is expected

    def test_completed_item_is_never_poison(self):
        item = CleanupQueueItem(blob_object_id="pic", status=CleanupStatus.COMPLETED, retry_count=10)

        assert item.is_poison(3) is False

    def test_repr(self):
        item = CleanupQueueItem(
            id=7, blob_object_id="pic", status=CleanupStatus.FAILED, retry_count=2
        )

        assert repr(item) == (
            "<CleanupQueueItem(id=7, blob_object_id=pic, status=failed, retry_count=2)>"
        )

    def test_table_indexes(self):
        index_names = {index.name for index in CleanupQueueItem.__table__.indexes}

        assert CleanupQueueItem.__tablename__ == "media_blob_cleanup_queue"
        assert {
            "idx_blob_cleanup_pending",
            "idx_blob_cleanup_status",
            "idx_blob_cleanup_blob_object_id",
        } <= index_names
