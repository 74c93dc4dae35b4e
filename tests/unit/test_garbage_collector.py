"""
Unit тесты для GarbageCollectorService.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from media_cleanup.core.exceptions import InvalidQueueItemError, QueueStoreError
from media_cleanup.models.cleanup_queue import CleanupQueueItem, CleanupStatus
from media_cleanup.services.garbage_collector_service import GarbageCollectorService


class TestGarbageCollectorService:
    """Тесты для GarbageCollectorService."""

    @pytest.fixture
    def gc_service(self):
        return GarbageCollectorService()

    async def _remaining_ids(self, session) -> set:
        result = await session.execute(select(CleanupQueueItem.id))
        return set(result.scalars().all())

    @pytest.mark.asyncio
    async def test_purges_only_old_completed_items(self, gc_service, db_session, make_item):
        """Тест: удаляются только completed записи старше days_old."""
        now = datetime.now(timezone.utc)
        old_completed = await make_item(
            "old", status=CleanupStatus.COMPLETED, processed_at=now - timedelta(days=40)
        )
        fresh_completed = await make_item(
            "fresh", status=CleanupStatus.COMPLETED, processed_at=now - timedelta(days=5)
        )
        old_failed = await make_item(
            "failed", status=CleanupStatus.FAILED, retry_count=3,
            processed_at=now - timedelta(days=40),
        )

        purged = await gc_service.cleanup_old_records(db_session, days_old=30)

        assert purged == 1
        remaining = await self._remaining_ids(db_session)
        assert old_completed.id not in remaining
        assert remaining == {fresh_completed.id, old_failed.id}

    @pytest.mark.asyncio
    async def test_never_purges_pending_or_processing(self, gc_service, db_session, make_item):
        """Тест: pending и processing записи любого возраста не удаляются."""
        ancient = datetime.now(timezone.utc) - timedelta(days=365)
        pending = await make_item("p", created_at=ancient)
        processing = await make_item(
            "pr", status=CleanupStatus.PROCESSING, processed_at=ancient, claimed_by="w"
        )

        purged = await gc_service.cleanup_old_records(db_session, days_old=0)

        assert purged == 0
        assert await self._remaining_ids(db_session) == {pending.id, processing.id}

    @pytest.mark.asyncio
    async def test_zero_days_purges_all_completed(self, gc_service, db_session, make_item):
        now = datetime.now(timezone.utc)
        await make_item("a", status=CleanupStatus.COMPLETED, processed_at=now - timedelta(seconds=5))
        await make_item("b", status=CleanupStatus.COMPLETED, processed_at=now - timedelta(hours=1))

        purged = await gc_service.cleanup_old_records(db_session, days_old=0)

        assert purged == 2

    @pytest.mark.asyncio
    async def test_negative_days_rejected(self, gc_service, db_session):
        with pytest.raises(InvalidQueueItemError):
            await gc_service.cleanup_old_records(db_session, days_old=-1)

    @pytest.mark.asyncio
    async def test_database_error_rolls_back_and_raises(self, gc_service):
        """Тест: ошибка БД → rollback и QueueStoreError."""
        mock_session = AsyncMock()
        mock_session.execute.side_effect = OperationalError("DELETE", {}, Exception("db down"))

        with pytest.raises(QueueStoreError) as exc_info:
            await gc_service.cleanup_old_records(mock_session, days_old=30)

        assert exc_info.value.operation == "cleanup_old_records"
        mock_session.rollback.assert_awaited_once()
