"""
Unit тесты для QueueStatsService.
"""

from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.exc import OperationalError

from media_cleanup.core.exceptions import QueueStoreError
from media_cleanup.models.cleanup_queue import CleanupErrorKind, CleanupStatus
from media_cleanup.services.queue_stats_service import QueueStats, QueueStatsService


class TestQueueStatsService:
    """Тесты для QueueStatsService."""

    @pytest.fixture
    def stats_service(self):
        return QueueStatsService()

    @pytest.mark.asyncio
    async def test_empty_queue(self, stats_service, db_session):
        stats = await stats_service.get_queue_stats(db_session)

        assert stats == QueueStats()
        assert stats.total == 0

    @pytest.mark.asyncio
    async def test_counts_per_status(self, stats_service, db_session, make_item):
        """Тест: подсчёт по статусам и total."""
        for i in range(3):
            await make_item(f"p-{i}")
        await make_item("pr", status=CleanupStatus.PROCESSING, claimed_by="w")
        await make_item("c1", status=CleanupStatus.COMPLETED)
        await make_item("c2", status=CleanupStatus.COMPLETED)
        await make_item("f", status=CleanupStatus.FAILED, retry_count=1)

        stats = await stats_service.get_queue_stats(db_session)

        assert stats.pending == 3
        assert stats.processing == 1
        assert stats.completed == 2
        assert stats.failed == 1
        assert stats.total == 7

    @pytest.mark.asyncio
    async def test_updates_queue_gauge(self, stats_service, db_session, make_item):
        await make_item("p")
        await make_item("f", status=CleanupStatus.FAILED, retry_count=1)

        await stats_service.get_queue_stats(db_session)

        assert REGISTRY.get_sample_value("media_cleanup_queue_items", {"status": "pending"}) == 1
        assert REGISTRY.get_sample_value("media_cleanup_queue_items", {"status": "failed"}) == 1
        assert REGISTRY.get_sample_value("media_cleanup_queue_items", {"status": "completed"}) == 0

    @pytest.mark.asyncio
    async def test_poison_count(self, stats_service, db_session, make_item):
        """Тест: poison = failed с исчерпанным retry budget или permanent ошибкой."""
        await make_item("exhausted", status=CleanupStatus.FAILED, retry_count=3)
        await make_item(
            "permanent",
            status=CleanupStatus.FAILED,
            retry_count=1,
            error_kind=CleanupErrorKind.PERMANENT,
        )
        await make_item("retriable", status=CleanupStatus.FAILED, retry_count=1)
        await make_item("done", status=CleanupStatus.COMPLETED, retry_count=3)

        assert await stats_service.get_poison_count(db_session, max_retries=3) == 2
        assert await stats_service.get_poison_count(db_session, max_retries=1) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["get_queue_stats", "get_poison_count"])
    async def test_database_error_raises_queue_store_error(self, stats_service, operation):
        """Тест: ошибка БД → rollback и QueueStoreError с именем операции."""
        mock_session = AsyncMock()
        mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        with pytest.raises(QueueStoreError) as exc_info:
            await getattr(stats_service, operation)(mock_session)

        assert exc_info.value.operation == operation
        mock_session.rollback.assert_awaited_once()
