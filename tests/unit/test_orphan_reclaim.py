"""
Unit тесты для OrphanReclaimService.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from media_cleanup.core.exceptions import QueueStoreError
from media_cleanup.models.cleanup_queue import CleanupStatus
from media_cleanup.services.orphan_reclaim_service import OrphanReclaimService


class TestOrphanReclaimService:
    """Тесты для OrphanReclaimService."""

    @pytest.fixture
    def reclaim_service(self):
        return OrphanReclaimService()

    @pytest.mark.asyncio
    async def test_stale_claims_return_to_pending(
        self, reclaim_service, db_session, make_item, reload
    ):
        """Тест: processing старше timeout → pending, retry_count не меняется."""
        item = await make_item(
            "stuck",
            status=CleanupStatus.PROCESSING,
            retry_count=2,
            claimed_by="crashed-worker",
            processed_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )

        reclaimed = await reclaim_service.reclaim_stale_claims(db_session, timeout_seconds=900)

        item = await reload(item)
        assert reclaimed == 1
        assert item.status == CleanupStatus.PENDING
        assert item.claimed_by is None
        assert item.processed_at is None
        assert item.retry_count == 2

    @pytest.mark.asyncio
    async def test_fresh_claims_are_kept(self, reclaim_service, db_session, make_item, reload):
        """Тест: свежий claim не трогается."""
        item = await make_item(
            "busy",
            status=CleanupStatus.PROCESSING,
            claimed_by="live-worker",
            processed_at=datetime.now(timezone.utc) - timedelta(seconds=30),
        )

        reclaimed = await reclaim_service.reclaim_stale_claims(db_session, timeout_seconds=900)

        item = await reload(item)
        assert reclaimed == 0
        assert item.status == CleanupStatus.PROCESSING
        assert item.claimed_by == "live-worker"

    @pytest.mark.asyncio
    async def test_other_statuses_are_ignored(self, reclaim_service, db_session, make_item, reload):
        old = datetime.now(timezone.utc) - timedelta(days=2)
        failed = await make_item("f", status=CleanupStatus.FAILED, retry_count=1, processed_at=old)
        completed = await make_item("c", status=CleanupStatus.COMPLETED, processed_at=old)

        reclaimed = await reclaim_service.reclaim_stale_claims(db_session, timeout_seconds=60)

        assert reclaimed == 0
        assert (await reload(failed)).status == CleanupStatus.FAILED
        assert (await reload(completed)).status == CleanupStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_database_error_rolls_back_and_raises(self, reclaim_service):
        mock_session = AsyncMock()
        mock_session.execute.side_effect = OperationalError("UPDATE", {}, Exception("db down"))

        with pytest.raises(QueueStoreError):
            await reclaim_service.reclaim_stale_claims(mock_session, timeout_seconds=900)

        mock_session.rollback.assert_awaited_once()
