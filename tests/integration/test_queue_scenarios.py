"""
Integration тесты полного жизненного цикла очереди blob cleanup.

Worker, retry scheduler, garbage collector, orphan reclaim и stats
работают вместе над одной БД (SQLite in-memory).
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from media_cleanup.models.cleanup_queue import CleanupQueueItem, CleanupStatus
from media_cleanup.services.blob_storage.base import DeleteOutcome
from media_cleanup.services.cleanup_worker import CleanupWorker
from media_cleanup.services.enqueue_service import enqueue_blob_cleanup
from media_cleanup.services.garbage_collector_service import GarbageCollectorService
from media_cleanup.services.orphan_reclaim_service import OrphanReclaimService
from media_cleanup.services.queue_stats_service import QueueStatsService
from media_cleanup.services.retry_scheduler_service import RetrySchedulerService

pytestmark = pytest.mark.integration


@pytest.fixture
def worker(fake_adapter):
    return CleanupWorker(fake_adapter, inter_item_delay=0, adapter_timeout=5)


@pytest.fixture
def retry_service():
    return RetrySchedulerService(backoff_base_seconds=0)


@pytest.mark.asyncio
async def test_successful_cleanup(worker, fake_adapter, db_session, reload):
    """Pending запись обрабатывается, blob удаляется ровно один раз."""
    fake_adapter.existing.add("x")
    item = await enqueue_blob_cleanup(db_session, "x")
    await db_session.commit()

    await worker.process_batch(db_session, 10)

    item = await reload(item)
    assert item.status == CleanupStatus.COMPLETED
    assert item.processed_at is not None
    assert fake_adapter.call_count("x") == 1
    assert "x" not in fake_adapter.existing


@pytest.mark.asyncio
async def test_transient_failure_then_retry(worker, retry_service, fake_adapter, db_session, reload):
    """Временная ошибка → failed → retry → pending → completed."""
    fake_adapter.script("x", ConnectionError("network unreachable"))
    item = await enqueue_blob_cleanup(db_session, "x")
    await db_session.commit()

    await worker.process_batch(db_session, 10)

    item = await reload(item)
    assert item.status == CleanupStatus.FAILED
    assert item.retry_count == 1
    assert item.error_message

    assert await retry_service.retry_failed_cleanups(db_session, 3) == 1

    item = await reload(item)
    assert item.status == CleanupStatus.PENDING
    assert item.error_message is None

    await worker.process_batch(db_session, 10)

    item = await reload(item)
    assert item.status == CleanupStatus.COMPLETED
    assert item.retry_count == 1


@pytest.mark.asyncio
async def test_exhausted_retries_stay_failed(worker, retry_service, fake_adapter, db_session, reload):
    """После трёх ошибок подряд запись остаётся failed."""
    fake_adapter.script(
        "x",
        DeleteOutcome.retriable("HTTP 500: error"),
        DeleteOutcome.retriable("HTTP 502: error"),
        DeleteOutcome.retriable("HTTP 503: error"),
    )
    item = await enqueue_blob_cleanup(db_session, "x")
    await db_session.commit()

    for attempt in range(3):
        await worker.process_batch(db_session, 10)
        if attempt < 2:
            assert await retry_service.retry_failed_cleanups(db_session, 3) == 1

    item = await reload(item)
    assert item.retry_count == 3

    assert await retry_service.retry_failed_cleanups(db_session, 3) == 0

    item = await reload(item)
    assert item.status == CleanupStatus.FAILED
    assert item.error_message == "HTTP 503: error"
    assert item.is_poison(3)


@pytest.mark.asyncio
async def test_partial_batch_leaves_remaining_pending(worker, db_session):
    """15 pending, batch 10 → 10 обработано, 5 pending."""
    for i in range(15):
        await enqueue_blob_cleanup(db_session, f"blob-{i}")
    await db_session.commit()

    summary = await worker.process_batch(db_session, 10)
    stats = await QueueStatsService().get_queue_stats(db_session)

    assert summary.processed + summary.failed == 10
    assert stats.pending == 5
    assert stats.completed == 10


@pytest.mark.asyncio
async def test_garbage_collection_scope(db_session, make_item):
    """Удаляется только completed запись старше 30 дней."""
    now = datetime.now(timezone.utc)
    old_completed = await make_item(
        "a", status=CleanupStatus.COMPLETED, processed_at=now - timedelta(days=40)
    )
    recent_completed = await make_item(
        "b", status=CleanupStatus.COMPLETED, processed_at=now - timedelta(days=5)
    )
    old_failed = await make_item(
        "c", status=CleanupStatus.FAILED, retry_count=3, processed_at=now - timedelta(days=40)
    )

    purged = await GarbageCollectorService().cleanup_old_records(db_session, 30)

    remaining = set((await db_session.execute(select(CleanupQueueItem.id))).scalars().all())
    assert purged == 1
    assert remaining == {recent_completed.id, old_failed.id}
    assert old_completed.id not in remaining


@pytest.mark.asyncio
async def test_two_workers_never_process_same_item(fake_adapter, session_maker, make_item):
    """Два worker по очереди над одной очередью: каждый blob удалён один раз."""
    for i in range(6):
        await make_item(f"blob-{i}")

    worker_a = CleanupWorker(fake_adapter, inter_item_delay=0, worker_id="worker-a")
    worker_b = CleanupWorker(fake_adapter, inter_item_delay=0, worker_id="worker-b")

    async with session_maker() as session_a, session_maker() as session_b:
        first = await worker_a.process_batch(session_a, 4)
        second = await worker_b.process_batch(session_b, 4)

    assert first.processed == 4
    assert second.processed == 2
    assert sorted(fake_adapter.calls) == sorted(f"blob-{i}" for i in range(6))


@pytest.mark.asyncio
async def test_crashed_worker_item_is_reclaimed_and_finished(
    worker, fake_adapter, db_session, make_item, reload
):
    """Запись, брошенная упавшим worker, возвращается и дообрабатывается."""
    item = await make_item(
        "orphan",
        status=CleanupStatus.PROCESSING,
        claimed_by="crashed-worker",
        retry_count=1,
        processed_at=datetime.now(timezone.utc) - timedelta(hours=1),
    )

    assert await OrphanReclaimService().reclaim_stale_claims(db_session, 900) == 1

    summary = await worker.process_batch(db_session, 10)

    item = await reload(item)
    assert summary.processed == 1
    assert item.status == CleanupStatus.COMPLETED
    assert item.retry_count == 1
    assert fake_adapter.call_count("orphan") == 1


@pytest.mark.asyncio
async def test_permanent_failure_is_operator_visible(
    worker, retry_service, fake_adapter, db_session, reload
):
    """Permanent ошибка не re-armed и учитывается как poison."""
    fake_adapter.script("x", DeleteOutcome.permanent("HTTP 401: invalid credentials"))
    item = await enqueue_blob_cleanup(db_session, "x")
    await db_session.commit()

    await worker.process_batch(db_session, 10)

    assert await retry_service.retry_failed_cleanups(db_session, 3) == 0
    assert (await reload(item)).status == CleanupStatus.FAILED
    assert await QueueStatsService().get_poison_count(db_session, 3) == 1
