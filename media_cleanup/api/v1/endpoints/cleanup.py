"""
Media Cleanup - Cleanup Queue API Endpoints.

Endpoints:
- GET /api/v1/cleanup/stats - Статистика очереди
- POST /api/v1/cleanup/process - Ручной запуск retry + одного batch
- POST /api/v1/cleanup/gc - Удаление старых completed записей
- POST /api/v1/cleanup/reclaim - Возврат stale claims в pending

Те же операции выполняются по расписанию через APScheduler,
endpoints нужны для ручного запуска оператором.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.database import get_db
from media_cleanup.core.exceptions import InvalidQueueItemError, QueueStoreError
from media_cleanup.schemas.cleanup import (
    GarbageCollectRequest,
    GarbageCollectResponse,
    ProcessQueueRequest,
    ProcessQueueResponse,
    QueueStatsResponse,
    ReclaimResponse,
)
from media_cleanup.services.cleanup_worker import CleanupWorker
from media_cleanup.services.garbage_collector_service import garbage_collector_service
from media_cleanup.services.orphan_reclaim_service import orphan_reclaim_service
from media_cleanup.services.queue_stats_service import queue_stats_service
from media_cleanup.services.retry_scheduler_service import retry_scheduler_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cleanup", tags=["cleanup-queue"])


def get_cleanup_worker(request: Request) -> Optional[CleanupWorker]:
    """
    Dependency: экземпляр CleanupWorker приложения.

    Создаётся в lifespan, None если blob storage не сконфигурирован.
    """
    return getattr(request.app.state, "cleanup_worker", None)


def _store_unavailable(e: QueueStoreError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(e),
    )


@router.get(
    "/stats",
    response_model=QueueStatsResponse,
    summary="Статистика очереди cleanup",
)
async def get_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> QueueStatsResponse:
    """
    Количество записей по статусам и количество poison items.
    """
    try:
        stats = await queue_stats_service.get_queue_stats(db)
        poison = await queue_stats_service.get_poison_count(db)
    except QueueStoreError as e:
        raise _store_unavailable(e)

    return QueueStatsResponse(
        pending=stats.pending,
        processing=stats.processing,
        completed=stats.completed,
        failed=stats.failed,
        total=stats.total,
        poison=poison,
    )


@router.post(
    "/process",
    response_model=ProcessQueueResponse,
    summary="Обработать очередь cleanup",
)
async def process_queue(
    db: Annotated[AsyncSession, Depends(get_db)],
    worker: Annotated[Optional[CleanupWorker], Depends(get_cleanup_worker)],
    request_data: Optional[ProcessQueueRequest] = None,
) -> ProcessQueueResponse:
    """
    Ручной запуск: retry failed записей (опционально) и один batch worker.

    Raises:
        HTTPException 503: Blob storage не сконфигурирован или ошибка БД
    """
    params = request_data or ProcessQueueRequest()

    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Blob storage adapter is not configured",
        )

    requeued = 0
    try:
        if params.retry_failed:
            requeued = await retry_scheduler_service.retry_failed_cleanups(
                db, max_retries=params.max_retries
            )
        summary = await worker.process_batch(db, batch_size=params.batch_size)
    except QueueStoreError as e:
        raise _store_unavailable(e)
    except InvalidQueueItemError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    return ProcessQueueResponse(
        requeued=requeued,
        processed=summary.processed,
        failed=summary.failed,
        pending=summary.pending,
        skipped=summary.skipped,
    )


@router.post(
    "/gc",
    response_model=GarbageCollectResponse,
    summary="Удалить старые completed записи",
)
async def garbage_collect(
    db: Annotated[AsyncSession, Depends(get_db)],
    request_data: Optional[GarbageCollectRequest] = None,
) -> GarbageCollectResponse:
    params = request_data or GarbageCollectRequest()

    try:
        purged = await garbage_collector_service.cleanup_old_records(db, days_old=params.days_old)
    except QueueStoreError as e:
        raise _store_unavailable(e)

    return GarbageCollectResponse(purged=purged)


@router.post(
    "/reclaim",
    response_model=ReclaimResponse,
    summary="Вернуть stale claims в pending",
)
async def reclaim(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReclaimResponse:
    try:
        reclaimed = await orphan_reclaim_service.reclaim_stale_claims(db)
    except QueueStoreError as e:
        raise _store_unavailable(e)

    return ReclaimResponse(reclaimed=reclaimed)
