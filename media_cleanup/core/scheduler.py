"""
APScheduler background задачи для Media Cleanup.

Функции:
- Cleanup worker: обработка pending записей (каждые 30 секунд)
- Retry scheduler: failed → pending для записей с retry budget
- Orphan reclaim: stale processing → pending
- Garbage collection: удаление старых completed записей
- Graceful shutdown при остановке приложения
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pytz import timezone as pytz_timezone
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.config import settings
from media_cleanup.core.database import create_standalone_engine, create_standalone_session_maker
from media_cleanup.core.exceptions import BlobStorageConfigurationError
from media_cleanup.services.blob_storage import get_blob_storage_adapter
from media_cleanup.services.cleanup_worker import CleanupWorker
from media_cleanup.services.garbage_collector_service import garbage_collector_service
from media_cleanup.services.orphan_reclaim_service import orphan_reclaim_service
from media_cleanup.services.retry_scheduler_service import retry_scheduler_service

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


async def _run_with_standalone_session(body: Callable[[AsyncSession], Awaitable[None]]) -> None:
    """
    Выполнение async тела job с собственным engine.

    ВАЖНО: asyncio.run() создаёт новый event loop в потоке scheduler,
    глобальный engine FastAPI в нём не работает.
    """
    engine = create_standalone_engine()
    session_maker = create_standalone_session_maker(engine)
    try:
        async with session_maker() as session:
            await body(session)
    finally:
        await engine.dispose()


def cleanup_worker_job() -> None:
    """
    Background задача обработки очереди blob cleanup.

    Новый CleanupWorker (и новый worker_id) на каждый запуск.
    Пропускается, если Cloudinary credentials не заданы.
    """
    logger.debug("Cleanup worker job started")

    async def _process(session: AsyncSession) -> None:
        try:
            adapter = get_blob_storage_adapter()
        except BlobStorageConfigurationError as e:
            logger.warning(f"Cleanup worker job skipped: {e}")
            return

        worker = CleanupWorker(adapter)
        try:
            summary = await worker.process_batch(session)
        finally:
            await adapter.close()

        if summary.processed or summary.failed:
            logger.info(
                f"Cleanup worker job completed: processed={summary.processed}, "
                f"failed={summary.failed}, pending={summary.pending}"
            )

    try:
        asyncio.run(_run_with_standalone_session(_process))
    except Exception as e:
        logger.error(f"Cleanup worker job failed with exception: {e}", exc_info=True)


def retry_failed_job() -> None:
    """
    Background задача re-arm failed записей.

    Выполняется согласно scheduler.retry_interval_minutes.
    Без backoff интервал job - единственная задержка между попытками.
    """
    logger.debug("Retry failed cleanups job started")

    async def _retry(session: AsyncSession) -> None:
        requeued = await retry_scheduler_service.retry_failed_cleanups(
            session, max_retries=settings.cleanup.max_retries
        )
        if requeued:
            logger.info(f"Retry job completed: requeued={requeued}")

    try:
        asyncio.run(_run_with_standalone_session(_retry))
    except Exception as e:
        logger.error(f"Retry failed cleanups job failed with exception: {e}", exc_info=True)


def orphan_reclaim_job() -> None:
    """Background задача возврата stale processing claims в pending."""
    logger.debug("Orphan reclaim job started")

    async def _reclaim(session: AsyncSession) -> None:
        await orphan_reclaim_service.reclaim_stale_claims(
            session, timeout_seconds=settings.cleanup.reclaim_timeout_seconds
        )

    try:
        asyncio.run(_run_with_standalone_session(_reclaim))
    except Exception as e:
        logger.error(f"Orphan reclaim job failed with exception: {e}", exc_info=True)


def garbage_collection_job() -> None:
    """
    Background задача удаления completed записей старше cleanup.gc_days_old.

    Выполняется согласно scheduler.gc_interval_hours.
    """
    logger.info("Garbage Collection job started")

    async def _gc(session: AsyncSession) -> None:
        purged = await garbage_collector_service.cleanup_old_records(
            session, days_old=settings.cleanup.gc_days_old
        )
        logger.info(f"Garbage Collection completed: purged={purged}")

    try:
        asyncio.run(_run_with_standalone_session(_gc))
    except Exception as e:
        logger.error(f"Garbage Collection job failed with exception: {e}", exc_info=True)


def job_listener(event) -> None:
    """
    Listener для событий APScheduler.

    Args:
        event: Событие от APScheduler (EVENT_JOB_EXECUTED или EVENT_JOB_ERROR)
    """
    extra = {
        "job_id": event.job_id,
        "scheduled_run_time": event.scheduled_run_time.isoformat() if event.scheduled_run_time else None
    }
    if event.exception:
        logger.error(f"Job {event.job_id} raised exception: {event.exception}", extra=extra)
    else:
        logger.debug(f"Job {event.job_id} executed successfully", extra=extra)


def init_scheduler() -> Optional[BackgroundScheduler]:
    """
    Инициализация APScheduler с background задачами.

    Returns:
        Optional[BackgroundScheduler]: Scheduler instance или None если disabled

    Raises:
        Exception: При ошибке инициализации scheduler
    """
    global _scheduler

    if not settings.scheduler.enabled:
        logger.info("Scheduler disabled in configuration")
        return None

    if _scheduler is not None:
        logger.warning("Scheduler already initialized")
        return _scheduler

    try:
        tz = pytz_timezone(settings.scheduler.timezone)
        _scheduler = BackgroundScheduler(timezone=tz)

        _scheduler.add_listener(
            job_listener,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR
        )

        jobs = [
            (
                settings.scheduler.worker_enabled,
                cleanup_worker_job,
                "cleanup_worker",
                "Blob Cleanup Worker",
                {"seconds": settings.scheduler.worker_interval_seconds},
                60,
            ),
            (
                settings.scheduler.retry_enabled,
                retry_failed_job,
                "cleanup_retry_failed",
                "Blob Cleanup Retry Scheduler",
                {"minutes": settings.scheduler.retry_interval_minutes},
                300,
            ),
            (
                settings.scheduler.reclaim_enabled,
                orphan_reclaim_job,
                "cleanup_orphan_reclaim",
                "Blob Cleanup Orphan Reclaim",
                {"minutes": settings.scheduler.reclaim_interval_minutes},
                300,
            ),
            (
                settings.scheduler.gc_enabled,
                garbage_collection_job,
                "cleanup_garbage_collection",
                "Blob Cleanup Garbage Collection",
                {"hours": settings.scheduler.gc_interval_hours},
                3600,
            ),
        ]

        for enabled, func, job_id, name, interval, grace_time in jobs:
            if not enabled:
                continue

            _scheduler.add_job(
                func=func,
                trigger=IntervalTrigger(timezone=tz, **interval),
                id=job_id,
                name=name,
                replace_existing=True,
                max_instances=1,  # Только одна инстанция job может выполняться одновременно
                coalesce=True,  # Если пропущено несколько запусков, выполнить только один
                misfire_grace_time=grace_time
            )
            logger.info(
                f"{name} job scheduled: interval={interval}, "
                f"timezone={settings.scheduler.timezone}"
            )

        _scheduler.start()
        logger.info("APScheduler started successfully")

        return _scheduler

    except Exception as e:
        logger.error(f"Failed to initialize scheduler: {e}", exc_info=True)
        raise


def shutdown_scheduler() -> None:
    """
    Graceful shutdown scheduler при остановке приложения.
    Ожидает завершения running jobs.
    """
    global _scheduler

    if _scheduler is None:
        return

    try:
        logger.info("Shutting down scheduler...")
        _scheduler.shutdown(wait=True)
        _scheduler = None
        logger.info("Scheduler shut down successfully")

    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)


def get_scheduler() -> Optional[BackgroundScheduler]:
    """Текущий scheduler instance или None."""
    return _scheduler


def get_scheduler_status() -> dict:
    """
    Получение статуса scheduler и его jobs.

    Returns:
        dict: enabled, running и список jobs с next_run_time
    """
    if _scheduler is None:
        return {
            "enabled": settings.scheduler.enabled,
            "running": False,
            "jobs": []
        }

    return {
        "enabled": settings.scheduler.enabled,
        "running": _scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in _scheduler.get_jobs()
        ]
    }
