"""
Garbage Collector Service для очереди blob cleanup.

Удаляет completed записи старше days_old дней (по processed_at).
Записи в любом другом статусе никогда не удаляются, независимо от возраста.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.config import settings
from media_cleanup.core.exceptions import InvalidQueueItemError, QueueStoreError
from media_cleanup.core.metrics import cleanup_job_last_run_timestamp, cleanup_purged_total
from media_cleanup.models.cleanup_queue import CleanupQueueItem, CleanupStatus

logger = logging.getLogger(__name__)


class GarbageCollectorService:
    """Сервис очистки старых completed записей очереди."""

    async def cleanup_old_records(
        self,
        session: AsyncSession,
        days_old: Optional[int] = None,
    ) -> int:
        """
        Удаление completed записей с processed_at < now - days_old.

        Args:
            session: AsyncSession
            days_old: Возраст записей в днях (по умолчанию settings.cleanup.gc_days_old)

        Returns:
            int: Количество удалённых записей

        Raises:
            InvalidQueueItemError: Если days_old < 0
            QueueStoreError: Ошибка БД, изменения откатаны
        """
        days = days_old if days_old is not None else settings.cleanup.gc_days_old
        if days < 0:
            raise InvalidQueueItemError(f"days_old должен быть >= 0, получено {days}")

        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        stmt = (
            delete(CleanupQueueItem)
            .where(
                CleanupQueueItem.status == CleanupStatus.COMPLETED,
                CleanupQueueItem.processed_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Cleanup queue garbage collection failed: {e}", exc_info=True)
            raise QueueStoreError("cleanup_old_records", str(e)) from e

        purged = result.rowcount
        cleanup_purged_total.inc(purged)
        cleanup_job_last_run_timestamp.labels(job="gc").set(time.time())

        logger.info(
            "Old completed cleanup items purged",
            extra={"purged": purged, "days_old": days}
        )

        return purged


garbage_collector_service = GarbageCollectorService()
