"""
Orphan Reclaim Service.

Worker, упавший между claim и записью результата, оставляет запись
в processing навсегда. Sweep возвращает такие записи в pending,
если claim старше timeout_seconds. retry_count не меняется:
crash worker не является ошибкой удаления.

Timeout обязан быть заметно больше adapter_timeout * batch_size,
иначе будет reclaimed запись, которую worker ещё обрабатывает
(результат такого worker будет отброшен conditional записью).
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.config import settings
from media_cleanup.core.exceptions import InvalidQueueItemError, QueueStoreError
from media_cleanup.core.metrics import cleanup_job_last_run_timestamp, cleanup_reclaimed_total
from media_cleanup.models.cleanup_queue import CleanupQueueItem, CleanupStatus

logger = logging.getLogger(__name__)


class OrphanReclaimService:
    """Возврат stale processing claims в pending."""

    async def reclaim_stale_claims(
        self,
        session: AsyncSession,
        timeout_seconds: Optional[int] = None,
    ) -> int:
        """
        processing → pending для claims старше timeout_seconds.

        Args:
            session: AsyncSession
            timeout_seconds: Возраст claim (по умолчанию settings.cleanup.reclaim_timeout_seconds)

        Returns:
            int: Количество возвращённых записей

        Raises:
            InvalidQueueItemError: Если timeout_seconds < 0
            QueueStoreError: Ошибка БД, изменения откатаны
        """
        timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.cleanup.reclaim_timeout_seconds
        )
        if timeout < 0:
            raise InvalidQueueItemError(f"timeout_seconds должен быть >= 0, получено {timeout}")

        cutoff = datetime.now(timezone.utc) - timedelta(seconds=timeout)

        stmt = (
            update(CleanupQueueItem)
            .where(
                CleanupQueueItem.status == CleanupStatus.PROCESSING,
                CleanupQueueItem.processed_at < cutoff,
            )
            .values(
                status=CleanupStatus.PENDING,
                claimed_by=None,
                processed_at=None,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Reclaim of stale cleanup claims failed: {e}", exc_info=True)
            raise QueueStoreError("reclaim_stale_claims", str(e)) from e

        reclaimed = result.rowcount
        cleanup_reclaimed_total.inc(reclaimed)
        cleanup_job_last_run_timestamp.labels(job="reclaim").set(time.time())

        if reclaimed:
            logger.warning(
                "Stale cleanup claims returned to pending",
                extra={"reclaimed": reclaimed, "timeout_seconds": timeout}
            )

        return reclaimed


orphan_reclaim_service = OrphanReclaimService()
