"""
Retry Scheduler Service - re-arm failed записей очереди cleanup.

failed → pending для записей с retry_count < max_retries.
Записи с retry_count >= max_retries и записи с error_kind=permanent
не трогаются (poison items, видны в stats).

Backoff:
- retry_backoff_base_seconds = 0: re-arm сразу, единственная задержка -
  интервал scheduler job
- retry_backoff_base_seconds > 0: запись re-armed только когда
  processed_at <= now - min(base * 2^(retry_count-1), max)
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.config import settings
from media_cleanup.core.exceptions import InvalidQueueItemError, QueueStoreError
from media_cleanup.core.metrics import cleanup_job_last_run_timestamp, cleanup_requeued_total
from media_cleanup.models.cleanup_queue import (
    CleanupErrorKind,
    CleanupQueueItem,
    CleanupStatus,
)

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite возвращает naive datetime (хранится UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RetrySchedulerService:
    """
    Сервис повторной постановки failed записей в очередь.

    Attributes:
        backoff_base_seconds: База экспоненциального backoff (0 = выключен)
        backoff_max_seconds: Верхняя граница backoff
    """

    def __init__(
        self,
        backoff_base_seconds: Optional[int] = None,
        backoff_max_seconds: Optional[int] = None,
    ):
        self.backoff_base_seconds = (
            backoff_base_seconds
            if backoff_base_seconds is not None
            else settings.cleanup.retry_backoff_base_seconds
        )
        self.backoff_max_seconds = (
            backoff_max_seconds
            if backoff_max_seconds is not None
            else settings.cleanup.retry_backoff_max_seconds
        )

    def backoff_delay(self, retry_count: int) -> timedelta:
        """
        Задержка перед re-arm для записи с данным retry_count.

        Args:
            retry_count: Текущее количество failed попыток (>= 1)

        Returns:
            timedelta: base * 2^(retry_count-1), но не больше max
        """
        if self.backoff_base_seconds <= 0:
            return timedelta(0)

        exponent = max(retry_count - 1, 0)
        delay = self.backoff_base_seconds * (2 ** exponent)
        return timedelta(seconds=min(delay, self.backoff_max_seconds))

    async def retry_failed_cleanups(
        self,
        session: AsyncSession,
        max_retries: Optional[int] = None,
    ) -> int:
        """
        Re-arm failed записей, не исчерпавших retry budget.

        Args:
            session: AsyncSession
            max_retries: Лимит retry (по умолчанию settings.cleanup.max_retries)

        Returns:
            int: Количество записей, переведённых в pending

        Raises:
            InvalidQueueItemError: Если max_retries < 0
            QueueStoreError: Ошибка БД, изменения откатаны
        """
        limit = max_retries if max_retries is not None else settings.cleanup.max_retries
        if limit < 0:
            raise InvalidQueueItemError(f"max_retries должен быть >= 0, получено {limit}")

        eligible = (
            CleanupQueueItem.status == CleanupStatus.FAILED,
            CleanupQueueItem.retry_count < limit,
            or_(
                CleanupQueueItem.error_kind.is_(None),
                CleanupQueueItem.error_kind != CleanupErrorKind.PERMANENT,
            ),
        )

        try:
            if self.backoff_base_seconds > 0:
                requeued = await self._requeue_with_backoff(session, eligible)
            else:
                requeued = await self._requeue(session, eligible)
            await session.commit()

        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Retry of failed cleanup items failed: {e}", exc_info=True)
            raise QueueStoreError("retry_failed_cleanups", str(e)) from e

        cleanup_requeued_total.inc(requeued)
        cleanup_job_last_run_timestamp.labels(job="retry").set(time.time())

        logger.info(
            "Failed cleanup items re-armed",
            extra={"requeued": requeued, "max_retries": limit}
        )

        return requeued

    async def _requeue(self, session: AsyncSession, criteria, ids=None) -> int:
        stmt = update(CleanupQueueItem).where(*criteria)
        if ids is not None:
            stmt = stmt.where(CleanupQueueItem.id.in_(ids))

        stmt = stmt.values(
            status=CleanupStatus.PENDING,
            error_message=None,
            error_kind=None,
            processed_at=None,
            claimed_by=None,
        ).execution_options(synchronize_session=False)

        result = await session.execute(stmt)
        return result.rowcount

    async def _requeue_with_backoff(self, session: AsyncSession, criteria) -> int:
        """Re-arm только записей, у которых истекла backoff задержка."""
        result = await session.execute(
            select(
                CleanupQueueItem.id,
                CleanupQueueItem.retry_count,
                CleanupQueueItem.processed_at,
            ).where(*criteria)
        )

        now = datetime.now(timezone.utc)
        due_ids = [
            row.id
            for row in result.all()
            if row.processed_at is None
            or _as_utc(row.processed_at) <= now - self.backoff_delay(row.retry_count)
        ]

        if not due_ids:
            return 0

        # criteria повторяются в UPDATE: запись могла измениться после SELECT
        return await self._requeue(session, criteria, ids=due_ids)


retry_scheduler_service = RetrySchedulerService()
