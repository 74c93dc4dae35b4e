"""
Queue Stats Service - агрегированная статистика очереди cleanup.
Read-only, используется dashboard и health checks.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.config import settings
from media_cleanup.core.exceptions import QueueStoreError
from media_cleanup.core.metrics import cleanup_queue_items
from media_cleanup.models.cleanup_queue import (
    CleanupErrorKind,
    CleanupQueueItem,
    CleanupStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class QueueStats:
    """Количество записей очереди по статусам."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed


class QueueStatsService:
    """Статистика очереди cleanup."""

    async def get_queue_stats(self, session: AsyncSession) -> QueueStats:
        """
        Подсчёт записей по статусам.

        Также обновляет gauge media_cleanup_queue_items.

        Args:
            session: AsyncSession

        Returns:
            QueueStats: Счётчики по статусам

        Raises:
            QueueStoreError: При ошибке БД
        """
        stmt = (
            select(CleanupQueueItem.status, func.count(CleanupQueueItem.id))
            .group_by(CleanupQueueItem.status)
        )
        rows = await self._fetch(session, stmt, "get_queue_stats")

        stats = QueueStats()
        for status, count in rows:
            setattr(stats, CleanupStatus(status).value, count)

        for status in CleanupStatus:
            cleanup_queue_items.labels(status=status.value).set(getattr(stats, status.value))

        return stats

    async def get_poison_count(
        self,
        session: AsyncSession,
        max_retries: Optional[int] = None,
    ) -> int:
        """
        Количество poison items: failed записей, которые retry scheduler
        больше не re-arm (retry_count >= max_retries или permanent ошибка).

        Args:
            session: AsyncSession
            max_retries: Лимит retry (по умолчанию settings.cleanup.max_retries)

        Returns:
            int: Количество poison items

        Raises:
            QueueStoreError: При ошибке БД
        """
        limit = max_retries if max_retries is not None else settings.cleanup.max_retries

        stmt = select(func.count(CleanupQueueItem.id)).where(
            CleanupQueueItem.status == CleanupStatus.FAILED,
            or_(
                CleanupQueueItem.retry_count >= limit,
                CleanupQueueItem.error_kind == CleanupErrorKind.PERMANENT,
            ),
        )
        rows = await self._fetch(session, stmt, "get_poison_count")
        return rows[0][0] if rows else 0

    async def _fetch(self, session: AsyncSession, stmt, operation: str) -> list:
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Failed to read queue stats: {e}", extra={"operation": operation})
            raise QueueStoreError(operation, str(e)) from e
        return result.all()


queue_stats_service = QueueStatsService()
