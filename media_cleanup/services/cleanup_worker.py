"""
Cleanup Worker - обработка очереди blob cleanup.

Цикл process_batch:
1. SELECT pending записей (created_at ASC, id ASC), LIMIT batch_size
2. Claim каждой записи: UPDATE ... SET status='processing'
   WHERE id=:id AND status='pending' (compare-and-swap)
3. Последовательный вызов adapter.delete() с паузой между вызовами,
   перед каждым вызовом повторная проверка claim
4. Запись результата: UPDATE ... WHERE status='processing' AND claimed_by=:worker_id

Единственная граница корректности при нескольких worker процессах -
conditional claim в БД. Флаг _processing защищает только от
наложения batch внутри одного экземпляра worker.

Ошибка одной записи не прерывает обработку остальных.
"""

import asyncio
import logging
import os
import socket
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.config import settings
from media_cleanup.core.exceptions import InvalidQueueItemError, QueueStoreError
from media_cleanup.core.metrics import (
    blob_delete_duration_seconds,
    cleanup_batch_duration_seconds,
    cleanup_claims_lost_total,
    cleanup_items_total,
    cleanup_job_last_run_timestamp,
)
from media_cleanup.models.cleanup_queue import (
    CleanupErrorKind,
    CleanupQueueItem,
    CleanupStatus,
)
from media_cleanup.services.blob_storage.base import (
    BlobStorageAdapter,
    DeleteOutcome,
    DeleteOutcomeKind,
)

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """
    Результат одного вызова process_batch.

    Attributes:
        processed: Записи, переведённые в completed
        failed: Записи, переведённые в failed (или потерявшие запись результата)
        pending: Количество pending записей после batch
        skipped: True если batch не запускался (уже идёт другой batch)
    """

    processed: int = 0
    failed: int = 0
    pending: int = 0
    skipped: bool = False


@dataclass
class _ClaimedItem:
    id: int
    blob_object_id: str
    resource_type: str


def generate_worker_id() -> str:
    """Уникальный ID экземпляра worker: hostname-pid-random."""
    return f"{socket.gethostname()[:32]}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


class CleanupWorker:
    """
    Worker очереди blob cleanup.

    Экземпляр создаётся на процесс (FastAPI app) или на запуск job
    (APScheduler), глобального состояния нет.

    Attributes:
        adapter: Blob storage adapter
        worker_id: ID для claimed_by
        batch_size: Размер batch по умолчанию
        inter_item_delay: Пауза между вызовами adapter (секунды)
        adapter_timeout: Timeout одного вызова adapter (секунды)
    """

    def __init__(
        self,
        adapter: BlobStorageAdapter,
        batch_size: Optional[int] = None,
        inter_item_delay: Optional[float] = None,
        adapter_timeout: Optional[float] = None,
        worker_id: Optional[str] = None,
    ):
        self.adapter = adapter
        self.worker_id = worker_id or generate_worker_id()
        self.batch_size = batch_size or settings.cleanup.batch_size
        self.inter_item_delay = (
            inter_item_delay
            if inter_item_delay is not None
            else settings.cleanup.inter_item_delay_seconds
        )
        self.adapter_timeout = adapter_timeout or settings.cleanup.adapter_timeout_seconds
        self._processing = False

    @property
    def is_processing(self) -> bool:
        """Идёт ли сейчас batch в этом экземпляре."""
        return self._processing

    # ========================================================================
    # Main Entry Point
    # ========================================================================

    async def process_batch(
        self,
        session: AsyncSession,
        batch_size: Optional[int] = None,
    ) -> BatchSummary:
        """
        Обработка одного batch pending записей.

        Args:
            session: AsyncSession (коммит после каждого перехода состояния)
            batch_size: Максимум записей за batch (по умолчанию self.batch_size)

        Returns:
            BatchSummary: processed, failed и pending после batch

        Raises:
            InvalidQueueItemError: Если batch_size < 1
            QueueStoreError: Ошибка БД при выборке или подсчёте pending записей
        """
        limit = batch_size if batch_size is not None else self.batch_size
        if limit < 1:
            raise InvalidQueueItemError(f"batch_size должен быть >= 1, получено {limit}")

        if self._processing:
            logger.info(
                "Cleanup batch already running in this worker, skipping",
                extra={"worker_id": self.worker_id}
            )
            return BatchSummary(skipped=True)

        self._processing = True
        started = time.monotonic()
        summary = BatchSummary()

        try:
            candidates = await self._select_pending(session, limit)
            claimed = await self._claim_items(session, candidates)

            for index, item in enumerate(claimed):
                if index > 0 and self.inter_item_delay > 0:
                    await asyncio.sleep(self.inter_item_delay)

                # Длинный batch может пережить reclaim timeout для последних записей
                if not await self._still_owned(session, item):
                    continue

                completed = await self._process_item(session, item)
                if completed:
                    summary.processed += 1
                else:
                    summary.failed += 1

            summary.pending = await self._count_pending(session)

        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                f"Cleanup batch aborted by database error: {e}",
                extra={"worker_id": self.worker_id}
            )
            raise QueueStoreError("process_batch", str(e)) from e

        finally:
            self._processing = False
            cleanup_batch_duration_seconds.observe(time.monotonic() - started)
            cleanup_job_last_run_timestamp.labels(job="worker").set(time.time())

        logger.info(
            "Cleanup batch finished",
            extra={
                "worker_id": self.worker_id,
                "processed": summary.processed,
                "failed": summary.failed,
                "pending": summary.pending,
            }
        )

        return summary

    # ========================================================================
    # Claim
    # ========================================================================

    async def _select_pending(self, session: AsyncSession, limit: int) -> List[_ClaimedItem]:
        stmt = (
            select(
                CleanupQueueItem.id,
                CleanupQueueItem.blob_object_id,
                CleanupQueueItem.resource_type,
            )
            .where(CleanupQueueItem.status == CleanupStatus.PENDING)
            .order_by(CleanupQueueItem.created_at.asc(), CleanupQueueItem.id.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return [
            _ClaimedItem(id=row.id, blob_object_id=row.blob_object_id, resource_type=row.resource_type)
            for row in result.all()
        ]

    async def _claim_items(
        self,
        session: AsyncSession,
        candidates: List[_ClaimedItem],
    ) -> List[_ClaimedItem]:
        """
        Атомарный claim pending → processing для каждой записи.

        Записи, которые уже забрал другой worker (0 rows affected),
        пропускаются без ошибки.
        """
        claimed = []

        for item in candidates:
            if await self.claim(session, item.id):
                claimed.append(item)

        return claimed

    async def claim(self, session: AsyncSession, item_id: int) -> bool:
        """
        Compare-and-swap claim одной записи.

        Args:
            session: AsyncSession
            item_id: ID записи очереди

        Returns:
            bool: True если claim выполнен этим worker
        """
        stmt = (
            update(CleanupQueueItem)
            .where(
                CleanupQueueItem.id == item_id,
                CleanupQueueItem.status == CleanupStatus.PENDING,
            )
            .values(
                status=CleanupStatus.PROCESSING,
                processed_at=datetime.now(timezone.utc),
                claimed_by=self.worker_id,
            )
            .execution_options(synchronize_session=False)
        )

        try:
            result = await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                f"Failed to claim cleanup item: {e}",
                extra={"queue_item_id": item_id, "worker_id": self.worker_id}
            )
            return False

        if result.rowcount == 0:
            cleanup_claims_lost_total.inc()
            logger.debug(
                "Cleanup item already claimed by another worker",
                extra={"queue_item_id": item_id, "worker_id": self.worker_id}
            )
            return False

        return True

    # ========================================================================
    # Processing
    # ========================================================================

    async def _process_item(self, session: AsyncSession, item: _ClaimedItem) -> bool:
        """
        Удаление blob и запись результата.

        Returns:
            bool: True если запись переведена в completed
        """
        outcome = await self._delete_blob(item)
        cleanup_items_total.labels(outcome=outcome.kind.value).inc()

        if outcome.is_success:
            recorded = await self._record_completed(session, item)
        else:
            logger.warning(
                f"Blob delete failed: {outcome.reason}",
                extra={
                    "queue_item_id": item.id,
                    "blob_object_id": item.blob_object_id,
                    "outcome": outcome.kind.value,
                    "worker_id": self.worker_id,
                }
            )
            await self._record_failed(session, item, outcome)
            return False

        return recorded

    async def _still_owned(self, session: AsyncSession, item: _ClaimedItem) -> bool:
        """
        Проверка claim перед вызовом adapter.

        Запись, возвращённая orphan reclaim после claim, не обрабатывается
        этим worker и не учитывается в processed/failed.
        """
        try:
            result = await session.execute(
                select(CleanupQueueItem.id).where(*self._owned_by_me(item.id))
            )
            owned = result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            # Запись остаётся processing и будет возвращена orphan reclaim
            await session.rollback()
            logger.error(
                f"Failed to verify cleanup claim: {e}",
                extra={"queue_item_id": item.id, "worker_id": self.worker_id}
            )
            return False

        if not owned:
            cleanup_claims_lost_total.inc()
            logger.warning(
                "Cleanup claim lost before blob delete, skipping item",
                extra={
                    "queue_item_id": item.id,
                    "blob_object_id": item.blob_object_id,
                    "worker_id": self.worker_id,
                }
            )
        return owned

    async def _delete_blob(self, item: _ClaimedItem) -> DeleteOutcome:
        """Вызов adapter с timeout; любое исключение - retriable."""
        started = time.monotonic()

        try:
            outcome = await asyncio.wait_for(
                self.adapter.delete(item.blob_object_id, item.resource_type),
                timeout=self.adapter_timeout,
            )
        except asyncio.TimeoutError:
            outcome = DeleteOutcome.retriable(
                f"Blob storage timeout after {self.adapter_timeout}s"
            )
        except Exception as e:
            logger.error(
                f"Unexpected blob storage adapter error: {e}",
                exc_info=True,
                extra={"queue_item_id": item.id, "blob_object_id": item.blob_object_id}
            )
            outcome = DeleteOutcome.retriable(f"{type(e).__name__}: {e}")
        finally:
            blob_delete_duration_seconds.observe(time.monotonic() - started)

        return outcome

    def _owned_by_me(self, item_id: int):
        return (
            CleanupQueueItem.id == item_id,
            CleanupQueueItem.status == CleanupStatus.PROCESSING,
            CleanupQueueItem.claimed_by == self.worker_id,
        )

    async def _record_completed(self, session: AsyncSession, item: _ClaimedItem) -> bool:
        stmt = (
            update(CleanupQueueItem)
            .where(*self._owned_by_me(item.id))
            .values(
                status=CleanupStatus.COMPLETED,
                processed_at=datetime.now(timezone.utc),
                claimed_by=None,
                error_message=None,
                error_kind=None,
            )
            .execution_options(synchronize_session=False)
        )
        written = await self._write_outcome(session, stmt, item)

        if written:
            logger.info(
                "Blob cleanup completed",
                extra={
                    "queue_item_id": item.id,
                    "blob_object_id": item.blob_object_id,
                    "worker_id": self.worker_id,
                }
            )
        return written

    async def _record_failed(
        self,
        session: AsyncSession,
        item: _ClaimedItem,
        outcome: DeleteOutcome,
    ) -> bool:
        error_kind = (
            CleanupErrorKind.PERMANENT
            if outcome.kind == DeleteOutcomeKind.PERMANENT
            else CleanupErrorKind.RETRIABLE
        )
        stmt = (
            update(CleanupQueueItem)
            .where(*self._owned_by_me(item.id))
            .values(
                status=CleanupStatus.FAILED,
                processed_at=datetime.now(timezone.utc),
                claimed_by=None,
                error_message=outcome.reason or "Unknown error",
                error_kind=error_kind,
                retry_count=CleanupQueueItem.retry_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return await self._write_outcome(session, stmt, item)

    async def _write_outcome(self, session: AsyncSession, stmt, item: _ClaimedItem) -> bool:
        """
        Conditional запись результата.

        0 rows affected означает, что claim был reclaimed и запись
        уже может обрабатываться другим worker: результат отбрасывается.
        """
        try:
            result = await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError as e:
            # Запись остаётся processing и будет возвращена orphan reclaim
            await session.rollback()
            logger.error(
                f"Failed to record cleanup outcome: {e}",
                extra={"queue_item_id": item.id, "worker_id": self.worker_id}
            )
            return False

        if result.rowcount == 0:
            logger.warning(
                "Cleanup claim lost before outcome was recorded, dropping outcome",
                extra={
                    "queue_item_id": item.id,
                    "blob_object_id": item.blob_object_id,
                    "worker_id": self.worker_id,
                }
            )
            return False

        return True

    async def _count_pending(self, session: AsyncSession) -> int:
        result = await session.execute(
            select(func.count(CleanupQueueItem.id)).where(
                CleanupQueueItem.status == CleanupStatus.PENDING
            )
        )
        return result.scalar() or 0
