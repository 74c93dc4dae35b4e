"""
Enqueue helper для очереди blob cleanup.

Вызывается кодом каталога медиа при удалении записи, ссылающейся на blob.
Запись добавляется в session вызывающего и коммитится в одной транзакции
с удалением записи каталога (outbox pattern).
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.exceptions import InvalidQueueItemError
from media_cleanup.models.cleanup_queue import (
    CleanupQueueItem,
    CleanupStatus,
    ResourceType,
    TriggerSource,
)

logger = logging.getLogger(__name__)


async def enqueue_blob_cleanup(
    session: AsyncSession,
    blob_object_id: str,
    original_filename: Optional[str] = None,
    trigger_source: str = TriggerSource.MANUAL,
    deleted_at: Optional[datetime] = None,
    resource_type: str = ResourceType.IMAGE,
) -> CleanupQueueItem:
    """
    Постановка blob объекта в очередь на удаление.

    Выполняет flush, но не commit: транзакцией управляет вызывающий.
    Дубликаты допустимы, adapter идемпотентен.

    Args:
        session: Session вызывающего (та же, что удаляет запись каталога)
        blob_object_id: ID объекта в blob storage
        original_filename: Имя файла (информационно)
        trigger_source: Источник удаления (audit)
        deleted_at: Время удаления записи каталога
        resource_type: Cloudinary resource type

    Returns:
        CleanupQueueItem: Созданная запись со status=pending

    Raises:
        InvalidQueueItemError: Если blob_object_id пустой
    """
    if not blob_object_id or not blob_object_id.strip():
        raise InvalidQueueItemError("blob_object_id не может быть пустым")

    item = CleanupQueueItem(
        blob_object_id=blob_object_id,
        original_filename=original_filename,
        trigger_source=trigger_source,
        deleted_at=deleted_at,
        resource_type=resource_type,
        status=CleanupStatus.PENDING,
        retry_count=0,
    )
    session.add(item)
    await session.flush()

    logger.debug(
        "Blob cleanup enqueued",
        extra={
            "queue_item_id": item.id,
            "blob_object_id": blob_object_id,
            "trigger_source": trigger_source,
        }
    )

    return item
