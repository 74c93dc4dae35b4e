"""
Media Cleanup - Blob Cleanup Queue Model.

Outbox-очередь намерений удалить blob из удалённого хранилища (Cloudinary).
Запись создаётся при удалении записи каталога медиа через любой путь
(UI, admin bulk, cascade), worker асинхронно удаляет blob.

State machine:
    pending → processing → completed
                         ↘ failed → (retry scheduler) → pending

    processing → (orphan reclaim, stale claim) → pending

Правила переходов:
- claim: только из pending (compare-and-swap по status)
- complete/fail: только из processing, claimed_by == текущий worker
- retry: только из failed, retry_count < max_retries, error_kind != permanent
- purge (GC): только completed
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Enum as SQLEnum, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from media_cleanup.models.base import Base


class CleanupStatus(str, enum.Enum):
    """
    Статусы записи очереди cleanup.

    Workflow:
    PENDING → PROCESSING → COMPLETED
                         ↘ FAILED → PENDING (retry)
    """
    PENDING = "pending"           # Ожидает обработки worker
    PROCESSING = "processing"     # Захвачена worker (claim)
    COMPLETED = "completed"       # Blob удалён или уже отсутствовал
    FAILED = "failed"             # Ошибка удаления, ждёт retry scheduler


class CleanupErrorKind(str, enum.Enum):
    """Классификация ошибки для failed записей."""
    RETRIABLE = "retriable"       # Network, timeout, 5xx, rate limit
    PERMANENT = "permanent"       # 4xx (auth, bad request) - retry бесполезен


class TriggerSource:
    """Константы для источника постановки в очередь (audit only)."""
    UI_DELETE = "ui_delete"       # Удаление из медиатеки
    ADMIN_BULK = "admin_bulk"     # Массовая операция администратора
    CASCADE = "cascade"           # Каскадное удаление
    MANUAL = "manual"             # Ручная постановка оператором


class ResourceType:
    """Cloudinary resource types."""
    IMAGE = "image"
    VIDEO = "video"
    RAW = "raw"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class CleanupQueueItem(Base):
    """
    Запись очереди на удаление blob объекта.

    Attributes:
        id: Монотонный ID записи (ключ упорядочивания)
        blob_object_id: ID объекта в blob storage (Cloudinary public_id)
        resource_type: Cloudinary resource type (image, video, raw)
        original_filename: Имя файла (информационно)
        status: Статус в state machine
        trigger_source: Что вызвало постановку в очередь (audit)
        error_message: Текст ошибки (только для failed)
        error_kind: retriable/permanent (только для failed)
        retry_count: Количество failed переходов, никогда не уменьшается
        claimed_by: ID worker, держащего processing claim
        created_at: Дата постановки в очередь
        deleted_at: Дата удаления записи каталога
        processed_at: Дата последнего перехода из pending
    """

    __tablename__ = "media_blob_cleanup_queue"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
        comment="Уникальный ID записи"
    )

    blob_object_id: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="ID объекта в blob storage (Cloudinary public_id)"
    )

    resource_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ResourceType.IMAGE,
        server_default=ResourceType.IMAGE,
        comment="Cloudinary resource type: image, video, raw"
    )

    original_filename: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Оригинальное имя файла (информационно)"
    )

    status: Mapped[CleanupStatus] = mapped_column(
        SQLEnum(
            CleanupStatus,
            name="cleanup_status_enum",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=CleanupStatus.PENDING,
        server_default=CleanupStatus.PENDING.value,
        comment="Статус: pending, processing, completed, failed"
    )

    trigger_source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=TriggerSource.MANUAL,
        server_default=TriggerSource.MANUAL,
        comment="Источник: ui_delete, admin_bulk, cascade, manual"
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Сообщение об ошибке (только failed)"
    )

    error_kind: Mapped[Optional[CleanupErrorKind]] = mapped_column(
        SQLEnum(
            CleanupErrorKind,
            name="cleanup_error_kind_enum",
            values_callable=_enum_values,
        ),
        nullable=True,
        comment="Классификация ошибки: retriable, permanent"
    )

    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Количество failed попыток"
    )

    claimed_by: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="ID worker, захватившего запись"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Дата добавления в очередь"
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Дата удаления записи каталога"
    )

    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Дата последнего перехода из pending"
    )

    __table_args__ = (
        Index(
            "idx_blob_cleanup_pending",
            "created_at",
            "id",
            postgresql_where=text("status = 'pending'"),
        ),
        Index("idx_blob_cleanup_status", "status"),
        Index("idx_blob_cleanup_blob_object_id", "blob_object_id"),
    )

    def __repr__(self) -> str:
        """Строковое представление записи."""
        return (
            f"<CleanupQueueItem(id={self.id}, "
            f"blob_object_id={self.blob_object_id}, "
            f"status={self.status.value if self.status else None}, "
            f"retry_count={self.retry_count})>"
        )

    @property
    def is_pending(self) -> bool:
        """Ожидает ли запись обработки."""
        return self.status == CleanupStatus.PENDING

    @property
    def is_failed(self) -> bool:
        """Завершилась ли последняя попытка ошибкой."""
        return self.status == CleanupStatus.FAILED

    def is_poison(self, max_retries: int) -> bool:
        """
        Проверка, исчерпала ли запись retry budget.

        Poison item не будет re-armed автоматически и требует
        вмешательства оператора.
        """
        if not self.is_failed:
            return False
        return self.retry_count >= max_retries or self.error_kind == CleanupErrorKind.PERMANENT
