"""
Pydantic схемы для API очереди blob cleanup.
"""

from pydantic import BaseModel, ConfigDict, Field


class QueueStatsResponse(BaseModel):
    """Статистика очереди по статусам."""

    pending: int = Field(description="Ожидают обработки")
    processing: int = Field(description="Захвачены worker")
    completed: int = Field(description="Blob удалён")
    failed: int = Field(description="Ошибка удаления")
    total: int = Field(description="Всего записей")
    poison: int = Field(
        description="Failed записи, которые не будут re-armed автоматически"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "pending": 5,
                "processing": 0,
                "completed": 120,
                "failed": 2,
                "total": 127,
                "poison": 1,
            }
        }
    )


class ProcessQueueRequest(BaseModel):
    """
    Запрос на ручной запуск обработки очереди.

    Если retry_failed=true, сначала failed записи с retry_count < max_retries
    возвращаются в pending, затем обрабатывается один batch.
    """

    batch_size: int = Field(default=5, ge=1, le=1000, description="Размер batch")
    retry_failed: bool = Field(default=True, description="Re-arm failed записей перед batch")
    max_retries: int = Field(default=3, ge=0, le=100, description="Лимит retry")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"batch_size": 5, "retry_failed": True, "max_retries": 3}
        }
    )


class ProcessQueueResponse(BaseModel):
    """Результат ручного запуска обработки очереди."""

    requeued: int = Field(description="Failed записей возвращено в pending")
    processed: int = Field(description="Записей переведено в completed")
    failed: int = Field(description="Записей переведено в failed")
    pending: int = Field(description="Pending записей после batch")
    skipped: bool = Field(default=False, description="Batch уже выполнялся, запуск пропущен")


class GarbageCollectRequest(BaseModel):
    """Запрос на удаление старых completed записей."""

    days_old: int = Field(default=30, ge=0, le=3650, description="Возраст записей в днях")


class GarbageCollectResponse(BaseModel):
    purged: int = Field(description="Удалено записей")


class ReclaimResponse(BaseModel):
    reclaimed: int = Field(description="Stale claims возвращено в pending")
