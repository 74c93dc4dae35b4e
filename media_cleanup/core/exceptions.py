"""
Custom Exceptions для Media Cleanup.

Иерархия исключений для обработки ошибок в компонентах очереди cleanup.
"""


class MediaCleanupException(Exception):
    """Базовое исключение для Media Cleanup."""
    pass


# =============================================================================
# Queue Store Exceptions
# =============================================================================

class QueueStoreError(MediaCleanupException):
    """
    Ошибка хранилища очереди cleanup.

    Возникает когда операция над таблицей очереди (batch, retry, GC, reclaim, stats)
    не может быть выполнена целиком. Операция откатывается и будет
    повторена при следующем запуске scheduler.
    """
    def __init__(self, operation: str, reason: str | None = None):
        message = f"Queue store operation '{operation}' failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.operation = operation
        self.reason = reason


class InvalidQueueItemError(MediaCleanupException):
    """
    Невалидные данные для записи в очередь.

    Возникает при попытке поставить в очередь запись без blob_object_id
    или с некорректными параметрами операции (отрицательный batch_size и т.п.).
    """
    pass


# =============================================================================
# Blob Storage Exceptions
# =============================================================================

class BlobStorageError(MediaCleanupException):
    """Базовое исключение для ошибок blob storage adapter."""
    pass


class BlobStorageConfigurationError(BlobStorageError):
    """
    Adapter не может быть создан из текущей конфигурации.

    Возникает когда не заданы credentials Cloudinary.
    """
    def __init__(self, missing: list[str]):
        message = f"Blob storage не сконфигурирован, отсутствуют: {', '.join(missing)}"
        super().__init__(message)
        self.missing = missing
