"""
Абстрактный интерфейс для Blob Storage Adapter.

Cleanup worker работает только через этот интерфейс и не знает,
какой провайдер хранит blob объекты.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class DeleteOutcomeKind(str, enum.Enum):
    """Тип результата удаления blob объекта."""
    DELETED = "deleted"           # Объект удалён
    NOT_FOUND = "not_found"       # Объекта уже нет (считаем успехом)
    RETRIABLE = "retriable"       # Временная ошибка (network, timeout, 5xx, 429)
    PERMANENT = "permanent"       # Постоянная ошибка (auth, bad request)


@dataclass(frozen=True)
class DeleteOutcome:
    """
    Tagged результат вызова adapter.delete().

    Вместо bool: NOT_FOUND классифицируется как успех,
    PERMANENT отличается от RETRIABLE без разбора текста ошибки.
    """

    kind: DeleteOutcomeKind
    reason: Optional[str] = None

    @classmethod
    def deleted(cls) -> "DeleteOutcome":
        return cls(DeleteOutcomeKind.DELETED)

    @classmethod
    def not_found(cls) -> "DeleteOutcome":
        return cls(DeleteOutcomeKind.NOT_FOUND)

    @classmethod
    def retriable(cls, reason: str) -> "DeleteOutcome":
        return cls(DeleteOutcomeKind.RETRIABLE, reason)

    @classmethod
    def permanent(cls, reason: str) -> "DeleteOutcome":
        return cls(DeleteOutcomeKind.PERMANENT, reason)

    @property
    def is_success(self) -> bool:
        """Цель cleanup достигнута (blob отсутствует в хранилище)."""
        return self.kind in (DeleteOutcomeKind.DELETED, DeleteOutcomeKind.NOT_FOUND)


class BlobStorageAdapter(ABC):
    """
    Абстрактный интерфейс для blob storage.

    Реализации:
    - CloudinaryStorageAdapter: Cloudinary Admin API через httpx
    """

    @abstractmethod
    async def delete(self, blob_object_id: str, resource_type: str = "image") -> DeleteOutcome:
        """
        Удалить объект из blob storage.

        Операция обязана быть идемпотентной: повторный вызов для уже
        удалённого объекта возвращает NOT_FOUND, а не исключение.

        Args:
            blob_object_id: ID объекта в хранилище
            resource_type: Тип ресурса у провайдера

        Returns:
            DeleteOutcome: Классифицированный результат
        """
        pass

    async def close(self) -> None:
        """Освобождение ресурсов adapter (HTTP клиентов и т.п.)."""
        return None
