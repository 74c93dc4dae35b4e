"""
Pytest fixtures для тестирования Media Cleanup.
"""

import asyncio
import os
from collections import defaultdict
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional

# Environment для тестов выставляется до импорта конфигурации
os.environ["SCHEDULER_ENABLED"] = "off"
os.environ["CLEANUP_INTER_ITEM_DELAY_SECONDS"] = "0"
os.environ["LOG_LEVEL"] = "DEBUG"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from media_cleanup.models import Base, CleanupQueueItem, CleanupStatus
from media_cleanup.services.blob_storage.base import BlobStorageAdapter, DeleteOutcome


# ========================================
# Fake Blob Storage
# ========================================

class FakeBlobStorageAdapter(BlobStorageAdapter):
    """
    In-memory blob storage для тестов worker.

    По умолчанию каждый объект удаляется успешно; для конкретного
    blob_object_id можно задать последовательность outcomes или исключение.
    """

    def __init__(self, existing: Optional[List[str]] = None):
        self.existing = set(existing or [])
        self.calls: List[str] = []
        self.scripted: Dict[str, List] = defaultdict(list)
        self.delay_seconds = 0.0
        self.closed = False

    def script(self, blob_object_id: str, *outcomes) -> None:
        """Задать результаты следующих вызовов (DeleteOutcome или Exception)."""
        self.scripted[blob_object_id].extend(outcomes)

    def call_count(self, blob_object_id: str) -> int:
        return self.calls.count(blob_object_id)

    async def delete(self, blob_object_id: str, resource_type: str = "image") -> DeleteOutcome:
        self.calls.append(blob_object_id)

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if self.scripted[blob_object_id]:
            outcome = self.scripted[blob_object_id].pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        if blob_object_id in self.existing:
            self.existing.discard(blob_object_id)
            return DeleteOutcome.deleted()
        return DeleteOutcome.not_found()

    async def close(self) -> None:
        self.closed = True


# ========================================
# Database Fixtures
# ========================================

@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Async SQLite engine для тестов (in-memory)."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine) -> async_sessionmaker:
    """Фабрика сессий для тестов с несколькими независимыми сессиями."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Database session для тестов."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_item(db_session):
    """
    Factory для создания записей очереди напрямую в БД.

    Пример:
        item = await make_item("blob-1", status=CleanupStatus.FAILED, retry_count=2)
    """

    async def _make(
        blob_object_id: str,
        status: CleanupStatus = CleanupStatus.PENDING,
        **fields,
    ) -> CleanupQueueItem:
        item = CleanupQueueItem(
            blob_object_id=blob_object_id,
            status=status,
            retry_count=fields.pop("retry_count", 0),
            **fields,
        )
        db_session.add(item)
        await db_session.commit()
        return item

    return _make


@pytest.fixture
def fake_adapter() -> FakeBlobStorageAdapter:
    return FakeBlobStorageAdapter()


@pytest.fixture
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def reload(db_session):
    """Перечитать запись из БД (bulk UPDATE не синхронизирует identity map)."""

    async def _reload(item: CleanupQueueItem) -> CleanupQueueItem:
        await db_session.refresh(item)
        return item

    return _reload
