"""
Подключение к PostgreSQL через SQLAlchemy async engine.
Поддерживает connection pooling и health checks.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import settings

logger = logging.getLogger(__name__)

# Async engine для FastAPI endpoints
engine = create_async_engine(
    settings.database.url,
    echo=settings.database.echo,
    pool_pre_ping=True,
    pool_size=settings.database.pool_size,
    max_overflow=settings.database.max_overflow,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency для получения database session в FastAPI endpoints.

    Сервисы очереди сами коммитят каждый переход состояния,
    поэтому здесь только rollback при ошибке и закрытие.

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_db_connection() -> bool:
    """
    Проверка подключения к базе данных.

    Returns:
        bool: True если подключение работает, False иначе
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def init_db() -> None:
    """
    Инициализация базы данных.
    Создает таблицу очереди если она не существует.

    ВАЖНО: В production используйте Alembic миграции вместо этого метода!
    """
    from media_cleanup.models import Base

    if not settings.debug:
        logger.info("Skipping table creation in production mode. Use Alembic migrations instead.")
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created (debug mode)")


async def close_db() -> None:
    """
    Закрытие подключения к базе данных.
    Вызывается при shutdown приложения.
    """
    await engine.dispose()
    logger.info("Database connections closed")


def create_standalone_engine():
    """
    Создание отдельного async engine для background задач.

    ВАЖНО: APScheduler jobs выполняются через asyncio.run() в собственном
    event loop, глобальный engine привязан к loop FastAPI и там не работает.
    Вызывающий обязан сделать dispose() после использования.
    """
    return create_async_engine(
        settings.database.url,
        echo=False,
        pool_pre_ping=True,
        pool_size=2,
        max_overflow=1,
    )


def create_standalone_session_maker(standalone_engine) -> async_sessionmaker:
    """
    Session maker для standalone engine.

    Args:
        standalone_engine: Engine, созданный create_standalone_engine()

    Returns:
        async_sessionmaker: Фабрика AsyncSession
    """
    return async_sessionmaker(
        standalone_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
