"""
Alembic environment для Media Cleanup.
Загружает конфигурацию из config.yaml и .env.
"""

from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

from media_cleanup.core.config import settings
from media_cleanup.models import Base  # Импортируем Base с зарегистрированными моделями

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# sqlalchemy.url из настроек (sync драйвер для Alembic)
config.set_main_option("sqlalchemy.url", settings.database.sync_url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """
    Запуск миграций в 'offline' режиме.

    Генерирует SQL скрипт в STDOUT без подключения к БД.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Запуск миграций в 'online' режиме через sync engine."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
