"""
Конфигурация сервиса Media Cleanup.
Использует Pydantic Settings для загрузки из config.yaml и environment variables.
Environment variables имеют приоритет над config.yaml.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_bool_from_env(v) -> bool:
    """
    Парсинг boolean значения из формата on/off.

    Поддерживаемые форматы:
    - on/off (единственный допустимый)
    - Python bool (для внутреннего использования)

    Args:
        v: Значение для парсинга (str, bool)

    Returns:
        bool: Распарсенное boolean значение

    Raises:
        ValueError: Если значение невалидно
    """
    if isinstance(v, bool):
        return v

    if isinstance(v, str):
        v_lower = v.lower().strip()

        if v_lower == "on":
            return True
        if v_lower == "off":
            return False

    raise ValueError(
        f"Невалидное boolean значение: '{v}'. "
        f"Допустимые значения: on/off"
    )


class DatabaseSettings(BaseSettings):
    """Настройки подключения к PostgreSQL (каталог медиа + очередь cleanup)."""

    host: str = Field(default="localhost", alias="DB_HOST")
    port: int = Field(default=5432, alias="DB_PORT")
    username: str = Field(default="media", alias="DB_USERNAME")
    password: str = Field(default="password", alias="DB_PASSWORD")
    database: str = Field(default="media_catalog", alias="DB_DATABASE")
    pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")
    echo: bool = Field(default=False, alias="DB_ECHO")
    ssl_enabled: bool = Field(default=False, alias="DB_SSL_ENABLED")
    ssl_mode: str = Field(default="require", alias="DB_SSL_MODE")

    model_config = SettingsConfigDict(env_prefix="DB_", case_sensitive=False, extra="allow", populate_by_name=True)

    @field_validator("echo", "ssl_enabled", mode="before")
    @classmethod
    def parse_bool_fields(cls, v):
        """Парсинг boolean полей из environment variables."""
        return parse_bool_from_env(v)

    @field_validator("ssl_mode")
    @classmethod
    def validate_ssl_mode(cls, v: str) -> str:
        """Валидация SSL mode"""
        valid_modes = ["disable", "allow", "prefer", "require", "verify-ca", "verify-full"]
        if v not in valid_modes:
            raise ValueError(
                f"Invalid DB_SSL_MODE: {v}. "
                f"Valid modes: {', '.join(valid_modes)}"
            )
        return v

    @property
    def url(self) -> str:
        """Построение database URL для SQLAlchemy (async)."""
        base_url = f"postgresql+asyncpg://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"
        if self.ssl_enabled:
            base_url += f"?ssl={self.ssl_mode}"
        return base_url

    @property
    def sync_url(self) -> str:
        """Построение database URL для Alembic (sync)."""
        base_url = f"postgresql+psycopg2://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"
        if self.ssl_enabled:
            base_url += f"?sslmode={self.ssl_mode}"
        return base_url


class LoggingSettings(BaseSettings):
    """Настройки логирования."""

    level: str = Field(default="INFO", alias="LOG_LEVEL")
    format: str = Field(default="json", alias="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False, extra="allow", populate_by_name=True)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Валидация уровня логирования."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of {allowed_levels}")
        return v.upper()


class MonitoringSettings(BaseSettings):
    """Настройки мониторинга."""

    prometheus_enabled: bool = Field(default=True, alias="PROMETHEUS_ENABLED")

    model_config = SettingsConfigDict(env_prefix="MONITORING_", case_sensitive=False, extra="allow", populate_by_name=True)

    @field_validator("prometheus_enabled", mode="before")
    @classmethod
    def parse_bool_fields(cls, v):
        """Парсинг boolean полей из environment variables."""
        return parse_bool_from_env(v)


class CloudinarySettings(BaseSettings):
    """
    Настройки Cloudinary Admin API.

    Используются CloudinaryStorageAdapter для удаления blob объектов.
    Аутентификация - HTTP Basic (api_key:api_secret).
    """

    cloud_name: str = Field(default="", alias="CLOUDINARY_CLOUD_NAME")
    api_key: str = Field(default="", alias="CLOUDINARY_API_KEY")
    api_secret: str = Field(default="", alias="CLOUDINARY_API_SECRET")
    api_base_url: str = Field(default="https://api.cloudinary.com", alias="CLOUDINARY_API_BASE_URL")
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        alias="CLOUDINARY_HTTP_TIMEOUT_SECONDS",
        description="Timeout одного HTTP запроса к Cloudinary"
    )

    model_config = SettingsConfigDict(env_prefix="CLOUDINARY_", case_sensitive=False, extra="allow", populate_by_name=True)


class CleanupSettings(BaseSettings):
    """
    Настройки очереди cleanup и worker.

    Значения по умолчанию совпадают с тем, что платформа передавала
    в cleanup endpoint (batchSize=5, maxRetries=3).
    """

    batch_size: int = Field(
        default=5,
        ge=1,
        le=1000,
        alias="CLEANUP_BATCH_SIZE",
        description="Количество записей, забираемых за один process_batch"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=100,
        alias="CLEANUP_MAX_RETRIES",
        description="Лимит retry, после которого запись становится poison item"
    )
    inter_item_delay_seconds: float = Field(
        default=0.2,
        ge=0,
        le=60,
        alias="CLEANUP_INTER_ITEM_DELAY_SECONDS",
        description="Пауза между вызовами blob API (rate limit провайдера)"
    )
    adapter_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=600,
        alias="CLEANUP_ADAPTER_TIMEOUT_SECONDS",
        description="Верхняя граница длительности одного вызова adapter.delete()"
    )
    gc_days_old: int = Field(
        default=30,
        ge=0,
        le=3650,
        alias="CLEANUP_GC_DAYS_OLD",
        description="Возраст completed записей (в днях) для удаления GC"
    )
    reclaim_timeout_seconds: int = Field(
        default=900,
        ge=60,
        alias="CLEANUP_RECLAIM_TIMEOUT_SECONDS",
        description="Через сколько секунд processing запись считается orphaned"
    )
    retry_backoff_base_seconds: int = Field(
        default=0,
        ge=0,
        alias="CLEANUP_RETRY_BACKOFF_BASE_SECONDS",
        description="База экспоненциального backoff для retry (0 = без задержки)"
    )
    retry_backoff_max_seconds: int = Field(
        default=3600,
        ge=0,
        alias="CLEANUP_RETRY_BACKOFF_MAX_SECONDS",
        description="Максимальная задержка backoff"
    )

    model_config = SettingsConfigDict(env_prefix="CLEANUP_", case_sensitive=False, extra="allow", populate_by_name=True)


class SchedulerSettings(BaseSettings):
    """Настройки APScheduler для background задач."""

    enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    timezone: str = Field(default="UTC", alias="SCHEDULER_TIMEZONE")

    # Cleanup Worker - обработка pending записей
    worker_enabled: bool = Field(default=True, alias="SCHEDULER_WORKER_ENABLED")
    worker_interval_seconds: int = Field(
        default=30,
        ge=5,
        le=3600,
        alias="SCHEDULER_WORKER_INTERVAL_SECONDS",
        description="Интервал запуска process_batch (5-3600 секунд)"
    )

    # Retry Scheduler - failed → pending
    retry_enabled: bool = Field(default=True, alias="SCHEDULER_RETRY_ENABLED")
    retry_interval_minutes: int = Field(
        default=10,
        ge=1,
        le=1440,
        alias="SCHEDULER_RETRY_INTERVAL_MINUTES",
        description="Интервал re-arm failed записей (1-1440 минут)"
    )

    # Orphan Reclaim - stale processing → pending
    reclaim_enabled: bool = Field(default=True, alias="SCHEDULER_RECLAIM_ENABLED")
    reclaim_interval_minutes: int = Field(
        default=5,
        ge=1,
        le=1440,
        alias="SCHEDULER_RECLAIM_INTERVAL_MINUTES",
        description="Интервал поиска orphaned claims (1-1440 минут)"
    )

    # Garbage Collection - удаление старых completed записей
    gc_enabled: bool = Field(default=True, alias="SCHEDULER_GC_ENABLED")
    gc_interval_hours: int = Field(
        default=24,
        ge=1,
        le=168,
        alias="SCHEDULER_GC_INTERVAL_HOURS",
        description="Интервал запуска GC job в часах (1-168, default: 24)"
    )

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", case_sensitive=False, extra="allow", populate_by_name=True)

    @field_validator(
        "enabled", "worker_enabled", "retry_enabled", "reclaim_enabled", "gc_enabled",
        mode="before",
    )
    @classmethod
    def parse_bool_fields(cls, v):
        """Парсинг boolean полей из environment variables."""
        return parse_bool_from_env(v)


class Settings(BaseSettings):
    """Главные настройки приложения."""

    app_name: str = Field(default="Media Cleanup Service", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="APP_DEBUG")
    host: str = Field(default="0.0.0.0", alias="APP_HOST")
    port: int = Field(default=8020, alias="APP_PORT")

    # Вложенные настройки
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    cloudinary: CloudinarySettings = Field(default_factory=CloudinarySettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("debug", mode="before")
    @classmethod
    def parse_bool_fields(cls, v):
        """Парсинг boolean полей из environment variables."""
        return parse_bool_from_env(v)

    @classmethod
    def load_from_yaml(cls, config_path: str = "config.yaml") -> "Settings":
        """
        Загрузка настроек из YAML файла с возможностью переопределения через environment variables.

        Args:
            config_path: Путь к config.yaml файлу

        Returns:
            Settings: Загруженные настройки
        """
        config_file = Path(config_path)

        if not config_file.exists():
            # Если config.yaml не найден, используем настройки по умолчанию + env vars
            return cls()

        with open(config_file, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        # Преобразуем YAML структуру в плоскую структуру для Pydantic
        flat_config = {}

        if "app" in yaml_data:
            app = yaml_data["app"]
            flat_config.update({
                key: value
                for key, value in {
                    "app_name": app.get("name"),
                    "app_version": app.get("version"),
                    "debug": app.get("debug"),
                    "host": app.get("host"),
                    "port": app.get("port"),
                }.items()
                if value is not None
            })

        sections = {
            "database": DatabaseSettings,
            "logging": LoggingSettings,
            "monitoring": MonitoringSettings,
            "cloudinary": CloudinarySettings,
            "cleanup": CleanupSettings,
            "scheduler": SchedulerSettings,
        }
        for section, settings_cls in sections.items():
            if section in yaml_data:
                flat_config[section] = settings_cls(**yaml_data[section])

        return cls(**flat_config)


# Глобальный экземпляр настроек
settings = Settings.load_from_yaml()
