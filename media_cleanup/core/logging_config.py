"""
Логирование Media Cleanup.

Production: JSON в stdout (и опционально в файл), одна строка на событие.
Контекст очереди (queue_item_id, blob_object_id, worker_id, job)
передаётся через extra и попадает в JSON как отдельные поля.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from pythonjsonlogger import jsonlogger

from media_cleanup.core.config import settings

_TEXT_FORMAT = '%(asctime)s %(levelname)-8s [%(name)s] %(funcName)s:%(lineno)d %(message)s'

# Сторонние логгеры, которые на INFO пишут на каждый job/запрос
_NOISY_LOGGERS = ("apscheduler", "httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter: timestamp в ISO 8601 UTC и поля источника записи."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno
        log_record.setdefault('service', settings.app_name)


def _resolve_level(level: str) -> int:
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')
    return numeric_level


def _build_formatter(format_type: str) -> logging.Formatter:
    if format_type == 'json':
        return CustomJsonFormatter('%(message)s')

    if format_type == 'text':
        if not settings.debug:
            raise ValueError(
                'Text log format is only allowed in development mode. '
                'Set APP_DEBUG=on or use LOG_FORMAT=json'
            )
        return logging.Formatter(_TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    raise ValueError(f'Invalid log format: {format_type}. Must be "json" or "text"')


def setup_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """
    Настройка root logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR или CRITICAL (по умолчанию LOG_LEVEL)
        format_type: 'json' или 'text' (по умолчанию LOG_FORMAT)
        log_file: Дополнительный файл лога (по умолчанию LOG_FILE)

    Raises:
        ValueError: Некорректный уровень или формат, либо text вне debug режима
    """
    log_level = level or settings.logging.level
    log_format = format_type or settings.logging.format
    log_file_path = log_file or settings.logging.log_file

    numeric_level = _resolve_level(log_level)
    formatter = _build_formatter(log_format)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
    logging.getLogger("uvicorn.access").setLevel(numeric_level)

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={
            'log_level': log_level,
            'log_format': log_format,
            'log_file': log_file_path or 'stdout',
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger модуля (обычно get_logger(__name__))."""
    return logging.getLogger(name)
