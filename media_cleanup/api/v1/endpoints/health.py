"""
Health check endpoints для Media Cleanup.

Liveness и readiness проверки. Prometheus metrics смонтированы в main.py (/metrics).
"""

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from prometheus_client import Counter, Gauge
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from media_cleanup.core.config import settings
from media_cleanup.core.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

# Prometheus metrics
health_check_counter = Counter(
    "media_cleanup_health_checks_total",
    "Total number of health checks",
    ["type", "status"]
)

database_status_gauge = Gauge(
    "media_cleanup_database_status",
    "Database connection status (1=up, 0=down)"
)

application_info = Gauge(
    "media_cleanup_info",
    "Application information",
    ["version", "name"]
)

application_info.labels(version=settings.app_version, name=settings.app_name).set(1)


@router.get("/live", summary="Liveness probe", description="Проверка что приложение работает")
async def liveness():
    """
    Liveness probe для Kubernetes.

    Returns:
        dict: Статус liveness
    """
    health_check_counter.labels(type="liveness", status="success").inc()

    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": settings.app_version
    }


@router.get("/ready", summary="Readiness probe", description="Проверка готовности принимать трафик")
async def readiness(
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Readiness probe для Kubernetes.

    Критерий: успешный SELECT 1 в БД очереди. При недоступности БД
    возвращается 503 с причиной в поле "reason".

    Returns:
        dict: Статус readiness и состояние БД
    """
    result = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": settings.app_version,
    }

    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Readiness check failed: {e}")
        database_status_gauge.set(0)
        health_check_counter.labels(type="readiness", status="failure").inc()
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        result.update({
            "status": "not_ready",
            "dependencies": {"database": {"status": "down", "critical": True}},
            "reason": "Database connection failed",
        })
        return result

    database_status_gauge.set(1)
    health_check_counter.labels(type="readiness", status="success").inc()
    result.update({
        "status": "ready",
        "dependencies": {"database": {"status": "up", "critical": True}},
    })
    return result

