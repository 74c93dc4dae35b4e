"""
Media Cleanup главное приложение FastAPI.
Очередь удаления blob объектов медиатеки из Cloudinary.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from media_cleanup.api.router import api_router, root_router
from media_cleanup.core.config import settings
from media_cleanup.core.database import check_db_connection, close_db, init_db
from media_cleanup.core.exceptions import BlobStorageConfigurationError
from media_cleanup.core.logging_config import get_logger, setup_logging
from media_cleanup.core.scheduler import init_scheduler, shutdown_scheduler
from media_cleanup.services.blob_storage import get_blob_storage_adapter
from media_cleanup.services.cleanup_worker import CleanupWorker

# Настройка логирования (JSON формат по умолчанию)
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager для инициализации и завершения приложения.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    try:
        await init_db()

        if not await check_db_connection():
            logger.error("Database connection failed!")

        # Один worker на процесс для ручного запуска через API
        try:
            app.state.cleanup_worker = CleanupWorker(get_blob_storage_adapter())
            logger.info(
                "Cleanup worker initialized",
                extra={"worker_id": app.state.cleanup_worker.worker_id}
            )
        except BlobStorageConfigurationError as e:
            app.state.cleanup_worker = None
            logger.warning(f"Cleanup worker disabled: {e}")

        init_scheduler()
        logger.info("Application startup complete")

    except Exception as e:
        logger.error(f"Startup error: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down application")

    try:
        shutdown_scheduler()

        worker = getattr(app.state, "cleanup_worker", None)
        if worker is not None:
            await worker.adapter.close()

        await close_db()
        logger.info("Application shutdown complete")

    except Exception as e:
        logger.error(f"Shutdown error: {e}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Reconciliation queue для удаления blob объектов медиатеки",
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(root_router)
app.include_router(api_router)

# Prometheus metrics endpoint
if settings.monitoring.prometheus_enabled:
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)
    logger.info("Prometheus metrics endpoint mounted at /metrics")


@app.get("/", tags=["root"])
async def root():
    """Информация о приложении."""
    return {
        "application": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "health_check": "/health/live"
    }


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handler для 500 ошибок."""
    logger.error(f"Internal server error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.debug else "An error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "media_cleanup.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
    )
