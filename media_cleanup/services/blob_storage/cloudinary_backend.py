"""
Cloudinary Storage Adapter.

Удаление blob объектов через Cloudinary Admin API:
    DELETE {api_base_url}/v1_1/{cloud_name}/resources/{resource_type}/upload?public_ids[]={id}

Ответ API: {"deleted": {"<public_id>": "deleted" | "not_found"}, "partial": false}

Классификация ответов:
- 2xx + "deleted" → DELETED
- 2xx + "not_found", HTTP 404 → NOT_FOUND (идемпотентное удаление)
- 408, 420, 429, 5xx, timeout, connection error → RETRIABLE
- остальные 4xx (400, 401, 403) → PERMANENT
"""

import logging
from typing import Optional

import httpx

from media_cleanup.core.config import CloudinarySettings
from media_cleanup.core.exceptions import BlobStorageConfigurationError
from media_cleanup.services.blob_storage.base import BlobStorageAdapter, DeleteOutcome

logger = logging.getLogger(__name__)

# 420 - исторический rate limit код Cloudinary
RETRIABLE_STATUS_CODES = {408, 420, 429}


class CloudinaryStorageAdapter(BlobStorageAdapter):
    """Blob storage adapter для Cloudinary Admin API."""

    DELETE_RESOURCES_ENDPOINT = "/v1_1/{cloud_name}/resources/{resource_type}/upload"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        api_base_url: str = "https://api.cloudinary.com",
        http_timeout: float = 20.0,
    ):
        """
        Инициализация Cloudinary adapter.

        Args:
            cloud_name: Имя cloud в Cloudinary
            api_key: API key
            api_secret: API secret
            api_base_url: Base URL Admin API
            http_timeout: Timeout HTTP запроса в секундах
        """
        missing = [
            name for name, value in (
                ("cloud_name", cloud_name),
                ("api_key", api_key),
                ("api_secret", api_secret),
            )
            if not value
        ]
        if missing:
            raise BlobStorageConfigurationError(missing)

        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_base_url = api_base_url.rstrip("/")
        self.http_timeout = http_timeout

    @classmethod
    def from_settings(cls, cloudinary_settings: CloudinarySettings) -> "CloudinaryStorageAdapter":
        """Создание adapter из CloudinarySettings."""
        return cls(
            cloud_name=cloudinary_settings.cloud_name,
            api_key=cloudinary_settings.api_key,
            api_secret=cloudinary_settings.api_secret,
            api_base_url=cloudinary_settings.api_base_url,
            http_timeout=cloudinary_settings.http_timeout_seconds,
        )

    def _build_url(self, resource_type: str) -> str:
        path = self.DELETE_RESOURCES_ENDPOINT.format(
            cloud_name=self.cloud_name,
            resource_type=resource_type,
        )
        return f"{self.api_base_url}{path}"

    async def delete(self, blob_object_id: str, resource_type: str = "image") -> DeleteOutcome:
        """
        Удаление объекта из Cloudinary.

        Args:
            blob_object_id: Cloudinary public_id
            resource_type: image, video или raw

        Returns:
            DeleteOutcome: Классифицированный результат
        """
        url = self._build_url(resource_type)

        try:
            async with httpx.AsyncClient(timeout=self.http_timeout) as client:
                response = await client.delete(
                    url,
                    params={"public_ids[]": blob_object_id},
                    auth=(self.api_key, self.api_secret),
                )
        except httpx.TimeoutException:
            return DeleteOutcome.retriable(f"Timeout after {self.http_timeout}s")
        except httpx.TransportError as e:
            return DeleteOutcome.retriable(f"Connection error: {str(e)}")

        return self._classify_response(blob_object_id, response)

    def _classify_response(self, blob_object_id: str, response: httpx.Response) -> DeleteOutcome:
        """
        Классификация HTTP ответа Cloudinary.

        Args:
            blob_object_id: Запрошенный public_id
            response: HTTP ответ

        Returns:
            DeleteOutcome: Результат удаления
        """
        status_code = response.status_code

        if status_code == 404:
            return DeleteOutcome.not_found()

        if status_code >= 500 or status_code in RETRIABLE_STATUS_CODES:
            return DeleteOutcome.retriable(f"HTTP {status_code}: {response.text[:200]}")

        if status_code >= 400:
            return DeleteOutcome.permanent(f"HTTP {status_code}: {response.text[:200]}")

        result = self._extract_delete_result(blob_object_id, response)

        if result == "deleted":
            return DeleteOutcome.deleted()
        if result == "not_found":
            return DeleteOutcome.not_found()

        # 2xx без ожидаемого ключа - поведение API неизвестно, повторим позже
        logger.warning(
            "Unexpected Cloudinary delete response",
            extra={
                "blob_object_id": blob_object_id,
                "status_code": status_code,
                "body": response.text[:200],
            }
        )
        return DeleteOutcome.retriable(f"Unexpected response: {response.text[:200]}")

    @staticmethod
    def _extract_delete_result(blob_object_id: str, response: httpx.Response) -> Optional[str]:
        try:
            payload = response.json()
        except ValueError:
            return None

        if not isinstance(payload, dict):
            return None

        deleted = payload.get("deleted")
        if not isinstance(deleted, dict):
            return None

        return deleted.get(blob_object_id)
