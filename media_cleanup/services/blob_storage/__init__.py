"""
Blob Storage Adapters для Media Cleanup.
"""

from media_cleanup.core.config import settings
from media_cleanup.services.blob_storage.base import (
    BlobStorageAdapter,
    DeleteOutcome,
    DeleteOutcomeKind,
)
from media_cleanup.services.blob_storage.cloudinary_backend import CloudinaryStorageAdapter


def get_blob_storage_adapter() -> BlobStorageAdapter:
    """
    Factory function для получения adapter из конфигурации.

    Returns:
        BlobStorageAdapter: Cloudinary adapter

    Raises:
        BlobStorageConfigurationError: Если credentials не заданы
    """
    return CloudinaryStorageAdapter.from_settings(settings.cloudinary)


__all__ = [
    "BlobStorageAdapter",
    "DeleteOutcome",
    "DeleteOutcomeKind",
    "CloudinaryStorageAdapter",
    "get_blob_storage_adapter",
]
