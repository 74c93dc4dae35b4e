"""
Models для Media Cleanup.
"""

from .base import Base
from .cleanup_queue import (
    CleanupErrorKind,
    CleanupQueueItem,
    CleanupStatus,
    ResourceType,
    TriggerSource,
)

__all__ = [
    "Base",
    "CleanupQueueItem",
    "CleanupStatus",
    "CleanupErrorKind",
    "TriggerSource",
    "ResourceType",
]
