"""
Pydantic схемы для Media Cleanup API.
"""

from .cleanup import (
    GarbageCollectRequest,
    GarbageCollectResponse,
    ProcessQueueRequest,
    ProcessQueueResponse,
    QueueStatsResponse,
    ReclaimResponse,
)

__all__ = [
    "GarbageCollectRequest",
    "GarbageCollectResponse",
    "ProcessQueueRequest",
    "ProcessQueueResponse",
    "QueueStatsResponse",
    "ReclaimResponse",
]
