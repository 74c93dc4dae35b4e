"""
Services для Media Cleanup.
"""

from .cleanup_worker import BatchSummary, CleanupWorker
from .enqueue_service import enqueue_blob_cleanup
from .garbage_collector_service import GarbageCollectorService, garbage_collector_service
from .orphan_reclaim_service import OrphanReclaimService, orphan_reclaim_service
from .queue_stats_service import QueueStats, QueueStatsService, queue_stats_service
from .retry_scheduler_service import RetrySchedulerService, retry_scheduler_service

__all__ = [
    "BatchSummary",
    "CleanupWorker",
    "enqueue_blob_cleanup",
    "GarbageCollectorService",
    "garbage_collector_service",
    "OrphanReclaimService",
    "orphan_reclaim_service",
    "QueueStats",
    "QueueStatsService",
    "queue_stats_service",
    "RetrySchedulerService",
    "retry_scheduler_service",
]
