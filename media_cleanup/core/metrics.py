"""
Prometheus Metrics для Media Cleanup.
Бизнес-метрики очереди cleanup и blob storage adapter.
"""

from prometheus_client import Counter, Gauge, Histogram

# ============================================================================
# CLEANUP WORKER METRICS
# ============================================================================

# Counter: Исход обработки записи очереди
cleanup_items_total = Counter(
    "media_cleanup_items_total",
    "Total number of cleanup queue items processed by worker",
    ["outcome"]  # deleted, not_found, retriable, permanent
)

# Counter: Проигранные claim (запись забрал другой worker)
cleanup_claims_lost_total = Counter(
    "media_cleanup_claims_lost_total",
    "Number of claim attempts that affected zero rows"
)

# Histogram: Длительность process_batch
cleanup_batch_duration_seconds = Histogram(
    "media_cleanup_batch_duration_seconds",
    "Time taken by one process_batch run",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0]
)

# Histogram: Длительность одного вызова blob API
blob_delete_duration_seconds = Histogram(
    "media_cleanup_blob_delete_duration_seconds",
    "Time taken by one blob storage delete call",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# ============================================================================
# QUEUE MAINTENANCE METRICS
# ============================================================================

cleanup_requeued_total = Counter(
    "media_cleanup_requeued_total",
    "Failed items re-armed to pending by retry scheduler"
)

cleanup_reclaimed_total = Counter(
    "media_cleanup_reclaimed_total",
    "Stale processing claims moved back to pending"
)

cleanup_purged_total = Counter(
    "media_cleanup_purged_total",
    "Completed items deleted by garbage collector"
)

# Gauge: Размер очереди по статусам
cleanup_queue_items = Gauge(
    "media_cleanup_queue_items",
    "Number of cleanup queue items per status",
    ["status"]  # pending, processing, completed, failed
)

# Gauge: Timestamp последнего запуска каждого job
cleanup_job_last_run_timestamp = Gauge(
    "media_cleanup_job_last_run_timestamp",
    "Unix timestamp of the last run of a cleanup job",
    ["job"]  # worker, retry, reclaim, gc
)
