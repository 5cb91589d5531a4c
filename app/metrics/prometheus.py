"""
Prometheus metrics for application monitoring.

This module defines all Prometheus metrics used throughout the application:
- API request metrics (requests, duration, in-progress)
- Lifecycle metrics (transitions, cascade sizes)
- Reclamation outbox metrics (created, drained, reclaimed, pending)
- Batch job and usage rollup metrics
"""
from prometheus_client import Counter, Gauge, Histogram


# ============================================================================
# API Metrics
# ============================================================================

api_requests_total = Counter(
    "api_requests_total",
    "Total number of API requests",
    ["method", "endpoint", "status"],
)

api_request_duration_seconds = Histogram(
    "api_request_duration_seconds",
    "API request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

api_requests_in_progress = Gauge(
    "api_requests_in_progress",
    "Number of API requests currently being processed",
    ["method", "endpoint"],
)


# ============================================================================
# Lifecycle Metrics
# ============================================================================

lifecycle_transitions_total = Counter(
    "lifecycle_transitions_total",
    "Status transitions applied",
    ["entity", "target"],
)

lifecycle_transitions_rejected_total = Counter(
    "lifecycle_transitions_rejected_total",
    "Status transitions rejected as invalid",
    ["entity"],
)

cascade_nodes = Histogram(
    "cascade_nodes",
    "Folders and files marked removed by one folder removal",
    buckets=[1, 10, 100, 1_000, 10_000, 100_000],
)

cascade_depth = Histogram(
    "cascade_depth",
    "Deepest level reached by one folder removal",
    buckets=[1, 2, 4, 8, 16, 32, 64, 128],
)


# ============================================================================
# Reclamation Metrics
# ============================================================================

reclamation_records_created_total = Counter(
    "reclamation_records_created_total",
    "Reclamation records appended to the outbox",
    ["kind"],
)

reclamation_records_drained_total = Counter(
    "reclamation_records_drained_total",
    "Reclamation records handed to a worker",
    ["kind"],
)

reclamation_records_reclaimed_total = Counter(
    "reclamation_records_reclaimed_total",
    "Reclamation records marked processed",
    ["kind"],
)

reclamation_failures_total = Counter(
    "reclamation_failures_total",
    "Blob deletions that failed in the object store",
    ["kind"],
)

reclamation_pending = Gauge(
    "reclamation_pending",
    "Unprocessed reclamation records",
    ["kind"],
)


# ============================================================================
# Batch Job Metrics
# ============================================================================

batch_job_batches_total = Counter(
    "batch_job_batches_total",
    "Batches applied by batch jobs",
    ["job"],
)

batch_job_rows_total = Counter(
    "batch_job_rows_total",
    "Rows changed by batch jobs",
    ["job"],
)

batch_job_retries_total = Counter(
    "batch_job_retries_total",
    "Batch attempts that failed and were retried",
    ["job"],
)

batch_job_aborted_total = Counter(
    "batch_job_aborted_total",
    "Batch jobs aborted after exhausting retries",
    ["job"],
)

batch_job_duration_seconds = Histogram(
    "batch_job_duration_seconds",
    "Batch job wall time in seconds",
    ["job"],
    buckets=[1, 5, 30, 60, 300, 900, 3600, 7200],
)

usage_rollup_rows_total = Counter(
    "usage_rollup_rows_total",
    "Ledger rows written by rollups",
    ["granularity"],
)


# ============================================================================
# System Metrics (Application Level)
# ============================================================================

app_info = Gauge(
    "app_info",
    "Application information",
    ["version", "environment"],
)

app_uptime_seconds = Gauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)


# ============================================================================
# Helper Functions
# ============================================================================

def record_api_request(method: str, endpoint: str, status_code: int, duration: float):
    """Record API request metrics."""
    api_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    api_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)


def record_transition(entity: str, target: str):
    lifecycle_transitions_total.labels(entity=entity, target=target).inc()


def record_rejected_transition(entity: str):
    lifecycle_transitions_rejected_total.labels(entity=entity).inc()


def record_cascade(nodes: int, depth: int):
    """Record the fan-out of one folder removal."""
    cascade_nodes.observe(nodes)
    cascade_depth.observe(depth)


def record_reclamation_created(kind: str):
    reclamation_records_created_total.labels(kind=kind).inc()


def record_reclamation_drained(kind: str, count: int):
    reclamation_records_drained_total.labels(kind=kind).inc(count)


def record_reclamation_reclaimed(kind: str):
    reclamation_records_reclaimed_total.labels(kind=kind).inc()


def record_reclamation_failure(kind: str):
    reclamation_failures_total.labels(kind=kind).inc()


def update_reclamation_pending(pending_counts: dict):
    """
    Update pending outbox gauges.

    Args:
        pending_counts: Dictionary mapping kind strings to counts
                        e.g., {"file": 12, "folder": 0, "file-version": 3}
    """
    for kind, count in pending_counts.items():
        reclamation_pending.labels(kind=kind).set(count)


def record_batch(job: str, rows: int):
    batch_job_batches_total.labels(job=job).inc()
    batch_job_rows_total.labels(job=job).inc(rows)


def record_batch_retry(job: str):
    batch_job_retries_total.labels(job=job).inc()


def record_batch_job_finished(job: str, duration_seconds: float, aborted: bool = False):
    batch_job_duration_seconds.labels(job=job).observe(duration_seconds)
    if aborted:
        batch_job_aborted_total.labels(job=job).inc()


def record_rollup_rows(granularity: str, rows: int):
    usage_rollup_rows_total.labels(granularity=granularity).inc(rows)
