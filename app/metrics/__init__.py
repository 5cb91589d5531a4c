"""
Metrics module for application monitoring.

This module provides Prometheus metrics collection and helper functions.
"""
from app.metrics.prometheus import (
    # API Metrics
    api_requests_total,
    api_request_duration_seconds,
    api_requests_in_progress,

    # Lifecycle Metrics
    lifecycle_transitions_total,
    lifecycle_transitions_rejected_total,
    cascade_nodes,
    cascade_depth,

    # Reclamation Metrics
    reclamation_records_created_total,
    reclamation_records_drained_total,
    reclamation_records_reclaimed_total,
    reclamation_failures_total,
    reclamation_pending,

    # Batch Job Metrics
    batch_job_batches_total,
    batch_job_rows_total,
    batch_job_retries_total,
    batch_job_aborted_total,
    batch_job_duration_seconds,
    usage_rollup_rows_total,

    # System Metrics
    app_info,
    app_uptime_seconds,

    # Helper Functions
    record_api_request,
    record_transition,
    record_rejected_transition,
    record_cascade,
    record_reclamation_created,
    record_reclamation_drained,
    record_reclamation_reclaimed,
    record_reclamation_failure,
    update_reclamation_pending,
    record_batch,
    record_batch_retry,
    record_batch_job_finished,
    record_rollup_rows,
)

__all__ = [
    "api_requests_total",
    "api_request_duration_seconds",
    "api_requests_in_progress",
    "lifecycle_transitions_total",
    "lifecycle_transitions_rejected_total",
    "cascade_nodes",
    "cascade_depth",
    "reclamation_records_created_total",
    "reclamation_records_drained_total",
    "reclamation_records_reclaimed_total",
    "reclamation_failures_total",
    "reclamation_pending",
    "batch_job_batches_total",
    "batch_job_rows_total",
    "batch_job_retries_total",
    "batch_job_aborted_total",
    "batch_job_duration_seconds",
    "usage_rollup_rows_total",
    "app_info",
    "app_uptime_seconds",
    "record_api_request",
    "record_transition",
    "record_rejected_transition",
    "record_cascade",
    "record_reclamation_created",
    "record_reclamation_drained",
    "record_reclamation_reclaimed",
    "record_reclamation_failure",
    "update_reclamation_pending",
    "record_batch",
    "record_batch_retry",
    "record_batch_job_finished",
    "record_rollup_rows",
]
