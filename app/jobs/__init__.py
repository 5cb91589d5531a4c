"""
Bounded-batch jobs: the BatchRepairJob executor and the data repairs.
"""

from .batch import BatchJobReport, BatchRepairJob, RetryPolicy
from .repairs import (
    backfill_reclamation_records,
    clear_orphan_folders,
    dedupe_folder_names,
    expire_file_versions,
)

__all__ = [
    'BatchJobReport',
    'BatchRepairJob',
    'RetryPolicy',
    'backfill_reclamation_records',
    'clear_orphan_folders',
    'dedupe_folder_names',
    'expire_file_versions',
]
