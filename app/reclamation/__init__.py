"""
Reclamation of physical blobs for logically deleted entities.

- ReclamationOutbox: per-kind append-only queues, drain and completion
- ReclamationWorker: reference consumer deleting blobs through MinIO
"""

from .outbox import ReclamationOutbox, ReclamationItem
from .worker import ReclamationWorker, ReclamationResult, get_minio_client

__all__ = [
    'ReclamationOutbox',
    'ReclamationItem',
    'ReclamationWorker',
    'ReclamationResult',
    'get_minio_client',
]
