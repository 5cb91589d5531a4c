"""
Reclamation Worker

Reference consumer of the reclamation outbox. Drains a batch, deletes each
blob from MinIO and marks the record processed. A blob that fails to delete
stays enqueued and unprocessed, where a stale-enqueue sweep can find it.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from minio import Minio
from minio.error import S3Error
from sqlalchemy.orm import Session

from app.core.config import settings
from app.metrics import record_reclamation_failure
from app.models import ReclamationKind
from app.reclamation.outbox import ReclamationOutbox, ReclamationItem

logger = logging.getLogger(__name__)


@dataclass
class ReclamationResult:
    """
    Result of draining one queue once
    """
    kind: ReclamationKind
    drained: int = 0
    reclaimed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'drained': self.drained,
            'reclaimed': self.reclaimed,
            'failed': self.failed,
            'errors': self.errors,
            'duration_seconds': round(self.duration_seconds, 2),
        }


def get_minio_client() -> Minio:
    """Create a MinIO client from settings."""
    return Minio(
        f"{settings.MINIO_HOST}:{settings.MINIO_PORT}",
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


class ReclamationWorker:
    """
    Physical blob reclamation for drained outbox records.

    Folder records carry no blob and are marked processed directly.
    """

    def __init__(
        self,
        db: Session,
        minio_client: Minio,
        bucket_name: str,
        batch_size: Optional[int] = None,
    ):
        self.outbox = ReclamationOutbox(db)
        self.client = minio_client
        self.bucket_name = bucket_name
        self.batch_size = batch_size or settings.RECLAMATION_DRAIN_BATCH_SIZE

    @classmethod
    def from_settings(cls, db: Session) -> "ReclamationWorker":
        return cls(db, get_minio_client(), settings.MINIO_BUCKET)

    def _delete_blob(self, item: ReclamationItem) -> None:
        try:
            self.client.remove_object(self.bucket_name, item.network_file_id)
        except S3Error as e:
            if e.code == "NoSuchKey":
                logger.info(f"Blob {item.network_file_id} already gone, treating as reclaimed")
                return
            raise

    def run_once(self, kind: ReclamationKind) -> ReclamationResult:
        """
        Drain one batch of ``kind`` and reclaim it.

        Returns:
            ReclamationResult with counts and per-item errors
        """
        kind = ReclamationKind(kind)
        start_time = time.time()
        result = ReclamationResult(kind=kind)

        items = self.outbox.drain(kind, self.batch_size)
        result.drained = len(items)

        for item in items:
            if item.network_file_id is not None:
                try:
                    self._delete_blob(item)
                except S3Error as e:
                    error_msg = f"Failed to delete blob {item.network_file_id} of {kind.value} {item.entity_id}: {e}"
                    logger.error(error_msg)
                    result.errors.append(error_msg)
                    result.failed += 1
                    record_reclamation_failure(kind.value)
                    continue

            self.outbox.mark_reclaimed(kind, item.entity_id)
            result.reclaimed += 1

        result.duration_seconds = time.time() - start_time

        logger.info(
            f"Reclamation {kind.value}: {result.reclaimed}/{result.drained} reclaimed, "
            f"{result.failed} failed, {result.duration_seconds:.2f}s"
        )

        return result

    def run_all(self) -> List[ReclamationResult]:
        """Drain one batch of every queue."""
        return [self.run_once(kind) for kind in ReclamationKind]
