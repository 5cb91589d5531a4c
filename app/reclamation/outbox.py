"""
Reclamation Outbox

Append-only queues of "logically deleted, physical cleanup pending" records,
one table per entity kind. Records are written in the same transaction as the
status transition that qualifies them and are drained by an external worker.

Guarantees:
- at most one record per entity (conflict-ignoring insert on a unique column)
- zero-size files and versions never produce a record
- records are never deleted here
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import DuplicateReclamationIntent, ReclamationRecordNotFound
from app.db import insert_ignore, transaction
from app.metrics import (
    record_reclamation_created,
    record_reclamation_drained,
    record_reclamation_reclaimed,
    update_reclamation_pending,
)
from app.models import (
    File,
    FileVersion,
    Folder,
    RECLAMATION_MODELS,
    ReclamationKind,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class ReclamationItem:
    """
    One unit of work handed to a reclamation worker
    """
    kind: ReclamationKind
    entity_id: str
    network_file_id: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'entity_id': self.entity_id,
            'network_file_id': self.network_file_id,
        }


class ReclamationOutbox:
    """
    Reclamation outbox over the deleted_files, deleted_folders and
    deleted_file_versions tables.

    ``record_*`` methods never commit; they join the caller's transaction so
    the record exists if and only if the transition committed. ``drain`` and
    ``mark_reclaimed`` run their own transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def record_file(self, file: File) -> bool:
        """Queue the blob of a file that just became DELETED."""
        if not file.owns_blob:
            logger.debug(f"File {file.uuid} owns no blob (size={file.size}), no reclamation record")
            return False
        return self.record_intent(
            ReclamationKind.FILE,
            file.uuid,
            network_file_id=file.network_file_id,
            size=file.size,
        )

    def record_folder(self, folder: Folder) -> bool:
        """Queue bookkeeping for a folder that just became removed."""
        return self.record_intent(ReclamationKind.FOLDER, folder.uuid)

    def record_file_version(self, version: FileVersion) -> bool:
        """Queue the blob of a version that just reached a terminal status."""
        if not version.owns_blob:
            logger.debug(f"File version {version.id} owns no blob, no reclamation record")
            return False
        return self.record_intent(
            ReclamationKind.FILE_VERSION,
            version.id,
            network_file_id=version.network_file_id,
            size=version.size,
        )

    def record_intent(
        self,
        kind: ReclamationKind,
        entity_id: str,
        network_file_id: Optional[str] = None,
        size: Optional[int] = None,
        strict: bool = False,
    ) -> bool:
        """
        Insert a reclamation record unless one exists for the entity.

        Args:
            kind: Entity kind (selects the queue table)
            entity_id: Id of the deleted entity
            network_file_id: Blob id (required for files and versions)
            size: Blob size in bytes
            strict: Raise DuplicateReclamationIntent instead of ignoring a duplicate

        Returns:
            True if a record was created, False if one already existed
        """
        kind = ReclamationKind(kind)
        model = RECLAMATION_MODELS[kind]
        now = utcnow()

        values: Dict[str, Any] = {
            model.ENTITY_COLUMN: entity_id,
            'processed': False,
            'enqueued': False,
            'created_at': now,
            'updated_at': now,
        }
        if kind != ReclamationKind.FOLDER:
            if not network_file_id:
                raise ValueError(f"{kind.value} reclamation record requires a network_file_id")
            values['network_file_id'] = network_file_id
            values['size'] = size

        created = insert_ignore(self.db, model, values)

        if created:
            record_reclamation_created(kind.value)
            logger.info(f"Reclamation record created: {kind.value} {entity_id}")
        else:
            logger.debug(f"Reclamation record already present: {kind.value} {entity_id}")
            if strict:
                raise DuplicateReclamationIntent(kind, entity_id)

        return created

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def drain(self, kind: ReclamationKind, batch_size: Optional[int] = None) -> List[ReclamationItem]:
        """
        Hand out the oldest unprocessed and unenqueued records.

        Selected rows are marked enqueued in the same transaction. On
        PostgreSQL concurrent drainers skip each other's locked rows.

        Args:
            kind: Queue to drain
            batch_size: Maximum records (capped by RECLAMATION_MAX_BATCH_SIZE)
        """
        kind = ReclamationKind(kind)
        model = RECLAMATION_MODELS[kind]
        if batch_size is None:
            batch_size = settings.RECLAMATION_DRAIN_BATCH_SIZE
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        batch_size = min(batch_size, settings.RECLAMATION_MAX_BATCH_SIZE)

        items: List[ReclamationItem] = []

        with transaction(self.db):
            records = (
                self.db.query(model)
                .filter(model.enqueued.is_(False), model.processed.is_(False))
                .order_by(model.created_at, model.id)
                .limit(batch_size)
                .with_for_update(skip_locked=True)
                .all()
            )

            now = utcnow()
            for record in records:
                record.enqueued = True
                record.enqueued_at = now
                items.append(ReclamationItem(
                    kind=kind,
                    entity_id=record.entity_id,
                    network_file_id=record.network_file_id,
                ))

        if items:
            record_reclamation_drained(kind.value, len(items))
        logger.info(f"Drained {len(items)} {kind.value} reclamation record(s)")

        return items

    def mark_reclaimed(self, kind: ReclamationKind, entity_id: str) -> None:
        """
        Mark an entity's record processed.

        Raises:
            ReclamationRecordNotFound: If no record exists for the entity
        """
        kind = ReclamationKind(kind)
        model = RECLAMATION_MODELS[kind]

        with transaction(self.db):
            record = (
                self.db.query(model)
                .filter(model.entity_attr() == entity_id)
                .with_for_update()
                .first()
            )
            if record is None:
                raise ReclamationRecordNotFound(entity_id)

            if record.processed:
                logger.debug(f"Reclamation record already processed: {kind.value} {entity_id}")
                return

            now = utcnow()
            record.processed = True
            record.processed_at = now
            # A record reclaimed without a drain (manual re-run) still reads as picked
            if not record.enqueued:
                record.enqueued = True
                record.enqueued_at = now

        record_reclamation_reclaimed(kind.value)
        logger.info(f"Reclaimed {kind.value} {entity_id}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, kind: ReclamationKind, entity_id: str):
        model = RECLAMATION_MODELS[ReclamationKind(kind)]
        return self.db.query(model).filter(model.entity_attr() == entity_id).first()

    def list_stale_enqueued(self, kind: ReclamationKind, older_than: timedelta, limit: int = 1000) -> list:
        """
        Records picked by a worker but not processed within ``older_than``.

        Supports an external sweep that resets stale ``enqueued`` flags.
        """
        model = RECLAMATION_MODELS[ReclamationKind(kind)]
        cutoff = utcnow() - older_than
        return (
            self.db.query(model)
            .filter(
                model.enqueued.is_(True),
                model.processed.is_(False),
                model.enqueued_at < cutoff,
            )
            .order_by(model.enqueued_at)
            .limit(limit)
            .all()
        )

    def pending_counts(self) -> Dict[str, int]:
        """Unprocessed records per kind; refreshes the pending gauge."""
        counts = {}
        for kind, model in RECLAMATION_MODELS.items():
            counts[kind.value] = (
                self.db.query(func.count(model.id))
                .filter(model.processed.is_(False))
                .scalar()
            ) or 0

        update_reclamation_pending(counts)
        return counts
