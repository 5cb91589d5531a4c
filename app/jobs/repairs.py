"""
Data repair jobs built on BatchRepairJob.

Each fetch selects only rows that are still broken, so every job can be
stopped at any point and re-run from the start.
"""
import logging
from datetime import timedelta
from typing import List, Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, aliased

from app.core.config import settings
from app.jobs.batch import BatchJobReport, BatchRepairJob
from app.lifecycle.cascade import CascadePropagator
from app.lifecycle.state_machine import apply_file_version_status, ensure_file_version_transition
from app.metrics import record_cascade
from app.models import (
    TERMINAL_VERSION_STATUSES,
    DeletedFile,
    DeletedFileVersion,
    DeletedFolder,
    File,
    FileStatus,
    FileVersion,
    FileVersionStatus,
    Folder,
    FolderStatus,
    ReclamationKind,
    utcnow,
)
from app.reclamation import ReclamationOutbox

logger = logging.getLogger(__name__)


def clear_orphan_folders(user_id: Optional[str] = None, **job_options) -> BatchJobReport:
    """
    Remove live folders whose parent is missing or removed.

    Each orphan is removed through the cascade, so its subtree and files go
    with it and reclamation records are written.
    """
    parent = aliased(Folder)

    def fetch(db: Session, limit: int) -> List[Folder]:
        query = (
            db.query(Folder)
            .outerjoin(parent, parent.uuid == Folder.parent_uuid)
            .filter(
                Folder.parent_uuid.isnot(None),
                Folder.status != FolderStatus.DELETED,
                or_(parent.id.is_(None), parent.status == FolderStatus.DELETED),
            )
        )
        if user_id is not None:
            query = query.filter(Folder.user_id == user_id)
        return query.order_by(Folder.id).limit(limit).all()

    def apply(db: Session, folders: Sequence[Folder]) -> int:
        propagator = CascadePropagator(db)
        now = utcnow()
        nodes = 0
        for folder in folders:
            if folder.removed:
                continue
            report = propagator.remove(folder, now)
            record_cascade(report.nodes, report.max_depth)
            nodes += report.nodes
        return nodes

    return BatchRepairJob("clear-orphan-folders", fetch, apply, **job_options).run()


def backfill_reclamation_records(kind: ReclamationKind, **job_options) -> BatchJobReport:
    """
    Write the reclamation record that a terminal entity should have but lacks.

    Covers rows that reached their terminal status before the outbox existed
    or through a path that bypassed it.
    """
    kind = ReclamationKind(kind)

    if kind == ReclamationKind.FILE:
        def fetch(db: Session, limit: int) -> list:
            has_record = select(DeletedFile.id).where(DeletedFile.file_id == File.uuid).exists()
            return (
                db.query(File)
                .filter(
                    File.status == FileStatus.DELETED,
                    File.size > 0,
                    File.network_file_id.isnot(None),
                    ~has_record,
                )
                .order_by(File.id)
                .limit(limit)
                .all()
            )

        def apply(db: Session, files: Sequence[File]) -> int:
            outbox = ReclamationOutbox(db)
            return sum(1 for file in files if outbox.record_file(file))

    elif kind == ReclamationKind.FILE_VERSION:
        def fetch(db: Session, limit: int) -> list:
            has_record = (
                select(DeletedFileVersion.id)
                .where(DeletedFileVersion.file_version_id == FileVersion.id)
                .exists()
            )
            return (
                db.query(FileVersion)
                .filter(
                    FileVersion.status.in_(TERMINAL_VERSION_STATUSES),
                    FileVersion.size > 0,
                    FileVersion.network_file_id.isnot(None),
                    ~has_record,
                )
                .order_by(FileVersion.created_at, FileVersion.id)
                .limit(limit)
                .all()
            )

        def apply(db: Session, versions: Sequence[FileVersion]) -> int:
            outbox = ReclamationOutbox(db)
            return sum(1 for version in versions if outbox.record_file_version(version))

    else:
        def fetch(db: Session, limit: int) -> list:
            has_record = select(DeletedFolder.id).where(DeletedFolder.folder_id == Folder.uuid).exists()
            return (
                db.query(Folder)
                .filter(Folder.status == FolderStatus.DELETED, ~has_record)
                .order_by(Folder.id)
                .limit(limit)
                .all()
            )

        def apply(db: Session, folders: Sequence[Folder]) -> int:
            outbox = ReclamationOutbox(db)
            return sum(1 for folder in folders if outbox.record_folder(folder))

    return BatchRepairJob(f"backfill-reclamation-{kind.value}", fetch, apply, **job_options).run()


def expire_file_versions(retention_days: Optional[int] = None, **job_options) -> BatchJobReport:
    """
    Delete file versions older than the retention window.

    Versions go through the state machine, so each one with a blob gets a
    reclamation record.
    """
    retention_days = retention_days or settings.FILE_VERSION_RETENTION_DAYS
    cutoff = utcnow() - timedelta(days=retention_days)

    def fetch(db: Session, limit: int) -> List[FileVersion]:
        return (
            db.query(FileVersion)
            .filter(
                FileVersion.status == FileVersionStatus.EXISTS,
                FileVersion.created_at < cutoff,
            )
            .order_by(FileVersion.created_at, FileVersion.id)
            .limit(limit)
            .with_for_update()
            .all()
        )

    def apply(db: Session, versions: Sequence[FileVersion]) -> int:
        outbox = ReclamationOutbox(db)
        now = utcnow()
        for version in versions:
            ensure_file_version_transition(version, FileVersionStatus.DELETED)
            apply_file_version_status(version, FileVersionStatus.DELETED, now)
            outbox.record_file_version(version)
        return len(versions)

    logger.info(f"Expiring file versions created before {cutoff.isoformat()}")
    return BatchRepairJob("expire-file-versions", fetch, apply, **job_options).run()


def dedupe_folder_names(**job_options) -> BatchJobReport:
    """
    Rename live sibling folders that share a name.

    The oldest folder (lowest id) keeps the name; every later one becomes
    ``<name>_<id>``.
    """
    older = aliased(Folder)

    def fetch(db: Session, limit: int) -> List[Folder]:
        has_older_twin = (
            select(older.id)
            .where(
                and_(
                    older.parent_uuid == Folder.parent_uuid,
                    older.plain_name == Folder.plain_name,
                    older.status != FolderStatus.DELETED,
                    older.id < Folder.id,
                )
            )
            .exists()
        )
        return (
            db.query(Folder)
            .filter(
                Folder.status != FolderStatus.DELETED,
                Folder.plain_name.isnot(None),
                has_older_twin,
            )
            .order_by(Folder.id)
            .limit(limit)
            .all()
        )

    def apply(db: Session, folders: Sequence[Folder]) -> int:
        now = utcnow()
        for folder in folders:
            new_name = f"{folder.plain_name}_{folder.id}"
            logger.info(f"Renaming duplicate folder {folder.uuid}: {folder.plain_name!r} -> {new_name!r}")
            folder.plain_name = new_name
            folder.updated_at = now
        return len(folders)

    return BatchRepairJob("dedupe-folder-names", fetch, apply, **job_options).run()
