"""
Lifecycle Service

Entry points for status transitions. Every operation runs as one transaction:
the row lock, the status change, the cascade and the reclamation records
commit together or not at all.
"""
import logging
from typing import Union

from sqlalchemy.orm import Session

from app.core.exceptions import (
    AlreadyRemoved,
    FileNotFound,
    FileVersionNotFound,
    FolderNotFound,
)
from app.db import transaction
from app.lifecycle.cascade import CascadePropagator, CascadeReport
from app.lifecycle.state_machine import (
    apply_file_status,
    apply_file_version_status,
    apply_folder_status,
    ensure_file_restore,
    ensure_file_transition,
    ensure_file_version_transition,
    ensure_folder_transition,
)
from app.metrics import record_cascade, record_transition
from app.models import (
    TERMINAL_VERSION_STATUSES,
    File,
    FileStatus,
    FileVersion,
    FileVersionStatus,
    Folder,
    FolderStatus,
    utcnow,
)
from app.reclamation import ReclamationOutbox

logger = logging.getLogger(__name__)


class LifecycleService:
    """
    Status transitions for files, folders and file versions.
    """

    def __init__(self, db: Session):
        self.db = db
        self.outbox = ReclamationOutbox(db)

    # ------------------------------------------------------------------
    # Row access
    # ------------------------------------------------------------------

    def _lock_file(self, file_uuid: str) -> File:
        file = self.db.query(File).filter(File.uuid == file_uuid).with_for_update().first()
        if file is None:
            raise FileNotFound(file_uuid)
        return file

    def _lock_folder(self, folder_uuid: str) -> Folder:
        folder = self.db.query(Folder).filter(Folder.uuid == folder_uuid).with_for_update().first()
        if folder is None:
            raise FolderNotFound(folder_uuid)
        return folder

    def _lock_file_version(self, version_id: str) -> FileVersion:
        version = (
            self.db.query(FileVersion)
            .filter(FileVersion.id == version_id)
            .with_for_update()
            .first()
        )
        if version is None:
            raise FileVersionNotFound(version_id)
        return version

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def transition_file_status(self, file_uuid: str, target: Union[FileStatus, str]) -> File:
        """
        Move a file forward to ``target``.

        Reaching DELETED sets ``removed_at`` and writes a reclamation record
        when the file owns a blob.

        Raises:
            FileNotFound: Unknown file
            InvalidTransition: Backward or same-state move
        """
        target = FileStatus(target)

        with transaction(self.db):
            file = self._lock_file(file_uuid)
            ensure_file_transition(file, target)
            apply_file_status(file, target, utcnow())
            if target == FileStatus.DELETED:
                self.outbox.record_file(file)

        record_transition("file", target.value)
        logger.info(f"File {file_uuid} -> {target.value}")
        return file

    def restore_file(self, file_uuid: str) -> File:
        """Bring a trashed file back to EXISTS."""
        with transaction(self.db):
            file = self._lock_file(file_uuid)
            ensure_file_restore(file)
            apply_file_status(file, FileStatus.EXISTS, utcnow())

        record_transition("file", FileStatus.EXISTS.value)
        logger.info(f"File {file_uuid} restored")
        return file

    def is_file_removed(self, file_uuid: str) -> bool:
        file = self.db.query(File).filter(File.uuid == file_uuid).first()
        if file is None:
            raise FileNotFound(file_uuid)
        return file.removed

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def transition_folder_removed(self, folder_uuid: str) -> CascadeReport:
        """
        Remove a folder and cascade to its whole subtree.

        Raises:
            FolderNotFound: Unknown folder
            AlreadyRemoved: The folder is already removed
            CascadeLimitExceeded: The subtree is deeper or larger than the guards
        """
        with transaction(self.db):
            folder = self._lock_folder(folder_uuid)
            if folder.removed:
                raise AlreadyRemoved(folder_uuid)
            report = CascadePropagator(self.db, self.outbox).remove(folder, utcnow())

        record_transition("folder", FolderStatus.DELETED.value)
        record_cascade(report.nodes, report.max_depth)
        return report

    def trash_folder(self, folder_uuid: str) -> Folder:
        """Move a folder to the trash. Contents are not touched."""
        return self._move_folder(folder_uuid, FolderStatus.TRASHED)

    def restore_folder(self, folder_uuid: str) -> Folder:
        return self._move_folder(folder_uuid, FolderStatus.EXISTS)

    def _move_folder(self, folder_uuid: str, target: FolderStatus) -> Folder:
        with transaction(self.db):
            folder = self._lock_folder(folder_uuid)
            ensure_folder_transition(folder, target)
            apply_folder_status(folder, target, utcnow())

        record_transition("folder", target.value)
        logger.info(f"Folder {folder_uuid} -> {target.value}")
        return folder

    def is_folder_removed(self, folder_uuid: str) -> bool:
        folder = self.db.query(Folder).filter(Folder.uuid == folder_uuid).first()
        if folder is None:
            raise FolderNotFound(folder_uuid)
        return folder.removed

    # ------------------------------------------------------------------
    # File versions
    # ------------------------------------------------------------------

    def transition_file_version_status(
        self,
        version_id: str,
        target: Union[FileVersionStatus, str],
    ) -> FileVersion:
        """
        Move a file version to DELETED or REMOVED.

        Both are terminal; either one writes a reclamation record when the
        version owns a blob.
        """
        target = FileVersionStatus(target)

        with transaction(self.db):
            version = self._lock_file_version(version_id)
            ensure_file_version_transition(version, target)
            apply_file_version_status(version, target, utcnow())
            if target in TERMINAL_VERSION_STATUSES:
                self.outbox.record_file_version(version)

        record_transition("file_version", target.value)
        logger.info(f"File version {version_id} -> {target.value}")
        return version
