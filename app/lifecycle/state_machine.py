"""
Lifecycle state machine for files, folders and file versions.

Pure rules: which status moves are legal and which columns each move touches.
Callers own the transaction and the side effects (cascade, outbox).
"""
from datetime import datetime
from typing import Dict, FrozenSet

from app.core.exceptions import InvalidTransition
from app.metrics import record_rejected_transition
from app.models import (
    File,
    FileStatus,
    FileVersion,
    FileVersionStatus,
    Folder,
    FolderStatus,
)

# Forward-only; restoring a trashed file is a separate, explicit operation
FILE_TRANSITIONS: Dict[FileStatus, FrozenSet[FileStatus]] = {
    FileStatus.EXISTS: frozenset({FileStatus.TRASHED, FileStatus.DELETED}),
    FileStatus.TRASHED: frozenset({FileStatus.DELETED}),
    FileStatus.DELETED: frozenset(),
}

FOLDER_TRANSITIONS: Dict[FolderStatus, FrozenSet[FolderStatus]] = {
    FolderStatus.EXISTS: frozenset({FolderStatus.TRASHED, FolderStatus.DELETED}),
    FolderStatus.TRASHED: frozenset({FolderStatus.EXISTS, FolderStatus.DELETED}),
    FolderStatus.DELETED: frozenset(),
}

FILE_VERSION_TRANSITIONS: Dict[FileVersionStatus, FrozenSet[FileVersionStatus]] = {
    FileVersionStatus.EXISTS: frozenset({FileVersionStatus.DELETED, FileVersionStatus.REMOVED}),
    FileVersionStatus.DELETED: frozenset(),
    FileVersionStatus.REMOVED: frozenset(),
}


def _reject(entity: str, entity_id, current, target):
    record_rejected_transition(entity)
    raise InvalidTransition(entity, entity_id, current, target)


def ensure_file_transition(file: File, target: FileStatus) -> None:
    if target not in FILE_TRANSITIONS[file.status]:
        _reject("file", file.uuid, file.status, target)


def ensure_file_restore(file: File) -> None:
    if file.status != FileStatus.TRASHED:
        _reject("file", file.uuid, file.status, FileStatus.EXISTS)


def ensure_folder_transition(folder: Folder, target: FolderStatus) -> None:
    if target not in FOLDER_TRANSITIONS[folder.status]:
        _reject("folder", folder.uuid, folder.status, target)


def ensure_file_version_transition(version: FileVersion, target: FileVersionStatus) -> None:
    if target not in FILE_VERSION_TRANSITIONS[version.status]:
        _reject("file_version", version.id, version.status, target)


def apply_file_status(file: File, target: FileStatus, now: datetime) -> bool:
    """
    Set the file's status and the timestamps that go with it.

    Returns:
        True if the status changed value
    """
    if file.status == target:
        return False

    if target == FileStatus.EXISTS:
        file.deleted_at = None
    elif target == FileStatus.TRASHED:
        file.deleted_at = now
    elif target == FileStatus.DELETED:
        file.removed_at = now
        if file.deleted_at is None:
            file.deleted_at = now

    file.status = target
    file.updated_at = now
    return True


def apply_folder_status(folder: Folder, target: FolderStatus, now: datetime) -> bool:
    """Folder counterpart of apply_file_status."""
    if folder.status == target:
        return False

    if target == FolderStatus.EXISTS:
        folder.deleted_at = None
    elif target == FolderStatus.TRASHED:
        folder.deleted_at = now
    elif target == FolderStatus.DELETED:
        folder.removed_at = now
        if folder.deleted_at is None:
            folder.deleted_at = now

    folder.status = target
    folder.updated_at = now
    return True


def apply_file_version_status(version: FileVersion, target: FileVersionStatus, now: datetime) -> bool:
    if version.status == target:
        return False
    version.status = target
    version.updated_at = now
    return True
