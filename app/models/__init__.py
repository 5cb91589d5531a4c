"""
SQLAlchemy models for the drive lifecycle service.
"""
from app.models.base import Base, utcnow, new_uuid
from app.models.folder import Folder, FolderStatus
from app.models.file import File, FileStatus
from app.models.file_version import FileVersion, FileVersionStatus, TERMINAL_VERSION_STATUSES
from app.models.reclamation import (
    ReclamationKind,
    DeletedFile,
    DeletedFolder,
    DeletedFileVersion,
    RECLAMATION_MODELS,
)
from app.models.usage import Usage, UsageType, RollupRun
from app.models.backup import Backup

__all__ = [
    "Base",
    "utcnow",
    "new_uuid",
    "Folder",
    "FolderStatus",
    "File",
    "FileStatus",
    "FileVersion",
    "FileVersionStatus",
    "TERMINAL_VERSION_STATUSES",
    "ReclamationKind",
    "DeletedFile",
    "DeletedFolder",
    "DeletedFileVersion",
    "RECLAMATION_MODELS",
    "Usage",
    "UsageType",
    "RollupRun",
    "Backup",
]
