"""
SQLAlchemy model for file versions.
"""
from sqlalchemy import (
    Column,
    String,
    DateTime,
    Enum,
    BigInteger,
    Index,
)
import enum

from app.models.base import Base, new_uuid, utcnow


class FileVersionStatus(str, enum.Enum):
    """
    File version status enumeration.

    DELETED and REMOVED are both terminal and both reclaim the version blob.
    """
    EXISTS = "EXISTS"
    DELETED = "DELETED"
    REMOVED = "REMOVED"


TERMINAL_VERSION_STATUSES = (FileVersionStatus.DELETED, FileVersionStatus.REMOVED)


class FileVersion(Base):
    """Previous content of a file. Deleted independently of the owning file."""
    __tablename__ = "file_versions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    file_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    network_file_id = Column(String(24), nullable=True)
    size = Column(BigInteger, default=0, nullable=False)

    status = Column(
        Enum(FileVersionStatus, name="file_version_status"),
        default=FileVersionStatus.EXISTS,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("file_versions_status_created_at_index", "status", "created_at"),
    )

    def __repr__(self):
        return f"<FileVersion(id={self.id}, file_id={self.file_id}, status={self.status})>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_VERSION_STATUSES

    @property
    def owns_blob(self) -> bool:
        return self.network_file_id is not None and (self.size or 0) > 0
