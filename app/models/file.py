"""
SQLAlchemy model for files.
Represents the files table in the database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Enum,
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
)
from sqlalchemy.ext.hybrid import hybrid_property
import enum

from app.models.base import Base, new_uuid, utcnow


class FileStatus(str, enum.Enum):
    """File status enumeration. Moves forward only, except restore from TRASHED."""
    EXISTS = "EXISTS"
    TRASHED = "TRASHED"
    DELETED = "DELETED"


class File(Base):
    """
    File model.
    Maps to the 'files' table in PostgreSQL.

    A file owns a physical blob (``network_file_id``) exactly when its size is
    positive. Zero-size files never produce reclamation records.
    """
    __tablename__ = "files"

    # Primary Key
    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid)

    # Ownership
    folder_uuid = Column(
        String(36),
        ForeignKey("folders.uuid", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    user_id = Column(String(36), nullable=False, index=True)

    # Blob
    network_file_id = Column(String(24), nullable=True)
    size = Column(BigInteger, default=0, nullable=False)

    status = Column(
        Enum(FileStatus, name="file_status"),
        default=FileStatus.EXISTS,
        nullable=False,
        index=True,
    )

    # Timestamps
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    removed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("size >= 0", name="files_size_non_negative"),
        CheckConstraint(
            "(network_file_id IS NOT NULL) = (size > 0)",
            name="files_blob_iff_positive_size",
        ),
        Index("files_user_id_removed_at_index", "user_id", "removed_at"),
    )

    def __repr__(self):
        return f"<File(id={self.id}, uuid={self.uuid}, status={self.status}, size={self.size})>"

    @hybrid_property
    def deleted(self) -> bool:
        """Legacy trash flag: trashed or removed."""
        return self.status in (FileStatus.TRASHED, FileStatus.DELETED)

    @deleted.expression
    def deleted(cls):
        return cls.status.in_([FileStatus.TRASHED, FileStatus.DELETED])

    @hybrid_property
    def removed(self) -> bool:
        """Legacy terminal flag."""
        return self.status == FileStatus.DELETED

    @removed.expression
    def removed(cls):
        return cls.status == FileStatus.DELETED

    @property
    def owns_blob(self) -> bool:
        return self.network_file_id is not None and (self.size or 0) > 0
