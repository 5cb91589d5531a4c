"""
SQLAlchemy models for the reclamation outbox.

One append-only table per entity kind. A row states "this entity is logically
gone, its blob may be reclaimed". Rows are never deleted here; an external
worker flips ``enqueued`` when it picks a row and ``processed`` once the blob
is gone.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    BigInteger,
    Index,
    text,
)
from sqlalchemy.orm import declared_attr
import enum

from app.models.base import Base, utcnow


class ReclamationKind(str, enum.Enum):
    """Entity kinds with their own reclamation queue."""
    FILE = "file"
    FOLDER = "folder"
    FILE_VERSION = "file-version"


class ReclamationRecordMixin:
    """Columns shared by every reclamation queue table."""

    # Name of the unique column holding the reclaimed entity's id
    ENTITY_COLUMN = ""

    id = Column(Integer, primary_key=True, autoincrement=True)

    processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    enqueued = Column(Boolean, default=False, nullable=False)
    enqueued_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @declared_attr
    def __table_args__(cls):
        # Covers the worker poll: unprocessed and not yet picked, oldest first
        return (
            Index(
                f"{cls.__tablename__}_pending_index",
                "created_at",
                postgresql_where=text("enqueued = false AND processed = false"),
                sqlite_where=text("enqueued = 0 AND processed = 0"),
            ),
            Index(f"{cls.__tablename__}_processed_index", "processed"),
        )

    @classmethod
    def entity_attr(cls):
        return getattr(cls, cls.ENTITY_COLUMN)

    @property
    def entity_id(self) -> str:
        return getattr(self, self.ENTITY_COLUMN)

    def __repr__(self):
        return (
            f"<{type(self).__name__}(entity_id={self.entity_id}, "
            f"enqueued={self.enqueued}, processed={self.processed})>"
        )


class DeletedFile(ReclamationRecordMixin, Base):
    __tablename__ = "deleted_files"
    ENTITY_COLUMN = "file_id"

    file_id = Column(String(36), unique=True, nullable=False)
    network_file_id = Column(String(24), nullable=False)
    size = Column(BigInteger, nullable=True)


class DeletedFolder(ReclamationRecordMixin, Base):
    """Folder removals carry no blob; they drive descendant cleanup bookkeeping."""
    __tablename__ = "deleted_folders"
    ENTITY_COLUMN = "folder_id"

    folder_id = Column(String(36), unique=True, nullable=False)

    @property
    def network_file_id(self):
        return None


class DeletedFileVersion(ReclamationRecordMixin, Base):
    __tablename__ = "deleted_file_versions"
    ENTITY_COLUMN = "file_version_id"

    file_version_id = Column(String(36), unique=True, nullable=False)
    network_file_id = Column(String(24), nullable=False)
    size = Column(BigInteger, nullable=True)


RECLAMATION_MODELS = {
    ReclamationKind.FILE: DeletedFile,
    ReclamationKind.FOLDER: DeletedFolder,
    ReclamationKind.FILE_VERSION: DeletedFileVersion,
}
