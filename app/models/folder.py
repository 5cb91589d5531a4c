"""
SQLAlchemy model for folders.
Represents the folders table in the database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Enum,
    Index,
)
from sqlalchemy.ext.hybrid import hybrid_property
import enum

from app.models.base import Base, new_uuid, utcnow


class FolderStatus(str, enum.Enum):
    """Folder status enumeration."""
    EXISTS = "EXISTS"
    TRASHED = "TRASHED"
    DELETED = "DELETED"


class Folder(Base):
    """
    Folder model.

    ``status`` is the single source of truth. The legacy ``deleted`` (trashed,
    reversible) and ``removed`` (terminal) flags are derived read-only views.
    """
    __tablename__ = "folders"

    # Primary Key
    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid)

    # Hierarchy; no FK so that orphans (parent row gone) can be detected and repaired
    parent_uuid = Column(String(36), nullable=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    plain_name = Column(String(650), nullable=True)

    status = Column(
        Enum(FolderStatus, name="folder_status"),
        default=FolderStatus.EXISTS,
        nullable=False,
        index=True,
    )

    # Timestamps
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    removed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("folders_parent_uuid_status_index", "parent_uuid", "status"),
        Index("folders_parent_uuid_plain_name_index", "parent_uuid", "plain_name"),
    )

    def __repr__(self):
        return f"<Folder(id={self.id}, uuid={self.uuid}, status={self.status})>"

    @hybrid_property
    def deleted(self) -> bool:
        """Trashed or removed."""
        return self.status in (FolderStatus.TRASHED, FolderStatus.DELETED)

    @deleted.expression
    def deleted(cls):
        return cls.status.in_([FolderStatus.TRASHED, FolderStatus.DELETED])

    @hybrid_property
    def removed(self) -> bool:
        return self.status == FolderStatus.DELETED

    @removed.expression
    def removed(cls):
        return cls.status == FolderStatus.DELETED

    @property
    def is_root(self) -> bool:
        return self.parent_uuid is None
