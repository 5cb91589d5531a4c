"""
Pydantic schemas for lifecycle transition requests and responses.
"""
from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from app.models import FileStatus, FileVersionStatus, FolderStatus


# ========================================
# Request Schemas
# ========================================

class FileStatusUpdate(BaseModel):
    """Target status of a file transition."""
    status: FileStatus = Field(..., description="TRASHED or DELETED")


class FileVersionStatusUpdate(BaseModel):
    status: FileVersionStatus = Field(..., description="DELETED or REMOVED")


# ========================================
# Response Schemas
# ========================================

class FileResponse(BaseModel):
    """File state after a transition."""
    uuid: str
    folder_uuid: Optional[str] = None
    user_id: str
    size: int
    status: FileStatus
    deleted: bool
    removed: bool
    deleted_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class FolderResponse(BaseModel):
    uuid: str
    parent_uuid: Optional[str] = None
    user_id: str
    plain_name: Optional[str] = None
    status: FolderStatus
    deleted: bool
    removed: bool
    deleted_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FileVersionResponse(BaseModel):
    id: str
    file_id: str
    user_id: str
    size: int
    status: FileVersionStatus
    updated_at: datetime

    class Config:
        from_attributes = True


class CascadeResponse(BaseModel):
    """Outcome of removing a folder subtree."""
    root_uuid: str
    folders_removed: int
    files_removed: int
    reclamation_records: int
    max_depth: int


class AncestorsResponse(BaseModel):
    folder_uuid: str
    ancestors: List[FolderResponse] = Field(..., description="Nearest parent first")
