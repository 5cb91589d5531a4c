"""
Pydantic schemas for request/response validation.
"""
from app.schemas.lifecycle import (
    FileStatusUpdate,
    FileVersionStatusUpdate,
    FileResponse,
    FolderResponse,
    FileVersionResponse,
    CascadeResponse,
    AncestorsResponse,
)
from app.schemas.reclamation import (
    ReclamationItemResponse,
    DrainResponse,
    ReclaimedResponse,
    PendingResponse,
)
from app.schemas.usage import (
    UserUsageResponse,
    RollupRequest,
    BatchJobReportResponse,
)

__all__ = [
    # Lifecycle schemas
    "FileStatusUpdate",
    "FileVersionStatusUpdate",
    "FileResponse",
    "FolderResponse",
    "FileVersionResponse",
    "CascadeResponse",
    "AncestorsResponse",
    # Reclamation schemas
    "ReclamationItemResponse",
    "DrainResponse",
    "ReclaimedResponse",
    "PendingResponse",
    # Usage schemas
    "UserUsageResponse",
    "RollupRequest",
    "BatchJobReportResponse",
]
