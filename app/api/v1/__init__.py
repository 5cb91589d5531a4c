"""
API v1 router aggregation.
"""
from fastapi import APIRouter
from app.api.v1.endpoints import files, folders, file_versions, reclamation, usage

api_router = APIRouter()

# Include file lifecycle endpoints
api_router.include_router(files.router, prefix="/files", tags=["files"])

# Include folder lifecycle and tree endpoints
api_router.include_router(folders.router, prefix="/folders", tags=["folders"])

# Include file version endpoints
api_router.include_router(file_versions.router, prefix="/file-versions", tags=["file-versions"])

# Include reclamation outbox endpoints
api_router.include_router(reclamation.router, prefix="/reclamation", tags=["reclamation"])

# Include usage endpoints
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])

__all__ = ["api_router"]
