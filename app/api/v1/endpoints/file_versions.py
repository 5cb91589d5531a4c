"""
File version lifecycle endpoints.
"""
from fastapi import APIRouter, Depends

from app.api.deps import get_lifecycle_service
from app.lifecycle import LifecycleService
from app.schemas import FileVersionResponse, FileVersionStatusUpdate

router = APIRouter()


@router.post("/{version_id}/status", response_model=FileVersionResponse)
def transition_file_version_status(
    version_id: str,
    payload: FileVersionStatusUpdate,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Move a file version to DELETED or REMOVED.

    Both statuses are terminal and queue the version's blob for reclamation.
    """
    return service.transition_file_version_status(version_id, payload.status)
