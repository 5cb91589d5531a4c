"""
File lifecycle endpoints.
"""
from fastapi import APIRouter, Depends

from app.api.deps import get_lifecycle_service
from app.lifecycle import LifecycleService
from app.schemas import FileResponse, FileStatusUpdate

router = APIRouter()


@router.post("/{file_uuid}/status", response_model=FileResponse)
def transition_file_status(
    file_uuid: str,
    payload: FileStatusUpdate,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Move a file forward to TRASHED or DELETED.

    **Behavior:**
    - DELETED is terminal and queues the file's blob for reclamation
    - Backward and same-state moves are rejected with 409
    """
    return service.transition_file_status(file_uuid, payload.status)


@router.post("/{file_uuid}/restore", response_model=FileResponse)
def restore_file(
    file_uuid: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """Bring a trashed file back. Only TRASHED files can be restored."""
    return service.restore_file(file_uuid)
