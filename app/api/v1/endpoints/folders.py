"""
Folder lifecycle and tree endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_lifecycle_service
from app.db import get_db
from app.lifecycle import LifecycleService, iter_ancestors
from app.schemas import AncestorsResponse, CascadeResponse, FolderResponse

router = APIRouter()


@router.post("/{folder_uuid}/remove", response_model=CascadeResponse)
def remove_folder(
    folder_uuid: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Remove a folder and everything beneath it.

    The whole subtree is removed in one transaction. A tree deeper or larger
    than the cascade guards is rejected with 422 and nothing changes.
    """
    report = service.transition_folder_removed(folder_uuid)
    return report.to_dict()


@router.post("/{folder_uuid}/trash", response_model=FolderResponse)
def trash_folder(
    folder_uuid: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    return service.trash_folder(folder_uuid)


@router.post("/{folder_uuid}/restore", response_model=FolderResponse)
def restore_folder(
    folder_uuid: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    return service.restore_folder(folder_uuid)


@router.get("/{folder_uuid}/ancestors", response_model=AncestorsResponse)
def list_ancestors(
    folder_uuid: str,
    user_id: str = Query(..., description="Owner of the folder"),
    db: Session = Depends(get_db),
):
    """Parent chain of a folder up to the root, nearest parent first."""
    ancestors = list(iter_ancestors(db, folder_uuid, user_id))
    return {"folder_uuid": folder_uuid, "ancestors": ancestors}
