"""
Reclamation outbox endpoints for external blob workers.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_outbox
from app.core.config import settings
from app.models import ReclamationKind
from app.reclamation import ReclamationOutbox
from app.schemas import DrainResponse, PendingResponse, ReclaimedResponse

router = APIRouter()


@router.get("/pending", response_model=PendingResponse)
def pending_counts(outbox: ReclamationOutbox = Depends(get_outbox)):
    """Unprocessed reclamation records per kind."""
    return {"pending": outbox.pending_counts()}


@router.post("/{kind}/drain", response_model=DrainResponse)
def drain(
    kind: ReclamationKind,
    batch_size: Optional[int] = Query(
        default=None,
        ge=1,
        le=settings.RECLAMATION_MAX_BATCH_SIZE,
        description="Maximum records to hand out",
    ),
    outbox: ReclamationOutbox = Depends(get_outbox),
):
    """
    Hand out the oldest pending records of one kind.

    Returned records are marked enqueued and are not handed out again. Call
    ``/reclaimed`` once the blob is gone.
    """
    items = outbox.drain(kind, batch_size)
    return {
        "kind": kind,
        "count": len(items),
        "items": [item.to_dict() for item in items],
    }


@router.post("/{kind}/{entity_id}/reclaimed", response_model=ReclaimedResponse)
def mark_reclaimed(
    kind: ReclamationKind,
    entity_id: str,
    outbox: ReclamationOutbox = Depends(get_outbox),
):
    """Mark a record processed. Repeating the call is harmless."""
    outbox.mark_reclaimed(kind, entity_id)
    return {"kind": kind, "entity_id": entity_id, "processed": True}
