"""
Pydantic schemas for the reclamation outbox endpoints.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from app.models import ReclamationKind


class ReclamationItemResponse(BaseModel):
    kind: ReclamationKind
    entity_id: str
    network_file_id: Optional[str] = None

    class Config:
        from_attributes = True


class DrainResponse(BaseModel):
    """Records handed out by one drain call; they are now marked enqueued."""
    kind: ReclamationKind
    count: int
    items: List[ReclamationItemResponse]


class ReclaimedResponse(BaseModel):
    kind: ReclamationKind
    entity_id: str
    processed: bool = True


class PendingResponse(BaseModel):
    pending: Dict[str, int] = Field(..., description="Unprocessed records per kind")
