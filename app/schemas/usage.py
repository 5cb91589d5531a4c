"""
Pydantic schemas for usage queries and rollup runs.
"""
from typing import Optional
from pydantic import BaseModel, Field
from datetime import date


class UserUsageResponse(BaseModel):
    """Storage used by one user, in bytes."""
    user_id: str
    drive: int
    backup: int
    total: int


class RollupRequest(BaseModel):
    """
    Rollup parameters.

    ``day`` applies to the daily rollup (default: yesterday); ``today``
    anchors the monthly and yearly rollups (default: current UTC date).
    """
    day: Optional[date] = None
    today: Optional[date] = None
    force: bool = Field(default=False, description="Skip the completion barrier")


class BatchJobReportResponse(BaseModel):
    job_name: str
    rows_affected: int
    batches_run: int
    retries: int
    duration_seconds: float
