"""
Usage query and rollup endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.api.deps import get_usage_ledger
from app.models import UsageType
from app.schemas import BatchJobReportResponse, RollupRequest, UserUsageResponse
from app.usage import UsageLedger

router = APIRouter()

ROLLUP_GRANULARITIES = (UsageType.DAILY, UsageType.MONTHLY, UsageType.YEARLY)


@router.get("/{user_id}", response_model=UserUsageResponse)
def get_user_usage(
    user_id: str,
    ledger: UsageLedger = Depends(get_usage_ledger),
):
    """
    Storage used by a user: ``drive`` (ledger sum), ``backup`` and ``total``.

    The first read of a user without ledger rows seeds it from their files.
    """
    return ledger.get_user_usage(user_id).to_dict()


@router.post("/rollups/{granularity}", response_model=BatchJobReportResponse)
def run_rollup(
    granularity: UsageType,
    payload: Optional[RollupRequest] = Body(default=None),
    ledger: UsageLedger = Depends(get_usage_ledger),
):
    """
    Run one rollup now.

    **Granularities:**
    - daily: one row per active user for ``day`` (default: yesterday)
    - monthly: fold the previous month of ``today``
    - yearly: fold the previous year of ``today``

    Monthly and yearly runs answer 409 while a lower-granularity run of the
    window is missing, unless ``force`` is set.
    """
    payload = payload or RollupRequest()

    if granularity == UsageType.DAILY:
        report = ledger.run_daily_rollup(payload.day)
    elif granularity == UsageType.MONTHLY:
        report = ledger.run_monthly_rollup(payload.today, force=payload.force)
    elif granularity == UsageType.YEARLY:
        report = ledger.run_yearly_rollup(payload.today, force=payload.force)
    else:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unsupported rollup granularity: {granularity.value}",
        )

    return report.to_dict()
