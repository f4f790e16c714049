"""
Mileage API Endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.db.session import get_db
from shiftline.app.schemas.mileage import MileageSummaryResponse
from shiftline.app.services.mileage import get_mileage_summary

router = APIRouter(prefix="/employees", tags=["Mileage"])


@router.get("/{employee_id}/mileage-summary", response_model=MileageSummaryResponse)
async def mileage_summary(
    employee_id: int = Path(..., description="Employee ID"),
    period_start: date = Query(..., description="First day of the period"),
    period_end: date = Query(..., description="Last day of the period (inclusive)"),
    db: AsyncSession = Depends(get_db)
):
    """
    Distance totals and estimated reimbursement for an employee.
    
    Uses the reimbursement rate effective on period_end, with tiered
    pricing against year-to-date reimbursable distance.
    """
    if period_end < period_start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="period_end must not be before period_start"
        )
    
    summary = await get_mileage_summary(db, employee_id, period_start, period_end)
    return MileageSummaryResponse.model_validate(summary)
