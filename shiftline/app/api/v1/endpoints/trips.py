"""
Trip API Endpoints.

Classification review and reimbursement eligibility for detected trips.
"""

from fastapi import APIRouter, Depends, Path, Body
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.db.session import get_db
from shiftline.app.schemas.timeline import TripClassificationUpdate, TripResponse, ReimbursableResponse
from shiftline.app.services.mileage import update_trip_classification, evaluate_trip_eligibility

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.patch("/{trip_id}/classification", response_model=TripResponse)
async def set_trip_classification(
    trip_id: int = Path(..., description="Trip ID"),
    payload: TripClassificationUpdate = Body(...),
    db: AsyncSession = Depends(get_db)
):
    """Mark a trip as business or personal."""
    trip = await update_trip_classification(db, trip_id, payload.classification)
    await db.commit()
    await db.refresh(trip)
    
    return TripResponse.model_validate(trip)


@router.get("/{trip_id}/reimbursable", response_model=ReimbursableResponse)
async def trip_reimbursable(
    trip_id: int = Path(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db)
):
    """
    Reimbursement eligibility of a trip.
    
    Reimbursable = business + driving + no company vehicle + (solo or carpool driver).
    """
    trip, decision = await evaluate_trip_eligibility(db, trip_id)
    
    return ReimbursableResponse(trip_id=trip.id, reimbursable=decision.reimbursable, reason=decision.reason)
