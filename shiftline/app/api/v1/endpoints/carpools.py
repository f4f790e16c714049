"""
Carpool API Endpoints.

Per-date carpool detection and reviewer confirmation.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Body
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.db.session import get_db
from shiftline.app.core.redis_client import get_redis
from shiftline.app.core.recompute_lock import recompute_lock, carpool_unit
from shiftline.app.schemas.carpool import (
    CarpoolGroupResponse, CarpoolMemberResponse, CarpoolDetectionResponse,
    CarpoolConfirmRequest, CarpoolDismissRequest
)
from shiftline.app.services.carpool_detection import (
    detect_carpools_for_date, list_carpools, get_members, confirm_carpool, dismiss_carpool
)

router = APIRouter(prefix="/carpools", tags=["Carpools"])


def _group_response(group, members) -> CarpoolGroupResponse:
    return CarpoolGroupResponse(
        id=group.id,
        trip_date=group.trip_date,
        status=group.status,
        driver_employee_id=group.driver_employee_id,
        review_needed=group.review_needed,
        review_note=group.review_note,
        reviewed_at=group.reviewed_at,
        members=[CarpoolMemberResponse.model_validate(m) for m in members],
    )


@router.post("/detect", response_model=CarpoolDetectionResponse)
async def detect_carpools(
    trip_date: date = Query(..., description="Calendar date to recompute"),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Recompute carpool groups for a date.
    
    Previous groups for the date, reviewed or not, are replaced.
    Returns 409 if a recomputation of the same date is already running.
    """
    async with recompute_lock(redis, carpool_unit(trip_date)):
        try:
            await detect_carpools_for_date(db, trip_date)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    
    groups = await list_carpools(db, trip_date)
    return CarpoolDetectionResponse(
        trip_date=trip_date,
        group_count=len(groups),
        groups=[_group_response(g, members) for g, members in groups],
    )


@router.get("", response_model=list[CarpoolGroupResponse])
async def get_carpools(
    trip_date: date = Query(..., description="Calendar date"),
    db: AsyncSession = Depends(get_db)
):
    """List carpool groups of a date with their members."""
    groups = await list_carpools(db, trip_date)
    return [_group_response(g, members) for g, members in groups]


@router.post("/{group_id}/confirm", response_model=CarpoolGroupResponse)
async def confirm_group(
    group_id: int = Path(..., description="Carpool group ID"),
    payload: Optional[CarpoolConfirmRequest] = Body(None),
    db: AsyncSession = Depends(get_db)
):
    """Confirm a detected carpool, optionally choosing the driver."""
    payload = payload or CarpoolConfirmRequest()
    group = await confirm_carpool(db, group_id, payload.driver_employee_id, payload.note)
    await db.commit()
    
    return _group_response(group, await get_members(db, group_id))


@router.post("/{group_id}/dismiss", response_model=CarpoolGroupResponse)
async def dismiss_group(
    group_id: int = Path(..., description="Carpool group ID"),
    payload: Optional[CarpoolDismissRequest] = Body(None),
    db: AsyncSession = Depends(get_db)
):
    """Dismiss a detected carpool; its trips count as solo trips."""
    payload = payload or CarpoolDismissRequest()
    group = await dismiss_carpool(db, group_id, payload.note)
    await db.commit()
    
    return _group_response(group, await get_members(db, group_id))
