"""
Vehicle Period API Endpoints.

Personal/company vehicle access per employee, used by carpool role
resolution and reimbursement eligibility.
"""

from fastapi import APIRouter, Depends, Path, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.db.session import get_db
from shiftline.app.schemas.vehicle_period import VehiclePeriodCreate, VehiclePeriodResponse
from shiftline.app.services.vehicle_periods import (
    create_vehicle_period, list_vehicle_periods, delete_vehicle_period
)

router = APIRouter(tags=["Vehicle Periods"])


@router.post(
    "/employees/{employee_id}/vehicle-periods",
    response_model=VehiclePeriodResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_vehicle_period(
    employee_id: int = Path(..., description="Employee ID"),
    payload: VehiclePeriodCreate = Body(...),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a vehicle period.
    
    Returns 409 if it overlaps a period of the same type for the employee.
    """
    period = await create_vehicle_period(
        db,
        employee_id=employee_id,
        vehicle_type=payload.vehicle_type,
        started_at=payload.started_at,
        ended_at=payload.ended_at,
        notes=payload.notes,
    )
    await db.commit()
    await db.refresh(period)
    
    return VehiclePeriodResponse.model_validate(period)


@router.get("/employees/{employee_id}/vehicle-periods", response_model=list[VehiclePeriodResponse])
async def get_vehicle_periods(
    employee_id: int = Path(..., description="Employee ID"),
    db: AsyncSession = Depends(get_db)
):
    periods = await list_vehicle_periods(db, employee_id)
    return [VehiclePeriodResponse.model_validate(p) for p in periods]


@router.delete("/vehicle-periods/{period_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_vehicle_period(
    period_id: int = Path(..., description="Vehicle period ID"),
    db: AsyncSession = Depends(get_db)
):
    await delete_vehicle_period(db, period_id)
    await db.commit()
