"""
Employee vehicle periods.

Periods of the same vehicle type for the same employee must not overlap;
an open-ended period (``ended_at`` NULL) runs forever.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.core.exceptions import ResourceNotFoundError, VehiclePeriodOverlapError
from shiftline.app.domain.carpool.grouping import VehicleWindow
from shiftline.app.models.employee import Employee
from shiftline.app.models.enums import VehicleType
from shiftline.app.models.vehicle_period import EmployeeVehiclePeriod

logger = logging.getLogger(__name__)


async def get_employee_or_404(db: AsyncSession, employee_id: int) -> Employee:
    result = await db.execute(select(Employee).where(Employee.id == employee_id))
    employee = result.scalar_one_or_none()
    if not employee:
        raise ResourceNotFoundError("Employee", employee_id)
    return employee


async def create_vehicle_period(
    db: AsyncSession,
    employee_id: int,
    vehicle_type: VehicleType,
    started_at: date,
    ended_at: Optional[date] = None,
    notes: Optional[str] = None
) -> EmployeeVehiclePeriod:
    """
    Create a vehicle period.

    Raises:
        ResourceNotFoundError: If the employee does not exist
        VehiclePeriodOverlapError: If it overlaps a period of the same type
    """
    await get_employee_or_404(db, employee_id)

    # Two ranges overlap when each starts before the other ends.
    conditions = [
        EmployeeVehiclePeriod.employee_id == employee_id,
        EmployeeVehiclePeriod.vehicle_type == vehicle_type,
        or_(EmployeeVehiclePeriod.ended_at.is_(None), EmployeeVehiclePeriod.ended_at >= started_at),
    ]
    if ended_at is not None:
        conditions.append(EmployeeVehiclePeriod.started_at <= ended_at)

    result = await db.execute(select(EmployeeVehiclePeriod.id).where(*conditions).limit(1))
    if result.scalar_one_or_none() is not None:
        raise VehiclePeriodOverlapError(employee_id, vehicle_type.value)

    period = EmployeeVehiclePeriod(
        employee_id=employee_id,
        vehicle_type=vehicle_type,
        started_at=started_at,
        ended_at=ended_at,
        notes=notes,
    )
    db.add(period)
    await db.flush()

    logger.info("Vehicle period %s created for employee %s (%s)", period.id, employee_id, vehicle_type.value)
    return period


async def list_vehicle_periods(db: AsyncSession, employee_id: int) -> List[EmployeeVehiclePeriod]:
    await get_employee_or_404(db, employee_id)
    result = await db.execute(
        select(EmployeeVehiclePeriod)
        .where(EmployeeVehiclePeriod.employee_id == employee_id)
        .order_by(EmployeeVehiclePeriod.started_at, EmployeeVehiclePeriod.id)
    )
    return result.scalars().all()


async def delete_vehicle_period(db: AsyncSession, period_id: int) -> None:
    result = await db.execute(select(EmployeeVehiclePeriod).where(EmployeeVehiclePeriod.id == period_id))
    period = result.scalar_one_or_none()
    if not period:
        raise ResourceNotFoundError("Vehicle period", period_id)

    await db.delete(period)
    await db.flush()


async def load_vehicle_windows(
    db: AsyncSession,
    employee_ids,
    day_from: date,
    day_to: date
) -> List[VehicleWindow]:
    """Vehicle periods of the given employees that touch ``[day_from, day_to]``."""
    employee_ids = list(employee_ids)
    if not employee_ids:
        return []

    result = await db.execute(
        select(EmployeeVehiclePeriod).where(
            EmployeeVehiclePeriod.employee_id.in_(employee_ids),
            EmployeeVehiclePeriod.started_at <= day_to,
            or_(EmployeeVehiclePeriod.ended_at.is_(None), EmployeeVehiclePeriod.ended_at >= day_from),
        ).order_by(EmployeeVehiclePeriod.id)
    )
    return [
        VehicleWindow(
            employee_id=p.employee_id,
            vehicle_type=p.vehicle_type,
            started_at=p.started_at,
            ended_at=p.ended_at,
        )
        for p in result.scalars().all()
    ]
