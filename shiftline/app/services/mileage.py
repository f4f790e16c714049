"""
Mileage reporting service.

Resolves reimbursement eligibility for stored trips and builds the
per-employee mileage summary used by reporting.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.core.config import settings
from shiftline.app.core.exceptions import ResourceNotFoundError
from shiftline.app.domain.mileage.eligibility import EligibilityDecision, evaluate_trip, has_active_period, local_date
from shiftline.app.domain.mileage.reimbursement import RateTier, calculate_reimbursement
from shiftline.app.models.carpool import CarpoolGroup, CarpoolMember
from shiftline.app.models.enums import CarpoolRole, CarpoolStatus, TripClassification, VehicleType
from shiftline.app.models.reimbursement_rate import ReimbursementRate
from shiftline.app.models.trip import Trip
from shiftline.app.services.carpool_detection import day_bounds
from shiftline.app.services.vehicle_periods import get_employee_or_404, load_vehicle_windows

logger = logging.getLogger(__name__)


@dataclass
class MileageSummary:
    employee_id: int
    period_start: date
    period_end: date
    total_distance_km: float
    business_distance_km: float
    personal_distance_km: float
    trip_count: int
    business_trip_count: int
    personal_trip_count: int
    reimbursable_distance_km: float
    reimbursable_trip_count: int
    ytd_reimbursable_km: float
    estimated_reimbursement: float
    rate_per_km_used: float
    rate_source: str


async def get_trip_or_404(db: AsyncSession, trip_id: int) -> Trip:
    result = await db.execute(select(Trip).where(Trip.id == trip_id))
    trip = result.scalar_one_or_none()
    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)
    return trip


async def update_trip_classification(
    db: AsyncSession,
    trip_id: int,
    classification: TripClassification
) -> Trip:
    trip = await get_trip_or_404(db, trip_id)
    trip.classification = classification
    await db.flush()
    return trip


async def _carpool_roles(db: AsyncSession, trip_ids: List[int]) -> Dict[int, CarpoolRole]:
    """Carpool role per trip id; members of dismissed groups do not count."""
    if not trip_ids:
        return {}
    result = await db.execute(
        select(CarpoolMember.trip_id, CarpoolMember.role)
        .join(CarpoolGroup, CarpoolGroup.id == CarpoolMember.carpool_group_id)
        .where(
            CarpoolMember.trip_id.in_(trip_ids),
            CarpoolGroup.status != CarpoolStatus.DISMISSED,
        )
    )
    return {trip_id: role for trip_id, role in result.all()}


def _decide(trip: Trip, windows, roles: Dict[int, CarpoolRole]) -> EligibilityDecision:
    day = local_date(trip.started_at, settings.timezone)
    return evaluate_trip(
        classification=trip.classification,
        transport_mode=trip.transport_mode,
        has_company_vehicle=has_active_period(windows, VehicleType.COMPANY, day),
        carpool_role=roles.get(trip.id),
    )


async def evaluate_trip_eligibility(db: AsyncSession, trip_id: int):
    """
    Decide whether a stored trip is reimbursable.

    Returns:
        (trip, EligibilityDecision)
    """
    trip = await get_trip_or_404(db, trip_id)
    day = local_date(trip.started_at, settings.timezone)
    windows = await load_vehicle_windows(db, [trip.employee_id], day, day)
    roles = await _carpool_roles(db, [trip.id])
    return trip, _decide(trip, windows, roles)


async def _trips_between(db: AsyncSession, employee_id: int, day_from: date, day_to: date) -> List[Trip]:
    start, _ = day_bounds(day_from, settings.timezone)
    _, end = day_bounds(day_to, settings.timezone)
    result = await db.execute(
        select(Trip).where(
            Trip.employee_id == employee_id,
            Trip.started_at >= start,
            Trip.started_at < end,
        ).order_by(Trip.started_at, Trip.id)
    )
    return result.scalars().all()


async def resolve_rate(db: AsyncSession, on_day: date) -> Optional[ReimbursementRate]:
    """The reimbursement rate effective on ``on_day`` (latest effective_from wins)."""
    result = await db.execute(
        select(ReimbursementRate).where(
            ReimbursementRate.effective_from <= on_day,
            or_(ReimbursementRate.effective_to.is_(None), ReimbursementRate.effective_to >= on_day),
        ).order_by(ReimbursementRate.effective_from.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def get_mileage_summary(
    db: AsyncSession,
    employee_id: int,
    period_start: date,
    period_end: date
) -> MileageSummary:
    """
    Summarize an employee's mileage over ``[period_start, period_end]``.

    Reimbursement is priced against the year-to-date reimbursable distance
    accrued before the period, using the rate effective on ``period_end``.

    Raises:
        ResourceNotFoundError: If the employee does not exist
    """
    await get_employee_or_404(db, employee_id)

    year_start = date(period_end.year, 1, 1)
    ytd_from = min(year_start, period_start)
    trips = await _trips_between(db, employee_id, ytd_from, period_end)
    windows = await load_vehicle_windows(db, [employee_id], ytd_from, period_end)
    roles = await _carpool_roles(db, [t.id for t in trips])

    total_km = business_km = personal_km = reimbursable_km = ytd_km = 0.0
    trip_count = business_count = personal_count = reimbursable_count = 0

    for trip in trips:
        km = trip.distance_meters / 1000.0
        day = local_date(trip.started_at, settings.timezone)
        reimbursable = _decide(trip, windows, roles).reimbursable

        if reimbursable and day >= year_start:
            ytd_km += km

        if day < period_start:
            continue

        trip_count += 1
        total_km += km
        if trip.classification == TripClassification.BUSINESS:
            business_count += 1
            business_km += km
        else:
            personal_count += 1
            personal_km += km
        if reimbursable:
            reimbursable_count += 1
            reimbursable_km += km

    rate = await resolve_rate(db, period_end)
    tier = None
    if rate is not None:
        tier = RateTier(
            rate_per_km=rate.rate_per_km,
            threshold_km=rate.threshold_km,
            rate_after_threshold=rate.rate_after_threshold,
        )
    ytd_before = max(ytd_km - reimbursable_km, 0.0) if period_start >= year_start else 0.0
    amount = calculate_reimbursement(reimbursable_km, ytd_before, tier)

    logger.debug(
        "Mileage summary for employee %s %s..%s: %.1f km reimbursable",
        employee_id, period_start, period_end, reimbursable_km
    )

    return MileageSummary(
        employee_id=employee_id,
        period_start=period_start,
        period_end=period_end,
        total_distance_km=round(total_km, 3),
        business_distance_km=round(business_km, 3),
        personal_distance_km=round(personal_km, 3),
        trip_count=trip_count,
        business_trip_count=business_count,
        personal_trip_count=personal_count,
        reimbursable_distance_km=round(reimbursable_km, 3),
        reimbursable_trip_count=reimbursable_count,
        ytd_reimbursable_km=round(ytd_km, 3),
        estimated_reimbursement=amount,
        rate_per_km_used=rate.rate_per_km if rate else 0.0,
        rate_source=rate.rate_source if rate else "none",
    )
