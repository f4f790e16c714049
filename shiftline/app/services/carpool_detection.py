"""
Carpool detection service.

Recomputes a calendar date's carpool groups from that date's driving trips
and the vehicle periods active on it. The previous groups for the date are
deleted first, so a re-run replaces rather than accumulates.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.core.config import settings
from shiftline.app.core.exceptions import ResourceNotFoundError, InvalidStateTransitionError
from shiftline.app.domain.carpool.grouping import (
    CandidateTrip, CarpoolThresholds, TieBreakPolicy, lowest_employee_id, detect_carpools,
)
from shiftline.app.models.carpool import CarpoolGroup, CarpoolMember
from shiftline.app.models.enums import CarpoolRole, CarpoolStatus, TransportMode
from shiftline.app.models.trip import Trip
from shiftline.app.services.vehicle_periods import load_vehicle_windows

logger = logging.getLogger(__name__)


def day_bounds(day: date, tz_name: str) -> Tuple[datetime, datetime]:
    """UTC instants of local midnight at the start of ``day`` and of the next day."""
    tz = ZoneInfo(tz_name)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


async def load_candidate_trips(db: AsyncSession, day: date) -> List[CandidateTrip]:
    start, end = day_bounds(day, settings.timezone)
    result = await db.execute(
        select(Trip).where(
            Trip.transport_mode == TransportMode.DRIVING,
            Trip.started_at >= start,
            Trip.started_at < end,
        ).order_by(Trip.started_at, Trip.id)
    )
    return [
        CandidateTrip(
            trip_id=t.id,
            employee_id=t.employee_id,
            started_at=t.started_at,
            ended_at=t.ended_at,
            start_latitude=t.start_latitude,
            start_longitude=t.start_longitude,
            end_latitude=t.end_latitude,
            end_longitude=t.end_longitude,
        )
        for t in result.scalars().all()
        if t.ended_at > t.started_at
    ]


async def detect_carpools_for_date(
    db: AsyncSession,
    day: date,
    thresholds: CarpoolThresholds = None,
    tie_break: TieBreakPolicy = lowest_employee_id
) -> List[CarpoolGroup]:
    """
    Replace the carpool groups of ``day``.

    Args:
        db: Database session
        day: Calendar date in the configured timezone
        thresholds: Grouping thresholds (defaults to configured settings)
        tie_break: Driver pick when several members had a personal vehicle

    Returns:
        The newly created groups, in detection order
    """
    thresholds = thresholds or CarpoolThresholds.from_settings(settings)

    trips = await load_candidate_trips(db, day)
    windows = await load_vehicle_windows(db, {t.employee_id for t in trips}, day, day)
    detected = detect_carpools(trips, windows, day, thresholds, tie_break)

    group_ids = select(CarpoolGroup.id).where(CarpoolGroup.trip_date == day)
    await db.execute(delete(CarpoolMember).where(CarpoolMember.carpool_group_id.in_(group_ids)))
    await db.execute(delete(CarpoolGroup).where(CarpoolGroup.trip_date == day))

    groups = []
    for carpool in detected:
        group = CarpoolGroup(
            trip_date=day,
            status=CarpoolStatus.AUTO_DETECTED,
            driver_employee_id=carpool.driver_employee_id,
            review_needed=carpool.review_needed,
        )
        db.add(group)
        await db.flush()

        db.add_all([
            CarpoolMember(
                carpool_group_id=group.id,
                trip_id=member.trip_id,
                employee_id=member.employee_id,
                role=member.role,
            )
            for member in carpool.members
        ])
        groups.append(group)

    await db.flush()

    logger.info(
        "Carpool detection for %s: %d driving trips, %d groups (%d need review)",
        day.isoformat(), len(trips), len(groups), sum(1 for g in groups if g.review_needed)
    )
    return groups


async def list_carpools(db: AsyncSession, day: date):
    """Groups of ``day`` with their members, as (group, members) pairs."""
    result = await db.execute(
        select(CarpoolGroup).where(CarpoolGroup.trip_date == day).order_by(CarpoolGroup.id)
    )
    groups = result.scalars().all()
    return [(group, await get_members(db, group.id)) for group in groups]


async def get_members(db: AsyncSession, group_id: int) -> List[CarpoolMember]:
    result = await db.execute(
        select(CarpoolMember)
        .where(CarpoolMember.carpool_group_id == group_id)
        .order_by(CarpoolMember.id)
    )
    return result.scalars().all()


async def _get_reviewable_group(db: AsyncSession, group_id: int) -> CarpoolGroup:
    result = await db.execute(select(CarpoolGroup).where(CarpoolGroup.id == group_id))
    group = result.scalar_one_or_none()
    if not group:
        raise ResourceNotFoundError("Carpool group", group_id)
    if group.status != CarpoolStatus.AUTO_DETECTED:
        raise InvalidStateTransitionError(
            f"Can only review auto-detected carpool groups, current status: {group.status.value}",
            details={"carpool_group_id": group_id, "status": group.status.value}
        )
    return group


async def confirm_carpool(
    db: AsyncSession,
    group_id: int,
    driver_employee_id: Optional[int] = None,
    note: Optional[str] = None
) -> CarpoolGroup:
    """
    Confirm a detected group, optionally choosing its driver.

    Choosing a driver reassigns every member's role.

    Raises:
        ResourceNotFoundError: If the group does not exist
        InvalidStateTransitionError: If the group was already reviewed, or the
            chosen driver is not a member
    """
    group = await _get_reviewable_group(db, group_id)
    members = await get_members(db, group_id)

    if driver_employee_id is not None:
        if driver_employee_id not in {m.employee_id for m in members}:
            raise InvalidStateTransitionError(
                "Driver must be a member of the carpool group",
                details={"carpool_group_id": group_id, "driver_employee_id": driver_employee_id}
            )
        for member in members:
            member.role = CarpoolRole.DRIVER if member.employee_id == driver_employee_id else CarpoolRole.PASSENGER
        group.driver_employee_id = driver_employee_id

    group.status = CarpoolStatus.CONFIRMED
    group.review_needed = False
    group.review_note = note
    group.reviewed_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info("Carpool group %s confirmed (driver %s)", group_id, group.driver_employee_id)
    return group


async def dismiss_carpool(db: AsyncSession, group_id: int, note: Optional[str] = None) -> CarpoolGroup:
    """
    Dismiss a detected group; its trips are then treated as solo trips.

    Raises:
        ResourceNotFoundError: If the group does not exist
        InvalidStateTransitionError: If the group was already reviewed
    """
    group = await _get_reviewable_group(db, group_id)

    group.status = CarpoolStatus.DISMISSED
    group.review_needed = False
    group.review_note = note
    group.reviewed_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info("Carpool group %s dismissed", group_id)
    return group
