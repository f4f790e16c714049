"""
GPS point ingestion.

Stores raw fixes for a shift as reported by the client. Points are not
validated beyond their shape here; admission happens at detection time so
a bad fix is reported instead of being silently refused.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.core.exceptions import ResourceNotFoundError
from shiftline.app.models.shift import Shift
from shiftline.app.models.gps_point import GpsPoint

logger = logging.getLogger(__name__)


def to_utc(moment: datetime) -> datetime:
    """Normalize a timestamp to UTC; naive values are taken as UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


async def get_shift_or_404(db: AsyncSession, shift_id: int) -> Shift:
    result = await db.execute(select(Shift).where(Shift.id == shift_id))
    shift = result.scalar_one_or_none()
    if not shift:
        raise ResourceNotFoundError("Shift", shift_id)
    return shift


async def ingest_points(db: AsyncSession, shift_id: int, points: Iterable) -> int:
    """
    Append a batch of fixes to a shift.

    Args:
        db: Database session
        shift_id: Owning shift
        points: Objects with captured_at, latitude, longitude, accuracy_meters, speed_mps

    Returns:
        Number of points stored
    """
    shift = await get_shift_or_404(db, shift_id)

    rows = [
        GpsPoint(
            shift_id=shift.id,
            employee_id=shift.employee_id,
            captured_at=to_utc(p.captured_at),
            latitude=p.latitude,
            longitude=p.longitude,
            accuracy_meters=p.accuracy_meters,
            speed_mps=p.speed_mps,
        )
        for p in points
    ]
    db.add_all(rows)
    await db.flush()

    logger.info("Ingested %d GPS points for shift %s", len(rows), shift_id)
    return len(rows)
