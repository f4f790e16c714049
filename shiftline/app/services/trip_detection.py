"""
Trip detection service.

Runs the segmentation engine over one shift and replaces the shift's
stationary clusters and trips with the new result. The replacement is a
delete-then-insert inside the caller's transaction: the service only
flushes, the caller commits (or rolls back and keeps the previous result).
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.core.config import settings
from shiftline.app.domain.segmentation.engine import segment_shift
from shiftline.app.domain.segmentation.types import TrackPoint, DetectionThresholds, RejectedPoint
from shiftline.app.models.carpool import CarpoolGroup, CarpoolMember
from shiftline.app.models.gps_point import GpsPoint
from shiftline.app.models.stationary_cluster import StationaryCluster
from shiftline.app.models.trip import Trip, TripGpsPoint
from shiftline.app.models.enums import DetectionMethod
from shiftline.app.services.gps_ingestion import get_shift_or_404

logger = logging.getLogger(__name__)


@dataclass
class DetectionSummary:
    shift_id: int
    cluster_count: int = 0
    trip_count: int = 0
    ghost_trip_count: int = 0
    discarded_point_count: int = 0
    rejected_points: List[RejectedPoint] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    invalidated_carpool_dates: List[date] = field(default_factory=list)


async def load_track(db: AsyncSession, shift_id: int) -> List[TrackPoint]:
    """Load a shift's fixes in capture order (id breaks ties)."""
    result = await db.execute(
        select(GpsPoint)
        .where(GpsPoint.shift_id == shift_id)
        .order_by(GpsPoint.captured_at, GpsPoint.id)
    )
    return [
        TrackPoint(
            id=p.id,
            captured_at=p.captured_at,
            latitude=p.latitude,
            longitude=p.longitude,
            accuracy_meters=p.accuracy_meters,
            speed_mps=p.speed_mps,
        )
        for p in result.scalars().all()
    ]


async def clear_carpool_groups(db: AsyncSession, trip_ids) -> List[date]:
    """
    Delete every carpool group that has one of ``trip_ids`` as a member.

    The whole group goes, including members from other shifts: without
    the deleted trips it no longer describes a shared ride.

    Returns:
        Dates whose carpool detection must be re-run
    """
    result = await db.execute(
        select(CarpoolGroup.id, CarpoolGroup.trip_date)
        .join(CarpoolMember, CarpoolMember.carpool_group_id == CarpoolGroup.id)
        .where(CarpoolMember.trip_id.in_(trip_ids))
        .distinct()
    )
    rows = result.all()
    if not rows:
        return []

    group_ids = [group_id for group_id, _ in rows]
    await db.execute(delete(CarpoolMember).where(CarpoolMember.carpool_group_id.in_(group_ids)))
    await db.execute(delete(CarpoolGroup).where(CarpoolGroup.id.in_(group_ids)))
    return sorted({trip_date for _, trip_date in rows})


async def clear_detection_results(db: AsyncSession, shift_id: int) -> List[date]:
    """
    Delete everything a previous detection run produced for the shift.

    Returns:
        Dates whose carpool groups were removed along with the shift's trips
    """
    trip_ids = select(Trip.id).where(Trip.shift_id == shift_id)

    stale_dates = await clear_carpool_groups(db, trip_ids)
    await db.execute(delete(TripGpsPoint).where(TripGpsPoint.trip_id.in_(trip_ids)))
    await db.execute(delete(Trip).where(Trip.shift_id == shift_id))
    await db.execute(
        update(GpsPoint)
        .where(GpsPoint.shift_id == shift_id)
        .values(stationary_cluster_id=None)
    )
    await db.execute(delete(StationaryCluster).where(StationaryCluster.shift_id == shift_id))
    return stale_dates


async def detect_trips_for_shift(
    db: AsyncSession,
    shift_id: int,
    thresholds: DetectionThresholds = None
) -> DetectionSummary:
    """
    Recompute clusters and trips for a shift.

    Args:
        db: Database session
        shift_id: Shift to recompute
        thresholds: Detection thresholds (defaults to configured settings)

    Returns:
        DetectionSummary of what was written and what was dropped

    Raises:
        ResourceNotFoundError: If the shift does not exist
    """
    shift = await get_shift_or_404(db, shift_id)
    thresholds = thresholds or DetectionThresholds.from_settings(settings)

    track = await load_track(db, shift_id)
    result = segment_shift(track, thresholds)

    for warning in result.warnings:
        logger.warning("Shift %s: %s", shift_id, warning)

    stale_dates = await clear_detection_results(db, shift_id)
    warnings = list(result.warnings)
    for trip_date in stale_dates:
        logger.warning("Shift %s: carpool groups for %s removed, re-run carpool detection", shift_id, trip_date)
        warnings.append(f"carpool groups for {trip_date.isoformat()} removed; re-run carpool detection")

    # Clusters first so trips can reference them
    cluster_ids: Dict[int, int] = {}
    for detected in result.clusters:
        cluster = StationaryCluster(
            shift_id=shift.id,
            employee_id=shift.employee_id,
            centroid_latitude=detected.centroid_latitude,
            centroid_longitude=detected.centroid_longitude,
            centroid_accuracy=detected.centroid_accuracy,
            started_at=detected.started_at,
            ended_at=detected.ended_at,
            duration_seconds=detected.duration_seconds,
            gps_point_count=detected.gps_point_count,
        )
        db.add(cluster)
        await db.flush()
        cluster_ids[detected.index] = cluster.id

        await db.execute(
            update(GpsPoint)
            .where(GpsPoint.id.in_(detected.point_ids))
            .values(stationary_cluster_id=cluster.id)
        )

    for detected in result.trips:
        trip = Trip(
            shift_id=shift.id,
            employee_id=shift.employee_id,
            started_at=detected.started_at,
            ended_at=detected.ended_at,
            start_latitude=detected.start_latitude,
            start_longitude=detected.start_longitude,
            end_latitude=detected.end_latitude,
            end_longitude=detected.end_longitude,
            start_cluster_id=cluster_ids.get(detected.start_cluster_index),
            end_cluster_id=cluster_ids.get(detected.end_cluster_index),
            distance_meters=round(detected.distance_meters, 1),
            displacement_meters=round(detected.displacement_meters, 1),
            duration_minutes=detected.duration_minutes,
            transport_mode=detected.transport_mode,
            confidence_score=detected.confidence_score,
            gps_point_count=detected.gps_point_count,
            low_accuracy_segments=detected.low_accuracy_segments,
            detection_method=DetectionMethod.AUTO,
        )
        db.add(trip)
        await db.flush()

        db.add_all([
            TripGpsPoint(trip_id=trip.id, gps_point_id=point_id, sequence_order=order)
            for order, point_id in enumerate(detected.point_ids)
        ])

    await db.flush()

    logger.info(
        "Shift %s segmented: %d clusters, %d trips, %d ghost trips, %d rejected points",
        shift_id, len(result.clusters), len(result.trips),
        len(result.ghost_trips), len(result.rejected_points)
    )

    return DetectionSummary(
        shift_id=shift_id,
        cluster_count=len(result.clusters),
        trip_count=len(result.trips),
        ghost_trip_count=len(result.ghost_trips),
        discarded_point_count=len(result.discarded_point_ids),
        rejected_points=result.rejected_points,
        warnings=warnings,
        invalidated_carpool_dates=stale_dates,
    )


async def get_shift_timeline(db: AsyncSession, shift_id: int):
    """
    Return a shift's clusters and trips, each in time order.

    Raises:
        ResourceNotFoundError: If the shift does not exist
    """
    await get_shift_or_404(db, shift_id)

    clusters = await db.execute(
        select(StationaryCluster)
        .where(StationaryCluster.shift_id == shift_id)
        .order_by(StationaryCluster.started_at, StationaryCluster.id)
    )
    trips = await db.execute(
        select(Trip)
        .where(Trip.shift_id == shift_id)
        .order_by(Trip.started_at, Trip.id)
    )
    return clusters.scalars().all(), trips.scalars().all()
