"""
Shift API Endpoints.

GPS ingestion, trip detection and the resulting timeline for one shift.
"""

from fastapi import APIRouter, Depends, Path, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from shiftline.app.db.session import get_db
from shiftline.app.core.redis_client import get_redis
from shiftline.app.core.recompute_lock import recompute_lock, shift_unit
from shiftline.app.schemas.gps_point import GpsPointBatch, GpsPointBatchResponse
from shiftline.app.schemas.timeline import (
    DetectionResponse, RejectedPointResponse, TimelineResponse,
    StationaryClusterResponse, TripResponse
)
from shiftline.app.services.gps_ingestion import ingest_points
from shiftline.app.services.trip_detection import detect_trips_for_shift, get_shift_timeline

router = APIRouter(prefix="/shifts", tags=["Shifts"])


@router.post("/{shift_id}/gps-points", response_model=GpsPointBatchResponse, status_code=status.HTTP_201_CREATED)
async def upload_gps_points(
    shift_id: int = Path(..., description="Shift ID"),
    batch: GpsPointBatch = Body(...),
    db: AsyncSession = Depends(get_db)
):
    """
    Store a batch of GPS fixes for a shift.
    
    Fixes are stored as reported; run detection afterwards.
    """
    accepted = await ingest_points(db, shift_id, batch.points)
    await db.commit()
    
    return GpsPointBatchResponse(shift_id=shift_id, accepted=accepted)


@router.post("/{shift_id}/detect-trips", response_model=DetectionResponse)
async def detect_trips(
    shift_id: int = Path(..., description="Shift ID"),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Recompute stationary clusters and trips for a shift.
    
    Replaces the previous result for the shift as one transaction.
    Returns 409 if a recomputation of the same shift is already running.
    """
    async with recompute_lock(redis, shift_unit(shift_id)):
        try:
            summary = await detect_trips_for_shift(db, shift_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    
    return DetectionResponse(
        shift_id=summary.shift_id,
        cluster_count=summary.cluster_count,
        trip_count=summary.trip_count,
        ghost_trip_count=summary.ghost_trip_count,
        discarded_point_count=summary.discarded_point_count,
        rejected_points=[
            RejectedPointResponse(point_id=r.point_id, reason=r.reason)
            for r in summary.rejected_points
        ],
        warnings=summary.warnings,
        invalidated_carpool_dates=summary.invalidated_carpool_dates,
    )


@router.get("/{shift_id}/timeline", response_model=TimelineResponse)
async def shift_timeline(
    shift_id: int = Path(..., description="Shift ID"),
    db: AsyncSession = Depends(get_db)
):
    """Stationary clusters and trips of a shift, in time order."""
    clusters, trips = await get_shift_timeline(db, shift_id)
    
    return TimelineResponse(
        shift_id=shift_id,
        clusters=[StationaryClusterResponse.model_validate(c) for c in clusters],
        trips=[TripResponse.model_validate(t) for t in trips],
    )
