"""
Shift timeline and trip schemas.
"""

from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional, List

from shiftline.app.models.enums import TransportMode, TripClassification, DetectionMethod


class RejectedPointResponse(BaseModel):
    point_id: int
    reason: str


class DetectionResponse(BaseModel):
    """Outcome of one detection run for a shift."""
    shift_id: int
    cluster_count: int
    trip_count: int
    ghost_trip_count: int
    discarded_point_count: int
    rejected_points: List[RejectedPointResponse]
    warnings: List[str]
    invalidated_carpool_dates: List[date] = []


class StationaryClusterResponse(BaseModel):
    id: int
    centroid_latitude: float
    centroid_longitude: float
    centroid_accuracy: Optional[float]
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    gps_point_count: int
    
    class Config:
        from_attributes = True


class TripResponse(BaseModel):
    id: int
    shift_id: int
    employee_id: int
    started_at: datetime
    ended_at: datetime
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    start_cluster_id: Optional[int]
    end_cluster_id: Optional[int]
    distance_meters: float
    displacement_meters: float
    duration_minutes: int
    transport_mode: TransportMode
    classification: TripClassification
    confidence_score: float
    gps_point_count: int
    low_accuracy_segments: int
    detection_method: DetectionMethod
    
    class Config:
        from_attributes = True


class TimelineResponse(BaseModel):
    """Clusters and trips of a shift, each in time order."""
    shift_id: int
    clusters: List[StationaryClusterResponse]
    trips: List[TripResponse]


class TripClassificationUpdate(BaseModel):
    classification: TripClassification


class ReimbursableResponse(BaseModel):
    trip_id: int
    reimbursable: bool
    reason: str
