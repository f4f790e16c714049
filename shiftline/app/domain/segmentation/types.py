"""
Value types shared by the segmentation engine and its callers.

Everything here is immutable and free of database concerns so the engine
can be run and tested on plain data.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, List

from shiftline.app.models.enums import TransportMode


@dataclass(frozen=True)
class TrackPoint:
    """One GPS fix of a shift, as read from storage."""
    id: int
    captured_at: datetime
    latitude: float
    longitude: float
    accuracy_meters: Optional[float] = None
    speed_mps: Optional[float] = None


@dataclass(frozen=True)
class RejectedPoint:
    """A fix that failed admission and was left out of the pass."""
    point_id: int
    reason: str


@dataclass(frozen=True)
class DetectionThresholds:
    """Tunable constants for segmentation and transport mode classification."""
    stop_speed_mps: float = 0.28
    trip_start_speed_kmh: float = 8.0
    coherence_radius_m: float = 50.0
    min_displacement_walking_m: float = 100.0
    min_displacement_driving_m: float = 500.0
    max_accuracy_m: float = 200.0
    default_accuracy_m: float = 20.0
    min_stop_duration_seconds: int = 180
    gps_gap_seconds: int = 900
    low_accuracy_threshold_m: float = 50.0
    walking_max_avg_kmh: float = 4.0
    driving_min_avg_kmh: float = 10.0
    slow_segment_kmh: float = 5.0
    walking_slow_ratio: float = 0.8
    walking_max_distance_m: float = 1000.0
    grey_zone_tiebreak_kmh: float = 6.0
    max_plausible_speed_kmh: float = 200.0
    
    @property
    def trip_start_speed_mps(self) -> float:
        return self.trip_start_speed_kmh / 3.6
    
    def min_displacement_for(self, mode: TransportMode) -> float:
        if mode == TransportMode.DRIVING:
            return self.min_displacement_driving_m
        return self.min_displacement_walking_m
    
    @classmethod
    def from_settings(cls, settings) -> "DetectionThresholds":
        return cls(**{
            name: getattr(settings, name)
            for name in cls.__dataclass_fields__
        })


@dataclass(frozen=True)
class DetectedCluster:
    """A finalized stationary cluster."""
    index: int  # Position among the shift's clusters
    point_ids: Tuple[int, ...]
    centroid_latitude: float
    centroid_longitude: float
    centroid_accuracy: float
    started_at: datetime
    ended_at: datetime
    
    @property
    def duration_seconds(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds())
    
    @property
    def gps_point_count(self) -> int:
        return len(self.point_ids)


@dataclass(frozen=True)
class DetectedTrip:
    """A finalized trip that passed the ghost filter."""
    started_at: datetime
    ended_at: datetime
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    start_cluster_index: Optional[int]
    end_cluster_index: Optional[int]
    point_ids: Tuple[int, ...]
    transport_mode: TransportMode
    distance_meters: float
    displacement_meters: float
    low_accuracy_segments: int
    confidence_score: float
    
    @property
    def duration_minutes(self) -> int:
        return max(1, round((self.ended_at - self.started_at).total_seconds() / 60))
    
    @property
    def gps_point_count(self) -> int:
        return len(self.point_ids)


@dataclass
class SegmentationResult:
    """Everything one pass over a shift produced or dropped."""
    clusters: List[DetectedCluster]
    trips: List[DetectedTrip]
    rejected_points: List[RejectedPoint]
    ghost_trips: List[DetectedTrip]
    discarded_point_ids: List[int]
    warnings: List[str]
