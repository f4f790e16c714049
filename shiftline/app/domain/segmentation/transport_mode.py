"""
Transport mode classifier.

Classifies a finalized trip from the speed profile of its path:

1. Trip average speed is the primary indicator
   (> 10 km/h is driving, < 4 km/h is walking).
2. In the grey zone the inter-point speeds decide: a short trip whose
   segments are overwhelmingly slow is walking, anything else is city
   driving with stops.
3. A trip with no usable duration, or an implausible average, is ``other``.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

from shiftline.app.domain.geodesy import haversine_distance
from shiftline.app.domain.segmentation.types import TrackPoint, DetectionThresholds
from shiftline.app.models.enums import TransportMode


@dataclass(frozen=True)
class SpeedProfile:
    distance_meters: float
    duration_seconds: float
    average_kmh: float
    peak_kmh: float
    segment_count: int
    slow_segment_count: int
    
    @property
    def slow_ratio(self) -> float:
        if self.segment_count == 0:
            return 0.0
        return self.slow_segment_count / self.segment_count


def path_distance(path: Sequence[TrackPoint]) -> float:
    """Sum of haversine hops along the path, in meters."""
    return sum(
        haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)
        for a, b in zip(path, path[1:])
    )


def build_speed_profile(path: Sequence[TrackPoint], thresholds: DetectionThresholds) -> SpeedProfile:
    """
    Compute distance, average speed and the per-segment speed statistics.
    
    Segments with a non-positive time step or a glitch speed above the
    plausible maximum are ignored for the segment statistics.
    """
    distance = path_distance(path)
    duration = 0.0
    if len(path) >= 2:
        duration = (path[-1].captured_at - path[0].captured_at).total_seconds()
    
    average_kmh = (distance / duration) * 3.6 if duration > 0 else 0.0
    
    segment_count = 0
    slow_count = 0
    peak_kmh = 0.0
    for a, b in zip(path, path[1:]):
        dt = (b.captured_at - a.captured_at).total_seconds()
        if dt <= 0:
            continue
        kmh = haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude) / dt * 3.6
        if kmh >= thresholds.max_plausible_speed_kmh:
            continue
        segment_count += 1
        if kmh < thresholds.slow_segment_kmh:
            slow_count += 1
        peak_kmh = max(peak_kmh, kmh)
    
    return SpeedProfile(
        distance_meters=distance,
        duration_seconds=duration,
        average_kmh=average_kmh,
        peak_kmh=peak_kmh,
        segment_count=segment_count,
        slow_segment_count=slow_count,
    )


def classify_profile(profile: SpeedProfile, thresholds: DetectionThresholds) -> TransportMode:
    if profile.duration_seconds <= 0 or profile.average_kmh > thresholds.max_plausible_speed_kmh:
        return TransportMode.OTHER
    
    if profile.average_kmh > thresholds.driving_min_avg_kmh:
        return TransportMode.DRIVING
    if profile.average_kmh < thresholds.walking_max_avg_kmh:
        return TransportMode.WALKING
    
    # Grey zone
    if profile.segment_count < 2:
        if profile.average_kmh >= thresholds.grey_zone_tiebreak_kmh:
            return TransportMode.DRIVING
        return TransportMode.WALKING
    
    if (profile.slow_ratio > thresholds.walking_slow_ratio
            and profile.distance_meters < thresholds.walking_max_distance_m):
        return TransportMode.WALKING
    
    return TransportMode.DRIVING


def classify_transport_mode(
    path: Sequence[TrackPoint],
    thresholds: DetectionThresholds
) -> Tuple[TransportMode, SpeedProfile]:
    """Classify a trip path; returns the mode and the profile it was based on."""
    profile = build_speed_profile(path, thresholds)
    return classify_profile(profile, thresholds), profile
