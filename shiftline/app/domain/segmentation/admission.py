"""
Point admission.

Validates each fix before the state machine sees it and fills in the
fields the engine relies on (accuracy and speed). A bad fix is rejected
on its own; the rest of the shift is still processed.
"""

from dataclasses import replace
from typing import Optional, Union

from shiftline.app.domain.geodesy import haversine_distance
from shiftline.app.domain.segmentation.types import TrackPoint, RejectedPoint, DetectionThresholds


# Rejection reasons
NON_MONOTONIC_TIMESTAMP = "non_monotonic_timestamp"
NEGATIVE_ACCURACY = "negative_accuracy"
NEGATIVE_SPEED = "negative_speed"
INVALID_COORDINATES = "invalid_coordinates"
LOW_ACCURACY = "low_accuracy"


def admit_point(
    point: TrackPoint,
    previous: Optional[TrackPoint],
    thresholds: DetectionThresholds
) -> Union[TrackPoint, RejectedPoint]:
    """
    Admit a fix or explain why it is rejected.
    
    Args:
        point: Raw fix
        previous: Last admitted fix of the shift, if any
        thresholds: Detection thresholds
    
    Returns:
        The fix with accuracy and speed populated, or a RejectedPoint
    """
    if not (-90.0 <= point.latitude <= 90.0 and -180.0 <= point.longitude <= 180.0):
        return RejectedPoint(point.id, INVALID_COORDINATES)
    if point.accuracy_meters is not None and point.accuracy_meters < 0:
        return RejectedPoint(point.id, NEGATIVE_ACCURACY)
    if point.speed_mps is not None and point.speed_mps < 0:
        return RejectedPoint(point.id, NEGATIVE_SPEED)
    if previous is not None and point.captured_at <= previous.captured_at:
        return RejectedPoint(point.id, NON_MONOTONIC_TIMESTAMP)
    if point.accuracy_meters is not None and point.accuracy_meters > thresholds.max_accuracy_m:
        return RejectedPoint(point.id, LOW_ACCURACY)
    
    accuracy = point.accuracy_meters
    if accuracy is None:
        accuracy = thresholds.default_accuracy_m
    
    speed = point.speed_mps
    if speed is None:
        speed = _derived_speed(previous, point, accuracy)
    
    return replace(point, accuracy_meters=accuracy, speed_mps=speed)


def _derived_speed(previous: Optional[TrackPoint], point: TrackPoint, accuracy: float) -> float:
    """Speed from the hop since the previous fix; hops inside the noise floor count as 0."""
    if previous is None:
        return 0.0
    
    hop = haversine_distance(previous.latitude, previous.longitude, point.latitude, point.longitude)
    if hop < max(previous.accuracy_meters, accuracy):
        return 0.0
    
    elapsed = (point.captured_at - previous.captured_at).total_seconds()
    return hop / elapsed
