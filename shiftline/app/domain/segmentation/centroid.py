"""
Accuracy-weighted centroid accumulator.

A point's weight is ``1 / max(accuracy, 1)``: a fix reported at 5 m pulls
the centroid four times harder than one reported at 20 m. The reported
centroid accuracy combines the members as independent estimates,
``1 / sqrt(sum(1 / max(accuracy**2, 1)))``.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

from shiftline.app.domain.segmentation.types import TrackPoint


def point_weight(accuracy_meters: float) -> float:
    return 1.0 / max(accuracy_meters, 1.0)


def _inverse_variance(accuracy_meters: float) -> float:
    return 1.0 / max(accuracy_meters * accuracy_meters, 1.0)


@dataclass(frozen=True)
class WeightedCentroid:
    """
    Running weighted sums for one cluster.
    
    ``add`` returns a new accumulator; nothing is mutated. ``from_points``
    rebuilds the same quantities with exactly-rounded sums, so the final
    centroid of a cluster depends only on its set of points.
    """
    weight_sum: float = 0.0
    weighted_lat_sum: float = 0.0
    weighted_lon_sum: float = 0.0
    inverse_variance_sum: float = 0.0
    count: int = 0
    
    def add(self, point: TrackPoint) -> "WeightedCentroid":
        weight = point_weight(point.accuracy_meters)
        return WeightedCentroid(
            weight_sum=self.weight_sum + weight,
            weighted_lat_sum=self.weighted_lat_sum + weight * point.latitude,
            weighted_lon_sum=self.weighted_lon_sum + weight * point.longitude,
            inverse_variance_sum=self.inverse_variance_sum + _inverse_variance(point.accuracy_meters),
            count=self.count + 1,
        )
    
    @property
    def is_empty(self) -> bool:
        return self.count == 0
    
    def current_centroid(self) -> Tuple[float, float]:
        """Return (latitude, longitude) of the weighted mean."""
        if self.is_empty:
            raise ValueError("Centroid of an empty cluster is undefined")
        return (
            self.weighted_lat_sum / self.weight_sum,
            self.weighted_lon_sum / self.weight_sum,
        )
    
    def accuracy(self) -> float:
        if self.is_empty:
            raise ValueError("Centroid of an empty cluster is undefined")
        return 1.0 / math.sqrt(self.inverse_variance_sum)
    
    @classmethod
    def from_points(cls, points: Iterable[TrackPoint]) -> "WeightedCentroid":
        points = list(points)
        weights = [point_weight(p.accuracy_meters) for p in points]
        return cls(
            weight_sum=math.fsum(weights),
            weighted_lat_sum=math.fsum(w * p.latitude for w, p in zip(weights, points)),
            weighted_lon_sum=math.fsum(w * p.longitude for w, p in zip(weights, points)),
            inverse_variance_sum=math.fsum(_inverse_variance(p.accuracy_meters) for p in points),
            count=len(points),
        )
