"""
Trajectory segmentation engine.

Turns one shift's ordered GPS fixes into stationary clusters and trips.

The engine is an explicit state machine with three states:

- ``UNCLAIMED``: nothing is open yet (start of shift, or after a trip was
  closed by a GPS gap). Slow fixes are buffered.
- ``STOPPED``: a stationary cluster is open. Stopped fixes within the
  coherence radius join it; a stopped fix beyond it splits the cluster and
  the buffered slow fixes become the connecting trip.
- ``IN_TRIP``: a trip is open. A stopped fix opens a tentative end cluster;
  the trip only ends once that cluster has lasted ``min_stop_duration_seconds``
  (or the shift ends), so a red light does not cut a drive in two.

``step`` is the single transition function: ``(state, point) -> (state, events)``.
``finish`` closes whatever is open at end of stream. ``segment_shift`` folds
both over a point list and collects the result.
"""

import enum
import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple

from shiftline.app.domain.geodesy import accuracy_adjusted_distance, haversine_distance
from shiftline.app.domain.segmentation.admission import admit_point
from shiftline.app.domain.segmentation.centroid import WeightedCentroid
from shiftline.app.domain.segmentation.transport_mode import classify_transport_mode
from shiftline.app.domain.segmentation.types import (
    TrackPoint, RejectedPoint, DetectionThresholds,
    DetectedCluster, DetectedTrip, SegmentationResult,
)

logger = logging.getLogger(__name__)


class EngineState(str, enum.Enum):
    UNCLAIMED = "unclaimed"
    STOPPED = "stopped"
    IN_TRIP = "in_trip"


class SpeedBand(str, enum.Enum):
    STOPPED = "stopped"  # speed <= stop threshold
    SLOW = "slow"  # between the two thresholds
    MOVING = "moving"  # speed >= trip start threshold


def speed_band(speed_mps: float, thresholds: DetectionThresholds) -> SpeedBand:
    if speed_mps <= thresholds.stop_speed_mps:
        return SpeedBand.STOPPED
    if speed_mps >= thresholds.trip_start_speed_mps:
        return SpeedBand.MOVING
    return SpeedBand.SLOW


@dataclass(frozen=True)
class OpenCluster:
    """
    A cluster under construction.

    ``points`` holds every member in order, including slow jitter fixes
    absorbed between two stopped fixes. Only the stopped members
    (``anchors``) feed the centroid.
    """
    points: Tuple[TrackPoint, ...]
    anchors: Tuple[TrackPoint, ...]
    centroid: WeightedCentroid

    @classmethod
    def seed(cls, point: TrackPoint) -> "OpenCluster":
        return cls(points=(point,), anchors=(point,), centroid=WeightedCentroid().add(point))

    def absorb(self, point: TrackPoint, jitter: Tuple[TrackPoint, ...] = ()) -> "OpenCluster":
        return OpenCluster(
            points=self.points + jitter + (point,),
            anchors=self.anchors + (point,),
            centroid=self.centroid.add(point),
        )

    def drift(self, point: TrackPoint) -> float:
        lat, lon = self.centroid.current_centroid()
        return accuracy_adjusted_distance(lat, lon, point.latitude, point.longitude, point.accuracy_meters)

    @property
    def first_point(self) -> TrackPoint:
        return self.points[0]

    @property
    def last_point(self) -> TrackPoint:
        return self.points[-1]

    @property
    def duration_seconds(self) -> float:
        return (self.last_point.captured_at - self.first_point.captured_at).total_seconds()

    def finalize(self, index: int) -> DetectedCluster:
        # Recomputed from the anchor set, not taken from the running sums.
        centroid = WeightedCentroid.from_points(self.anchors)
        lat, lon = centroid.current_centroid()
        return DetectedCluster(
            index=index,
            point_ids=tuple(p.id for p in self.points),
            centroid_latitude=lat,
            centroid_longitude=lon,
            centroid_accuracy=centroid.accuracy(),
            started_at=self.first_point.captured_at,
            ended_at=self.last_point.captured_at,
        )


@dataclass(frozen=True)
class OpenTrip:
    """
    A trip under construction.

    ``start_point`` is the start reference: the last fix of the preceding
    cluster, or the trip's own first fix when no cluster precedes it.
    """
    start_point: TrackPoint
    start_cluster_index: Optional[int]
    points: Tuple[TrackPoint, ...]

    def extend(self, *points: TrackPoint) -> "OpenTrip":
        return replace(self, points=self.points + points)


@dataclass(frozen=True)
class SegmentationState:
    mode: EngineState = EngineState.UNCLAIMED
    cluster: Optional[OpenCluster] = None  # Open cluster, or the tentative end cluster while IN_TRIP
    trip: Optional[OpenTrip] = None
    unclaimed: Tuple[TrackPoint, ...] = ()
    last_point: Optional[TrackPoint] = None
    clusters_emitted: int = 0


# Events emitted by transitions

@dataclass(frozen=True)
class ClusterFinalized:
    cluster: DetectedCluster


@dataclass(frozen=True)
class TripFinalized:
    trip: DetectedTrip


@dataclass(frozen=True)
class GhostTripDiscarded:
    trip: DetectedTrip


@dataclass(frozen=True)
class BufferDiscarded:
    point_ids: Tuple[int, ...]


def _build_trip(
    trip: OpenTrip,
    end_point: TrackPoint,
    end_cluster_index: Optional[int],
    thresholds: DetectionThresholds
):
    """Classify a closed trip and run the ghost filter on it."""
    path = [trip.start_point]
    path.extend(p for p in trip.points if p.id != trip.start_point.id)
    if path[-1].id != end_point.id:
        path.append(end_point)

    mode, profile = classify_transport_mode(path, thresholds)
    displacement = haversine_distance(
        trip.start_point.latitude, trip.start_point.longitude,
        end_point.latitude, end_point.longitude
    )

    low_accuracy = sum(1 for p in trip.points if p.accuracy_meters > thresholds.low_accuracy_threshold_m)
    confidence = round(max(0.0, 1.0 - low_accuracy / max(len(trip.points), 1)), 2)

    detected = DetectedTrip(
        started_at=trip.start_point.captured_at,
        ended_at=end_point.captured_at,
        start_latitude=trip.start_point.latitude,
        start_longitude=trip.start_point.longitude,
        end_latitude=end_point.latitude,
        end_longitude=end_point.longitude,
        start_cluster_index=trip.start_cluster_index,
        end_cluster_index=end_cluster_index,
        point_ids=tuple(p.id for p in trip.points),
        transport_mode=mode,
        distance_meters=profile.distance_meters,
        displacement_meters=displacement,
        low_accuracy_segments=low_accuracy,
        confidence_score=confidence,
    )

    if displacement < thresholds.min_displacement_for(mode):
        return GhostTripDiscarded(detected)
    return TripFinalized(detected)


def _confirm_if_settled(state: SegmentationState, thresholds: DetectionThresholds):
    """End the open trip once its tentative end cluster has lasted long enough."""
    tentative = state.cluster
    if tentative is None or tentative.duration_seconds < thresholds.min_stop_duration_seconds:
        return state, []

    event = _build_trip(state.trip, tentative.first_point, state.clusters_emitted, thresholds)
    return replace(state, mode=EngineState.STOPPED, trip=None), [event]


def step(
    state: SegmentationState,
    point: TrackPoint,
    thresholds: DetectionThresholds
) -> Tuple[SegmentationState, list]:
    """
    Apply one admitted fix.

    Args:
        state: Current engine state
        point: Admitted fix (accuracy and speed populated)
        thresholds: Detection thresholds

    Returns:
        (new state, list of events emitted by this transition)
    """
    events = []

    # A long silence mid-trip ends the trip: at its tentative stop if one is
    # open, otherwise at its last fix.
    if (state.mode == EngineState.IN_TRIP and state.last_point is not None
            and (point.captured_at - state.last_point.captured_at).total_seconds() > thresholds.gps_gap_seconds):
        if state.cluster is not None:
            events.append(_build_trip(state.trip, state.cluster.first_point, state.clusters_emitted, thresholds))
            state = replace(state, mode=EngineState.STOPPED, trip=None)
        else:
            events.append(_build_trip(state.trip, state.trip.points[-1], None, thresholds))
            state = replace(state, mode=EngineState.UNCLAIMED, trip=None)

    band = speed_band(point.speed_mps, thresholds)

    if state.mode == EngineState.UNCLAIMED:
        new_state, emitted = _step_unclaimed(state, point, band, thresholds)
    elif state.mode == EngineState.STOPPED:
        new_state, emitted = _step_stopped(state, point, band, thresholds)
    else:
        new_state, emitted = _step_in_trip(state, point, band, thresholds)

    return replace(new_state, last_point=point), events + emitted


def _step_unclaimed(state, point, band, thresholds):
    if band == SpeedBand.STOPPED:
        events = []
        if state.unclaimed:
            trip = OpenTrip(start_point=state.unclaimed[0], start_cluster_index=None, points=state.unclaimed)
            events.append(_build_trip(trip, point, state.clusters_emitted, thresholds))
        return replace(
            state, mode=EngineState.STOPPED, cluster=OpenCluster.seed(point), unclaimed=()
        ), events

    if band == SpeedBand.SLOW:
        return replace(state, unclaimed=state.unclaimed + (point,)), []

    points = state.unclaimed + (point,)
    trip = OpenTrip(start_point=points[0], start_cluster_index=None, points=points)
    return replace(state, mode=EngineState.IN_TRIP, trip=trip, unclaimed=()), []


def _step_stopped(state, point, band, thresholds):
    cluster = state.cluster

    if band == SpeedBand.STOPPED:
        if cluster.drift(point) <= thresholds.coherence_radius_m:
            return replace(state, cluster=cluster.absorb(point, state.unclaimed), unclaimed=()), []

        # Split: the cluster ends, the buffered fixes become the connecting trip.
        index = state.clusters_emitted
        events = [ClusterFinalized(cluster.finalize(index))]
        trip = OpenTrip(start_point=cluster.last_point, start_cluster_index=index, points=state.unclaimed)
        events.append(_build_trip(trip, point, index + 1, thresholds))
        return replace(
            state,
            cluster=OpenCluster.seed(point),
            unclaimed=(),
            clusters_emitted=index + 1,
        ), events

    if band == SpeedBand.SLOW:
        return replace(state, unclaimed=state.unclaimed + (point,)), []

    index = state.clusters_emitted
    trip = OpenTrip(start_point=cluster.last_point, start_cluster_index=index, points=state.unclaimed + (point,))
    return replace(
        state,
        mode=EngineState.IN_TRIP,
        cluster=None,
        trip=trip,
        unclaimed=(),
        clusters_emitted=index + 1,
    ), [ClusterFinalized(cluster.finalize(index))]


def _step_in_trip(state, point, band, thresholds):
    tentative = state.cluster

    if tentative is None:
        if band == SpeedBand.STOPPED:
            return _confirm_if_settled(replace(state, cluster=OpenCluster.seed(point)), thresholds)
        return replace(state, trip=state.trip.extend(point)), []

    if band == SpeedBand.STOPPED:
        if tentative.drift(point) <= thresholds.coherence_radius_m:
            state = replace(state, cluster=tentative.absorb(point, state.unclaimed), unclaimed=())
        else:
            # Creeping stop: fold the tentative stop back into the trip and restart it here.
            trip = state.trip.extend(*tentative.points, *state.unclaimed)
            state = replace(state, trip=trip, cluster=OpenCluster.seed(point), unclaimed=())
        return _confirm_if_settled(state, thresholds)

    if band == SpeedBand.SLOW:
        return replace(state, unclaimed=state.unclaimed + (point,)), []

    # Moving again before the stop settled: it was a brief halt.
    trip = state.trip.extend(*tentative.points, *state.unclaimed, point)
    return replace(state, trip=trip, cluster=None, unclaimed=()), []


def finish(state: SegmentationState, thresholds: DetectionThresholds) -> Tuple[SegmentationState, list]:
    """Close whatever is open at end of stream."""
    events = []

    if state.mode == EngineState.IN_TRIP:
        if state.cluster is not None:
            events.append(_build_trip(state.trip, state.cluster.first_point, state.clusters_emitted, thresholds))
        else:
            events.append(_build_trip(state.trip, state.trip.points[-1], None, thresholds))

    clusters_emitted = state.clusters_emitted
    if state.cluster is not None:
        events.append(ClusterFinalized(state.cluster.finalize(clusters_emitted)))
        clusters_emitted += 1

    if state.unclaimed:
        events.append(BufferDiscarded(tuple(p.id for p in state.unclaimed)))

    return SegmentationState(last_point=state.last_point, clusters_emitted=clusters_emitted), events


def segment_shift(points: Iterable[TrackPoint], thresholds: DetectionThresholds) -> SegmentationResult:
    """
    Run one full segmentation pass over a shift.

    Points are processed in the order given; the caller sorts them by
    capture time. Bad fixes are rejected individually and reported.

    Returns:
        SegmentationResult with clusters and trips in time order
    """
    result = SegmentationResult(
        clusters=[], trips=[], rejected_points=[], ghost_trips=[], discarded_point_ids=[], warnings=[]
    )
    state = SegmentationState()

    for raw in points:
        admitted = admit_point(raw, state.last_point, thresholds)
        if isinstance(admitted, RejectedPoint):
            result.rejected_points.append(admitted)
            result.warnings.append(f"Point {admitted.point_id} rejected: {admitted.reason}")
            continue
        state, events = step(state, admitted, thresholds)
        _collect(result, events)

    state, events = finish(state, thresholds)
    _collect(result, events)

    return result


def _collect(result: SegmentationResult, events: List) -> None:
    for event in events:
        if isinstance(event, ClusterFinalized):
            result.clusters.append(event.cluster)
        elif isinstance(event, TripFinalized):
            result.trips.append(event.trip)
        elif isinstance(event, GhostTripDiscarded):
            result.ghost_trips.append(event.trip)
            logger.debug(
                "Ghost %s trip discarded (%.0f m displacement)",
                event.trip.transport_mode.value, event.trip.displacement_meters
            )
        elif isinstance(event, BufferDiscarded):
            result.discarded_point_ids.extend(event.point_ids)
            result.warnings.append(
                f"{len(event.point_ids)} unclaimed point(s) at end of shift discarded: no following stop"
            )
