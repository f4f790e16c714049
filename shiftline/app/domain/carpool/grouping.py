"""
Carpool grouping engine.

Links one day's driving trips across employees into shared rides:

1. Build the candidate edge list: every pair of trips from different
   employees whose starts and ends are both within the proximity radius and
   whose time overlap exceeds the required share of the shorter trip.
2. Union the edges into connected components (so A-B and B-C put A, B and C
   in one group even without an A-C edge).
3. Resolve driver/passenger roles per group from personal vehicle periods.

Everything is deterministic: trips, members and groups are ordered by
(started_at, trip id) and ties between drivers go through an explicit policy.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from shiftline.app.domain.geodesy import haversine_distance
from shiftline.app.models.enums import CarpoolRole, VehicleType


@dataclass(frozen=True)
class CarpoolThresholds:
    proximity_m: float = 200.0
    min_overlap_ratio: float = 0.8

    @classmethod
    def from_settings(cls, settings) -> "CarpoolThresholds":
        return cls(
            proximity_m=settings.carpool_proximity_m,
            min_overlap_ratio=settings.carpool_min_overlap_ratio,
        )


@dataclass(frozen=True)
class CandidateTrip:
    """A driving trip eligible for carpool detection."""
    trip_id: int
    employee_id: int
    started_at: datetime
    ended_at: datetime
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def sort_key(self) -> Tuple[datetime, int]:
        return (self.started_at, self.trip_id)


@dataclass(frozen=True)
class VehicleWindow:
    """A vehicle period as seen by the grouping engine."""
    employee_id: int
    vehicle_type: VehicleType
    started_at: date
    ended_at: Optional[date] = None

    def is_active_on(self, day: date) -> bool:
        return self.started_at <= day and (self.ended_at is None or day <= self.ended_at)


@dataclass(frozen=True)
class MemberAssignment:
    trip_id: int
    employee_id: int
    role: CarpoolRole


@dataclass(frozen=True)
class DetectedCarpool:
    members: Tuple[MemberAssignment, ...]
    driver_employee_id: Optional[int]
    review_needed: bool

    @property
    def trip_ids(self) -> Tuple[int, ...]:
        return tuple(m.trip_id for m in self.members)


# Picks one driver among several personal-vehicle holders.
TieBreakPolicy = Callable[[Sequence[int]], int]


def lowest_employee_id(candidates: Sequence[int]) -> int:
    return min(candidates)


def temporal_overlap_seconds(a: CandidateTrip, b: CandidateTrip) -> float:
    overlap = min(a.ended_at, b.ended_at) - max(a.started_at, b.started_at)
    return max(0.0, overlap.total_seconds())


def is_shared_ride(a: CandidateTrip, b: CandidateTrip, thresholds: CarpoolThresholds) -> bool:
    """Edge test for one pair of trips."""
    if a.employee_id == b.employee_id:
        return False

    start_gap = haversine_distance(a.start_latitude, a.start_longitude, b.start_latitude, b.start_longitude)
    if start_gap >= thresholds.proximity_m:
        return False
    end_gap = haversine_distance(a.end_latitude, a.end_longitude, b.end_latitude, b.end_longitude)
    if end_gap >= thresholds.proximity_m:
        return False

    shorter = min(a.duration_seconds, b.duration_seconds)
    if shorter <= 0:
        return False
    return temporal_overlap_seconds(a, b) / shorter > thresholds.min_overlap_ratio


def build_edges(trips: Sequence[CandidateTrip], thresholds: CarpoolThresholds) -> List[Tuple[int, int]]:
    """
    Build the candidate edge list as (trip_id, trip_id) pairs.

    Pairs are emitted in a stable order (by start time, then trip id).
    """
    ordered = sorted(trips, key=lambda t: t.sort_key)
    edges = []
    for i, a in enumerate(ordered):
        for b in ordered[i + 1:]:
            if is_shared_ride(a, b, thresholds):
                edges.append((a.trip_id, b.trip_id))
    return edges


class _DisjointSet:
    def __init__(self, items: Iterable[int]):
        self._parent = {item: item for item in items}

    def find(self, item: int) -> int:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            # Smaller id wins so roots do not depend on edge order.
            if root_b < root_a:
                root_a, root_b = root_b, root_a
            self._parent[root_b] = root_a


def connected_components(
    trips: Sequence[CandidateTrip],
    edges: Iterable[Tuple[int, int]]
) -> List[List[CandidateTrip]]:
    """Group trips by connectivity; only components of two or more trips are returned."""
    by_id = {t.trip_id: t for t in trips}
    forest = _DisjointSet(by_id)
    for a, b in edges:
        forest.union(a, b)

    components: Dict[int, List[CandidateTrip]] = {}
    for trip in by_id.values():
        components.setdefault(forest.find(trip.trip_id), []).append(trip)

    groups = [sorted(members, key=lambda t: t.sort_key) for members in components.values() if len(members) >= 2]
    groups.sort(key=lambda members: members[0].sort_key)
    return groups


def personal_vehicle_holders(
    employee_ids: Iterable[int],
    periods: Iterable[VehicleWindow],
    day: date
) -> List[int]:
    """Distinct employees among ``employee_ids`` with an active personal period on ``day``."""
    wanted = set(employee_ids)
    return sorted({
        p.employee_id for p in periods
        if p.employee_id in wanted and p.vehicle_type == VehicleType.PERSONAL and p.is_active_on(day)
    })


def resolve_roles(
    members: Sequence[CandidateTrip],
    periods: Sequence[VehicleWindow],
    day: date,
    tie_break: TieBreakPolicy = lowest_employee_id
) -> DetectedCarpool:
    """
    Assign roles for one group.

    - Exactly one personal-vehicle holder: driver, everyone else passenger.
    - None: everyone unassigned, flagged for review.
    - Several: the tie-break policy picks a provisional driver, flagged for review.
    """
    holders = personal_vehicle_holders((m.employee_id for m in members), periods, day)

    if len(holders) == 1:
        driver_id, review_needed = holders[0], False
    elif not holders:
        driver_id, review_needed = None, True
    else:
        driver_id, review_needed = tie_break(holders), True

    assignments = tuple(
        MemberAssignment(
            trip_id=m.trip_id,
            employee_id=m.employee_id,
            role=_role_for(m.employee_id, driver_id),
        )
        for m in members
    )
    return DetectedCarpool(members=assignments, driver_employee_id=driver_id, review_needed=review_needed)


def _role_for(employee_id: int, driver_id: Optional[int]) -> CarpoolRole:
    if driver_id is None:
        return CarpoolRole.UNASSIGNED
    if employee_id == driver_id:
        return CarpoolRole.DRIVER
    return CarpoolRole.PASSENGER


def detect_carpools(
    trips: Sequence[CandidateTrip],
    periods: Sequence[VehicleWindow],
    day: date,
    thresholds: CarpoolThresholds = CarpoolThresholds(),
    tie_break: TieBreakPolicy = lowest_employee_id
) -> List[DetectedCarpool]:
    """Full grouping pass for one day. Pure: same input, same groups."""
    edges = build_edges(trips, thresholds)
    return [
        resolve_roles(members, periods, day, tie_break)
        for members in connected_components(trips, edges)
    ]
