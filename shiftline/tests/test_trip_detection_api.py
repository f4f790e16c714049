"""
Trip detection API and service tests.

Covers ingestion, detection, timeline, re-run safety and the per-shift
recomputation lock.
"""

import pytest
from sqlalchemy import select, func

from shiftline.app.models.employee import Employee
from shiftline.app.models.shift import Shift
from shiftline.app.models.gps_point import GpsPoint
from shiftline.app.models.stationary_cluster import StationaryCluster
from shiftline.app.models.trip import Trip, TripGpsPoint
from shiftline.app.services.trip_detection import detect_trips_for_shift

from track_builder import TrackBuilder, BASE_TIME


def walking_commute():
    track = TrackBuilder()
    track.stay(0, 30, every_s=20, jitter_m=10)
    track.move(0, 285, 16, every_s=22.5, speed=1.0, accuracy=15)
    track.stay(285, 10, every_s=22.5, jitter_m=10)
    return track.points


def as_payload(points):
    return {"points": [
        {
            "captured_at": p.captured_at.isoformat(),
            "latitude": p.latitude,
            "longitude": p.longitude,
            "accuracy_meters": p.accuracy_meters,
            "speed_mps": p.speed_mps,
        }
        for p in points
    ]}


@pytest.fixture
async def shift(db_session):
    employee = Employee(name="Marie Tremblay")
    db_session.add(employee)
    await db_session.flush()
    shift = Shift(employee_id=employee.id, clocked_in_at=BASE_TIME)
    db_session.add(shift)
    await db_session.commit()
    return shift


async def count(db_session, model, **filters):
    query = select(func.count()).select_from(model)
    for name, value in filters.items():
        query = query.where(getattr(model, name) == value)
    return (await db_session.execute(query)).scalar()


async def ingest(client, shift_id, points):
    response = await client.post(f"/v1/shifts/{shift_id}/gps-points", json=as_payload(points))
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_ingest_points(client, db_session, shift):
    body = await ingest(client, shift.id, walking_commute())
    
    assert body == {"shift_id": shift.id, "accepted": 56}
    assert await count(db_session, GpsPoint, shift_id=shift.id) == 56


@pytest.mark.asyncio
async def test_ingest_unknown_shift_returns_404(client):
    response = await client.post("/v1/shifts/9999/gps-points", json=as_payload(walking_commute()[:2]))
    
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_detect_trips_builds_timeline(client, shift):
    await ingest(client, shift.id, walking_commute())
    
    response = await client.post(f"/v1/shifts/{shift.id}/detect-trips")
    
    assert response.status_code == 200
    body = response.json()
    assert body["cluster_count"] == 2
    assert body["trip_count"] == 1
    assert body["rejected_points"] == []
    
    timeline = (await client.get(f"/v1/shifts/{shift.id}/timeline")).json()
    first, second = timeline["clusters"]
    trip = timeline["trips"][0]
    assert first["gps_point_count"] == 30
    assert second["gps_point_count"] == 10
    assert trip["transport_mode"] == "walking"
    assert trip["classification"] == "business"
    assert trip["start_cluster_id"] == first["id"]
    assert trip["end_cluster_id"] == second["id"]
    assert 250 < trip["displacement_meters"] < 300
    assert trip["gps_point_count"] == 16


@pytest.mark.asyncio
async def test_detection_links_points(client, db_session, shift):
    await ingest(client, shift.id, walking_commute())
    await client.post(f"/v1/shifts/{shift.id}/detect-trips")
    
    clustered = await db_session.execute(
        select(func.count()).select_from(GpsPoint).where(GpsPoint.stationary_cluster_id.is_not(None))
    )
    assert clustered.scalar() == 40
    assert await count(db_session, TripGpsPoint) == 16


@pytest.mark.asyncio
async def test_rerun_replaces_previous_result(client, db_session, shift):
    await ingest(client, shift.id, walking_commute())
    
    first = (await client.post(f"/v1/shifts/{shift.id}/detect-trips")).json()
    second = (await client.post(f"/v1/shifts/{shift.id}/detect-trips")).json()
    
    assert first == second
    assert await count(db_session, StationaryCluster, shift_id=shift.id) == 2
    assert await count(db_session, Trip, shift_id=shift.id) == 1
    assert await count(db_session, TripGpsPoint) == 16


@pytest.mark.asyncio
async def test_bad_points_are_reported(client, shift):
    points = walking_commute()
    await ingest(client, shift.id, points)
    noisy = TrackBuilder(start=points[-1].captured_at, first_id=1000).add(285, seconds_later=20, speed=0.0, accuracy=500.0)
    await ingest(client, shift.id, noisy.points)
    
    body = (await client.post(f"/v1/shifts/{shift.id}/detect-trips")).json()
    
    assert [r["reason"] for r in body["rejected_points"]] == ["low_accuracy"]
    assert body["trip_count"] == 1
    assert len(body["warnings"]) == 1


@pytest.mark.asyncio
async def test_concurrent_detection_is_rejected(client, redis_client_session, shift):
    await redis_client_session.set(f"recompute:shift:{shift.id}", "other-worker")
    
    response = await client.post(f"/v1/shifts/{shift.id}/detect-trips")
    
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_RECOMPUTE_001"


@pytest.mark.asyncio
async def test_detect_unknown_shift_returns_404(client):
    response = await client.post("/v1/shifts/9999/detect-trips")
    
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_failed_pass_keeps_previous_result(client, db_session, shift, mocker):
    shift_id = shift.id
    await ingest(client, shift_id, walking_commute())
    await client.post(f"/v1/shifts/{shift_id}/detect-trips")
    trip_id = (await client.get(f"/v1/shifts/{shift_id}/timeline")).json()["trips"][0]["id"]
    await client.patch(f"/v1/trips/{trip_id}/classification", json={"classification": "personal"})

    # Fails after the old rows were deleted and the new ones flushed
    mocker.patch(
        "shiftline.app.services.trip_detection.DetectionSummary",
        side_effect=RuntimeError("insert failed"),
    )
    with pytest.raises(RuntimeError):
        await detect_trips_for_shift(db_session, shift_id)
    await db_session.rollback()
    
    assert await count(db_session, StationaryCluster, shift_id=shift_id) == 2
    assert await count(db_session, Trip, shift_id=shift_id) == 1
    assert await count(db_session, TripGpsPoint) == 16
    kept = await db_session.execute(select(Trip.classification).where(Trip.shift_id == shift_id))
    assert kept.scalar_one().value == "personal"


@pytest.mark.asyncio
async def test_update_trip_classification(client, shift):
    await ingest(client, shift.id, walking_commute())
    await client.post(f"/v1/shifts/{shift.id}/detect-trips")
    trip_id = (await client.get(f"/v1/shifts/{shift.id}/timeline")).json()["trips"][0]["id"]
    
    response = await client.patch(f"/v1/trips/{trip_id}/classification", json={"classification": "personal"})
    
    assert response.status_code == 200
    assert response.json()["classification"] == "personal"


@pytest.mark.asyncio
async def test_walking_trip_is_not_reimbursable(client, shift):
    await ingest(client, shift.id, walking_commute())
    await client.post(f"/v1/shifts/{shift.id}/detect-trips")
    trip_id = (await client.get(f"/v1/shifts/{shift.id}/timeline")).json()["trips"][0]["id"]
    
    response = await client.get(f"/v1/trips/{trip_id}/reimbursable")
    
    assert response.json() == {"trip_id": trip_id, "reimbursable": False, "reason": "not_driving"}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Correlation-ID"]
