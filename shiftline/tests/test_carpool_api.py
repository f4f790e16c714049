"""
Carpool detection and review API tests.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select, func

from shiftline.app.models.carpool import CarpoolGroup, CarpoolMember
from shiftline.app.models.employee import Employee
from shiftline.app.models.enums import TransportMode, VehicleType
from shiftline.app.models.shift import Shift
from shiftline.app.models.trip import Trip
from shiftline.app.models.vehicle_period import EmployeeVehiclePeriod

from track_builder import offset

TRIP_DATE = "2026-03-02"
MORNING = datetime(2026, 3, 2, 13, 0, tzinfo=timezone.utc)  # 08:00 in Toronto


async def add_driving_trip(db_session, name, east_m=0.0, start_offset_min=0, mode=TransportMode.DRIVING):
    employee = Employee(name=name)
    db_session.add(employee)
    await db_session.flush()
    shift = Shift(employee_id=employee.id, clocked_in_at=MORNING - timedelta(hours=1))
    db_session.add(shift)
    await db_session.flush()
    
    start_lat, start_lon = offset(0, east_m)
    end_lat, end_lon = offset(12000, east_m)
    started = MORNING + timedelta(minutes=start_offset_min)
    trip = Trip(
        shift_id=shift.id,
        employee_id=employee.id,
        started_at=started,
        ended_at=started + timedelta(minutes=25),
        start_latitude=start_lat,
        start_longitude=start_lon,
        end_latitude=end_lat,
        end_longitude=end_lon,
        distance_meters=12500.0,
        displacement_meters=12000.0,
        duration_minutes=25,
        transport_mode=mode,
        gps_point_count=40,
    )
    db_session.add(trip)
    await db_session.flush()
    return employee, trip


async def give_personal_vehicle(db_session, employee):
    db_session.add(EmployeeVehiclePeriod(
        employee_id=employee.id,
        vehicle_type=VehicleType.PERSONAL,
        started_at=date(2026, 1, 1),
    ))
    await db_session.flush()


@pytest.fixture
async def shared_ride(db_session):
    """Two employees driving the same route together; only the second owns a car."""
    alice, alice_trip = await add_driving_trip(db_session, "Alice", east_m=0)
    bruno, bruno_trip = await add_driving_trip(db_session, "Bruno", east_m=80, start_offset_min=1)
    await give_personal_vehicle(db_session, bruno)
    await db_session.commit()
    return {"alice": alice, "bruno": bruno, "alice_trip": alice_trip, "bruno_trip": bruno_trip}


@pytest.mark.asyncio
async def test_detect_carpool_assigns_driver(client, shared_ride):
    response = await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})
    
    assert response.status_code == 200
    body = response.json()
    assert body["group_count"] == 1
    group = body["groups"][0]
    assert group["status"] == "auto_detected"
    assert group["driver_employee_id"] == shared_ride["bruno"].id
    assert group["review_needed"] is False
    roles = {m["employee_id"]: m["role"] for m in group["members"]}
    assert roles == {shared_ride["alice"].id: "passenger", shared_ride["bruno"].id: "driver"}


@pytest.mark.asyncio
async def test_rerun_does_not_accumulate_groups(client, db_session, shared_ride):
    first = (await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})).json()
    second = (await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})).json()
    
    def shape(body):
        return [
            (g["driver_employee_id"], g["review_needed"], [(m["trip_id"], m["role"]) for m in g["members"]])
            for g in body["groups"]
        ]
    
    assert shape(first) == shape(second)
    assert (await db_session.execute(select(func.count()).select_from(CarpoolGroup))).scalar() == 1
    assert (await db_session.execute(select(func.count()).select_from(CarpoolMember))).scalar() == 2


@pytest.mark.asyncio
async def test_walking_trips_are_ignored(client, db_session):
    await add_driving_trip(db_session, "Alice", mode=TransportMode.WALKING)
    await add_driving_trip(db_session, "Bruno", east_m=50, mode=TransportMode.WALKING)
    await db_session.commit()
    
    body = (await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})).json()
    
    assert body["group_count"] == 0


@pytest.mark.asyncio
async def test_other_dates_are_untouched(client, shared_ride):
    await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})
    
    body = (await client.post("/v1/carpools/detect", params={"trip_date": "2026-03-03"})).json()
    listed = (await client.get("/v1/carpools", params={"trip_date": TRIP_DATE})).json()
    
    assert body["group_count"] == 0
    assert len(listed) == 1


@pytest.mark.asyncio
async def test_group_without_personal_vehicle_needs_review(client, db_session):
    await add_driving_trip(db_session, "Alice")
    await add_driving_trip(db_session, "Bruno", east_m=60)
    await db_session.commit()
    
    group = (await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})).json()["groups"][0]
    
    assert group["review_needed"] is True
    assert group["driver_employee_id"] is None
    assert {m["role"] for m in group["members"]} == {"unassigned"}


@pytest.mark.asyncio
async def test_confirm_with_driver_reassigns_roles(client, shared_ride):
    group = (await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})).json()["groups"][0]
    alice_id = shared_ride["alice"].id
    
    response = await client.post(
        f"/v1/carpools/{group['id']}/confirm",
        json={"driver_employee_id": alice_id, "note": "Alice drove that day"}
    )
    
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "confirmed"
    assert body["driver_employee_id"] == alice_id
    assert body["review_needed"] is False
    assert body["reviewed_at"] is not None
    roles = {m["employee_id"]: m["role"] for m in body["members"]}
    assert roles[alice_id] == "driver"
    assert roles[shared_ride["bruno"].id] == "passenger"


@pytest.mark.asyncio
async def test_confirm_rejects_non_member_driver(client, shared_ride):
    group = (await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})).json()["groups"][0]
    
    response = await client.post(f"/v1/carpools/{group['id']}/confirm", json={"driver_employee_id": 9999})
    
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
async def test_reviewed_group_cannot_be_reviewed_again(client, shared_ride):
    group = (await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})).json()["groups"][0]
    
    dismissed = await client.post(f"/v1/carpools/{group['id']}/dismiss")
    again = await client.post(f"/v1/carpools/{group['id']}/confirm")
    
    assert dismissed.json()["status"] == "dismissed"
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_review_unknown_group_returns_404(client):
    response = await client.post("/v1/carpools/9999/dismiss")
    
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_passenger_trip_is_not_reimbursable(client, shared_ride):
    await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})
    
    passenger = (await client.get(f"/v1/trips/{shared_ride['alice_trip'].id}/reimbursable")).json()
    driver = (await client.get(f"/v1/trips/{shared_ride['bruno_trip'].id}/reimbursable")).json()
    
    assert passenger["reimbursable"] is False
    assert passenger["reason"] == "carpool_passenger"
    assert driver["reimbursable"] is True


@pytest.mark.asyncio
async def test_concurrent_carpool_detection_is_rejected(client, redis_client_session):
    await redis_client_session.set(f"recompute:carpool:{TRIP_DATE}", "other-worker")
    
    response = await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})
    
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_resegmenting_a_member_shift_removes_its_groups(client, db_session, shared_ride):
    await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})
    bruno_shift = shared_ride["bruno_trip"].shift_id
    
    response = await client.post(f"/v1/shifts/{bruno_shift}/detect-trips")
    
    assert response.status_code == 200
    assert response.json()["invalidated_carpool_dates"] == [TRIP_DATE]
    assert (await db_session.execute(select(func.count()).select_from(CarpoolGroup))).scalar() == 0
    assert (await db_session.execute(select(func.count()).select_from(CarpoolMember))).scalar() == 0
    
    alice = (await client.get(f"/v1/trips/{shared_ride['alice_trip'].id}/reimbursable")).json()
    assert alice["reimbursable"] is True
    assert alice["reason"] == "eligible"


@pytest.mark.asyncio
async def test_resegmenting_an_unrelated_shift_keeps_groups(client, db_session, shared_ride):
    await client.post("/v1/carpools/detect", params={"trip_date": TRIP_DATE})
    carol, _ = await add_driving_trip(db_session, "Carol", east_m=5000)
    carol_shift = (await db_session.execute(select(Shift.id).where(Shift.employee_id == carol.id))).scalar_one()
    await db_session.commit()
    
    response = await client.post(f"/v1/shifts/{carol_shift}/detect-trips")
    
    assert response.json()["invalidated_carpool_dates"] == []
    assert (await db_session.execute(select(func.count()).select_from(CarpoolMember))).scalar() == 2
