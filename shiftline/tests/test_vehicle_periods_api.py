"""
Vehicle period API tests.
"""

import pytest

from shiftline.app.models.employee import Employee


@pytest.fixture
async def employee(db_session):
    employee = Employee(name="Chantal Roy")
    db_session.add(employee)
    await db_session.commit()
    return employee


async def create(client, employee_id, **payload):
    return await client.post(f"/v1/employees/{employee_id}/vehicle-periods", json=payload)


@pytest.mark.asyncio
async def test_create_and_list_periods(client, employee):
    response = await create(client, employee.id, vehicle_type="personal", started_at="2026-01-01")
    await create(client, employee.id, vehicle_type="company", started_at="2026-02-01", ended_at="2026-02-28")
    
    assert response.status_code == 201
    assert response.json()["ended_at"] is None
    
    listed = (await client.get(f"/v1/employees/{employee.id}/vehicle-periods")).json()
    assert [p["vehicle_type"] for p in listed] == ["personal", "company"]


@pytest.mark.asyncio
async def test_overlapping_period_of_same_type_is_rejected(client, employee):
    await create(client, employee.id, vehicle_type="company", started_at="2026-02-01", ended_at="2026-02-28")
    
    response = await create(client, employee.id, vehicle_type="company", started_at="2026-02-28")
    
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_VEHICLE_PERIOD_001"


@pytest.mark.asyncio
async def test_open_ended_period_blocks_later_periods(client, employee):
    await create(client, employee.id, vehicle_type="personal", started_at="2026-01-01")
    
    response = await create(client, employee.id, vehicle_type="personal", started_at="2025-06-01", ended_at="2026-03-01")
    
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_adjacent_and_other_type_periods_are_allowed(client, employee):
    await create(client, employee.id, vehicle_type="company", started_at="2026-02-01", ended_at="2026-02-28")
    
    adjacent = await create(client, employee.id, vehicle_type="company", started_at="2026-03-01")
    other_type = await create(client, employee.id, vehicle_type="personal", started_at="2026-02-10")
    
    assert adjacent.status_code == 201
    assert other_type.status_code == 201


@pytest.mark.asyncio
async def test_inverted_range_is_invalid(client, employee):
    response = await create(client, employee.id, vehicle_type="personal", started_at="2026-03-01", ended_at="2026-02-01")
    
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_unknown_employee_returns_404(client):
    response = await create(client, 9999, vehicle_type="personal", started_at="2026-01-01")
    
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_period(client, employee):
    period_id = (await create(client, employee.id, vehicle_type="personal", started_at="2026-01-01")).json()["id"]
    
    deleted = await client.delete(f"/v1/vehicle-periods/{period_id}")
    missing = await client.delete(f"/v1/vehicle-periods/{period_id}")
    
    assert deleted.status_code == 204
    assert missing.status_code == 404
    assert (await client.get(f"/v1/employees/{employee.id}/vehicle-periods")).json() == []
