"""
Recomputation lock tests.
"""

from datetime import date

import pytest

from shiftline.app.core.exceptions import RecomputationConflictError
from shiftline.app.core.recompute_lock import (
    recompute_lock, shift_unit, carpool_unit, RECOMPUTE_LOCK_PREFIX,
)


def test_unit_keys():
    assert shift_unit(42) == "shift:42"
    assert carpool_unit(date(2026, 3, 2)) == "carpool:2026-03-02"


async def test_lock_released_after_body(redis_client_session):
    async with recompute_lock(redis_client_session, shift_unit(1)):
        assert await redis_client_session.get(f"{RECOMPUTE_LOCK_PREFIX}shift:1") is not None
    
    assert await redis_client_session.get(f"{RECOMPUTE_LOCK_PREFIX}shift:1") is None


async def test_second_holder_is_rejected(redis_client_session):
    async with recompute_lock(redis_client_session, shift_unit(1)):
        with pytest.raises(RecomputationConflictError) as exc_info:
            async with recompute_lock(redis_client_session, shift_unit(1)):
                pass
        
        # A different unit is independent
        async with recompute_lock(redis_client_session, shift_unit(2)):
            pass
    
    assert exc_info.value.status_code == 409


async def test_lock_released_when_body_fails(redis_client_session):
    with pytest.raises(RuntimeError):
        async with recompute_lock(redis_client_session, carpool_unit(date(2026, 3, 2))):
            raise RuntimeError("boom")
    
    assert await redis_client_session.get(f"{RECOMPUTE_LOCK_PREFIX}carpool:2026-03-02") is None


async def test_foreign_lock_is_not_released(redis_client_session):
    key = f"{RECOMPUTE_LOCK_PREFIX}shift:7"
    
    async with recompute_lock(redis_client_session, shift_unit(7)):
        # Simulate expiry and takeover by another worker
        await redis_client_session.set(key, "other-worker")
    
    assert await redis_client_session.get(key) == "other-worker"
