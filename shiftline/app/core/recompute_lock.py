"""
Per-unit recomputation lock using Redis.

A shift or a calendar date is recomputed as one delete-then-insert unit.
Two passes over the same unit must never interleave, so each pass holds a
short-lived Redis key for its duration. The later caller is rejected rather
than queued.
"""

import uuid
import logging
from contextlib import asynccontextmanager
from typing import Optional

from shiftline.app.core.config import settings
from shiftline.app.core.exceptions import RecomputationConflictError

logger = logging.getLogger(__name__)

RECOMPUTE_LOCK_PREFIX = "recompute:"


def shift_unit(shift_id: int) -> str:
    return f"shift:{shift_id}"


def carpool_unit(trip_date) -> str:
    return f"carpool:{trip_date.isoformat()}"


@asynccontextmanager
async def recompute_lock(redis, unit: str, ttl_seconds: Optional[int] = None):
    """
    Hold the recomputation lock for ``unit`` while the body runs.
    
    The TTL bounds how long a crashed worker can block the unit.
    
    Raises:
        RecomputationConflictError: If another pass holds the lock
    """
    key = f"{RECOMPUTE_LOCK_PREFIX}{unit}"
    token = str(uuid.uuid4())
    ttl = ttl_seconds or settings.recompute_lock_ttl_seconds
    
    acquired = await redis.set(key, token, nx=True, ex=ttl)
    if not acquired:
        logger.warning("Recomputation rejected, lock held: %s", unit)
        raise RecomputationConflictError(unit)
    
    try:
        yield
    finally:
        # Only release our own lock; it may have expired and been re-taken.
        if await redis.get(key) == token:
            await redis.delete(key)
