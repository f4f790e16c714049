"""
GPS point schemas.

Coordinates, accuracy and speed are accepted as reported; detection
rejects bad fixes individually and reports them.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class GpsPointIn(BaseModel):
    """One fix reported by the mobile client."""
    captured_at: datetime
    latitude: float
    longitude: float
    accuracy_meters: Optional[float] = Field(None, description="Reported uncertainty radius in meters")
    speed_mps: Optional[float] = Field(None, description="Sensor speed in m/s")


class GpsPointBatch(BaseModel):
    """Batch upload of fixes for one shift."""
    points: List[GpsPointIn] = Field(..., min_length=1, max_length=5000)


class GpsPointBatchResponse(BaseModel):
    shift_id: int
    accepted: int
