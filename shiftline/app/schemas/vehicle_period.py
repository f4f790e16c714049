"""
Employee vehicle period schemas.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import Optional

from shiftline.app.models.enums import VehicleType


class VehiclePeriodCreate(BaseModel):
    """Schema for recording vehicle access; omit ended_at for an ongoing period."""
    vehicle_type: VehicleType
    started_at: date
    ended_at: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=500)
    
    @model_validator(mode="after")
    def check_range(self):
        if self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError("ended_at must not be before started_at")
        return self


class VehiclePeriodResponse(BaseModel):
    id: int
    employee_id: int
    vehicle_type: VehicleType
    started_at: date
    ended_at: Optional[date]
    notes: Optional[str]
    created_at: datetime
    
    class Config:
        from_attributes = True
