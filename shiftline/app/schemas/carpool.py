"""
Carpool schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List

from shiftline.app.models.enums import CarpoolStatus, CarpoolRole


class CarpoolMemberResponse(BaseModel):
    trip_id: int
    employee_id: int
    role: CarpoolRole
    
    class Config:
        from_attributes = True


class CarpoolGroupResponse(BaseModel):
    id: int
    trip_date: date
    status: CarpoolStatus
    driver_employee_id: Optional[int]
    review_needed: bool
    review_note: Optional[str]
    reviewed_at: Optional[datetime]
    members: List[CarpoolMemberResponse]


class CarpoolDetectionResponse(BaseModel):
    trip_date: date
    group_count: int
    groups: List[CarpoolGroupResponse]


class CarpoolConfirmRequest(BaseModel):
    """Reviewer confirmation; choosing a driver reassigns member roles."""
    driver_employee_id: Optional[int] = None
    note: Optional[str] = Field(None, max_length=500)


class CarpoolDismissRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=500)
