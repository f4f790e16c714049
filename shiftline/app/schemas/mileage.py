"""
Mileage summary schema.
"""

from pydantic import BaseModel
from datetime import date


class MileageSummaryResponse(BaseModel):
    employee_id: int
    period_start: date
    period_end: date
    total_distance_km: float
    business_distance_km: float
    personal_distance_km: float
    trip_count: int
    business_trip_count: int
    personal_trip_count: int
    reimbursable_distance_km: float
    reimbursable_trip_count: int
    ytd_reimbursable_km: float
    estimated_reimbursement: float
    rate_per_km_used: float
    rate_source: str
    
    class Config:
        from_attributes = True
