"""
Employee Vehicle Period database model.

Tracks when an employee has access to a personal or company vehicle.
Read-only input to carpool role resolution and reimbursement eligibility.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from shiftline.app.db.session import Base
from shiftline.app.models.enums import VehicleType


class EmployeeVehiclePeriod(Base):
    """
    Employee Vehicle Period model.
    
    ``ended_at`` NULL means the period is ongoing. Periods of the same type
    for the same employee never overlap (checked on create).
    """
    __tablename__ = "employee_vehicle_periods"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    vehicle_type = Column(Enum(VehicleType), nullable=False, index=True)
    
    started_at = Column(Date, nullable=False)
    ended_at = Column(Date, nullable=True)
    notes = Column(String(500), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<EmployeeVehiclePeriod(employee_id={self.employee_id}, type='{self.vehicle_type.value}')>"
