"""
Shift database model.

A shift is the unit of work for trajectory segmentation.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from shiftline.app.db.session import Base
from shiftline.app.models.enums import ShiftStatus


class Shift(Base):
    """
    Shift model.
    
    Groups the GPS points captured between clock-in and clock-out.
    """
    __tablename__ = "shifts"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    
    status = Column(Enum(ShiftStatus), default=ShiftStatus.ACTIVE, nullable=False, index=True)
    
    clocked_in_at = Column(DateTime(timezone=True), nullable=False)
    clocked_out_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Shift(id={self.id}, employee_id={self.employee_id}, status='{self.status.value}')>"
