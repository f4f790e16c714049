"""
Carpool Group and Member database models.

Groups are regenerated per date by carpool detection; a previous run's
groups for the same date are deleted first. Re-segmenting a shift deletes
the groups its trips belonged to.
"""

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from shiftline.app.db.session import Base
from shiftline.app.models.enums import CarpoolStatus, CarpoolRole


class CarpoolGroup(Base):
    """
    Carpool Group model.
    
    Same-day driving trips inferred to be one shared ride.
    """
    __tablename__ = "carpool_groups"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_date = Column(Date, nullable=False, index=True)
    
    status = Column(Enum(CarpoolStatus), default=CarpoolStatus.AUTO_DETECTED, nullable=False, index=True)
    driver_employee_id = Column(Integer, ForeignKey('employees.id'), nullable=True)
    
    # Review
    review_needed = Column(Boolean, default=False, nullable=False)
    review_note = Column(String(500), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<CarpoolGroup(id={self.id}, date={self.trip_date}, status='{self.status.value}')>"


class CarpoolMember(Base):
    """A trip's membership in a carpool group."""
    __tablename__ = "carpool_members"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    carpool_group_id = Column(Integer, ForeignKey('carpool_groups.id', ondelete='CASCADE'), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, unique=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    role = Column(Enum(CarpoolRole), default=CarpoolRole.UNASSIGNED, nullable=False)
    
    __table_args__ = (
        UniqueConstraint('carpool_group_id', 'trip_id', name='uq_carpool_group_trip'),
    )
    
    def __repr__(self):
        return f"<CarpoolMember(group_id={self.carpool_group_id}, trip_id={self.trip_id}, role='{self.role.value}')>"
