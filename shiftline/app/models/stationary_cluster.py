"""
Stationary Cluster database model.

A period during a shift where the employee stayed in one place.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from shiftline.app.db.session import Base


class StationaryCluster(Base):
    """
    Stationary Cluster model.
    
    Centroid is the accuracy-weighted mean of the cluster's stopped points.
    Rows are regenerated wholesale on every detection run for the shift.
    """
    __tablename__ = "stationary_clusters"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    shift_id = Column(Integer, ForeignKey('shifts.id', ondelete='CASCADE'), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    
    centroid_latitude = Column(Float, nullable=False)
    centroid_longitude = Column(Float, nullable=False)
    centroid_accuracy = Column(Float, nullable=True)
    
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=False)
    duration_seconds = Column(Integer, nullable=False)
    gps_point_count = Column(Integer, nullable=False, default=0)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<StationaryCluster(id={self.id}, shift_id={self.shift_id}, points={self.gps_point_count})>"
