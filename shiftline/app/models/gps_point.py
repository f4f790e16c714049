"""
GPS Point database model.

Raw fixes captured by the mobile client during a shift.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from shiftline.app.db.session import Base


class GpsPoint(Base):
    """
    GPS Point model.
    
    Immutable input to the segmentation engine. The only column written
    back by detection is ``stationary_cluster_id``.
    """
    __tablename__ = "gps_points"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # References
    shift_id = Column(Integer, ForeignKey('shifts.id', ondelete='CASCADE'), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False)
    
    # GPS fix
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy_meters = Column(Float, nullable=True)  # Reported uncertainty radius
    speed_mps = Column(Float, nullable=True)  # Sensor speed, m/s
    
    # Set by segmentation when the point belongs to a stationary cluster
    stationary_cluster_id = Column(
        Integer, ForeignKey('stationary_clusters.id', ondelete='SET NULL'), nullable=True, index=True
    )
    
    # Timing
    captured_at = Column(DateTime(timezone=True), nullable=False, index=True)  # When GPS was recorded
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)  # When inserted to DB
    
    def __repr__(self):
        return f"<GpsPoint(shift_id={self.shift_id}, lat={self.latitude}, lng={self.longitude})>"
