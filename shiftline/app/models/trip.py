"""
Trip database model.

Trips are produced by the segmentation engine from a shift's GPS points,
never entered by hand.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.sql import func
from shiftline.app.db.session import Base
from shiftline.app.models.enums import TransportMode, TripClassification, DetectionMethod


class Trip(Base):
    """
    Trip model.
    
    Start and end coordinates are those of the reference points; the
    neighbouring clusters are linked when the trip starts or ends at one.
    """
    __tablename__ = "trips"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Ownership
    shift_id = Column(Integer, ForeignKey('shifts.id', ondelete='CASCADE'), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    
    # Boundaries
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True), nullable=False)
    start_latitude = Column(Float, nullable=False)
    start_longitude = Column(Float, nullable=False)
    end_latitude = Column(Float, nullable=False)
    end_longitude = Column(Float, nullable=False)
    start_cluster_id = Column(Integer, ForeignKey('stationary_clusters.id', ondelete='SET NULL'), nullable=True)
    end_cluster_id = Column(Integer, ForeignKey('stationary_clusters.id', ondelete='SET NULL'), nullable=True)
    
    # Measurements
    distance_meters = Column(Float, nullable=False)
    displacement_meters = Column(Float, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    
    # Classification
    transport_mode = Column(Enum(TransportMode), nullable=False, index=True)
    classification = Column(Enum(TripClassification), default=TripClassification.BUSINESS, nullable=False)
    
    # Quality indicators
    confidence_score = Column(Float, nullable=False, default=1.0)
    gps_point_count = Column(Integer, nullable=False, default=0)
    low_accuracy_segments = Column(Integer, nullable=False, default=0)
    
    detection_method = Column(Enum(DetectionMethod), default=DetectionMethod.AUTO, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Trip(id={self.id}, shift_id={self.shift_id}, mode='{self.transport_mode.value}')>"


class TripGpsPoint(Base):
    """Ordered link between a trip and the GPS points it owns."""
    __tablename__ = "trip_gps_points"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete='CASCADE'), nullable=False, index=True)
    gps_point_id = Column(Integer, ForeignKey('gps_points.id', ondelete='CASCADE'), nullable=False)
    sequence_order = Column(Integer, nullable=False)
    
    __table_args__ = (
        UniqueConstraint('trip_id', 'gps_point_id', name='uq_trip_gps_point'),
    )
