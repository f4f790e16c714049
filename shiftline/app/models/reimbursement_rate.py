"""
Reimbursement Rate database model.

Per-km mileage rates with an optional reduced tier after a yearly threshold.
"""

from sqlalchemy import Column, Integer, Float, String, Date, DateTime
from sqlalchemy.sql import func
from shiftline.app.db.session import Base


class ReimbursementRate(Base):
    """
    Reimbursement Rate model.
    
    The row effective on a period's end date prices the whole period.
    """
    __tablename__ = "reimbursement_rates"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    rate_per_km = Column(Float, nullable=False)
    threshold_km = Column(Integer, nullable=True)  # YTD km at which the reduced rate starts
    rate_after_threshold = Column(Float, nullable=True)
    
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    rate_source = Column(String(100), nullable=False, default="company")
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<ReimbursementRate(rate={self.rate_per_km}, from={self.effective_from})>"
