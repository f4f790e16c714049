"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from shiftline.app.api.v1.endpoints import shifts, trips, carpools, vehicle_periods, mileage

router = APIRouter()

# Segmentation: ingestion, detection, timeline
router.include_router(shifts.router)
router.include_router(trips.router)

# Carpool grouping and review
router.include_router(carpools.router)

# Collaborator inputs and reporting
router.include_router(vehicle_periods.router)
router.include_router(mileage.router)
