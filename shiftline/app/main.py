"""
FastAPI Application Entry Point.

This is the main application file for the Shiftline Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from shiftline.app.core.config import settings
from shiftline.app.core.observability import ObservabilityMiddleware, configure_logging
from shiftline.app.core.redis_client import ping_redis
from shiftline.app.api.v1.router import router as api_v1_router
from shiftline.app.db.session import engine, Base
from shiftline.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from shiftline.app.models.employee import Employee
from shiftline.app.models.shift import Shift
from shiftline.app.models.stationary_cluster import StationaryCluster  # Before gps_points/trips for FK
from shiftline.app.models.gps_point import GpsPoint
from shiftline.app.models.trip import Trip, TripGpsPoint
from shiftline.app.models.vehicle_period import EmployeeVehiclePeriod
from shiftline.app.models.carpool import CarpoolGroup, CarpoolMember
from shiftline.app.models.reimbursement_rate import ReimbursementRate

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Shift GPS timeline: stationary clusters, trips, carpools and mileage",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Shiftline Backend API",
        "docs": "/docs",
        "health": "/health",
    }
