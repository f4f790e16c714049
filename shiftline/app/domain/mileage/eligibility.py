"""
Reimbursement eligibility.

A trip is reimbursable when it is a business trip, was driven, the
employee had no company vehicle that day, and the employee either drove
alone or was the driver of the carpool the trip belongs to.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from shiftline.app.models.enums import TripClassification, TransportMode, VehicleType, CarpoolRole


# Reasons reported with a decision
ELIGIBLE = "eligible"
NOT_BUSINESS = "not_business"
NOT_DRIVING = "not_driving"
COMPANY_VEHICLE = "company_vehicle"
CARPOOL_PASSENGER = "carpool_passenger"


@dataclass(frozen=True)
class EligibilityDecision:
    reimbursable: bool
    reason: str


def local_date(moment: datetime, tz_name: str) -> date:
    """Calendar date of ``moment`` in ``tz_name``; naive values are read as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).date()


def has_active_period(periods: Iterable, vehicle_type: VehicleType, day: date) -> bool:
    """True when any of ``periods`` of ``vehicle_type`` covers ``day`` (``ended_at`` None is open-ended)."""
    return any(
        p.vehicle_type == vehicle_type
        and p.started_at <= day
        and (p.ended_at is None or day <= p.ended_at)
        for p in periods
    )


def evaluate_trip(
    classification: TripClassification,
    transport_mode: TransportMode,
    has_company_vehicle: bool,
    carpool_role: Optional[CarpoolRole]
) -> EligibilityDecision:
    """
    Decide whether one trip is reimbursable.

    Args:
        classification: Business or personal
        transport_mode: Detected transport mode
        has_company_vehicle: Employee had an active company vehicle period on the trip date
        carpool_role: Role in the trip's carpool group, or None when the trip is not in one

    Returns:
        EligibilityDecision with the first failing reason, or ``eligible``
    """
    if classification != TripClassification.BUSINESS:
        return EligibilityDecision(False, NOT_BUSINESS)
    if transport_mode != TransportMode.DRIVING:
        return EligibilityDecision(False, NOT_DRIVING)
    if has_company_vehicle:
        return EligibilityDecision(False, COMPANY_VEHICLE)
    if carpool_role is not None and carpool_role != CarpoolRole.DRIVER:
        return EligibilityDecision(False, CARPOOL_PASSENGER)
    return EligibilityDecision(True, ELIGIBLE)


def is_reimbursable(
    classification: TripClassification,
    transport_mode: TransportMode,
    has_company_vehicle: bool,
    carpool_role: Optional[CarpoolRole]
) -> bool:
    return evaluate_trip(classification, transport_mode, has_company_vehicle, carpool_role).reimbursable
