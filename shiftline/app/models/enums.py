"""
Shared enumerations for the shift timeline domain.
"""

import enum


class ShiftStatus(str, enum.Enum):
    """Shift lifecycle status."""
    ACTIVE = "active"
    COMPLETED = "completed"


class TransportMode(str, enum.Enum):
    """Transport mode assigned to a detected trip."""
    WALKING = "walking"
    DRIVING = "driving"
    OTHER = "other"


class TripClassification(str, enum.Enum):
    """Business purpose of a trip (set by the employee or a reviewer)."""
    BUSINESS = "business"
    PERSONAL = "personal"


class DetectionMethod(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"


class VehicleType(str, enum.Enum):
    """Vehicle access type for an employee vehicle period."""
    PERSONAL = "personal"
    COMPANY = "company"


class CarpoolStatus(str, enum.Enum):
    """Carpool group review status."""
    AUTO_DETECTED = "auto_detected"  # Produced by a detection run
    CONFIRMED = "confirmed"  # Accepted by a reviewer
    DISMISSED = "dismissed"  # Rejected by a reviewer


class CarpoolRole(str, enum.Enum):
    """Role of a member within a carpool group."""
    DRIVER = "driver"
    PASSENGER = "passenger"
    UNASSIGNED = "unassigned"
