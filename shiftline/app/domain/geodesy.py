"""
Geodesy primitives.

Great-circle distance and the accuracy-adjusted proximity test used
wherever the engine has to decide whether a location actually changed.
"""

import math

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.
    
    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)
    
    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)
    
    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    
    return EARTH_RADIUS_M * c


def accuracy_adjusted_distance(
    center_lat: float,
    center_lon: float,
    lat: float,
    lon: float,
    accuracy_meters: float
) -> float:
    """
    Distance from a center to a fix, credited with the fix's own uncertainty.
    
    Floored at zero: a fix whose accuracy radius covers the center can
    never prove that the location changed.
    """
    return max(haversine_distance(center_lat, center_lon, lat, lon) - accuracy_meters, 0.0)
