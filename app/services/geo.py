"""
Coordinate math for the map and the nearby search.
Pure functions: no I/O, no state.
"""
from __future__ import annotations

from math import atan2, cos, floor, pi, sin, sqrt

from app.schemas.common import Coordinates, MapRegion

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0

TASHKENT_CENTER = Coordinates(latitude=41.2995, longitude=69.2401)


def to_radians(degrees: float) -> float:
    return degrees * (pi / 180)


def to_degrees(radians: float) -> float:
    return radians * (180 / pi)


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle (Haversine) distance between two points, in kilometers."""
    lat1 = to_radians(a.latitude)
    lat2 = to_radians(b.latitude)
    dlat = to_radians(b.latitude - a.latitude)
    dlng = to_radians(b.longitude - a.longitude)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))


def format_distance(km: float) -> str:
    """'350м' under one kilometer, '2.5км' otherwise."""
    if km < 1:
        return f"{int(floor(km * 1000 + 0.5))}м"
    return f"{km:.1f}км"


def map_region(center: Coordinates, radius_km: float = 2.0) -> MapRegion:
    # Degenerates towards the poles; irrelevant at Tashkent's latitude.
    return MapRegion(
        latitude=center.latitude,
        longitude=center.longitude,
        latitude_delta=radius_km / KM_PER_DEGREE_LAT,
        longitude_delta=radius_km / (KM_PER_DEGREE_LAT * cos(to_radians(center.latitude))),
    )
