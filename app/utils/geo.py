"""
Geographic utilities for Natours.
Provides the great-circle distances behind the tours-within and distances
endpoints.
"""
import math
from typing import Iterable, List, Optional, Tuple

from app.errors import ValidationError

# Earth's radius per supported unit
EARTH_RADIUS = {
    'km': 6378.1,
    'mi': 3963.2,
}


def earth_radius(unit: str) -> float:
    """Radius of the Earth in `unit`; only 'km' and 'mi' are supported."""
    try:
        return EARTH_RADIUS[unit]
    except KeyError:
        raise ValidationError('Unit must be either mi or km.')


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float,
                       unit: str = 'km', precision: Optional[int] = 1) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula to calculate the shortest distance
    over the earth's surface.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees
        unit: 'km' or 'mi'
        precision: Decimal places to round to, None for no rounding

    Returns:
        Distance in the requested unit
    """
    R = earth_radius(unit)

    # Convert degrees to radians
    lat1_rad = math.radians(lat1)
    lon1_rad = math.radians(lon1)
    lat2_rad = math.radians(lat2)
    lon2_rad = math.radians(lon2)

    # Differences
    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    # Haversine formula
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(math.sqrt(a))

    distance = R * c
    return round(distance, precision) if precision is not None else distance


def tours_within(tours: Iterable, center: Tuple[float, float], distance: float,
                 unit: str) -> List:
    """Tours whose start location lies within `distance` of `center` (lat, lng)."""
    lat, lng = center
    earth_radius(unit)
    found = []
    for tour in tours:
        start = tour.start_coordinates
        if start is None:
            continue
        if haversine_distance(lat, lng, start[0], start[1], unit, precision=None) <= distance:
            found.append(tour)
    return found


def distances_from(tours: Iterable, center: Tuple[float, float], unit: str) -> List[dict]:
    """Name and distance of every tour with a start location, nearest first."""
    lat, lng = center
    earth_radius(unit)
    rows = []
    for tour in tours:
        start = tour.start_coordinates
        if start is None:
            continue
        rows.append({
            'id': tour.id,
            'name': tour.name,
            'distance': haversine_distance(lat, lng, start[0], start[1], unit),
        })
    rows.sort(key=lambda row: row['distance'])
    return rows
