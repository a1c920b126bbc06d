"""Great-circle helpers for coordinates in decimal degrees."""
from __future__ import annotations

import math

from .const import UNIT_MI

EARTH_RADIUS_KM = 6371.01
EARTH_RADIUS_MI = 3958.762079


def distance(lat1: float, lon1: float, lat2: float, lon2: float, unit: str = "km") -> float:
    """Great-circle distance between two points, in km or miles, rounded to 2 decimals."""
    lat1, lon1, lat2, lon2 = map(math.radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    radius = EARTH_RADIUS_MI if unit == UNIT_MI else EARTH_RADIUS_KM
    return round(radius * c, 2)


def displaced(lat1, lon1, lat2, lon2, threshold: float) -> bool:
    """True when either axis moved more than threshold degrees."""
    return abs(lat1 - lat2) > threshold or abs(lon1 - lon2) > threshold
