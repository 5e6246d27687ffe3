"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional, Sequence

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def path_length_meters(points: Sequence[tuple[Optional[float], Optional[float]]]) -> Optional[float]:
    """Straight-line length of a path in meters, or None if any point lacks coordinates."""

    if any(lat is None or lon is None for lat, lon in points):
        return None
    total_km = 0.0
    for (lat1, lon1), (lat2, lon2) in zip(points, points[1:]):
        total_km += haversine_km(lat1, lon1, lat2, lon2)
    return total_km * 1000.0
