"""Geospatial helpers."""
from __future__ import annotations

import math
from typing import Any, Iterable, Optional, Tuple

from .config import CALIFORNIA_BBOX, EARTH_RADIUS_M, BoundingBox, City


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    r = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return r * c


def nearest_city_km(lat: float, lon: float, cities: Iterable[City]) -> Tuple[Optional[float], Optional[str]]:
    nearest: Optional[str] = None
    min_dist: Optional[float] = None
    for city in cities:
        dist = haversine_km(lat, lon, city.lat, city.lon)
        if min_dist is None or dist < min_dist:
            min_dist = dist
            nearest = city.name
    return min_dist, nearest


def in_bounds(lat: float, lon: float, bbox: BoundingBox = CALIFORNIA_BBOX) -> bool:
    return bbox.contains(lat, lon)


def meters_to_degrees(lat: float, meters: float) -> Tuple[float, float]:
    """Return (dlat, dlon) degrees spanned by `meters` at latitude `lat`.

    Equirectangular approximation; fine at beach scale (hundreds of metres).
    """
    dlat = math.degrees(meters / EARTH_RADIUS_M)
    cos_lat = max(0.01, math.cos(math.radians(lat)))
    dlon = math.degrees(meters / (EARTH_RADIUS_M * cos_lat))
    return dlat, dlon


def to_float(value: Any) -> Optional[float]:
    """Coerce a raw coordinate to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out
