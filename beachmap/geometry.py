"""Point -> approximate circular coverage polygon."""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from shapely import affinity
from shapely.geometry import Point, Polygon
from shapely.geometry.polygon import orient

from . import config
from .geo import meters_to_degrees

logger = logging.getLogger(__name__)

COORD_PRECISION = 7


class GeometrySynthesisError(RuntimeError):
    pass


def is_priority(properties: Mapping[str, Any], top_n: Optional[int] = None) -> bool:
    if top_n is None:
        top_n = config.TOP_N_PRIORITY
    priority = properties.get("researchPriority")
    return isinstance(priority, int) and not isinstance(priority, bool) and 1 <= priority <= top_n


def is_always_visible(properties: Mapping[str, Any]) -> bool:
    """Priority beaches are exempt from the viewer's low-zoom hiding."""
    return is_priority(properties)


def radius_for(
    properties: Mapping[str, Any],
    default_radius_m: Optional[float] = None,
    priority_radius_m: Optional[float] = None,
) -> float:
    if is_priority(properties):
        return config.PRIORITY_RADIUS_M if priority_radius_m is None else priority_radius_m
    return config.DEFAULT_RADIUS_M if default_radius_m is None else default_radius_m


def buffer_point(lon: float, lat: float, radius_m: float, quad_segs: Optional[int] = None) -> Polygon:
    if quad_segs is None:
        quad_segs = config.BUFFER_QUAD_SEGS
    # Unit circle scaled to the local degree-per-metre ratios, then moved onto the point.
    dlat, dlon = meters_to_degrees(lat, radius_m)
    circle = Point(0.0, 0.0).buffer(1.0, quad_segs=quad_segs)
    circle = affinity.scale(circle, xfact=dlon, yfact=dlat, origin=(0.0, 0.0))
    return affinity.translate(circle, xoff=lon, yoff=lat)


def _ring_positions(polygon: Polygon) -> List[List[float]]:
    return [[round(x, COORD_PRECISION), round(y, COORD_PRECISION)] for x, y in polygon.exterior.coords]


def generate_beach_polygon(
    lon: float,
    lat: float,
    radius_m: Optional[float] = None,
    tolerance: Optional[float] = None,
    quad_segs: Optional[int] = None,
) -> Dict[str, Any]:
    if radius_m is None:
        radius_m = config.DEFAULT_RADIUS_M
    if tolerance is None:
        tolerance = config.SIMPLIFY_TOLERANCE_DEG
    if not (math.isfinite(lon) and math.isfinite(lat)) or radius_m <= 0:
        raise GeometrySynthesisError(f"Failed to create polygon for coordinates [{lon}, {lat}]")

    buffered = buffer_point(lon, lat, radius_m, quad_segs=quad_segs)
    if buffered.is_empty or buffered.geom_type != "Polygon":
        raise GeometrySynthesisError(f"Failed to create polygon for coordinates [{lon}, {lat}]")

    simplified = buffered.simplify(tolerance, preserve_topology=True)
    if simplified.is_empty or simplified.geom_type != "Polygon" or len(simplified.exterior.coords) < 4:
        logger.debug("Simplification degenerated at [%s, %s]; keeping full buffer", lon, lat)
        simplified = buffered

    # RFC 7946: exterior rings are counterclockwise.
    ring = _ring_positions(orient(simplified, sign=1.0))
    if len(ring) < 4 or ring[0] != ring[-1]:
        raise GeometrySynthesisError(f"Failed to create polygon for coordinates [{lon}, {lat}]")
    return {"type": "Polygon", "coordinates": [ring]}


def feature_lon_lat(feature: Mapping[str, Any]) -> tuple:
    coords = (feature.get("properties") or {}).get("coordinates") or {}
    lat = coords.get("latitude")
    lon = coords.get("longitude")
    if lat is None or lon is None:
        geometry = feature.get("geometry") or {}
        if geometry.get("type") != "Point":
            raise GeometrySynthesisError("Feature has neither coordinates nor a Point geometry")
        lon, lat = geometry["coordinates"][:2]
    return float(lon), float(lat)


def with_polygon(feature: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
    lon, lat = feature_lon_lat(feature)
    properties = feature.get("properties") or {}
    radius = radius_for(
        properties,
        default_radius_m=kwargs.pop("default_radius_m", None),
        priority_radius_m=kwargs.pop("priority_radius_m", None),
    )
    return {
        "type": "Feature",
        "geometry": generate_beach_polygon(lon, lat, radius_m=radius, **kwargs),
        "properties": properties,
    }


def synthesize_polygons(features: Iterable[Dict[str, Any]], **kwargs: Any) -> List[Dict[str, Any]]:
    return [with_polygon(f, **dict(kwargs)) for f in features]


def refresh_polygons(
    features: Iterable[Dict[str, Any]],
    stale_ids: Set[str],
    **kwargs: Any,
) -> List[Dict[str, Any]]:
    """Rebuild polygons only for features whose radius tier changed."""
    out: List[Dict[str, Any]] = []
    for feature in features:
        if (feature.get("properties") or {}).get("id") in stale_ids:
            out.append(with_polygon(feature, **dict(kwargs)))
        else:
            out.append(feature)
    return out


def average_vertex_count(features: Iterable[Dict[str, Any]]) -> Optional[float]:
    counts = [
        len((f.get("geometry") or {}).get("coordinates", [[]])[0])
        for f in features
        if (f.get("geometry") or {}).get("type") == "Polygon"
    ]
    if not counts:
        return None
    return sum(counts) / len(counts)
