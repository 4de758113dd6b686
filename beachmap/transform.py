"""Map raw access-location records onto the canonical beach model."""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from . import config
from .config import CALIFORNIA_BBOX, BoundingBox, RegionTable
from .geo import in_bounds, to_float
from .reporting import feature_collection, utc_now_iso

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

NAME_FIELD = "NameMobileWeb"
LAT_FIELD = "LATITUDE"
LON_FIELD = "LONGITUDE"
COUNTY_FIELD = "COUNTY"
SOURCE_ID_FIELD = "ID"


@dataclass
class TransformResult:
    features: List[Dict[str, Any]]
    rejections: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def rejection_counts(self) -> Dict[str, int]:
        return dict(Counter(r["reason"] for r in self.rejections))

    def as_collection(self) -> Dict[str, Any]:
        return feature_collection(self.features)


def generate_slug(name: str) -> str:
    return _NON_ALNUM.sub("-", (name or "").lower()).strip("-")


def determine_region(county: str, table: RegionTable = config.REGION_TABLE) -> str:
    county_lower = (county or "").lower()
    if any(c in county_lower for c in table.north):
        return "north"
    if any(c in county_lower for c in table.central):
        return "central"
    return table.default


def _is_yes(value: Any) -> bool:
    return value == config.FLAG_TRUE


def parse_facilities(
    record: Dict[str, Any],
    flags: Iterable[Tuple[str, str]] = config.FACILITY_FLAGS,
) -> Optional[List[str]]:
    facilities = [tag for key, tag in flags if _is_yes(record.get(key))]
    return facilities or None


def parse_accessibility(
    record: Dict[str, Any],
    flags: Iterable[Tuple[str, str]] = config.ACCESSIBILITY_FLAGS,
) -> Optional[Dict[str, bool]]:
    # Known-false differs from unknown: any present key attaches the whole block.
    flags = list(flags)
    if not any(key in record for key, _ in flags):
        return None
    return {prop: _is_yes(record.get(key)) for key, prop in flags}


def _display_name(record: Dict[str, Any]) -> str:
    name = record.get(NAME_FIELD)
    if not isinstance(name, str):
        return ""
    return name.strip()


def rejection_reason(record: Any, bbox: BoundingBox = CALIFORNIA_BBOX) -> Optional[str]:
    if not isinstance(record, dict):
        return "not_an_object"
    if not _display_name(record):
        return "missing_name"
    lat = to_float(record.get(LAT_FIELD))
    lon = to_float(record.get(LON_FIELD))
    if lat is None:
        return "missing_latitude"
    if lon is None:
        return "missing_longitude"
    if not in_bounds(lat, lon, bbox):
        return "outside_california"
    return None


def transform_record(
    record: Dict[str, Any],
    now: Optional[str] = None,
    region_table: RegionTable = config.REGION_TABLE,
) -> Dict[str, Any]:
    """Build an api-only Point feature. Caller must have checked rejection_reason()."""
    name = _display_name(record)
    lat = to_float(record.get(LAT_FIELD))
    lon = to_float(record.get(LON_FIELD))
    county_raw = record.get(COUNTY_FIELD)
    county = county_raw.strip() if isinstance(county_raw, str) and county_raw.strip() else config.UNKNOWN_COUNTY

    properties: Dict[str, Any] = {
        "id": generate_slug(name),
        "name": name,
        "county": county,
        "region": determine_region(county, region_table),
        "coordinates": {"latitude": lat, "longitude": lon},
        "dataStatus": "api-only",
        "lastUpdated": now or utc_now_iso(),
    }
    source_id = record.get(SOURCE_ID_FIELD)
    if source_id is not None and str(source_id).strip():
        properties["apiSourceId"] = str(source_id)

    facilities = parse_facilities(record)
    if facilities:
        properties["facilities"] = facilities

    accessibility = parse_accessibility(record)
    if accessibility is not None:
        properties["accessibility"] = accessibility

    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": properties,
    }


def transform_records(
    records: Iterable[Any],
    bbox: BoundingBox = CALIFORNIA_BBOX,
    region_table: RegionTable = config.REGION_TABLE,
    now: Optional[str] = None,
) -> TransformResult:
    stamp = now or utc_now_iso()
    result = TransformResult(features=[])
    for index, record in enumerate(records):
        reason = rejection_reason(record, bbox)
        if reason:
            label = _display_name(record) if isinstance(record, dict) else ""
            logger.warning("Skipping record %s (%s): %s", index, label or "unnamed", reason)
            result.rejections.append({"index": index, "name": label or None, "reason": reason})
            continue
        result.features.append(transform_record(record, now=stamp, region_table=region_table))
    return result


def county_counts(features: Iterable[Dict[str, Any]]) -> List[Tuple[str, int]]:
    counts = Counter((f.get("properties") or {}).get("county") for f in features)
    return sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
