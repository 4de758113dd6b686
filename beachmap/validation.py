"""Read-only consistency checks for the published beach collection."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from . import config
from .config import CALIFORNIA_BBOX, BoundingBox, RegionTable
from .geo import to_float
from .geometry import is_priority
from .transform import determine_region

REQUIRED_FIELDS = (
    ("id", "ID"),
    ("name", "name"),
    ("county", "county"),
    ("region", "region"),
    ("dataStatus", "dataStatus"),
    ("lastUpdated", "lastUpdated"),
)


@dataclass
class ValidationResult:
    beach_id: Any
    beach_name: Any
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    results: List[ValidationResult]
    status_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def with_errors(self) -> List[ValidationResult]:
        return [r for r in self.results if r.errors]

    @property
    def with_warnings(self) -> List[ValidationResult]:
        return [r for r in self.results if r.warnings]

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.results)

    @property
    def warning_count(self) -> int:
        return sum(len(r.warnings) for r in self.results)

    @property
    def ok(self) -> bool:
        return not self.with_errors

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


def _missing(value: Any) -> bool:
    return value is None or value == ""


def _properties(feature: Any) -> Dict[str, Any]:
    props = feature.get("properties") if isinstance(feature, dict) else None
    return props if isinstance(props, dict) else {}


def _check_coordinates(props: Mapping[str, Any], bbox: BoundingBox, errors: List[str]) -> None:
    coords = props.get("coordinates")
    if not isinstance(coords, dict):
        errors.append("Missing coordinates")
        return
    raw_lat = coords.get("latitude")
    raw_lon = coords.get("longitude")
    lat = to_float(raw_lat)
    lon = to_float(raw_lon)
    if lat is None or lon is None:
        errors.append(f"Coordinates not numeric: latitude={raw_lat!r}, longitude={raw_lon!r}")
        return
    if lat < bbox.lat_min or lat > bbox.lat_max:
        errors.append(
            f"Latitude {raw_lat} out of California range ({bbox.lat_min:g}-{bbox.lat_max:g}°N)"
        )
    if lon < bbox.lon_min or lon > bbox.lon_max:
        errors.append(
            f"Longitude {raw_lon} out of California range ({bbox.lon_min:g} to {bbox.lon_max:g}°W)"
        )


def _check_geometry(feature: Mapping[str, Any], errors: List[str]) -> None:
    geometry = feature.get("geometry") if isinstance(feature, dict) else None
    if not isinstance(geometry, dict) or geometry.get("type") != "Polygon":
        errors.append("Invalid or missing polygon geometry")
        return
    rings = geometry.get("coordinates")
    if not isinstance(rings, list) or not rings or not isinstance(rings[0], list):
        errors.append("Invalid or missing polygon geometry")
        return
    ring = rings[0]
    if len(ring) < 4:
        errors.append(f"Polygon ring has {len(ring)} positions (need at least 4)")
    elif not all(isinstance(p, list) for p in ring):
        errors.append("Polygon ring has malformed positions")
    elif ring[0] != ring[-1]:
        errors.append("Polygon ring is not closed")


def validate_beach(
    feature: Mapping[str, Any],
    bbox: BoundingBox = CALIFORNIA_BBOX,
    region_table: RegionTable = config.REGION_TABLE,
) -> ValidationResult:
    props = _properties(feature)
    errors: List[str] = []
    warnings: List[str] = []

    for key, label in REQUIRED_FIELDS:
        if _missing(props.get(key)):
            errors.append(f"Missing {label}")

    _check_coordinates(props, bbox, errors)
    _check_geometry(feature, errors)

    region = props.get("region")
    if not _missing(region):
        if region not in config.VALID_REGIONS:
            errors.append(f"Invalid region: {region}")
        elif not _missing(props.get("county")):
            expected = determine_region(str(props["county"]), region_table)
            if region != expected:
                errors.append(
                    f"Region {region} inconsistent with county {props['county']} (expected {expected})"
                )

    status = props.get("dataStatus")
    if not _missing(status) and status not in config.DATA_STATUSES:
        errors.append(f"Invalid dataStatus: {status}")

    management_type = props.get("managementType")
    if not _missing(management_type) and management_type not in config.MANAGEMENT_TYPES:
        errors.append(f"Invalid managementType: {management_type}")

    if is_priority(props):
        contact = props.get("managerContact")
        if not isinstance(contact, dict):
            contact = {}
        if status == "api-only":
            warnings.append("Priority beach still marked as api-only (should be researched)")
        for key in config.REQUIRED_MANAGEMENT_FIELDS:
            if _missing(props.get(key)):
                warnings.append(f"Priority beach missing {key}")
        if _missing(contact.get("phone")):
            warnings.append("Priority beach missing contact phone")
        if _missing(contact.get("website")):
            warnings.append("Priority beach missing contact website")

    if status == "complete":
        for key in config.REQUIRED_MANAGEMENT_FIELDS:
            if _missing(props.get(key)):
                errors.append(f"Beach marked complete but missing {key}")

    return ValidationResult(
        beach_id=props.get("id"),
        beach_name=props.get("name"),
        errors=errors,
        warnings=warnings,
    )


def validate_collection(
    features: Iterable[Mapping[str, Any]],
    bbox: BoundingBox = CALIFORNIA_BBOX,
    region_table: RegionTable = config.REGION_TABLE,
) -> ValidationReport:
    features = list(features)
    results = [validate_beach(f, bbox, region_table) for f in features]

    id_counts = Counter(r.beach_id for r in results if isinstance(r.beach_id, str) and r.beach_id)
    for result in results:
        if isinstance(result.beach_id, str) and id_counts.get(result.beach_id, 0) > 1:
            result.warnings.append(f"Duplicate id {result.beach_id} ({id_counts[result.beach_id]} beaches)")

    status_counts = Counter(str(_properties(f).get("dataStatus")) for f in features)
    return ValidationReport(
        results=results,
        status_counts={s: status_counts.get(s, 0) for s in config.DATA_STATUSES},
    )


def render_validation_report(
    report: ValidationReport,
    warning_sample: int = config.WARNING_SAMPLE_SIZE,
) -> List[str]:
    lines = ["VALIDATION RESULTS", "=================="]
    with_errors = report.with_errors
    with_warnings = report.with_warnings

    if not with_errors:
        lines.append("No errors found")
    else:
        lines.append(f"Found {len(with_errors)} beaches with errors:")
        for result in with_errors:
            lines.append(f"{result.beach_name} ({result.beach_id}):")
            lines.extend(f"  ERROR: {e}" for e in result.errors)

    if not with_warnings:
        lines.append("No warnings")
    else:
        lines.append(f"Found {len(with_warnings)} beaches with warnings:")
        for result in with_warnings[:warning_sample]:
            lines.append(f"{result.beach_name} ({result.beach_id}):")
            lines.extend(f"  WARNING: {w}" for w in result.warnings)
        remaining = len(with_warnings) - warning_sample
        if remaining > 0:
            lines.append(f"... and {remaining} more beaches with warnings")

    lines.extend(
        [
            "",
            "SUMMARY",
            "=======",
            f"Total beaches: {len(report.results)}",
            f"Beaches with errors: {len(with_errors)}",
            f"Beaches with warnings: {len(with_warnings)}",
            f"Valid beaches: {len(report.results) - len(with_errors)}",
            "",
            "Data completeness:",
            f"  Complete: {report.status_counts.get('complete', 0)}",
            f"  Partial: {report.status_counts.get('partial', 0)}",
            f"  API only: {report.status_counts.get('api-only', 0)}",
            "",
            "Validation failed" if with_errors else "Validation passed",
        ]
    )
    return lines
