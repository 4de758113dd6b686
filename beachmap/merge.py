"""Merge manual research overrides into the api-sourced beaches."""
from __future__ import annotations

import logging
import math
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from . import config
from .geometry import is_priority
from .reporting import PipelineInputError, read_json, utc_now_iso

logger = logging.getLogger(__name__)

# Fields an override can never set; they are derived by the merge itself.
DERIVED_FIELDS = ("id", "dataStatus", "lastUpdated")


@dataclass
class MergeResult:
    features: List[Dict[str, Any]]
    applied: List[str] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)


def load_overrides(path: str) -> List[Dict[str, Any]]:
    """Read the override array. A missing file means no overrides."""
    if not os.path.exists(path):
        logger.info("No manually researched data at %s; continuing without overrides", path)
        return []
    data = read_json(path)
    if not isinstance(data, list):
        raise PipelineInputError(f"{path} must contain a JSON array of override records")
    for idx, record in enumerate(data):
        if not isinstance(record, dict) or not isinstance(record.get("id"), str) or not record["id"]:
            raise PipelineInputError(f"{path}: override #{idx} has no string id")
    logger.info("Loaded %s manually researched beaches", len(data))
    return data


def index_overrides(overrides: Iterable[Mapping[str, Any]]) -> Tuple[Dict[str, Mapping[str, Any]], List[str]]:
    by_id: Dict[str, Mapping[str, Any]] = {}
    duplicates: List[str] = []
    for record in overrides:
        beach_id = record["id"]
        if beach_id in by_id:
            duplicates.append(beach_id)
        by_id[beach_id] = record
    return by_id, duplicates


def completeness_status(properties: Mapping[str, Any]) -> str:
    if all(properties.get(k) for k in config.REQUIRED_MANAGEMENT_FIELDS):
        return "complete"
    return "partial"


def merge_properties(
    properties: Mapping[str, Any],
    override: Mapping[str, Any],
    now: Optional[str] = None,
) -> Dict[str, Any]:
    merged = dict(properties)
    for key, value in override.items():
        if key in DERIVED_FIELDS or value is None:
            continue
        merged[key] = value
    merged["dataStatus"] = completeness_status(merged)
    merged["lastUpdated"] = now or utc_now_iso()
    return merged


def priority_sort_key(feature: Mapping[str, Any]) -> Tuple[float, str, str, str]:
    props = feature.get("properties") or {}
    priority = props.get("researchPriority")
    rank = float(priority) if isinstance(priority, (int, float)) and not isinstance(priority, bool) else math.inf
    name = props.get("name") or ""
    return (rank, name.casefold(), name, props.get("id") or "")


def merge_overrides(
    features: Iterable[Dict[str, Any]],
    overrides: Iterable[Mapping[str, Any]],
    now: Optional[str] = None,
) -> MergeResult:
    stamp = now or utc_now_iso()
    by_id, duplicates = index_overrides(overrides)
    for beach_id in duplicates:
        logger.warning("Duplicate override for %s; the last record wins", beach_id)

    result = MergeResult(features=[], duplicates=duplicates)
    seen = set()
    for feature in features:
        props = feature.get("properties") or {}
        beach_id = props.get("id")
        seen.add(beach_id)
        override = by_id.get(beach_id)
        if override is None:
            result.features.append(feature)
            continue
        merged = merge_properties(props, override, now=stamp)
        if merged["dataStatus"] != "complete":
            logger.warning(
                "Override for %s lacks %s; left as partial",
                beach_id,
                ", ".join(k for k in config.REQUIRED_MANAGEMENT_FIELDS if not merged.get(k)),
            )
        result.features.append({**feature, "properties": merged})
        result.applied.append(beach_id)

    result.orphans = [beach_id for beach_id in by_id if beach_id not in seen]
    for beach_id in result.orphans:
        logger.warning("Override %s matches no api beach; dropped", beach_id)

    result.features.sort(key=priority_sort_key)
    return result


def merge_stats(features: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    props = [f.get("properties") or {} for f in features]
    status = Counter(p.get("dataStatus") for p in props)
    regions = Counter(p.get("region") for p in props)
    return {
        "total": len(props),
        "complete": status.get("complete", 0),
        "partial": status.get("partial", 0),
        "api_only": status.get("api-only", 0),
        "priority": sum(1 for p in props if is_priority(p)),
        "regions": {r: regions.get(r, 0) for r in config.VALID_REGIONS},
    }
