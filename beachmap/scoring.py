"""Research-priority scoring: five additive sub-scores and top-N selection."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from . import config
from .config import ScoringTables
from .geo import nearest_city_km
from .geometry import is_priority
from .reporting import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class ScoringResult:
    features: List[Dict[str, Any]]
    ranked: List[Dict[str, Any]]
    top: List[Dict[str, Any]]
    # ids whose priority tier (in/out of the top set) changed during this run
    tier_changed: Set[str]


def banded_points(value: float, bands: Iterable[Tuple[float, int]]) -> int:
    for upper, points in bands:
        if value < upper:
            return points
    return 0


def _tables(tables: Optional[ScoringTables]) -> ScoringTables:
    return config.SCORING_TABLES if tables is None else tables


def score_population_proximity(lat: float, lon: float, tables: Optional[ScoringTables] = None) -> int:
    tables = _tables(tables)
    distance, _ = nearest_city_km(lat, lon, tables.cities)
    if distance is None:
        return 0
    return banded_points(distance, tables.proximity_bands)


def score_facilities(properties: Mapping[str, Any], tables: Optional[ScoringTables] = None) -> int:
    tables = _tables(tables)
    return len(properties.get("facilities") or []) * tables.points_per_facility


def score_accessibility(properties: Mapping[str, Any], tables: Optional[ScoringTables] = None) -> int:
    tables = _tables(tables)
    access = properties.get("accessibility") or {}
    score = 0
    if access.get("wheelchairAccessible"):
        score += tables.wheelchair_points
    if access.get("dogFriendly"):
        score += tables.dog_points
    if access.get("parkingAvailable"):
        score += tables.parking_points
    return score


def score_landmarks(name: str, tables: Optional[ScoringTables] = None) -> int:
    tables = _tables(tables)
    name_lower = (name or "").lower()
    if any(keyword in name_lower for keyword in tables.landmark_keywords):
        return tables.landmark_points
    return 0


def score_county_representation(county_count: int, tables: Optional[ScoringTables] = None) -> int:
    tables = _tables(tables)
    return banded_points(county_count, tables.county_bands)


def count_by_county(features: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    return dict(Counter((f.get("properties") or {}).get("county") for f in features))


def score_beach(
    properties: Mapping[str, Any],
    county_counts: Mapping[str, int],
    tables: Optional[ScoringTables] = None,
) -> Dict[str, Any]:
    tables = _tables(tables)
    coords = properties.get("coordinates") or {}
    lat = coords.get("latitude")
    lon = coords.get("longitude")
    details = {
        "population": score_population_proximity(lat, lon, tables) if lat is not None and lon is not None else 0,
        "facilities": score_facilities(properties, tables),
        "accessibility": score_accessibility(properties, tables),
        "landmarks": score_landmarks(properties.get("name") or "", tables),
        "countyRepresentation": score_county_representation(
            county_counts.get(properties.get("county"), 0), tables
        ),
    }
    return {
        "id": properties.get("id"),
        "name": properties.get("name"),
        "county": properties.get("county"),
        "region": properties.get("region"),
        "score": sum(details.values()),
        "scoringDetails": details,
        "coordinates": coords,
    }


def score_sort_key(row: Mapping[str, Any]) -> Tuple[int, str, str, str]:
    name = row.get("name") or ""
    return (-int(row.get("score") or 0), name.casefold(), name, row.get("id") or "")


def rank_beaches(
    features: Iterable[Mapping[str, Any]],
    tables: Optional[ScoringTables] = None,
) -> List[Dict[str, Any]]:
    tables = _tables(tables)
    features = list(features)
    county_counts = count_by_county(features)
    scores = [score_beach(f.get("properties") or {}, county_counts, tables) for f in features]
    return sorted(scores, key=score_sort_key)


def apply_priorities(
    features: Iterable[Dict[str, Any]],
    top: List[Mapping[str, Any]],
    now: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], Set[str]]:
    """Return new features with researchPriority set from `top` (1-based).

    Earlier priorities are cleared so reruns converge on the same assignment,
    and beaches that leave the set without any management data revert to
    api-only.
    """
    stamp = now or utc_now_iso()
    rank_by_id = {row["id"]: idx + 1 for idx, row in enumerate(top)}
    out: List[Dict[str, Any]] = []
    tier_changed: Set[str] = set()
    for feature in features:
        props = dict(feature.get("properties") or {})
        beach_id = props.get("id")
        was_priority = is_priority(props)
        rank = rank_by_id.get(beach_id)
        if rank is not None:
            props["researchPriority"] = rank
            if props.get("dataStatus") != "complete":
                props["dataStatus"] = "partial"
        else:
            props.pop("researchPriority", None)
            if props.get("dataStatus") == "partial" and not any(
                props.get(k) for k in config.REQUIRED_MANAGEMENT_FIELDS
            ):
                props["dataStatus"] = "api-only"
        if was_priority != (rank is not None):
            tier_changed.add(beach_id)
        if props != feature.get("properties"):
            props["lastUpdated"] = stamp
        out.append({**feature, "properties": props})
    return out, tier_changed


def select_priorities(
    features: Iterable[Dict[str, Any]],
    top_n: Optional[int] = None,
    tables: Optional[ScoringTables] = None,
    now: Optional[str] = None,
) -> ScoringResult:
    if top_n is None:
        top_n = config.TOP_N_PRIORITY
    features = list(features)
    ranked = rank_beaches(features, tables)
    top = ranked[: max(0, top_n)]
    updated, tier_changed = apply_priorities(features, top, now=now)
    logger.info("Scored %s beaches; %s selected for research", len(ranked), len(top))
    return ScoringResult(features=updated, ranked=ranked, top=top, tier_changed=tier_changed)


def distribution(rows: Iterable[Mapping[str, Any]], key: str) -> List[Tuple[str, int]]:
    counts = Counter(row.get(key) for row in rows)
    return sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
