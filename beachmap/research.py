"""Heuristic management inference for the priority set.

Produces override records in the same shape a researcher would write by hand,
so the merge stage treats them identically. Existing hand-written records for
the same id always win.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import config
from .config import ResearchTables

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


def _domain_token(text: str) -> str:
    return _WS.sub("", text.lower())


def city_for_county(county: str, tables: ResearchTables = config.RESEARCH_TABLES) -> str:
    return tables.county_cities.get(county, county)


def infer_management(
    name: str,
    county: str,
    tables: ResearchTables = config.RESEARCH_TABLES,
) -> Dict[str, Any]:
    name_lower = (name or "").lower()

    if any(k in name_lower for k in tables.state_keywords):
        return {
            "managementType": "state",
            "accountableEntity": "State of California",
            "managingEntity": "California State Parks",
            "lifeguardService": "California State Parks Lifeguards",
            "managerContact": {
                "department": "State Parks District Office",
                "website": "https://www.parks.ca.gov",
            },
        }

    if any(k in name_lower for k in tables.federal_keywords):
        return {
            "managementType": "federal",
            "accountableEntity": "U.S. Federal Government",
            "managingEntity": "National Park Service",
            "lifeguardService": "National Park Service Rangers",
            "managerContact": {
                "department": "Golden Gate National Recreation Area",
                "phone": "(415) 561-4700",
                "website": "https://www.nps.gov/goga",
            },
        }

    if any(k in name_lower for k in tables.city_keywords):
        city = city_for_county(county, tables)
        return {
            "managementType": "city",
            "accountableEntity": f"City of {city}",
            "managingEntity": f"{city} Parks & Recreation",
            "lifeguardService": f"{city} Lifeguard Services",
            "managerContact": {
                "department": "Parks and Recreation Department",
                "website": f"https://www.{_domain_token(city)}.gov",
            },
        }

    return {
        "managementType": "county",
        "accountableEntity": f"County of {county}",
        "managingEntity": f"{county} County Parks and Recreation",
        "lifeguardService": f"{county} County Lifeguards",
        "managerContact": {
            "department": "Department of Parks and Recreation",
            "website": f"https://www.{_domain_token(county)}county.gov",
        },
    }


def build_research_records(
    top: Iterable[Mapping[str, Any]],
    existing: Optional[Iterable[Mapping[str, Any]]] = None,
    tables: ResearchTables = config.RESEARCH_TABLES,
) -> List[Dict[str, Any]]:
    """Infer records for `top` (score rows), keeping any existing records untouched.

    Existing records come first, in their original order; inferred ones follow
    in priority order.
    """
    records: List[Dict[str, Any]] = [dict(r) for r in (existing or [])]
    known = {r.get("id") for r in records}
    inferred = 0
    for row in top:
        beach_id = row.get("id")
        if not beach_id or beach_id in known:
            continue
        record = {"id": beach_id}
        record.update(infer_management(row.get("name") or "", row.get("county") or config.UNKNOWN_COUNTY, tables))
        record["notes"] = tables.note
        logger.debug("%s -> %s", row.get("name"), record["managementType"])
        records.append(record)
        known.add(beach_id)
        inferred += 1
    logger.info("Inferred management for %s beaches (%s kept from existing research)", inferred, len(records) - inferred)
    return records
