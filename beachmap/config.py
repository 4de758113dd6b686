"""Project configuration.

Loads pipeline overrides from pipeline_config.json when available, falling back
to the defaults below. Lookup tables are frozen dataclasses so callers (and
tests) can pass alternates instead of patching module state.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- Source feed ---

API_BASE_URL = os.environ.get("BEACHMAP_API_BASE_URL", "https://api.coastal.ca.gov")
ACCESS_LOCATIONS_PATH = "/access/v1/locations"

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 30
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE_MS = 1000
HTTP_BACKOFF_MAX_MS = 10000

# --- Artifacts ---

RAW_LOCATIONS_PATH = "raw-data/access-locations.json"
API_BEACHES_PATH = "transformed-data/api-beaches.geojson"
POLYGONS_PATH = "transformed-data/beaches-with-polygons.geojson"
TOP50_PATH = "research/top50beaches.json"
RESEARCHED_PATH = "research/researched-beaches.json"
PUBLISHED_PATH = "public/beaches.geojson"

# --- Data model ---

UNKNOWN_COUNTY = "Unknown"
VALID_REGIONS = ("north", "central", "south")
DATA_STATUSES = ("api-only", "partial", "complete")
MANAGEMENT_TYPES = ("state", "county", "city", "special-district", "federal")
REQUIRED_MANAGEMENT_FIELDS = ("managementType", "accountableEntity", "managingEntity")

# Viewer palette, keyed by managementType.
MANAGEMENT_COLORS: Dict[str, str] = {
    "state": "#2E7D32",
    "county": "#1976D2",
    "city": "#F57C00",
    "federal": "#7B1FA2",
    "special-district": "#FBC02D",
}

# --- Geometry ---

DEFAULT_RADIUS_M = 100.0
PRIORITY_RADIUS_M = 150.0
SIMPLIFY_TOLERANCE_DEG = 0.00005
BUFFER_QUAD_SEGS = 16
EARTH_RADIUS_M = 6371008.8

# --- Ranking ---

TOP_N_PRIORITY = 50
WARNING_SAMPLE_SIZE = 10


@dataclass(frozen=True)
class BoundingBox:
    lat_min: float = 32.0
    lat_max: float = 42.0
    lon_min: float = -125.0
    lon_max: float = -114.0

    def contains(self, lat: float, lon: float) -> bool:
        return self.lat_min <= lat <= self.lat_max and self.lon_min <= lon <= self.lon_max


CALIFORNIA_BBOX = BoundingBox()


@dataclass(frozen=True)
class RegionTable:
    """County substrings per region; anything unmatched falls into `default`."""

    north: Tuple[str, ...] = (
        "del norte",
        "humboldt",
        "mendocino",
        "sonoma",
        "marin",
        "san francisco",
    )
    central: Tuple[str, ...] = (
        "san mateo",
        "santa cruz",
        "monterey",
        "san luis obispo",
    )
    default: str = "south"


REGION_TABLE = RegionTable()

# Source flag -> facility tag. Order is the output order.
FACILITY_FLAGS: Tuple[Tuple[str, str], ...] = (
    ("PARKING", "parking"),
    ("RESTROOMS", "restrooms"),
    ("CAMPGROUND", "camping"),
    ("FISHING", "fishing"),
    ("BOATING", "boating"),
    ("VOLLEYBALL", "volleyball"),
    ("BIKE_PATH", "bike path"),
)

# Source flag -> accessibility key.
ACCESSIBILITY_FLAGS: Tuple[Tuple[str, str], ...] = (
    ("DOG_FRIENDLY", "dogFriendly"),
    ("DSABLDACSS", "wheelchairAccessible"),
    ("PARKING", "parkingAvailable"),
)

FLAG_TRUE = "Yes"


@dataclass(frozen=True)
class City:
    name: str
    lat: float
    lon: float


@dataclass(frozen=True)
class ScoringTables:
    cities: Tuple[City, ...] = (
        City("Los Angeles", 34.0522, -118.2437),
        City("San Diego", 32.7157, -117.1611),
        City("San Francisco", 37.7749, -122.4194),
        City("San Jose", 37.3382, -121.8863),
        City("Santa Barbara", 34.4208, -119.6982),
        City("Santa Cruz", 36.9741, -122.0308),
        City("Monterey", 36.6002, -121.8947),
    )
    landmark_keywords: Tuple[str, ...] = (
        "state park",
        "state beach",
        "pier",
        "boardwalk",
        "main beach",
        "downtown",
        "municipal",
        "city beach",
        "golden gate",
        "la jolla",
        "crystal cove",
        "malibu",
        "venice",
        "santa monica",
        "huntington",
    )
    # (upper bound km, points); strict less-than, first match wins.
    proximity_bands: Tuple[Tuple[float, int], ...] = ((10.0, 20), (25.0, 15), (50.0, 10), (100.0, 5))
    # (upper bound count, points); strict less-than, first match wins.
    county_bands: Tuple[Tuple[int, int], ...] = ((10, 10), (50, 5))
    points_per_facility: int = 5
    wheelchair_points: int = 10
    dog_points: int = 5
    parking_points: int = 5
    landmark_points: int = 15


SCORING_TABLES = ScoringTables()


@dataclass(frozen=True)
class ResearchTables:
    """Name keywords used by the heuristic auto-research stage."""

    state_keywords: Tuple[str, ...] = ("state beach", "state park")
    federal_keywords: Tuple[str, ...] = ("national", "presidio", "golden gate", "angel island")
    city_keywords: Tuple[str, ...] = (
        "municipal",
        "city beach",
        "wharf",
        "pier",
        "embarcadero",
        "main beach",
    )
    county_cities: Dict[str, str] = field(
        default_factory=lambda: {
            "San Francisco": "San Francisco",
            "Santa Cruz": "Santa Cruz",
            "Monterey": "Monterey",
            "San Diego": "San Diego",
            "Los Angeles": "Los Angeles",
            "Orange": "Newport Beach",
            "Santa Barbara": "Santa Barbara",
            "Ventura": "Ventura",
            "San Mateo": "Pacifica",
            "Marin": "Sausalito",
            "Sonoma": "Bodega Bay",
            "Mendocino": "Mendocino",
            "Humboldt": "Eureka",
        }
    )
    note: str = (
        "Auto-generated management data based on naming heuristics. "
        "Manual verification recommended."
    )


RESEARCH_TABLES = ResearchTables()


def api_locations_url(base_url: Optional[str] = None) -> str:
    base = (base_url or API_BASE_URL).rstrip("/")
    return f"{base}{ACCESS_LOCATIONS_PATH}"


def load_pipeline_config(path: Optional[str] = None) -> bool:
    """Load pipeline overrides from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "pipeline_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = json.load(f)

    globals_ref = globals()

    if data.get("api_base_url"):
        globals_ref["API_BASE_URL"] = str(data["api_base_url"])

    http = data.get("http", {})
    if "timeout_seconds" in http:
        globals_ref["HTTP_TIMEOUT_SECONDS"] = float(http["timeout_seconds"])
    if "retry_max" in http:
        globals_ref["HTTP_RETRY_MAX"] = int(http["retry_max"])
    if "backoff_base_ms" in http:
        globals_ref["HTTP_BACKOFF_BASE_MS"] = int(http["backoff_base_ms"])
    if "backoff_max_ms" in http:
        globals_ref["HTTP_BACKOFF_MAX_MS"] = int(http["backoff_max_ms"])

    geometry = data.get("geometry", {})
    if "default_radius_m" in geometry:
        globals_ref["DEFAULT_RADIUS_M"] = float(geometry["default_radius_m"])
    if "priority_radius_m" in geometry:
        globals_ref["PRIORITY_RADIUS_M"] = float(geometry["priority_radius_m"])
    if "simplify_tolerance_deg" in geometry:
        globals_ref["SIMPLIFY_TOLERANCE_DEG"] = float(geometry["simplify_tolerance_deg"])

    if "top_n" in data:
        globals_ref["TOP_N_PRIORITY"] = int(data["top_n"])

    keywords = data.get("landmark_keywords")
    if keywords:
        globals_ref["SCORING_TABLES"] = replace(
            SCORING_TABLES, landmark_keywords=tuple(k.lower() for k in keywords)
        )

    paths = data.get("paths", {})
    for key, name in (
        ("raw", "RAW_LOCATIONS_PATH"),
        ("api_beaches", "API_BEACHES_PATH"),
        ("polygons", "POLYGONS_PATH"),
        ("top50", "TOP50_PATH"),
        ("researched", "RESEARCHED_PATH"),
        ("published", "PUBLISHED_PATH"),
    ):
        if paths.get(key):
            globals_ref[name] = str(paths[key])

    return True
