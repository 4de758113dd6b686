import json
from pathlib import Path

NOW = "2024-01-01T00:00:00+00:00"


def load_fixture(name):
    path = Path(__file__).parent / "fixtures" / name
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def make_feature(beach_id, name=None, county="Los Angeles", region="south", lat=34.0, lon=-118.5, **props):
    properties = {
        "id": beach_id,
        "name": name or beach_id.replace("-", " ").title(),
        "county": county,
        "region": region,
        "coordinates": {"latitude": lat, "longitude": lon},
        "dataStatus": "api-only",
        "lastUpdated": NOW,
    }
    properties.update(props)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": properties,
    }
