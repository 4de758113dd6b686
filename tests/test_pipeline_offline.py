import json

import pytest

from beachmap import config
from beachmap import pipeline as pipeline_module
from beachmap.http import HttpClient
from beachmap.pipeline import (
    fetch_stage,
    merge_stage,
    polygons_stage,
    render_merge_summary,
    render_scoring_summary,
    render_transform_summary,
    research_stage,
    run,
    run_all,
    score_stage,
    transform_stage,
    validate_stage,
)
from beachmap.reporting import PipelineInputError, read_collection, read_json, write_json

from helpers import NOW

BAKER = {
    "id": "baker-beach",
    "managementType": "federal",
    "accountableEntity": "U.S. Federal Government",
    "managingEntity": "National Park Service",
    "managerContact": {"phone": "(415) 561-4700", "website": "https://www.nps.gov/prsf"},
}


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload
        self.status_code = 200
        self.headers = {}

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        return FakeResponse(self.payload)


def _width(feature):
    xs = [x for x, _ in feature["geometry"]["coordinates"][0]]
    return max(xs) - min(xs)


def _by_id(features):
    return {f["properties"]["id"]: f for f in features}


def test_run_end_to_end(raw_locations):
    result = run(raw_locations, overrides=[BAKER, {"id": "ghost-beach"}], top_n=2, now=NOW)

    ids = [f["properties"]["id"] for f in result.features]
    assert ids == ["santa-monica-pier", "asilomar-state-beach", "baker-beach", "crescent-beach"]
    assert result.report.ok
    assert result.summary["rejected"] == {"outside_california": 1, "missing_name": 1, "missing_latitude": 1}
    assert result.summary["orphan_overrides"] == ["ghost-beach"]
    assert result.summary["complete"] == 1
    assert result.summary["partial"] == 2
    assert result.summary["api_only"] == 1

    beaches = _by_id(result.features)
    assert beaches["santa-monica-pier"]["properties"]["researchPriority"] == 1
    assert beaches["baker-beach"]["properties"]["dataStatus"] == "complete"
    assert all(f["geometry"]["type"] == "Polygon" for f in result.features)
    # priority radius applies even though polygons are built in the same pass
    assert _width(beaches["asilomar-state-beach"]) > _width(beaches["crescent-beach"])


def test_run_with_auto_research(raw_locations):
    result = run(raw_locations, top_n=2, auto_research=True, now=NOW)

    beaches = _by_id(result.features)
    assert beaches["asilomar-state-beach"]["properties"]["managementType"] == "state"
    assert beaches["santa-monica-pier"]["properties"]["managementType"] == "city"
    assert result.report.status_counts["complete"] == 2
    assert result.report.ok


def test_published_artifact_revalidates(tmp_path, raw_locations):
    out = tmp_path / "public" / "beaches.geojson"
    first = run(raw_locations, overrides=[BAKER], top_n=2, output_path=str(out), now=NOW)

    again = validate_stage(str(out))

    assert first.report.ok
    assert again.ok
    assert again.error_count == 0
    assert again.warning_count == first.report.warning_count


def test_file_stages(tmp_path, raw_locations):
    raw = tmp_path / "raw.json"
    api = tmp_path / "api.geojson"
    polys = tmp_path / "polys.geojson"
    top = tmp_path / "top.json"
    researched = tmp_path / "researched.json"
    published = tmp_path / "published.geojson"
    write_json(str(raw), raw_locations)

    transformed = transform_stage(str(raw), str(api))
    assert len(read_collection(str(api))["features"]) == 4
    assert "Rejected records: 3" in render_transform_summary(transformed)

    before = _by_id(polygons_stage(str(api), str(polys)))
    scored = score_stage(str(polys), top_path=str(top), top_n=2)
    after = _by_id(read_collection(str(polys))["features"])

    assert scored.tier_changed == {"santa-monica-pier", "asilomar-state-beach"}
    assert [r["id"] for r in read_json(str(top))] == ["santa-monica-pier", "asilomar-state-beach"]
    assert _width(after["santa-monica-pier"]) > _width(before["santa-monica-pier"])
    assert after["crescent-beach"]["geometry"] == before["crescent-beach"]["geometry"]
    assert render_scoring_summary(scored)[0] == "Top 10 beaches:"

    records = research_stage(str(top), str(researched))
    assert [r["id"] for r in records] == ["santa-monica-pier", "asilomar-state-beach"]

    merged = merge_stage(str(polys), str(researched), str(published))
    assert merged.applied == ["santa-monica-pier", "asilomar-state-beach"]
    assert "  Fully researched: 2" in render_merge_summary(merged)

    assert validate_stage(str(published)).ok


def test_score_stage_can_keep_geometry(tmp_path, raw_locations):
    raw = tmp_path / "raw.json"
    api = tmp_path / "api.geojson"
    polys = tmp_path / "polys.geojson"
    write_json(str(raw), raw_locations)
    transform_stage(str(raw), str(api))
    before = _by_id(polygons_stage(str(api), str(polys)))

    score_stage(str(polys), top_path=str(tmp_path / "top.json"), top_n=2, regenerate_geometry=False)

    after = _by_id(read_collection(str(polys))["features"])
    assert after["santa-monica-pier"]["geometry"] == before["santa-monica-pier"]["geometry"]
    assert after["santa-monica-pier"]["properties"]["researchPriority"] == 1


def test_merge_stage_without_overrides(tmp_path, raw_locations):
    polys = tmp_path / "polys.geojson"
    published = tmp_path / "published.geojson"
    raw = tmp_path / "raw.json"
    api = tmp_path / "api.geojson"
    write_json(str(raw), raw_locations)
    transform_stage(str(raw), str(api))
    polygons_stage(str(api), str(polys))

    result = merge_stage(str(polys), str(tmp_path / "missing.json"), str(published))

    assert result.applied == []
    assert len(read_collection(str(published))["features"]) == 4


def test_fetch_stage_writes_raw_snapshot(tmp_path, raw_locations):
    client = HttpClient(timeout=1, retry_max=1)
    client.session = FakeSession(raw_locations)
    out = tmp_path / "raw-data" / "access-locations.json"

    records = fetch_stage(out_path=str(out), url="https://example.test/access/v1/locations", client=client)

    assert len(records) == len(raw_locations)
    assert json.loads(out.read_text(encoding="utf-8")) == raw_locations
    assert client.session.calls == ["https://example.test/access/v1/locations"]


def test_transform_stage_rejects_non_array(tmp_path):
    raw = tmp_path / "raw.json"
    out = tmp_path / "api.geojson"
    write_json(str(raw), {"locations": []})
    with pytest.raises(PipelineInputError):
        transform_stage(str(raw), str(out))
    assert not out.exists()


def test_score_stage_writes_nothing_when_serialization_fails(tmp_path, raw_locations, monkeypatch):
    raw = tmp_path / "raw.json"
    api = tmp_path / "api.geojson"
    polys = tmp_path / "polys.geojson"
    top = tmp_path / "top.json"
    write_json(str(raw), raw_locations)
    transform_stage(str(raw), str(api))
    polygons_stage(str(api), str(polys))
    before = polys.read_bytes()

    real = pipeline_module.to_json_text

    def fail_on_top_rows(payload):
        if isinstance(payload, list):
            raise TypeError("cannot serialize score rows")
        return real(payload)

    monkeypatch.setattr(pipeline_module, "to_json_text", fail_on_top_rows)

    with pytest.raises(TypeError):
        score_stage(str(polys), top_path=str(top), top_n=2)

    assert polys.read_bytes() == before
    assert not top.exists()


def test_stage_paths_follow_config_at_call_time(tmp_path, raw_locations, monkeypatch):
    monkeypatch.setattr(config, "RAW_LOCATIONS_PATH", str(tmp_path / "raw.json"))
    monkeypatch.setattr(config, "API_BEACHES_PATH", str(tmp_path / "api.geojson"))
    monkeypatch.setattr(config, "POLYGONS_PATH", str(tmp_path / "polys.geojson"))
    monkeypatch.setattr(config, "TOP50_PATH", str(tmp_path / "top.json"))
    monkeypatch.setattr(config, "RESEARCHED_PATH", str(tmp_path / "researched.json"))
    monkeypatch.setattr(config, "PUBLISHED_PATH", str(tmp_path / "published.geojson"))
    monkeypatch.setattr(config, "TOP_N_PRIORITY", 1)

    client = HttpClient(timeout=1, retry_max=1)
    client.session = FakeSession(raw_locations)
    report = run_all(url="https://example.test/access/v1/locations", auto_research=True, client=client)

    assert report.ok
    assert len(read_json(str(tmp_path / "top.json"))) == 1
    assert (tmp_path / "published.geojson").exists()
    assert report.status_counts["complete"] == 1
