import copy

import pytest

from beachmap.geometry import synthesize_polygons
from beachmap.pipeline import run
from beachmap.validation import render_validation_report, validate_beach, validate_collection

from helpers import make_feature


def _polygon(beach_id="test-beach", **props):
    return synthesize_polygons([make_feature(beach_id, **props)])[0]


def test_clean_beach_has_no_errors():
    result = validate_beach(_polygon())
    assert result.errors == []
    assert result.warnings == []


def test_out_of_range_latitude_mentions_value():
    feature = _polygon()
    feature["properties"]["coordinates"] = {"latitude": 50, "longitude": -120}
    errors = validate_beach(feature).errors
    assert any("Latitude" in e and "50" in e for e in errors)


def test_missing_fields_and_point_geometry():
    feature = make_feature("test-beach")
    del feature["properties"]["county"]
    errors = validate_beach(feature).errors
    assert "Missing county" in errors
    assert "Invalid or missing polygon geometry" in errors


def test_open_ring_is_an_error():
    feature = _polygon()
    ring = feature["geometry"]["coordinates"][0]
    feature["geometry"]["coordinates"] = [ring[:-1]]
    assert "Polygon ring is not closed" in validate_beach(feature).errors


def test_region_must_match_county():
    feature = _polygon(county="Marin", region="south")
    errors = validate_beach(feature).errors
    assert any("inconsistent with county Marin" in e for e in errors)


def test_complete_without_management_fields_is_an_error():
    feature = _polygon(dataStatus="complete", managementType="state")
    errors = validate_beach(feature).errors
    assert "Beach marked complete but missing accountableEntity" in errors
    assert "Beach marked complete but missing managingEntity" in errors


def test_priority_api_only_warns():
    result = validate_beach(_polygon(researchPriority=1))
    assert result.errors == []
    assert "Priority beach still marked as api-only (should be researched)" in result.warnings
    assert "Priority beach missing contact phone" in result.warnings


def test_duplicate_ids_are_warnings():
    feature = _polygon()
    report = validate_collection([feature, copy.deepcopy(feature)])
    assert report.ok
    assert report.exit_code == 0
    assert all(r.errors == [] for r in report.results)
    assert all("Duplicate id test-beach (2 beaches)" in r.warnings for r in report.results)


def test_colliding_slugs_still_publish():
    records = [
        {"NameMobileWeb": "Beach Access", "COUNTY": "Orange", "LATITUDE": 33.5, "LONGITUDE": -117.8},
        {"NameMobileWeb": "Beach  Access!", "COUNTY": "Orange", "LATITUDE": 33.6, "LONGITUDE": -117.9},
    ]
    result = run(records, top_n=0)
    assert result.report.ok
    assert [f["properties"]["id"] for f in result.features] == ["beach-access", "beach-access"]


@pytest.mark.parametrize(
    "coordinates",
    [{"ring": []}, [], ["not-a-ring"], [[1, 2, 3, 4]], None],
)
def test_malformed_polygon_is_reported_not_raised(coordinates):
    feature = _polygon()
    feature["geometry"]["coordinates"] = coordinates
    report = validate_collection([feature])
    assert not report.ok
    assert report.with_errors[0].errors


def test_non_object_properties_are_reported():
    report = validate_collection([{"type": "Feature", "geometry": None, "properties": "nope"}, "nope"])
    assert report.error_count > 0
    assert "Missing ID" in report.results[1].errors


def test_report_samples_warnings():
    features = [_polygon(f"beach-{i}", researchPriority=i + 1) for i in range(12)]
    report = validate_collection(features)
    lines = render_validation_report(report, warning_sample=10)

    assert report.ok
    assert report.status_counts == {"api-only": 12, "partial": 0, "complete": 0}
    assert "Found 12 beaches with warnings:" in lines
    assert "... and 2 more beaches with warnings" in lines
    assert lines[-1] == "Validation passed"


def test_report_lists_errors():
    feature = _polygon()
    feature["properties"]["dataStatus"] = "done"
    lines = render_validation_report(validate_collection([feature]))
    assert "  ERROR: Invalid dataStatus: done" in lines
    assert lines[-1] == "Validation failed"
