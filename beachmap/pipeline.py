"""Pipeline orchestration.

Each stage reads one artifact and writes another; an artifact is only written
after its stage has fully succeeded. `run` chains everything in memory and
scores before synthesizing geometry so polygon radii are never stale.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from . import config
from .geometry import average_vertex_count, refresh_polygons, synthesize_polygons
from .http import HttpClient, fetch_with_retry
from .merge import MergeResult, load_overrides, merge_overrides, merge_stats
from .reporting import (
    PipelineInputError,
    atomic_write_text,
    feature_collection,
    read_collection,
    read_json,
    to_json_text,
    write_collection,
    write_json,
)
from .research import build_research_records
from .scoring import ScoringResult, distribution, select_priorities
from .transform import TransformResult, county_counts, transform_records
from .validation import ValidationReport, validate_collection

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    features: List[Dict[str, Any]]
    report: ValidationReport
    summary: Dict[str, Any] = field(default_factory=dict)


def fetch_stage(
    out_path: Optional[str] = None,
    url: Optional[str] = None,
    client: Optional[HttpClient] = None,
) -> List[Any]:
    out_path = out_path or config.RAW_LOCATIONS_PATH
    url = url or config.api_locations_url()
    logger.info("Stage 1: fetch %s", url)
    records = fetch_with_retry(url, client=client)
    logger.info("Fetched %s locations", len(records))
    write_json(out_path, records)
    return records


def transform_stage(
    in_path: Optional[str] = None,
    out_path: Optional[str] = None,
) -> TransformResult:
    in_path = in_path or config.RAW_LOCATIONS_PATH
    out_path = out_path or config.API_BEACHES_PATH
    logger.info("Stage 2: transform")
    records = read_json(in_path)
    if not isinstance(records, list):
        raise PipelineInputError(f"{in_path} must contain a JSON array of locations")
    result = transform_records(records)
    logger.info(
        "Kept %s of %s locations (%s rejected)",
        len(result.features),
        len(records),
        len(result.rejections),
    )
    write_collection(out_path, result.as_collection())
    return result


def polygons_stage(
    in_path: Optional[str] = None,
    out_path: Optional[str] = None,
) -> List[Dict[str, Any]]:
    in_path = in_path or config.API_BEACHES_PATH
    out_path = out_path or config.POLYGONS_PATH
    logger.info("Stage 3: polygons")
    features = synthesize_polygons(read_collection(in_path)["features"])
    avg = average_vertex_count(features)
    logger.info("Generated %s polygons (avg %.1f points)", len(features), avg or 0.0)
    write_collection(out_path, feature_collection(features))
    return features


def score_stage(
    in_path: Optional[str] = None,
    out_path: Optional[str] = None,
    top_path: Optional[str] = None,
    top_n: Optional[int] = None,
    regenerate_geometry: bool = True,
) -> ScoringResult:
    """Score, select the priority set and write it back onto the collection.

    With `regenerate_geometry` the polygons of beaches that entered or left the
    priority set are rebuilt with the matching radius; otherwise the radius
    from the earlier polygon stage is kept as-is.
    """
    in_path = in_path or config.POLYGONS_PATH
    top_path = top_path or config.TOP50_PATH
    if top_n is None:
        top_n = config.TOP_N_PRIORITY
    logger.info("Stage 4: score and select top %s", top_n)
    features = read_collection(in_path)["features"]
    result = select_priorities(features, top_n=top_n)
    if regenerate_geometry and result.tier_changed:
        has_polygons = any((f.get("geometry") or {}).get("type") == "Polygon" for f in result.features)
        if has_polygons:
            result.features = refresh_polygons(result.features, result.tier_changed)
            logger.info("Regenerated %s polygons after re-prioritisation", len(result.tier_changed))
    # Serialize both artifacts before writing either.
    collection_text = to_json_text(feature_collection(result.features))
    top_text = to_json_text(result.top)
    atomic_write_text(out_path or in_path, collection_text)
    atomic_write_text(top_path, top_text)
    return result


def research_stage(
    top_path: Optional[str] = None,
    out_path: Optional[str] = None,
) -> List[Dict[str, Any]]:
    top_path = top_path or config.TOP50_PATH
    out_path = out_path or config.RESEARCHED_PATH
    logger.info("Stage 5: heuristic research")
    top = read_json(top_path)
    if not isinstance(top, list):
        raise PipelineInputError(f"{top_path} must contain a JSON array of scored beaches")
    records = build_research_records(top, existing=load_overrides(out_path))
    write_json(out_path, records)
    return records


def merge_stage(
    in_path: Optional[str] = None,
    overrides_path: Optional[str] = None,
    out_path: Optional[str] = None,
) -> MergeResult:
    in_path = in_path or config.POLYGONS_PATH
    overrides_path = overrides_path or config.RESEARCHED_PATH
    out_path = out_path or config.PUBLISHED_PATH
    logger.info("Stage 6: merge")
    features = read_collection(in_path)["features"]
    result = merge_overrides(features, load_overrides(overrides_path))
    logger.info(
        "Merged %s beaches (%s overrides applied, %s orphaned)",
        len(result.features),
        len(result.applied),
        len(result.orphans),
    )
    write_collection(out_path, feature_collection(result.features))
    return result


def validate_stage(in_path: Optional[str] = None) -> ValidationReport:
    in_path = in_path or config.PUBLISHED_PATH
    logger.info("Stage 7: validate")
    report = validate_collection(read_collection(in_path)["features"])
    if report.ok:
        logger.info("Validation passed (%s warnings)", report.warning_count)
    else:
        logger.error("Validation failed with %s errors", report.error_count)
    return report


def run(
    records: List[Any],
    overrides: Optional[List[Mapping[str, Any]]] = None,
    top_n: Optional[int] = None,
    auto_research: bool = False,
    output_path: Optional[str] = None,
    now: Optional[str] = None,
) -> PipelineResult:
    """Transform, score, build polygons, merge and validate in one pass."""
    transformed = transform_records(records, now=now)
    scored = select_priorities(transformed.features, top_n=top_n, now=now)
    features = synthesize_polygons(scored.features)

    override_records: List[Mapping[str, Any]] = list(overrides or [])
    if auto_research:
        override_records = build_research_records(scored.top, existing=override_records)

    merged = merge_overrides(features, override_records, now=now)
    report = validate_collection(merged.features)
    if output_path:
        write_collection(output_path, feature_collection(merged.features))

    summary = {
        "input_records": len(records),
        "rejected": transformed.rejection_counts,
        "priority": len(scored.top),
        "overrides_applied": len(merged.applied),
        "orphan_overrides": merged.orphans,
        "errors": report.error_count,
        "warnings": report.warning_count,
    }
    summary.update(merge_stats(merged.features))
    return PipelineResult(features=merged.features, report=report, summary=summary)


def run_all(
    url: Optional[str] = None,
    auto_research: bool = False,
    regenerate_geometry: bool = True,
    client: Optional[HttpClient] = None,
) -> ValidationReport:
    """Run every file-backed stage: polygons first, then scoring and regeneration."""
    fetch_stage(url=url, client=client)
    transform_stage()
    polygons_stage()
    score_stage(regenerate_geometry=regenerate_geometry)
    if auto_research:
        research_stage()
    merge_stage()
    return validate_stage()


def render_transform_summary(result: TransformResult) -> List[str]:
    lines = [f"Transformed beaches: {len(result.features)}", f"Rejected records: {len(result.rejections)}"]
    for reason, count in sorted(result.rejection_counts.items()):
        lines.append(f"  {reason}: {count}")
    lines.append("Beaches by county:")
    lines.extend(f"  {county}: {count}" for county, count in county_counts(result.features))
    return lines


def render_scoring_summary(result: ScoringResult, show: int = 10) -> List[str]:
    lines = [f"Top {show} beaches:"]
    for idx, row in enumerate(result.top[:show], start=1):
        lines.append(f"{idx}. {row['name']} ({row['county']}) - Score: {row['score']}")
        lines.append(f"   {row['scoringDetails']}")
    lines.append(f"Top {len(result.top)} distribution by region:")
    regions = dict(distribution(result.top, "region"))
    lines.extend(f"  {r.capitalize()}: {regions.get(r, 0)}" for r in config.VALID_REGIONS)
    lines.append(f"Top {len(result.top)} distribution by county:")
    lines.extend(f"  {county}: {count}" for county, count in distribution(result.top, "county"))
    return lines


def render_merge_summary(result: MergeResult) -> List[str]:
    stats = merge_stats(result.features)
    lines = [
        "Data completeness statistics:",
        f"  Total beaches: {stats['total']}",
        f"  Fully researched: {stats['complete']}",
        f"  Partially researched: {stats['partial']}",
        f"  API data only: {stats['api_only']}",
        f"  Priority beaches (top {config.TOP_N_PRIORITY}): {stats['priority']}",
        "Distribution by region:",
    ]
    lines.extend(f"  {r.capitalize()}: {n}" for r, n in stats["regions"].items())
    if result.orphans:
        lines.append(f"Dropped {len(result.orphans)} orphan overrides: {', '.join(result.orphans)}")
    return lines
