"""CLI entrypoint."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from beachmap import config
from beachmap.merge import load_overrides
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
from beachmap.reporting import PipelineInputError, read_json, write_summary
from beachmap.validation import render_validation_report

try:
    from dotenv import load_dotenv as _load_dotenv
except Exception:  # pragma: no cover - optional dependency in some environments
    _load_dotenv = None


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists() or _load_dotenv is None:
        return
    _load_dotenv(dotenv_path=env_path, override=False)
    base_url = os.environ.get("BEACHMAP_API_BASE_URL")
    if base_url:
        config.API_BASE_URL = base_url


def _print_lines(lines: List[str]) -> None:
    for line in lines:
        print(line)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the California beach management dataset")
    parser.add_argument("--config", type=str, default=None, help="Path to pipeline_config.json")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("fetch", help="Download raw access locations")
    p.add_argument("--url", type=str, default=None)
    p.add_argument("--out", type=str, default=None)

    p = sub.add_parser("transform", help="Raw locations -> api-only point features")
    p.add_argument("--in", dest="in_path", type=str, default=None)
    p.add_argument("--out", type=str, default=None)

    p = sub.add_parser("polygons", help="Point features -> buffered polygons")
    p.add_argument("--in", dest="in_path", type=str, default=None)
    p.add_argument("--out", type=str, default=None)

    p = sub.add_parser("score", help="Score beaches and select the research priority set")
    p.add_argument("--in", dest="in_path", type=str, default=None)
    p.add_argument("--out", type=str, default=None, help="Defaults to rewriting --in")
    p.add_argument("--top-out", type=str, default=None)
    p.add_argument("--top", type=int, default=None)
    p.add_argument(
        "--keep-geometry",
        action="store_true",
        help="Do not rebuild polygons whose radius tier changed",
    )

    p = sub.add_parser("research", help="Infer management data for the priority set")
    p.add_argument("--top-in", type=str, default=None)
    p.add_argument("--out", type=str, default=None)

    p = sub.add_parser("merge", help="Merge manual overrides and publish")
    p.add_argument("--in", dest="in_path", type=str, default=None)
    p.add_argument("--overrides", type=str, default=None)
    p.add_argument("--out", type=str, default=None)

    p = sub.add_parser("validate", help="Validate the published dataset")
    p.add_argument("--in", dest="in_path", type=str, default=None)
    p.add_argument("--report", type=str, default=None, help="Also write the report to this path")

    p = sub.add_parser("all", help="Run every stage against the default artifacts")
    p.add_argument("--url", type=str, default=None)
    p.add_argument("--auto-research", action="store_true")
    p.add_argument("--keep-geometry", action="store_true")

    p = sub.add_parser("build", help="Build and validate from a raw file in one pass")
    p.add_argument("--in", dest="in_path", type=str, default=None)
    p.add_argument("--overrides", type=str, default=None)
    p.add_argument("--out", type=str, default=None)
    p.add_argument("--auto-research", action="store_true")

    return parser.parse_args(argv)


def _validate(in_path: str, report_path: Optional[str] = None) -> int:
    report = validate_stage(in_path)
    lines = render_validation_report(report)
    _print_lines(lines)
    if report_path:
        write_summary(report_path, lines)
    return report.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    config.load_pipeline_config(args.config)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "fetch":
            records = fetch_stage(out_path=args.out or config.RAW_LOCATIONS_PATH, url=args.url)
            print(f"Fetched {len(records)} locations -> {args.out or config.RAW_LOCATIONS_PATH}")
        elif args.command == "transform":
            result = transform_stage(args.in_path, args.out)
            _print_lines(render_transform_summary(result))
        elif args.command == "polygons":
            features = polygons_stage(args.in_path, args.out)
            print(f"Generated {len(features)} polygons")
        elif args.command == "score":
            result = score_stage(
                args.in_path,
                out_path=args.out,
                top_path=args.top_out,
                top_n=args.top,
                regenerate_geometry=not args.keep_geometry,
            )
            _print_lines(render_scoring_summary(result))
        elif args.command == "research":
            records = research_stage(args.top_in, args.out)
            print(f"Saved {len(records)} researched beaches")
        elif args.command == "merge":
            result = merge_stage(args.in_path, args.overrides, args.out)
            _print_lines(render_merge_summary(result))
        elif args.command == "validate":
            return _validate(args.in_path or config.PUBLISHED_PATH, args.report)
        elif args.command == "all":
            report = run_all(
                url=args.url,
                auto_research=args.auto_research,
                regenerate_geometry=not args.keep_geometry,
            )
            _print_lines(render_validation_report(report))
            return report.exit_code
        elif args.command == "build":
            in_path = args.in_path or config.RAW_LOCATIONS_PATH
            records = read_json(in_path)
            if not isinstance(records, list):
                raise PipelineInputError(f"{in_path} must contain a JSON array of locations")
            overrides = load_overrides(args.overrides or config.RESEARCHED_PATH)
            result = run(
                records,
                overrides=overrides,
                auto_research=args.auto_research,
                output_path=args.out or config.PUBLISHED_PATH,
            )
            _print_lines(render_validation_report(result.report))
            return result.report.exit_code
    except Exception as exc:
        logging.getLogger(__name__).debug("Stage failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
