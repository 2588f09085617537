"""CLI entrypoint for ingestion runs, source administration, and map queries."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List

from .analysis import analyze_text
from .clustering import build_overlay, circle_polygon, points_from_posts
from .config import load_pipeline_config
from .crawler import HttpPostCrawler
from .database import PostStore
from .errors import StoreUnavailableError
from .geocoding import build_geocoder
from .ingestion import IngestionContext, run_ingestion
from .llm_provider import get_provider
from .location_extraction import build_model_extractor
from .models import PostFilters
from .scheduler import SchedulerOptions, start_scheduler
from .settings import (
    get_crawler_credentials,
    get_db_path,
    has_llm_credentials,
    load_environment,
)
from .state import load_state, save_state


def _split(value: str | None) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _open_store() -> PostStore:
    return PostStore(get_db_path())


def _print(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def run_batch(config_path: Path | None = None, state_path: Path | None = None) -> dict:
    """One ingestion batch with the session carried over from the last run."""
    config = load_pipeline_config(config_path)
    state = load_state(state_path)
    session = state.to_session()
    crawler = HttpPostCrawler(session, credentials=get_crawler_credentials())
    ctx = IngestionContext(
        store=_open_store(),
        crawler=crawler,
        config=config,
        geocoder=build_geocoder(),
        model_extractor=build_model_extractor(),
    )
    try:
        summary = run_ingestion(ctx)
    finally:
        crawler.close()
        state.absorb_session(session)

    state.touch()
    state.last_summary = summary.describe()
    save_state(state, state_path)
    return summary.model_dump(mode="json")


def cmd_run(args: argparse.Namespace) -> int:
    load_environment()
    config_path = Path(args.config) if args.config else None

    def run_once() -> None:
        _print(run_batch(config_path))

    if args.interval is None:
        try:
            run_once()
        except StoreUnavailableError as exc:
            print(f"Ingestion aborted: {exc}")
            return 1
        return 0

    start_scheduler(run_once, SchedulerOptions(interval_minutes=args.interval, max_runs=args.max_runs))
    return 0


def cmd_posts(args: argparse.Namespace) -> int:
    load_environment()
    filters = PostFilters(
        severity=_split(args.severity),
        disaster_type=_split(args.disaster_type),
        area=args.area,
    )
    rows = _open_store().list_posts_with_analysis(filters, limit=args.limit)
    _print([row.to_dict() for row in rows])
    return 0


def cmd_clusters(args: argparse.Namespace) -> int:
    load_environment()
    config = load_pipeline_config(Path(args.config) if args.config else None)
    rows = _open_store().list_posts_with_analysis()
    overlay = build_overlay(points_from_posts(rows), threshold_degrees=config.cluster_threshold_degrees)
    payload = overlay.model_dump()
    for area, item in zip(overlay.areas, payload["areas"]):
        item["label"] = area.label
        if args.polygons:
            item["polygon"] = [p.model_dump() for p in circle_polygon(area.center, area.radius_km)]
    _print(payload)
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    load_environment()
    use_model = not args.no_model and has_llm_credentials()
    provider = get_provider() if use_model else None
    try:
        result = analyze_text(
            args.text,
            location_text=args.location,
            provider=provider,
            use_model=use_model,
            geocoder=build_geocoder(),
        )
    except ValueError as exc:
        print(f"Analysis failed: {exc}")
        return 1
    _print(result.to_dict())
    return 0


def cmd_add_source(args: argparse.Namespace) -> int:
    load_environment()
    try:
        record = _open_store().add_source(args.url, args.username)
    except ValueError as exc:
        print(f"Could not add source: {exc}")
        return 1
    _print(record.model_dump())
    return 0


def cmd_deactivate_source(args: argparse.Namespace) -> int:
    load_environment()
    if not _open_store().deactivate_source(args.source_id):
        print(f"Source {args.source_id} not found")
        return 1
    print(f"Deactivated source {args.source_id}")
    return 0


def cmd_sources(args: argparse.Namespace) -> int:
    load_environment()
    records = _open_store().list_sources(active_only=not args.all)
    _print([r.model_dump() for r in records])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="disaster-map-ingest")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one ingestion batch over all active sources")
    run_parser.add_argument("--config", help="Path to pipeline config JSON")
    run_parser.add_argument("--interval", type=int, default=None, help="Repeat every N minutes")
    run_parser.add_argument("--max-runs", type=int, default=None, help="Stop after N batches (with --interval)")
    run_parser.set_defaults(func=cmd_run)

    posts_parser = subparsers.add_parser("posts", help="List stored posts with their analysis")
    posts_parser.add_argument("--severity", help="Comma-separated severities (Parah, Sedang, Aman)")
    posts_parser.add_argument("--disaster-type", help="Comma-separated disaster types")
    posts_parser.add_argument("--area", help="Substring match on the post location")
    posts_parser.add_argument("--limit", type=int, default=1000)
    posts_parser.set_defaults(func=cmd_posts)

    clusters_parser = subparsers.add_parser("clusters", help="Compute isolated-area overlay from stored posts")
    clusters_parser.add_argument("--config", help="Path to pipeline config JSON")
    clusters_parser.add_argument("--polygons", action="store_true", help="Include circle polygons per area")
    clusters_parser.set_defaults(func=cmd_clusters)

    analyze_parser = subparsers.add_parser("analyze", help="Classify and place a single piece of text")
    analyze_parser.add_argument("--text", required=True)
    analyze_parser.add_argument("--location", help="Known location name, skips extraction")
    analyze_parser.add_argument("--no-model", action="store_true", help="Keyword and rule paths only")
    analyze_parser.set_defaults(func=cmd_analyze)

    add_parser = subparsers.add_parser("add-source", help="Register or re-activate a source account")
    add_parser.add_argument("url", help="Profile URL, username, or #hashtag")
    add_parser.add_argument("--username", help="Display username")
    add_parser.set_defaults(func=cmd_add_source)

    deactivate_parser = subparsers.add_parser("deactivate-source", help="Stop crawling a source")
    deactivate_parser.add_argument("source_id", type=int)
    deactivate_parser.set_defaults(func=cmd_deactivate_source)

    sources_parser = subparsers.add_parser("sources", help="List sources")
    sources_parser.add_argument("--all", action="store_true", help="Include inactive sources")
    sources_parser.set_defaults(func=cmd_sources)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
