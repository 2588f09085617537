"""Ingestion run orchestration: crawl, classify, locate, geocode, and upsert."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from .classifier import classify
from .config import PipelineConfig
from .crawler import Crawler
from .database import PostStore, SourceRecord
from .errors import StoreUnavailableError
from .fallback import Strategy, first_result
from .geocoding import RegionGeocoder
from .location_extraction import ModelLocationExtractor, extract_location_rule_based
from .models import IngestionSummary, ItemResult, PostCandidate, RawPost
from .upsert import is_post_recent, resolve_coordinates, upsert_post
from .url_canonical import canonicalize_post_url

_log = logging.getLogger(__name__)


@dataclass
class SourceRef:
    url: str
    source_id: int | None = None


@dataclass
class IngestionContext:
    store: PostStore
    crawler: Crawler
    config: PipelineConfig = field(default_factory=PipelineConfig)
    geocoder: RegionGeocoder | None = None
    model_extractor: ModelLocationExtractor | None = None


class DetailFetcher:
    """Bounds each detail fetch by racing it against a timer.

    A single worker runs the fetches. A fetch that outlives its budget keeps
    the crawler session until it finishes, so callers must :meth:`drain`
    before any other crawler call. The next fetch's timer starts only once
    that straggler is done.
    """

    def __init__(self, crawler: Crawler, timeout_seconds: float) -> None:
        self.crawler = crawler
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="detail-fetch")
        self._straggler: Future | None = None

    def drain(self) -> None:
        if self._straggler is None:
            return
        if not self._straggler.done():
            _log.info("Waiting for a timed-out detail fetch to finish")
        wait([self._straggler])
        self._straggler = None

    def fetch(self, post_url: str) -> RawPost | None:
        self.drain()
        future = self._executor.submit(self.crawler.fetch_detail, post_url, self.timeout_seconds)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            self._straggler = future
            raise TimeoutError(f"Timed out after {self.timeout_seconds:g}s fetching post details")

    def close(self) -> None:
        self.drain()
        self._executor.shutdown(wait=True)


def _resolve_sources(ctx: IngestionContext) -> list[SourceRef]:
    try:
        records: list[SourceRecord] = ctx.store.list_active_sources()
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"Could not list sources: {exc}") from exc
    if records:
        return [SourceRef(url=r.account_url, source_id=r.id) for r in records]
    _log.warning("No active sources in store, using %d default source(s)", len(ctx.config.default_sources))
    return [SourceRef(url=url) for url in ctx.config.default_sources]


def _location_strategies(ctx: IngestionContext, detail: RawPost) -> list[Strategy[str, str]]:
    strategies: list[Strategy[str, str]] = []
    if ctx.model_extractor is not None and ctx.config.use_model_location:
        strategies.append(Strategy(name="model", run=ctx.model_extractor.extract))
    strategies.append(Strategy(name="page", run=lambda _text: detail.location_text))
    strategies.append(Strategy(name="rules", run=extract_location_rule_based))
    return strategies


def _skip(source: SourceRef, detail: RawPost, reason: str, location: str | None = None) -> ItemResult:
    return ItemResult(
        source=source.url,
        post_url=detail.post_url,
        success=False,
        status="skipped",
        post_timestamp=detail.timestamp,
        location=location,
        error=reason,
    )


def process_post(
    ctx: IngestionContext,
    source: SourceRef,
    detail: RawPost,
) -> ItemResult | None:
    """Run one fetched post through the pipeline.

    Returns ``None`` when the post is older than the cutoff, an ``ItemResult``
    otherwise. Store failures are reported in the result, never raised.
    """
    if not detail.analysis_text.strip():
        return _skip(source, detail, "No text or caption content")
    if not is_post_recent(detail.timestamp, ctx.config.min_post_date):
        return None

    text = detail.analysis_text
    analysis = classify(text, use_model=False)

    hit = first_result(_location_strategies(ctx, detail), text)
    location = hit.value.strip() if hit else None
    if hit:
        _log.info("Location %r found via %s for %s", location, hit.name, detail.post_url)
    else:
        _log.info("No location found in post %s", detail.post_url)
    if location and analysis.location_extracted is None:
        analysis = analysis.model_copy(update={"location_extracted": location})

    try:
        existing = ctx.store.find_post_by_url(detail.post_url)
    except SQLAlchemyError as exc:
        _log.warning("Store lookup failed for %s: %s", detail.post_url, exc)
        return ItemResult(
            source=source.url,
            post_url=detail.post_url,
            success=False,
            status="error",
            error="Failed to read from database",
        )

    geocode = ctx.geocoder.geocode if ctx.geocoder is not None else None
    point = resolve_coordinates(existing, location, geocode)
    if point is None:
        _log.info("Skipping post %s: no valid coordinates", detail.post_url)
        return _skip(source, detail, "No coordinates resolved", location)

    candidate = PostCandidate(
        post_url=canonicalize_post_url(detail.post_url),
        source_id=source.source_id,
        image_url=detail.image_url,
        text=detail.text,
        caption=detail.caption,
        hashtags=detail.hashtags,
        location_text=location,
        latitude=point.lat,
        longitude=point.lng,
        timestamp=detail.timestamp,
    )
    try:
        outcome = upsert_post(ctx.store, candidate, analysis, existing=existing)
    except (SQLAlchemyError, ValueError) as exc:
        _log.warning("Error saving post %s: %s", detail.post_url, exc)
        return ItemResult(
            source=source.url,
            post_url=detail.post_url,
            success=False,
            status="error",
            error="Failed to save to database",
        )

    _log.info("%s post %s (id=%s)", outcome.status.capitalize(), candidate.post_url, outcome.post_id)
    return ItemResult(
        source=source.url,
        post_url=candidate.post_url,
        success=True,
        status=outcome.status,
        post_id=outcome.post_id,
        post_timestamp=detail.timestamp,
        location=location,
        latitude=point.lat,
        longitude=point.lng,
        analysis=analysis,
    )


def _ingest_source(
    ctx: IngestionContext,
    source: SourceRef,
    fetcher: DetailFetcher,
    summary: IngestionSummary,
) -> None:
    _log.info("Processing source: %s", source.url)
    fetcher.drain()
    try:
        candidates = ctx.crawler.fetch_candidates(source.url, ctx.config.candidate_limit)
    except Exception as exc:
        _log.warning("Error crawling source %s: %s", source.url, exc)
        summary.results.append(
            ItemResult(source=source.url, success=False, status="error", error=str(exc) or type(exc).__name__)
        )
        return

    _log.info("Found %d posts from %s", len(candidates), source.url)
    for index, candidate in enumerate(candidates, start=1):
        _log.info("Processing post %d/%d: %s", index, len(candidates), candidate.post_url)
        try:
            detail = fetcher.fetch(candidate.post_url)
        except Exception as exc:
            _log.warning("Error fetching post details for %s: %s", candidate.post_url, exc)
            summary.results.append(
                ItemResult(
                    source=source.url,
                    post_url=candidate.post_url,
                    success=False,
                    status="error",
                    error=str(exc) or type(exc).__name__,
                )
            )
            continue
        if detail is None:
            summary.results.append(_skip(source, candidate, "Post detail not found"))
            continue

        try:
            result = process_post(ctx, source, detail)
        except Exception as exc:
            _log.exception("Unexpected error processing %s", detail.post_url)
            result = ItemResult(
                source=source.url,
                post_url=detail.post_url,
                success=False,
                status="error",
                error=str(exc) or type(exc).__name__,
            )
        if result is None:
            summary.skipped_stale += 1
            continue
        summary.results.append(result)

    if source.source_id is not None:
        try:
            ctx.store.mark_source_run(source.source_id)
        except SQLAlchemyError as exc:
            _log.warning("Could not record last run for source %s: %s", source.url, exc)


def run_ingestion(ctx: IngestionContext) -> IngestionSummary:
    """Run one batch over every active source, in order.

    Raises :class:`StoreUnavailableError` only when the source list cannot be
    read; every later failure is recorded in the returned summary.
    """
    sources = _resolve_sources(ctx)
    summary = IngestionSummary(
        min_date=ctx.config.min_post_date.isoformat(),
        source_count=len(sources),
    )
    fetcher = DetailFetcher(ctx.crawler, ctx.config.detail_timeout_seconds)
    try:
        for source in sources:
            _ingest_source(ctx, source, fetcher, summary)
    finally:
        fetcher.close()

    summary.created = sum(1 for r in summary.results if r.status == "created")
    summary.updated = sum(1 for r in summary.results if r.status == "updated")
    summary.skipped = sum(1 for r in summary.results if r.status == "skipped")
    summary.failed = sum(1 for r in summary.results if r.status == "error")
    summary.processed = summary.created + summary.updated
    _log.info(summary.describe())
    return summary
