"""Create-or-update of crawled posts keyed by their URL."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol

from .models import AnalysisResult, GeoPoint, PostCandidate
from .time_utils import parse_published_datetime

_log = logging.getLogger(__name__)


class PostLike(Protocol):
    id: int | None
    location_text: str | None
    latitude: float | None
    longitude: float | None


class AnalysisLike(Protocol):
    id: int | None


class UpsertStore(Protocol):
    def find_post_by_url(self, post_url: str) -> PostLike | None: ...

    def create_post(self, candidate: PostCandidate) -> PostLike: ...

    def update_post(self, post_id: int, candidate: PostCandidate) -> PostLike | None: ...

    def find_analysis_by_post_id(self, post_id: int) -> AnalysisLike | None: ...

    def create_analysis(self, post_id: int, analysis: AnalysisResult) -> AnalysisLike: ...

    def update_analysis(self, analysis_id: int, analysis: AnalysisResult) -> AnalysisLike | None: ...


@dataclass
class UpsertOutcome:
    post_id: int
    created: bool
    analysis_created: bool

    @property
    def status(self) -> str:
        return "created" if self.created else "updated"


def is_post_recent(timestamp: str | None, min_date: datetime) -> bool:
    """Posts at or after *min_date* pass; unparseable or missing timestamps pass too."""
    published = parse_published_datetime(timestamp)
    if published is None:
        return True
    return published >= min_date


def existing_coordinates(existing: PostLike | None) -> GeoPoint | None:
    if existing is None or existing.latitude is None or existing.longitude is None:
        return None
    try:
        return GeoPoint(lat=existing.latitude, lng=existing.longitude)
    except ValueError:
        return None


def resolve_coordinates(
    existing: PostLike | None,
    location: str | None,
    geocode: Callable[[str], GeoPoint | None] | None,
) -> GeoPoint | None:
    """Coordinates already stored for the post win; otherwise geocode *location*."""
    point = existing_coordinates(existing)
    if point is not None:
        if location:
            _log.debug("Location %r already has coordinates %.5f, %.5f", location, point.lat, point.lng)
        return point
    if not location:
        return None
    if geocode is None:
        _log.info("Geocoder unavailable, cannot place %r", location)
        return None
    point = geocode(location)
    if point is None:
        _log.warning("Failed to geocode location %r", location)
    return point


def upsert_post(
    store: UpsertStore,
    candidate: PostCandidate,
    analysis: AnalysisResult,
    *,
    existing: PostLike | None = None,
) -> UpsertOutcome:
    """Write *candidate* and its analysis, creating or updating by post URL.

    Not atomic: a crash between the post write and the analysis write
    leaves a post without analysis, which the next run repairs through the
    create-if-missing branch below.
    """
    if existing is None:
        existing = store.find_post_by_url(candidate.post_url)

    if existing is None:
        post = store.create_post(candidate)
        store.create_analysis(int(post.id), analysis)
        return UpsertOutcome(post_id=int(post.id), created=True, analysis_created=True)

    post_id = int(existing.id)
    if candidate.location_text is None and existing.location_text:
        candidate = candidate.model_copy(update={"location_text": existing.location_text})
    store.update_post(post_id, candidate)

    current = store.find_analysis_by_post_id(post_id)
    if current is not None:
        store.update_analysis(int(current.id), analysis)
        return UpsertOutcome(post_id=post_id, created=False, analysis_created=False)

    _log.info("Post %s had no analysis, creating one", post_id)
    store.create_analysis(post_id, analysis)
    return UpsertOutcome(post_id=post_id, created=False, analysis_created=True)
