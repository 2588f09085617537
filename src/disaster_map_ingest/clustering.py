"""Proximity grouping of geocoded reports into "isolated area" overlays.

Single-pass seed-radius clustering: each unassigned post seeds a cluster
and absorbs every other unassigned post within the threshold of the seed.
Membership is not transitive and depends on input order; two posts both
near a third can land in different clusters.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from pydantic import BaseModel

from .config import SEVERITY_PRIORITY
from .models import GeoPoint, Severity

KM_PER_DEGREE = 111.0
DEFAULT_CLUSTER_THRESHOLD_DEGREES = 0.05
MIN_AREA_RADIUS_KM = 2.0
HIGHLIGHT_RADIUS_KM = 1.5
SEVERE = "Parah"

_AREA_LABELS = {
    "Parah": "Area Terisolasi",
    "Sedang": "Area Terdampak",
    "Aman": "Area Terpantau",
}


@dataclass(frozen=True)
class MapPoint:
    lat: float
    lng: float
    severity: Severity | None = None
    post_url: str | None = None


class ClusterArea(BaseModel):
    center: GeoPoint
    severity: Severity
    count: int
    radius_km: float

    @property
    def label(self) -> str:
        return _AREA_LABELS[self.severity]


class HighlightZone(BaseModel):
    center: GeoPoint
    radius_km: float = HIGHLIGHT_RADIUS_KM
    post_url: str | None = None


class ClusterOverlay(BaseModel):
    areas: List[ClusterArea]
    highlights: List[HighlightZone]


def planar_distance(a_lat: float, a_lng: float, b_lat: float, b_lng: float) -> float:
    return math.sqrt((a_lat - b_lat) ** 2 + (a_lng - b_lng) ** 2)


def max_severity(severities: Iterable[str | None]) -> Severity:
    best: Severity = "Aman"
    for severity in severities:
        if severity in SEVERITY_PRIORITY and SEVERITY_PRIORITY[severity] > SEVERITY_PRIORITY[best]:
            best = severity  # type: ignore[assignment]
    return best


def _materialize(members: Sequence[MapPoint]) -> ClusterArea:
    center_lat = sum(p.lat for p in members) / len(members)
    center_lng = sum(p.lng for p in members) / len(members)
    spread = max(planar_distance(p.lat, p.lng, center_lat, center_lng) for p in members)
    return ClusterArea(
        center=GeoPoint(lat=center_lat, lng=center_lng),
        severity=max_severity(p.severity for p in members),
        count=len(members),
        radius_km=max(spread * KM_PER_DEGREE, MIN_AREA_RADIUS_KM),
    )


def detect_isolated_areas(
    points: Sequence[MapPoint],
    *,
    threshold_degrees: float = DEFAULT_CLUSTER_THRESHOLD_DEGREES,
) -> list[ClusterArea]:
    assigned: set[int] = set()
    areas: list[ClusterArea] = []

    for index, seed in enumerate(points):
        if index in assigned:
            continue
        assigned.add(index)
        members = [seed]
        for other_index, other in enumerate(points):
            if other_index in assigned:
                continue
            if planar_distance(seed.lat, seed.lng, other.lat, other.lng) < threshold_degrees:
                members.append(other)
                assigned.add(other_index)

        # A lone severe report still gets its own zone.
        if len(members) >= 2 or any(p.severity == SEVERE for p in members):
            areas.append(_materialize(members))

    return areas


def severe_highlight_zones(points: Iterable[MapPoint]) -> list[HighlightZone]:
    return [
        HighlightZone(center=GeoPoint(lat=p.lat, lng=p.lng), post_url=p.post_url)
        for p in points
        if p.severity == SEVERE
    ]


def points_from_posts(rows: Iterable) -> list[MapPoint]:
    """Convert :class:`~.database.PostWithAnalysis` rows, skipping unplaced posts."""
    points: list[MapPoint] = []
    for row in rows:
        post = row.post
        if post.latitude is None or post.longitude is None:
            continue
        severity = row.analysis.severity if row.analysis is not None else None
        points.append(MapPoint(lat=post.latitude, lng=post.longitude, severity=severity, post_url=post.post_url))
    return points


def build_overlay(
    points: Sequence[MapPoint],
    *,
    threshold_degrees: float = DEFAULT_CLUSTER_THRESHOLD_DEGREES,
) -> ClusterOverlay:
    return ClusterOverlay(
        areas=detect_isolated_areas(points, threshold_degrees=threshold_degrees),
        highlights=severe_highlight_zones(points),
    )


def circle_polygon(center: GeoPoint, radius_km: float, *, vertices: int = 36) -> list[GeoPoint]:
    """Approximate a circle on the map as a ring of points."""
    ring: list[GeoPoint] = []
    lat_scale = KM_PER_DEGREE
    lng_scale = KM_PER_DEGREE * max(math.cos(math.radians(center.lat)), 1e-6)
    for i in range(vertices + 1):
        angle = math.radians(i * 360.0 / vertices)
        ring.append(
            GeoPoint(
                lat=center.lat + radius_km * math.sin(angle) / lat_scale,
                lng=center.lng + radius_km * math.cos(angle) / lng_scale,
            )
        )
    return ring
