"""Region-constrained geocoding for place names pulled out of posts.

A place name is resolved by trying a fixed sequence of queries against the
Google Geocoding API, most specific first:

  1. ``"<name>, <province>, Indonesia"`` for each known province spelling
  2. ``"<name>, Sumatra, Indonesia"``
  3. ``"<name>"`` as written

Every candidate the backend returns is checked against the target-region
bounding box; anything outside it is discarded even when the API reported
success. Common village names repeat across Indonesia, and without the box
a post about Aceh would land in Java.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

import httpx

from .fallback import Strategy, first_result
from .models import GeoPoint

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionBounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


# Aceh (lat 2..6, lng 95..98), North Sumatra (lat 0..4, lng 98..100)
# and West Sumatra (lat -2..1, lng 99..102), with a margin.
TARGET_REGION_BOUNDS = RegionBounds(min_lat=-2.5, max_lat=6.5, min_lng=95.0, max_lng=102.0)

PROVINCE_VARIANTS: tuple[str, ...] = (
    "Aceh",
    "Sumatra Utara",
    "Sumatera Utara",
    "Sumatra Barat",
    "Sumatera Barat",
    "North Sumatra",
    "West Sumatra",
)

REGIONAL_QUALIFIER = "Sumatra"
COUNTRY = "Indonesia"

GENERIC_LOCATION_WORDS = frozenset(
    {
        "location",
        "locations",
        "area",
        "areas",
        "place",
        "places",
        "region",
        "regions",
        "lokasi",
        "daerah",
        "wilayah",
        "null",
        "none",
    }
)


def is_generic_location(value: str | None) -> bool:
    if value is None:
        return True
    cleaned = value.strip().lower()
    return not cleaned or cleaned in GENERIC_LOCATION_WORDS


class GeocodingBackend(Protocol):
    def search(self, query: str) -> list[GeoPoint]:
        """Return every candidate coordinate for *query*, best match first."""


class GoogleGeocodingBackend:
    """Thin client for the Google Geocoding JSON API."""

    endpoint = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(
        self,
        api_key: str,
        *,
        client: httpx.Client | None = None,
        timeout_seconds: float = 15.0,
        region: str = "id",
    ) -> None:
        self.api_key = api_key
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.region = region

    def _get(self, params: dict[str, str]) -> dict:
        if self.client is not None:
            response = self.client.get(self.endpoint, params=params, timeout=self.timeout_seconds)
            response.raise_for_status()
            return response.json()
        with httpx.Client(timeout=self.timeout_seconds) as client:
            response = client.get(self.endpoint, params=params)
            response.raise_for_status()
            return response.json()

    def search(self, query: str) -> list[GeoPoint]:
        payload = self._get({"address": query, "key": self.api_key, "region": self.region})
        if not isinstance(payload, dict):
            return []
        status = str(payload.get("status", ""))
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            # OVER_QUERY_LIMIT, REQUEST_DENIED, INVALID_REQUEST all mean no usable answer.
            _log.warning(
                "Geocoding query %r returned status %s: %s",
                query,
                status or "<missing>",
                payload.get("error_message", ""),
            )
            return []

        points: list[GeoPoint] = []
        for result in payload.get("results", []) or []:
            try:
                location = result["geometry"]["location"]
                points.append(GeoPoint(lat=float(location["lat"]), lng=float(location["lng"])))
            except (KeyError, TypeError, ValueError):
                continue
        return points


class RegionGeocoder:
    """Resolve place names to coordinates inside a fixed bounding box."""

    def __init__(
        self,
        backend: GeocodingBackend,
        *,
        bounds: RegionBounds = TARGET_REGION_BOUNDS,
        province_variants: Sequence[str] = PROVINCE_VARIANTS,
        regional_qualifier: str = REGIONAL_QUALIFIER,
        country: str = COUNTRY,
    ) -> None:
        self.backend = backend
        self.bounds = bounds
        self.province_variants = tuple(province_variants)
        self.regional_qualifier = regional_qualifier
        self.country = country

    def query_strategies(self) -> list[Strategy[str, GeoPoint]]:
        strategies: list[Strategy[str, GeoPoint]] = []
        for province in self.province_variants:
            strategies.append(
                Strategy(
                    name=f"province:{province}",
                    run=lambda name, p=province: self._lookup(f"{name}, {p}, {self.country}"),
                )
            )
        strategies.append(
            Strategy(
                name=f"region:{self.regional_qualifier}",
                run=lambda name: self._lookup(f"{name}, {self.regional_qualifier}, {self.country}"),
            )
        )
        strategies.append(Strategy(name="bare", run=self._lookup))
        return strategies

    def geocode(self, location_name: str | None) -> GeoPoint | None:
        if is_generic_location(location_name):
            if location_name and location_name.strip():
                _log.info("Skipping geocoding for generic word %r", location_name)
            return None

        name = location_name.strip()
        hit = first_result(self.query_strategies(), name)
        if hit is None:
            _log.info("No in-region coordinates found for %r", name)
            return None
        _log.info("Geocoded %r via %s to %.5f, %.5f", name, hit.name, hit.value.lat, hit.value.lng)
        return hit.value

    def _lookup(self, query: str) -> GeoPoint | None:
        candidates = self.backend.search(query)
        for point in candidates:
            if self.bounds.contains(point.lat, point.lng):
                return point
        if candidates:
            first = candidates[0]
            _log.debug(
                "Query %r resolved outside target region: %.5f, %.5f",
                query,
                first.lat,
                first.lng,
            )
        return None


def build_geocoder(client: httpx.Client | None = None) -> RegionGeocoder | None:
    """Build the default geocoder, or ``None`` when geocoding is not configured."""
    from .settings import get_google_maps_api_key, is_geocoding_enabled

    if not is_geocoding_enabled():
        _log.warning("Google Maps API key not configured, geocoding disabled for this run")
        return None
    return RegionGeocoder(GoogleGeocodingBackend(get_google_maps_api_key(), client=client))
