import httpx
import pytest

from disaster_map_ingest.geocoding import (
    GoogleGeocodingBackend,
    RegionGeocoder,
    TARGET_REGION_BOUNDS,
    build_geocoder,
)
from disaster_map_ingest.models import GeoPoint

IN_REGION = GeoPoint(lat=5.55, lng=95.32)  # Banda Aceh
JAVA = GeoPoint(lat=-7.25, lng=112.75)  # Surabaya


class FakeBackend:
    def __init__(self, answers: dict[str, list[GeoPoint]] | None = None, fail_on: set[str] | None = None) -> None:
        self.answers = answers or {}
        self.fail_on = fail_on or set()
        self.queries: list[str] = []

    def search(self, query: str) -> list[GeoPoint]:
        self.queries.append(query)
        if query in self.fail_on:
            raise httpx.ConnectError("network down")
        return self.answers.get(query, [])


def test_queries_run_most_specific_first() -> None:
    backend = FakeBackend()
    assert RegionGeocoder(backend).geocode("Sukamaju") is None
    assert backend.queries[0] == "Sukamaju, Aceh, Indonesia"
    assert backend.queries[-2] == "Sukamaju, Sumatra, Indonesia"
    assert backend.queries[-1] == "Sukamaju"
    assert len(backend.queries) == 9


def test_out_of_region_results_are_rejected() -> None:
    backend = FakeBackend({q: [JAVA] for q in ["Sukamaju", "Sukamaju, Sumatra, Indonesia"]})
    assert RegionGeocoder(backend).geocode("Sukamaju") is None


def test_first_in_region_candidate_wins() -> None:
    backend = FakeBackend({"Sukamaju, Sumatra Utara, Indonesia": [JAVA, IN_REGION]})
    point = RegionGeocoder(backend).geocode("Sukamaju")
    assert point == IN_REGION
    assert TARGET_REGION_BOUNDS.contains(point.lat, point.lng)
    assert backend.queries[-1] == "Sukamaju, Sumatra Utara, Indonesia"


def test_failing_query_falls_through_to_next() -> None:
    backend = FakeBackend(
        {"Sukamaju, Sumatra Utara, Indonesia": [IN_REGION]},
        fail_on={"Sukamaju, Aceh, Indonesia"},
    )
    assert RegionGeocoder(backend).geocode("Sukamaju") == IN_REGION


@pytest.mark.parametrize("name", ["Location", "area", " lokasi ", "", None])
def test_generic_words_are_not_geocoded(name) -> None:
    backend = FakeBackend()
    assert RegionGeocoder(backend).geocode(name) is None
    assert backend.queries == []


def test_equator_latitude_is_valid() -> None:
    on_equator = GeoPoint(lat=0.0, lng=100.2)
    backend = FakeBackend({"Bonjol, Aceh, Indonesia": [on_equator]})
    assert RegionGeocoder(backend).geocode("Bonjol") == on_equator


def _google_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_google_backend_parses_results() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [
                    {"geometry": {"location": {"lat": 5.55, "lng": 95.32}}},
                    {"geometry": {}},
                ],
            },
        )

    backend = GoogleGeocodingBackend("maps-key", client=_google_client(handler))
    assert backend.search("Banda Aceh") == [IN_REGION]
    assert seen[0].url.params["address"] == "Banda Aceh"
    assert seen[0].url.params["key"] == "maps-key"
    assert seen[0].url.params["region"] == "id"


@pytest.mark.parametrize("status", ["ZERO_RESULTS", "OVER_QUERY_LIMIT", "REQUEST_DENIED"])
def test_google_backend_non_ok_status_is_empty(status: str) -> None:
    backend = GoogleGeocodingBackend(
        "maps-key",
        client=_google_client(lambda _r: httpx.Response(200, json={"status": status, "results": []})),
    )
    assert backend.search("Banda Aceh") == []


def test_google_http_error_falls_through_in_geocoder() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(500)
        return httpx.Response(200, json={"status": "OK", "results": [{"geometry": {"location": {"lat": 5.55, "lng": 95.32}}}]})

    geocoder = RegionGeocoder(GoogleGeocodingBackend("maps-key", client=_google_client(handler)))
    assert geocoder.geocode("Banda Aceh") == IN_REGION
    assert calls["n"] == 2


def test_build_geocoder_without_key_is_none(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    monkeypatch.delenv("DMI_FLAG_GEOCODING_ENABLED", raising=False)
    assert build_geocoder() is None
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "maps-key")
    assert isinstance(build_geocoder(), RegionGeocoder)
