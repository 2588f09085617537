import json
from pathlib import Path

import pytest

from disaster_map_ingest import main as cli
from disaster_map_ingest.crawler import Crawler
from disaster_map_ingest.database import PostStore
from disaster_map_ingest.geocoding import RegionGeocoder
from disaster_map_ingest.models import AnalysisResult, GeoPoint, PostCandidate, RawPost
from disaster_map_ingest.state import load_state


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "posts.db"
    monkeypatch.setenv("DISASTER_MAP_DB", str(path))
    for key in ("GOOGLE_MAPS_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "LLM_PROVIDER"):
        monkeypatch.delenv(key, raising=False)
    return path


def _stdout_json(capsys: pytest.CaptureFixture[str]):
    return json.loads(capsys.readouterr().out)


def test_source_admin_commands(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["add-source", "https://www.instagram.com/kabaraceh/"]) == 0
    added = _stdout_json(capsys)
    assert added["account_username"] == "kabaraceh"

    assert cli.main(["sources"]) == 0
    assert [s["id"] for s in _stdout_json(capsys)] == [added["id"]]

    assert cli.main(["deactivate-source", str(added["id"])]) == 0
    capsys.readouterr()
    assert cli.main(["sources"]) == 0
    assert _stdout_json(capsys) == []
    assert cli.main(["deactivate-source", "999"]) == 1


def test_posts_and_clusters_commands(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = PostStore(db_path)
    post = store.create_post(
        PostCandidate(post_url="https://www.instagram.com/p/A1/", location_text="Sukamaju", latitude=5.2, longitude=96.7)
    )
    store.create_analysis(post.id, AnalysisResult(severity="Parah", category="Terdampak Parah"))

    assert cli.main(["posts", "--severity", "Parah", "--area", "suka"]) == 0
    rows = _stdout_json(capsys)
    assert len(rows) == 1 and rows[0]["analysis"]["severity"] == "Parah"

    assert cli.main(["posts", "--severity", "Sedang"]) == 0
    assert _stdout_json(capsys) == []

    assert cli.main(["clusters", "--polygons"]) == 0
    overlay = _stdout_json(capsys)
    assert overlay["areas"][0]["label"] == "Area Terisolasi"
    assert len(overlay["areas"][0]["polygon"]) == 37
    assert len(overlay["highlights"]) == 1


def test_analyze_command_without_model(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["analyze", "--text", "Banjir parah di desa Sukamaju, butuh makanan", "--no-model"]) == 0
    payload = _stdout_json(capsys)
    assert payload["severity"] == "Parah"
    assert payload["location_extracted"] == "Sukamaju"
    assert payload["latitude"] is None


class OnePostCrawler(Crawler):
    def __init__(self, *_args, **_kwargs) -> None:
        self.closed = False

    def fetch_candidates(self, source_url: str, limit: int) -> list[RawPost]:
        return [RawPost(post_url="https://www.instagram.com/p/A1/")]

    def fetch_detail(self, post_url: str, timeout_seconds: float) -> RawPost | None:
        return RawPost(post_url=post_url, caption="Banjir parah di desa Sukamaju", timestamp="2024-12-02T00:00:00Z")


class Backend:
    def search(self, query: str) -> list[GeoPoint]:
        return [GeoPoint(lat=5.2, lng=96.7)]


def test_run_batch_persists_and_saves_state(
    db_path: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(cli, "HttpPostCrawler", OnePostCrawler)
    monkeypatch.setattr(cli, "build_geocoder", lambda: RegionGeocoder(Backend()))
    state_path = tmp_path / "runtime_state.json"

    payload = cli.run_batch(state_path=state_path)

    assert payload["created"] == 1
    assert payload["results"][0]["status"] == "created"
    assert PostStore(db_path).count_posts() == 1
    assert load_state(state_path).last_summary.startswith("Ingestion complete")
