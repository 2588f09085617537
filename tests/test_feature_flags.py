import json
from pathlib import Path

import pytest

from disaster_map_ingest import settings
from disaster_map_ingest.feature_flags import load_feature_flags


def test_load_feature_flags_from_file(tmp_path: Path) -> None:
    path = tmp_path / "feature_flags.json"
    path.write_text(
        json.dumps(
            {
                "geocoding_enabled": False,
                "crawler_login_enabled": "yes",
                "unknown_flag": True,
            }
        ),
        encoding="utf-8",
    )
    flags = load_feature_flags(path)
    assert flags["geocoding_enabled"] is False
    assert flags["crawler_login_enabled"] is True
    assert "unknown_flag" not in flags


def test_env_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "feature_flags.json"
    path.write_text(json.dumps({"model_location_enabled": True}), encoding="utf-8")
    monkeypatch.setenv("DMI_FLAG_MODEL_LOCATION_ENABLED", "false")
    assert load_feature_flags(path)["model_location_enabled"] is False


def test_unreadable_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "feature_flags.json"
    path.write_text("{broken", encoding="utf-8")
    flags = load_feature_flags(path)
    assert flags["geocoding_enabled"] is True


def test_missing_credentials_disable_optional_features(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for key in (
        "GOOGLE_MAPS_API_KEY",
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "LLM_PROVIDER",
        "DMI_FLAG_GEOCODING_ENABLED",
        "DMI_FLAG_MODEL_LOCATION_ENABLED",
    ):
        monkeypatch.delenv(key, raising=False)
    assert settings.is_geocoding_enabled() is False
    assert settings.is_model_location_enabled() is False

    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "maps-key")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert settings.is_geocoding_enabled() is True
    assert settings.is_model_location_enabled() is True


def test_crawler_credentials_require_flag(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("INSTAGRAM_USERNAME", "relawan")
    monkeypatch.setenv("INSTAGRAM_PASSWORD", "secret")
    monkeypatch.delenv("DMI_FLAG_CRAWLER_LOGIN_ENABLED", raising=False)
    assert settings.get_crawler_credentials() is None

    monkeypatch.setenv("DMI_FLAG_CRAWLER_LOGIN_ENABLED", "true")
    assert settings.get_crawler_credentials() == ("relawan", "secret")
