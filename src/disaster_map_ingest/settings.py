"""Environment and runtime settings."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from .feature_flags import get_feature_flag


def load_environment() -> None:
    load_dotenv(override=False)


def get_google_maps_api_key() -> str:
    return os.getenv("GOOGLE_MAPS_API_KEY", "").strip()


def is_geocoding_enabled() -> bool:
    return bool(get_feature_flag("geocoding_enabled", True)) and bool(get_google_maps_api_key())


def get_openai_api_key() -> str:
    return os.getenv("OPENAI_API_KEY", "").strip()


def get_openai_model() -> str:
    return os.getenv("OPENAI_MODEL", "gpt-4.1-mini").strip()


def get_gemini_api_key() -> str:
    return os.getenv("GEMINI_API_KEY", "").strip()


def get_gemini_model() -> str:
    return os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite").strip()


def get_llm_provider_name() -> str:
    return os.getenv("LLM_PROVIDER", "openai_responses").strip() or "openai_responses"


def has_llm_credentials() -> bool:
    if get_llm_provider_name() == "gemini":
        return bool(get_gemini_api_key())
    return bool(get_openai_api_key())


def is_model_location_enabled() -> bool:
    return bool(get_feature_flag("model_location_enabled", True)) and has_llm_credentials()


def get_crawler_credentials() -> tuple[str, str] | None:
    if not get_feature_flag("crawler_login_enabled", False):
        return None
    username = os.getenv("INSTAGRAM_USERNAME", "").strip()
    password = os.getenv("INSTAGRAM_PASSWORD", "").strip()
    if not username or not password:
        return None
    return username, password


def get_db_path() -> Path | None:
    raw = os.getenv("DISASTER_MAP_DB", "").strip()
    return Path(raw) if raw else None
