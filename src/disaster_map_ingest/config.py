"""Pipeline configuration schema and fixed classification domains using pydantic."""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

SEVERITIES = ("Parah", "Sedang", "Aman")

SEVERITY_PRIORITY = {"Parah": 3, "Sedang": 2, "Aman": 1}

ALLOWED_DISASTER_TYPES = (
    "Banjir",
    "Longsor",
    "Gempa",
    "Kebakaran",
    "Angin Kencang",
    "Lainnya",
)

DEFAULT_DISASTER_TYPE = "Lainnya"

_DISASTER_TYPE_ALIAS_MAP = {
    "banjir": "Banjir",
    "banjir bandang": "Banjir",
    "flood": "Banjir",
    "floods": "Banjir",
    "flooding": "Banjir",
    "flash flood": "Banjir",
    "longsor": "Longsor",
    "tanah longsor": "Longsor",
    "landslide": "Longsor",
    "landslides": "Longsor",
    "mudslide": "Longsor",
    "gempa": "Gempa",
    "gempa bumi": "Gempa",
    "gempabumi": "Gempa",
    "earthquake": "Gempa",
    "earthquakes": "Gempa",
    "quake": "Gempa",
    "kebakaran": "Kebakaran",
    "fire": "Kebakaran",
    "fires": "Kebakaran",
    "wildfire": "Kebakaran",
    "angin kencang": "Angin Kencang",
    "angin puting beliung": "Angin Kencang",
    "puting beliung": "Angin Kencang",
    "strong wind": "Angin Kencang",
    "strong winds": "Angin Kencang",
    "storm": "Angin Kencang",
    "lainnya": "Lainnya",
    "other": "Lainnya",
    "others": "Lainnya",
}

_CATEGORY_BY_SEVERITY = {
    "Parah": "Terdampak Parah",
    "Sedang": "Terdampak Sedang",
    "Aman": "Aman",
}

DEFAULT_MIN_POST_DATE = datetime(2024, 11, 25, tzinfo=UTC)


def canonicalize_disaster_type(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned:
        return None
    if cleaned in ALLOWED_DISASTER_TYPES:
        return cleaned
    key = re.sub(r"\s+", " ", re.sub(r"[_/\-]+", " ", cleaned.lower())).strip()
    return _DISASTER_TYPE_ALIAS_MAP.get(key)


def normalize_severity(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip().lower()
    for severity in SEVERITIES:
        if severity.lower() == cleaned:
            return severity
    return None


def category_for_severity(severity: str) -> str:
    return _CATEGORY_BY_SEVERITY.get(severity, "Aman")


class PipelineConfig(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    min_post_date: datetime = DEFAULT_MIN_POST_DATE
    candidate_limit: int = Field(default=10, ge=1, le=50)
    detail_timeout_seconds: float = Field(default=45.0, gt=0, le=300)
    use_model_location: bool = True
    cluster_threshold_degrees: float = Field(default=0.05, gt=0, le=1.0)
    default_sources: List[str] = Field(
        default_factory=lambda: ["https://www.instagram.com/kabaraceh/"]
    )

    @field_validator("min_post_date")
    @classmethod
    def validate_min_post_date(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_validator("default_sources")
    @classmethod
    def validate_default_sources(cls, value: List[str]) -> List[str]:
        cleaned: list[str] = []
        for item in value:
            item = item.strip()
            if item and item not in cleaned:
                cleaned.append(item)
        return cleaned


def default_config_path() -> Path:
    return Path.cwd() / "config" / "pipeline_config.json"


def load_pipeline_config(path: Path | None = None) -> PipelineConfig:
    file_path = path or default_config_path()
    if not file_path.exists():
        return PipelineConfig()
    payload = json.loads(file_path.read_text(encoding="utf-8"))
    return PipelineConfig.model_validate(payload)
