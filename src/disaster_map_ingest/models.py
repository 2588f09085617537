"""Pydantic models for crawled posts, classification results, and run output."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Severity = Literal["Parah", "Sedang", "Aman"]
DisasterType = Literal["Banjir", "Longsor", "Gempa", "Kebakaran", "Angin Kencang", "Lainnya"]
ItemStatus = Literal["created", "updated", "skipped", "error"]


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class RawPost(BaseModel):
    """One post as produced by the crawler; never persisted directly."""

    model_config = ConfigDict(extra="ignore")

    post_url: str
    image_url: str | None = None
    text: str | None = None
    caption: str | None = None
    hashtags: List[str] = Field(default_factory=list)
    location_text: str | None = None
    timestamp: str | None = None

    @property
    def analysis_text(self) -> str:
        return self.caption or self.text or ""


class AnalysisResult(BaseModel):
    severity: Severity = "Aman"
    category: str = "Aman"
    disaster_type: DisasterType = "Lainnya"
    urgent_needs: List[str] = Field(default_factory=list)
    location_extracted: str | None = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    def urgent_needs_display(self) -> str:
        return ", ".join(self.urgent_needs)


class PostCandidate(BaseModel):
    """A fully extracted post ready to be upserted against the store."""

    post_url: str
    source_id: int | None = None
    image_url: str | None = None
    text: str | None = None
    caption: str | None = None
    hashtags: List[str] = Field(default_factory=list)
    location_text: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timestamp: str | None = None

    @model_validator(mode="after")
    def check_coordinate_pair(self) -> "PostCandidate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be set together")
        return self


class PostFilters(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    severity: List[Severity] = Field(default_factory=list)
    disaster_type: List[DisasterType] = Field(default_factory=list)
    area: str | None = None

    @field_validator("area")
    @classmethod
    def blank_area_is_none(cls, value: str | None) -> str | None:
        return value or None


class ItemResult(BaseModel):
    source: str
    post_url: str | None = None
    success: bool
    status: ItemStatus
    post_id: int | None = None
    post_timestamp: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    analysis: AnalysisResult | None = None
    error: str | None = None


class IngestionSummary(BaseModel):
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    skipped_stale: int = 0
    min_date: str
    source_count: int = 0
    results: List[ItemResult] = Field(default_factory=list)

    def describe(self) -> str:
        return (
            f"Ingestion complete: sources={self.source_count}, processed={self.processed}, "
            f"created={self.created}, updated={self.updated}, skipped={self.skipped}, "
            f"failed={self.failed}, skipped_stale={self.skipped_stale}"
        )
