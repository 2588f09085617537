"""Interactive single-post analysis used by the ``analyze`` command."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .classifier import classify
from .geocoding import RegionGeocoder
from .llm_provider import LLMProvider
from .location_extraction import LocationExtractor, ModelLocationExtractor
from .models import AnalysisResult, GeoPoint


@dataclass
class TextAnalysis:
    analysis: AnalysisResult
    location: str | None
    point: GeoPoint | None

    def to_dict(self) -> dict[str, Any]:
        payload = self.analysis.model_dump()
        payload["urgent_needs"] = self.analysis.urgent_needs_display()
        payload["location_extracted"] = self.location
        payload["latitude"] = self.point.lat if self.point else None
        payload["longitude"] = self.point.lng if self.point else None
        return payload


def analyze_text(
    text: str,
    *,
    location_text: str | None = None,
    provider: LLMProvider | None = None,
    use_model: bool = True,
    geocoder: RegionGeocoder | None = None,
) -> TextAnalysis:
    """Classify *text* and place it, preferring a caller-supplied location."""
    if not text or not text.strip():
        raise ValueError("text is required")

    analysis = classify(text, use_model=use_model, provider=provider)

    location = (location_text or "").strip() or None
    if location is None:
        model = ModelLocationExtractor(provider) if provider is not None and use_model else None
        location = LocationExtractor(model).extract(text)

    point = geocoder.geocode(location) if geocoder is not None and location else None
    return TextAnalysis(
        analysis=analysis.model_copy(update={"location_extracted": location}),
        location=location,
        point=point,
    )
