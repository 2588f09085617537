"""Disaster post classification: severity, disaster type, and urgent needs.

The keyword path is the default and what batch ingestion uses. The model
path is opt-in for interactive single-post analysis and falls back to the
keyword path on any failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from .config import (
    ALLOWED_DISASTER_TYPES,
    DEFAULT_DISASTER_TYPE,
    SEVERITIES,
    canonicalize_disaster_type,
    category_for_severity,
    normalize_severity,
)
from .llm_provider import LLMProvider
from .llm_utils import extract_json_object
from .models import AnalysisResult

_log = logging.getLogger(__name__)

KEYWORD_CONFIDENCE = 0.5

# Checked in order: the first tier with a hit wins.
SEVERITY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Parah", ("parah", "kritis", "darurat", "urgent", "mendesak", "terisolasi", "terjebak", "korban jiwa")),
    ("Sedang", ("sedang", "moderat", "waswas", "was-was", "waspada", "siaga")),
)

DISASTER_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Banjir", ("banjir", "kebanjiran", "flood")),
    ("Longsor", ("longsor", "landslide")),
    ("Gempa", ("gempa", "earthquake")),
    ("Kebakaran", ("kebakaran", "terbakar", "fire")),
    ("Angin Kencang", ("angin", "puting beliung", "wind")),
)

URGENT_NEED_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Pakaian", ("pakaian", "baju", "clothing")),
    ("Makanan", ("makanan", "food", "pangan", "sembako")),
    ("Tenaga Medis", ("medis", "dokter", "rumah sakit", "hospital", "obat")),
    ("Selimut", ("selimut", "blanket")),
    ("Air", ("air bersih", "air minum", "air", "water")),
    ("Tenda", ("tenda", "shelter")),
)


def normalize_text(value: str) -> str:
    return " ".join(value.casefold().split())


def _contains_keyword(haystack: str, keyword: str) -> bool:
    term = normalize_text(keyword)
    if not term:
        return False
    return term in haystack


def _any_keyword(haystack: str, keywords: Iterable[str]) -> bool:
    return any(_contains_keyword(haystack, k) for k in keywords)


def infer_severity(text: str) -> str:
    haystack = normalize_text(text)
    for severity, keywords in SEVERITY_KEYWORDS:
        if _any_keyword(haystack, keywords):
            return severity
    return "Aman"


def infer_disaster_type(text: str) -> str:
    haystack = normalize_text(text)
    for disaster_type, keywords in DISASTER_TYPE_KEYWORDS:
        if _any_keyword(haystack, keywords):
            return disaster_type
    return DEFAULT_DISASTER_TYPE


def infer_urgent_needs(text: str) -> list[str]:
    haystack = normalize_text(text)
    return [need for need, keywords in URGENT_NEED_KEYWORDS if _any_keyword(haystack, keywords)]


def classify_with_keywords(text: str) -> AnalysisResult:
    severity = infer_severity(text or "")
    return AnalysisResult(
        severity=severity,
        category=category_for_severity(severity),
        disaster_type=infer_disaster_type(text or ""),
        urgent_needs=infer_urgent_needs(text or ""),
        location_extracted=None,
        confidence=KEYWORD_CONFIDENCE,
    )


ANALYSIS_PROMPT = """You are an expert disaster analyst. Analyze an Instagram post about a disaster in Aceh, North Sumatra, or West Sumatra, Indonesia.

Determine:
1. severity: "Parah" (severe), "Sedang" (moderate), or "Aman" (safe/informational)
2. disaster_type: one of "Banjir", "Longsor", "Gempa", "Kebakaran", "Angin Kencang", "Lainnya"
3. urgent_needs: needs mentioned, e.g. "Pakaian", "Makanan", "Tenaga Medis", "Selimut", "Air", "Tenda"
4. location_extracted: the city, regency, or district named, or null
5. confidence: a number between 0 and 1

Return JSON only."""

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": [
        "severity",
        "category",
        "urgent_needs",
        "disaster_type",
        "location_extracted",
        "confidence",
    ],
    "properties": {
        "severity": {"type": "string", "enum": list(SEVERITIES)},
        "category": {"type": "string"},
        "urgent_needs": {"type": "array", "items": {"type": "string"}},
        "disaster_type": {"type": "string", "enum": list(ALLOWED_DISASTER_TYPES)},
        "location_extracted": {"type": ["string", "null"]},
        "confidence": {"type": "number"},
    },
}


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return KEYWORD_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return KEYWORD_CONFIDENCE
    if number != number:  # NaN
        return KEYWORD_CONFIDENCE
    return max(0.0, min(1.0, number))


def _coerce_needs(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [v for v in value.split(",")]
    if not isinstance(value, list):
        return []
    needs: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        if cleaned and cleaned not in needs:
            needs.append(cleaned)
    return needs


def analysis_from_model_payload(payload: dict[str, Any]) -> AnalysisResult:
    """Validate a decoded model reply field by field, defaulting what fails."""
    severity = normalize_severity(payload.get("severity")) or "Aman"
    disaster_type = canonicalize_disaster_type(payload.get("disaster_type")) or DEFAULT_DISASTER_TYPE
    category = payload.get("category")
    if not isinstance(category, str) or not category.strip():
        category = category_for_severity(severity)
    location = payload.get("location_extracted")
    if not isinstance(location, str) or location.strip().lower() in {"", "null", "none"}:
        location = None
    return AnalysisResult(
        severity=severity,
        category=category.strip(),
        disaster_type=disaster_type,
        urgent_needs=_coerce_needs(payload.get("urgent_needs")),
        location_extracted=location.strip() if location else None,
        confidence=_coerce_confidence(payload.get("confidence", KEYWORD_CONFIDENCE)),
    )


def classify_with_model(text: str, provider: LLMProvider) -> AnalysisResult | None:
    reply = provider.complete(
        system=ANALYSIS_PROMPT,
        user=f"Text to analyze:\n{text}",
        json_schema=ANALYSIS_SCHEMA,
        schema_name="disaster_post_analysis",
    )
    if isinstance(reply, str):
        reply = extract_json_object(reply)
    if not isinstance(reply, dict):
        return None
    return analysis_from_model_payload(reply)


def classify(
    text: str,
    *,
    use_model: bool = False,
    provider: LLMProvider | None = None,
) -> AnalysisResult:
    """Classify one post. Never raises; the model path degrades to keywords."""
    if not use_model or provider is None or not provider.is_configured():
        return classify_with_keywords(text)
    try:
        result = classify_with_model(text, provider)
    except (ValueError, TypeError, KeyError, AttributeError, json.JSONDecodeError) as exc:
        _log.warning("Model classification failed, using keyword analysis: %s", exc)
        result = None
    if result is None:
        return classify_with_keywords(text)
    return result
