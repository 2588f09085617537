"""Helpers for decoding free-text LLM output."""

from __future__ import annotations

import json
import re
from typing import Any


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def extract_responses_text(payload: dict[str, Any]) -> str:
    """Return text from an OpenAI Responses API payload.

    Accepts the ``output_text`` shorthand or walks ``output[].content[]``.
    """
    output_text = payload.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    chunks: list[str] = []
    for block in _dicts(payload.get("output")):
        for content in _dicts(block.get("content")):
            text = content.get("text")
            if isinstance(text, str) and text.strip():
                chunks.append(text.strip())
    return "\n".join(chunks)


def extract_gemini_text(payload: dict[str, Any]) -> str:
    """Return text from a Gemini ``generateContent`` payload."""
    chunks: list[str] = []
    for candidate in _dicts(payload.get("candidates")):
        content = candidate.get("content")
        if not isinstance(content, dict):
            continue
        for part in _dicts(content.get("parts")):
            text = part.get("text")
            if isinstance(text, str) and text.strip():
                chunks.append(text.strip())
        if chunks:
            break
    return "\n".join(chunks)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Decode the first JSON object in model output, or ``None``.

    Strict parse first (after stripping markdown fences), then the first
    ``{...}`` span found in the text.
    """
    if not text:
        return None
    raw = text.strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?", "", raw, flags=re.IGNORECASE).strip()
        raw = re.sub(r"```$", "", raw).strip()
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        match = re.search(r"\{.*\}", raw, flags=re.DOTALL)
        if not match:
            return None
        try:
            data = json.loads(match.group(0))
        except (json.JSONDecodeError, TypeError):
            return None
    return data if isinstance(data, dict) else None


def strip_wrapping_quotes(text: str) -> str:
    return re.sub(r"""^["'`]+|["'`]+$""", "", text.strip()).strip()
