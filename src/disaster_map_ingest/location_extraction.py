"""Place-name extraction from Indonesian disaster post text.

Two extractors share one contract, ``extract(text) -> str | None``:

- :func:`extract_location_rule_based` runs ordered regular-expression
  patterns tuned for Indonesian phrasing ("di <Place>", "desa <Place>",
  known city names) and returns the longest surviving candidate.
- :class:`ModelLocationExtractor` asks an LLM for the most specific place
  phrase, verbatim, and returns ``None`` when the model is unavailable,
  says "null", or answers with a generic word.

:class:`LocationExtractor` chains them model-first.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .fallback import Strategy, first_result
from .geocoding import is_generic_location
from .llm_provider import LLMProvider
from .llm_utils import strip_wrapping_quotes

_log = logging.getLogger(__name__)

MIN_LOCATION_LENGTH = 3

ADMIN_WORDS = frozenset(
    {
        "di",
        "kota",
        "kabupaten",
        "kab",
        "kecamatan",
        "kec",
        "desa",
        "kelurahan",
        "gampong",
        "nagari",
        "dusun",
        "wilayah",
        "daerah",
        "kawasan",
        "area",
    }
)

# Tokens that never belong to a place name; a candidate is cut at the first one.
STOP_WORDS = frozenset(
    {
        "yang",
        "dan",
        "atau",
        "terdampak",
        "untuk",
        "dengan",
        "karena",
        "akibat",
        "pada",
        "sejak",
        "hingga",
        "sampai",
        "saat",
        "ini",
        "itu",
        "sini",
        "sana",
        "mana",
        "sekitar",
        "butuh",
        "membutuhkan",
        "mohon",
        "tolong",
        "bantuan",
        "warga",
        "rumah",
        "lokasi",
        "sudah",
        "masih",
        "sangat",
        "lagi",
        "juga",
        "telah",
        "sedang",
        "parah",
        "banjir",
        "longsor",
        "gempa",
        "kebakaran",
        "angin",
        "terjadi",
        "melanda",
        "terendam",
        "min",
        "kak",
        "ke",
        "dari",
    }
)

_REGION_NAMES = (
    r"Aceh|Sumatra\s+Utara|Sumatra\s+Barat|Sumatera\s+Utara|Sumatera\s+Barat|"
    r"Medan|Padang|Banda\s+Aceh"
)

KNOWN_CITIES = (
    "Banda Aceh",
    "Medan",
    "Padang",
    "Binjai",
    "Langsa",
    "Lhokseumawe",
    "Tembung",
    "Brandan",
    "Pangkalan Brandan",
    "Deli Serdang",
    "Aceh Barat",
    "Aceh Utara",
    "Aceh Selatan",
    "Aceh Timur",
    "Aceh Tamiang",
    "Bireuen",
    "Pidie",
    "Sibolga",
    "Tapanuli Tengah",
    "Bukittinggi",
    "Pariaman",
    "Agam",
)

_WORD = r"[A-Za-z][A-Za-z'\-]*"
# Up to four words after a cue; punctuation ends the phrase.
_PHRASE_AFTER = rf"({_WORD}(?:[ \t]+{_WORD}){{0,3}})"
# One or two capitalised words directly before a cue.
_PHRASE_BEFORE = r"((?:[A-Z][a-z]+[ \t]+)?[A-Z][a-z]+)"


@dataclass(frozen=True)
class LocationPattern:
    name: str
    regex: re.Pattern[str]


LOCATION_PATTERNS: tuple[LocationPattern, ...] = (
    LocationPattern("preposition", re.compile(rf"\bdi\s+{_PHRASE_AFTER}", re.IGNORECASE)),
    LocationPattern(
        "admin_unit",
        re.compile(
            rf"\b(?:kota|kabupaten|kab\.|kecamatan|kec\.|desa|kelurahan|gampong|nagari|dusun)\s+{_PHRASE_AFTER}",
            re.IGNORECASE,
        ),
    ),
    LocationPattern("before_region", re.compile(rf"{_PHRASE_BEFORE}\s+(?:{_REGION_NAMES})\b")),
    LocationPattern(
        "known_city",
        re.compile(
            r"\b(?:" + "|".join(c.replace(" ", r"\s+") for c in sorted(KNOWN_CITIES, key=len, reverse=True)) + r")\b",
            re.IGNORECASE,
        ),
    ),
    LocationPattern("affected", re.compile(rf"{_PHRASE_BEFORE}\s+(?:yang\s+)?terdampak\b")),
    LocationPattern(
        "zone",
        re.compile(rf"\b(?:wilayah|daerah|kawasan|area)\s+{_PHRASE_AFTER}", re.IGNORECASE),
    ),
)


def clean_location_candidate(raw: str) -> str | None:
    """Normalize one raw match, or ``None`` when nothing place-like is left."""
    tokens = [t.strip(".,;:!?'\"()") for t in raw.split()]
    tokens = [t for t in tokens if t]
    while tokens and (tokens[0].lower() in ADMIN_WORDS or tokens[0].lower() in STOP_WORDS):
        tokens.pop(0)
    kept: list[str] = []
    for token in tokens:
        if token.lower() in STOP_WORDS:
            break
        kept.append(token)
    while kept and kept[-1].lower() in ADMIN_WORDS:
        kept.pop()
    candidate = " ".join(kept).strip(" ,.-")
    if len(candidate) < MIN_LOCATION_LENGTH:
        return None
    return candidate


def find_location_candidates(text: str) -> list[str]:
    """Return unique cleaned candidates in pattern order."""
    if not text or not text.strip():
        return []
    found: list[str] = []
    seen: set[str] = set()
    for pattern in LOCATION_PATTERNS:
        for match in pattern.regex.finditer(text):
            raw = match.group(1) if match.groups() else match.group(0)
            if not raw:
                continue
            candidate = clean_location_candidate(" ".join(raw.split()))
            if candidate is None:
                continue
            key = candidate.casefold()
            if key in seen:
                continue
            seen.add(key)
            found.append(candidate)
    return found


def extract_location_rule_based(text: str | None) -> str | None:
    """Pick the longest candidate, on the assumption it is the most specific."""
    candidates = find_location_candidates(text or "")
    if not candidates:
        return None
    return max(candidates, key=len)


LOCATION_PROMPT = """Extract the location name from this Indonesian disaster report caption. Return ONLY the location name, nothing else.

EXAMPLES:
Caption: "Tolong pak keluarga saya terjebak banjir di rumah lantai 2 bengkel Sukarame desa sekoci kecamatan besitang"
Location: bengkel Sukarame desa sekoci kecamatan besitang

Caption: "Tolong dong min di pantau area jalan arnan"
Location: jalan arnan

Caption: "Banjir di Medan, jalan Sudirman"
Location: jalan Sudirman

RULES:
1. Extract the MOST SPECIFIC location mentioned (street/landmark > village > district > city).
2. Return the full location phrase exactly as written in the caption.
3. Never return generic words such as "Location" or "Area".
4. If no location is mentioned, return null."""


class ModelLocationExtractor:
    """LLM-backed extractor; any failure reads as "no location"."""

    def __init__(self, provider: LLMProvider, *, timeout_seconds: float = 30.0) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    def extract(self, text: str | None) -> str | None:
        if not text or not text.strip():
            return None
        if not self.provider.is_configured():
            return None
        reply = self.provider.complete(
            system=LOCATION_PROMPT,
            user=f"Caption: {text.strip()}\n\nLocation:",
            timeout=self.timeout_seconds,
        )
        if not isinstance(reply, str):
            return None
        location = strip_wrapping_quotes(reply.strip().splitlines()[0] if reply.strip() else "")
        if location.lower().startswith("location:"):
            location = strip_wrapping_quotes(location.split(":", 1)[1])
        if is_generic_location(location):
            if location:
                _log.info("Model returned generic word %r, treating as no location", location)
            return None
        return location


class LocationExtractor:
    """Model extractor first, regex rules when the model has nothing."""

    def __init__(self, model: ModelLocationExtractor | None = None) -> None:
        self.model = model

    def strategies(self) -> list[Strategy[str, str]]:
        strategies: list[Strategy[str, str]] = []
        if self.model is not None:
            strategies.append(Strategy(name="model", run=self.model.extract))
        strategies.append(Strategy(name="rules", run=extract_location_rule_based))
        return strategies

    def extract(self, text: str | None) -> str | None:
        hit = first_result(self.strategies(), text or "")
        return hit.value if hit else None


def build_model_extractor() -> ModelLocationExtractor | None:
    from .llm_provider import get_provider
    from .settings import is_model_location_enabled

    if not is_model_location_enabled():
        _log.info("Model location extraction disabled (no LLM credentials or flag off)")
        return None
    return ModelLocationExtractor(get_provider())
