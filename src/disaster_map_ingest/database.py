"""SQLite persistence for sources, posts, and analyses using SQLModel."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List
from urllib.parse import urlparse

from sqlmodel import Field, Session, SQLModel, create_engine, select

from .models import AnalysisResult, PostCandidate, PostFilters
from .time_utils import parse_published_datetime
from .url_canonical import canonicalize_post_url


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SourceRecord(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    account_url: str = Field(index=True, unique=True)
    account_username: str | None = None
    created_at: str = Field(default_factory=_now_iso)
    last_scraped_at: str | None = None
    is_active: bool = Field(default=True, index=True)


class PostRecord(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    source_id: int | None = Field(default=None, index=True)
    post_url: str = Field(index=True, unique=True)
    image_url: str | None = None
    text: str | None = None
    caption: str | None = None
    hashtags_json: str = "[]"
    location_text: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timestamp: str | None = None
    scraped_at: str = Field(default_factory=_now_iso)

    @property
    def hashtags(self) -> list[str]:
        try:
            value = json.loads(self.hashtags_json or "[]")
        except json.JSONDecodeError:
            return []
        return [str(v) for v in value] if isinstance(value, list) else []

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class AnalysisRecord(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    post_id: int = Field(index=True, unique=True)
    severity: str
    category: str
    urgent_needs: str | None = None
    disaster_type: str = "Lainnya"
    location_extracted: str | None = None
    confidence: float | None = None
    analyzed_at: str = Field(default_factory=_now_iso)

    def urgent_needs_list(self) -> list[str]:
        return [n.strip() for n in (self.urgent_needs or "").split(",") if n.strip()]


@dataclass
class PostWithAnalysis:
    post: PostRecord
    analysis: AnalysisRecord | None
    source: SourceRecord | None

    def to_dict(self) -> dict[str, Any]:
        payload = self.post.model_dump(exclude={"hashtags_json"})
        payload["hashtags"] = self.post.hashtags
        payload["analysis"] = self.analysis.model_dump() if self.analysis else None
        payload["source"] = self.source.model_dump() if self.source else None
        return payload


def default_db_path() -> Path:
    return Path.home() / ".disaster-map-ingest" / "posts.db"


def build_engine(path: Path | None = None):
    db_path = path or default_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{db_path}")


def username_from_url(account_url: str) -> str | None:
    raw = account_url.strip()
    if raw.startswith("#"):
        return raw
    parts = [p for p in urlparse(raw if "://" in raw else f"https://{raw}").path.split("/") if p]
    if len(parts) >= 3 and parts[0] == "explore" and parts[1] == "tags":
        return f"#{parts[2]}"
    return parts[0] if parts else None


def _check_coordinate_pair(latitude: float | None, longitude: float | None) -> None:
    if (latitude is None) != (longitude is None):
        raise ValueError("latitude and longitude must be written together")


def _analysis_fields(analysis: AnalysisResult) -> dict[str, Any]:
    return {
        "severity": analysis.severity,
        "category": analysis.category,
        "urgent_needs": analysis.urgent_needs_display() or None,
        "disaster_type": analysis.disaster_type,
        "location_extracted": analysis.location_extracted,
        "confidence": analysis.confidence,
    }


def _timestamp_sort_key(post: PostRecord) -> tuple[int, float]:
    dt = parse_published_datetime(post.timestamp)
    if dt is None:
        return (1, 0.0)
    return (0, -dt.timestamp())


class PostStore:
    """Key/record CRUD over the three tables.

    Lookups return ``None`` for a miss. Connectivity faults surface as
    SQLAlchemy errors.
    """

    def __init__(self, path: Path | None = None, *, engine=None) -> None:
        self.engine = engine if engine is not None else build_engine(path)
        SQLModel.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    # ── Sources ──────────────────────────────────────────────────────

    def add_source(self, account_url: str, account_username: str | None = None) -> SourceRecord:
        url = account_url.strip()
        if not url:
            raise ValueError("account_url is required")
        with self._session() as session:
            existing = session.exec(select(SourceRecord).where(SourceRecord.account_url == url)).first()
            if existing is not None:
                existing.is_active = True
                if account_username:
                    existing.account_username = account_username
                session.add(existing)
                session.commit()
                session.refresh(existing)
                return existing
            record = SourceRecord(
                account_url=url,
                account_username=account_username or username_from_url(url),
            )
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def deactivate_source(self, source_id: int) -> bool:
        with self._session() as session:
            record = session.get(SourceRecord, source_id)
            if record is None:
                return False
            record.is_active = False
            session.add(record)
            session.commit()
            return True

    def get_source(self, source_id: int) -> SourceRecord | None:
        with self._session() as session:
            return session.get(SourceRecord, source_id)

    def list_sources(self, *, active_only: bool = False) -> list[SourceRecord]:
        with self._session() as session:
            statement = select(SourceRecord)
            if active_only:
                statement = statement.where(SourceRecord.is_active == True)  # noqa: E712
            records = list(session.exec(statement))
        records.sort(key=lambda r: (r.created_at, r.id or 0), reverse=True)
        return records

    def list_active_sources(self) -> list[SourceRecord]:
        return self.list_sources(active_only=True)

    def mark_source_run(self, source_id: int) -> None:
        with self._session() as session:
            record = session.get(SourceRecord, source_id)
            if record is None:
                return
            record.last_scraped_at = _now_iso()
            session.add(record)
            session.commit()

    # ── Posts ────────────────────────────────────────────────────────

    def find_post_by_url(self, post_url: str) -> PostRecord | None:
        url = canonicalize_post_url(post_url)
        with self._session() as session:
            return session.exec(select(PostRecord).where(PostRecord.post_url == url)).first()

    def get_post(self, post_id: int) -> PostRecord | None:
        with self._session() as session:
            return session.get(PostRecord, post_id)

    def create_post(self, candidate: PostCandidate) -> PostRecord:
        _check_coordinate_pair(candidate.latitude, candidate.longitude)
        record = PostRecord(
            source_id=candidate.source_id,
            post_url=canonicalize_post_url(candidate.post_url),
            image_url=candidate.image_url,
            text=candidate.text,
            caption=candidate.caption,
            hashtags_json=json.dumps(list(candidate.hashtags), ensure_ascii=False),
            location_text=candidate.location_text,
            latitude=candidate.latitude,
            longitude=candidate.longitude,
            timestamp=candidate.timestamp,
        )
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        return record

    def update_post(self, post_id: int, candidate: PostCandidate) -> PostRecord | None:
        _check_coordinate_pair(candidate.latitude, candidate.longitude)
        with self._session() as session:
            record = session.get(PostRecord, post_id)
            if record is None:
                return None
            if candidate.source_id is not None:
                record.source_id = candidate.source_id
            record.image_url = candidate.image_url
            record.text = candidate.text
            record.caption = candidate.caption
            record.hashtags_json = json.dumps(list(candidate.hashtags), ensure_ascii=False)
            record.location_text = candidate.location_text
            record.latitude = candidate.latitude
            record.longitude = candidate.longitude
            record.timestamp = candidate.timestamp
            record.scraped_at = _now_iso()
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def count_posts(self) -> int:
        with self._session() as session:
            return len(list(session.exec(select(PostRecord.id))))

    # ── Analyses ─────────────────────────────────────────────────────

    def find_analysis_by_post_id(self, post_id: int) -> AnalysisRecord | None:
        with self._session() as session:
            return session.exec(select(AnalysisRecord).where(AnalysisRecord.post_id == post_id)).first()

    def create_analysis(self, post_id: int, analysis: AnalysisResult) -> AnalysisRecord:
        record = AnalysisRecord(post_id=post_id, **_analysis_fields(analysis))
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        return record

    def update_analysis(self, analysis_id: int, analysis: AnalysisResult) -> AnalysisRecord | None:
        with self._session() as session:
            record = session.get(AnalysisRecord, analysis_id)
            if record is None:
                return None
            for key, value in _analysis_fields(analysis).items():
                setattr(record, key, value)
            record.analyzed_at = _now_iso()
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def count_analyses(self) -> int:
        with self._session() as session:
            return len(list(session.exec(select(AnalysisRecord.id))))

    # ── Display query ────────────────────────────────────────────────

    def list_posts_with_analysis(
        self,
        filters: PostFilters | None = None,
        *,
        limit: int = 1000,
    ) -> List[PostWithAnalysis]:
        filters = filters or PostFilters()
        with self._session() as session:
            posts = list(session.exec(select(PostRecord)))
            analyses = {a.post_id: a for a in session.exec(select(AnalysisRecord))}
            sources = {s.id: s for s in session.exec(select(SourceRecord))}

        posts.sort(key=_timestamp_sort_key)
        area = filters.area.lower() if filters.area else None
        matched: list[PostWithAnalysis] = []
        for post in posts:
            analysis = analyses.get(post.id)
            if filters.severity and (analysis is None or analysis.severity not in filters.severity):
                continue
            if filters.disaster_type and (
                analysis is None or analysis.disaster_type not in filters.disaster_type
            ):
                continue
            if area:
                location_hit = area in (post.location_text or "").lower()
                extracted_hit = analysis is not None and area in (analysis.location_extracted or "").lower()
                if not (location_hit or extracted_hit):
                    continue
            matched.append(PostWithAnalysis(post=post, analysis=analysis, source=sources.get(post.source_id)))
            if len(matched) >= limit:
                break
        return matched
