"""Runtime state kept between ingestion runs: crawler cookies and last summary."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from .crawler import CrawlerSession


@dataclass
class RuntimeState:
    cookies: Dict[str, str] = field(default_factory=dict)
    logged_in: bool = False
    last_run_at: Optional[str] = None
    last_summary: str = ""

    def touch(self) -> None:
        self.last_run_at = datetime.now(timezone.utc).isoformat()

    def to_session(self) -> CrawlerSession:
        return CrawlerSession(logged_in=self.logged_in and bool(self.cookies), cookies=dict(self.cookies))

    def absorb_session(self, session: CrawlerSession) -> None:
        self.cookies = dict(session.cookies)
        self.logged_in = session.logged_in

    def to_dict(self) -> dict:
        return {
            "cookies": self.cookies,
            "logged_in": self.logged_in,
            "last_run_at": self.last_run_at,
            "last_summary": self.last_summary,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "RuntimeState":
        cookies = payload.get("cookies") or {}
        return cls(
            cookies={str(k): str(v) for k, v in cookies.items()} if isinstance(cookies, dict) else {},
            logged_in=bool(payload.get("logged_in", False)),
            last_run_at=payload.get("last_run_at"),
            last_summary=payload.get("last_summary", ""),
        )


def default_state_path() -> Path:
    return Path.home() / ".disaster-map-ingest" / "runtime_state.json"


def load_state(path: Optional[Path] = None) -> RuntimeState:
    state_path = path or default_state_path()
    if not state_path.exists():
        return RuntimeState()
    try:
        payload = json.loads(state_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return RuntimeState()
    return RuntimeState.from_dict(payload) if isinstance(payload, dict) else RuntimeState()


def save_state(state: RuntimeState, path: Optional[Path] = None) -> Path:
    state_path = path or default_state_path()
    state_path.parent.mkdir(parents=True, exist_ok=True)
    state_path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
    return state_path
