"""Crawler collaborator: the interface the pipeline consumes plus a page reader.

The pipeline only needs two calls, ``fetch_candidates`` and
``fetch_detail``. Both return empty results for "not found" and raise
:class:`~.errors.CrawlerTransportError` only for transport faults.

:class:`HttpPostCrawler` reads public post pages over HTTP and takes what it
needs from OpenGraph metadata. It makes no attempt to mirror the site's
full markup.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable
from urllib.parse import quote, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from .errors import CrawlerTransportError
from .models import RawPost
from .url_canonical import canonicalize_post_url

_log = logging.getLogger(__name__)

BASE_URL = "https://www.instagram.com"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

_POST_HREF_RE = re.compile(r"^(?:https?://(?:www\.)?instagram\.com)?/(?:[^/]+/)?(?:p|reel|tv)/[A-Za-z0-9_\-]+/?")
_HASHTAG_RE = re.compile(r"#(\w+)", re.UNICODE)
_DESCRIPTION_DATE_RE = re.compile(r"\bon ([A-Z][a-z]+ \d{1,2}, \d{4})")


@dataclass
class CrawlerSession:
    """Login state shared by every fetch within and across runs.

    One owner (the orchestrator) passes it to the crawler. All mutation goes
    through the lock, so access stays serialized if fetches ever run on
    more than one thread.
    """

    logged_in: bool = False
    cookies: dict[str, str] = field(default_factory=dict)
    last_checked_at: str | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def reset(self) -> None:
        with self._lock:
            self.logged_in = False
            self.cookies = {}

    def update(self, *, logged_in: bool, cookies: dict[str, str]) -> None:
        with self._lock:
            self.logged_in = logged_in
            self.cookies = dict(cookies)
            self.last_checked_at = datetime.now(UTC).isoformat()

    def ensure_live(
        self,
        is_live: Callable[["CrawlerSession"], bool],
        login: Callable[["CrawlerSession"], dict[str, str] | None],
    ) -> bool:
        """Re-establish the session when the liveness check fails."""
        with self._lock:
            if self.logged_in and is_live(self):
                self.last_checked_at = datetime.now(UTC).isoformat()
                return True
            self.logged_in = False
            self.cookies = {}
            cookies = login(self)
            if cookies is None:
                _log.info("Crawler session not established, continuing anonymously")
                return False
            self.logged_in = True
            self.cookies = dict(cookies)
            self.last_checked_at = datetime.now(UTC).isoformat()
            return True


class Crawler(ABC):
    @abstractmethod
    def fetch_candidates(self, source_url: str, limit: int) -> list[RawPost]:
        """List up to *limit* recent posts for a source, URLs only."""

    @abstractmethod
    def fetch_detail(self, post_url: str, timeout_seconds: float) -> RawPost | None:
        """Fetch one post's full detail, or ``None`` when it is gone."""

    def close(self) -> None:
        return None


def source_page_url(source: str) -> str:
    """Map a profile URL, bare username, or hashtag to the page to crawl."""
    raw = source.strip()
    if raw.startswith("#"):
        return f"{BASE_URL}/explore/tags/{quote(raw[1:])}/"
    if "://" not in raw and "/" not in raw.strip("/"):
        return f"{BASE_URL}/{raw.strip('/').lstrip('@')}/"
    parsed = urlparse(raw if "://" in raw else f"https://{raw}")
    path = parsed.path if parsed.path.endswith("/") else parsed.path + "/"
    return f"https://{parsed.netloc.lower() or 'www.instagram.com'}{path}"


def _meta(soup: BeautifulSoup, *names: str) -> str | None:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
        if tag is not None:
            content = tag.get("content")
            if isinstance(content, str) and content.strip():
                return content.strip()
    return None


def caption_from_description(description: str | None) -> str | None:
    """Pull the quoted caption out of an ``og:description`` summary line."""
    if not description:
        return None
    match = re.search(r':\s*["“](.*)["”]\s*\.?\s*$', description, flags=re.DOTALL)
    if match:
        return match.group(1).strip() or None
    return description.strip() or None


def timestamp_from_page(soup: BeautifulSoup, description: str | None) -> str | None:
    published = _meta(soup, "article:published_time", "og:updated_time")
    if published:
        return published
    time_tag = soup.find("time")
    if time_tag is not None and time_tag.get("datetime"):
        return str(time_tag["datetime"])
    if description:
        match = _DESCRIPTION_DATE_RE.search(description)
        if match:
            try:
                return datetime.strptime(match.group(1), "%B %d, %Y").replace(tzinfo=UTC).isoformat()
            except ValueError:
                return None
    return None


def parse_post_page(post_url: str, html: str) -> RawPost | None:
    soup = BeautifulSoup(html, "html.parser")
    description = _meta(soup, "og:description", "description")
    title = _meta(soup, "og:title")
    caption = caption_from_description(description)
    text = caption_from_description(title) if title else None
    if not caption and not text:
        return None

    location_text = None
    location_anchor = soup.find("a", href=re.compile(r"/explore/locations/"))
    if location_anchor is not None:
        location_text = location_anchor.get_text(strip=True) or None

    hashtags: list[str] = []
    for tag in _HASHTAG_RE.findall(caption or text or ""):
        if tag not in hashtags:
            hashtags.append(tag)

    return RawPost(
        post_url=canonicalize_post_url(post_url),
        image_url=_meta(soup, "og:image"),
        text=text,
        caption=caption,
        hashtags=hashtags,
        location_text=location_text,
        timestamp=timestamp_from_page(soup, description),
    )


def parse_candidate_links(page_url: str, html: str, limit: int) -> list[RawPost]:
    soup = BeautifulSoup(html, "html.parser")
    urls: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"])
        if not _POST_HREF_RE.match(href):
            continue
        url = canonicalize_post_url(urljoin(page_url, href))
        if url not in urls:
            urls.append(url)
        if len(urls) >= limit:
            break
    return [RawPost(post_url=url) for url in urls]


class HttpPostCrawler(Crawler):
    """Reads profile, hashtag, and post pages with one persistent client."""

    def __init__(
        self,
        session: CrawlerSession,
        *,
        credentials: tuple[str, str] | None = None,
        client: httpx.Client | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self.session = session
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept-Language": "id-ID,id;q=0.9,en;q=0.8"},
        )
        if session.cookies:
            self._client.cookies.update(session.cookies)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ── Session ──────────────────────────────────────────────────────

    def _is_live(self, session: CrawlerSession) -> bool:
        return bool(session.cookies.get("sessionid")) and bool(self._client.cookies.get("sessionid"))

    def _login(self, session: CrawlerSession) -> dict[str, str] | None:
        if self.credentials is None:
            return None
        username, password = self.credentials
        self._client.cookies.clear()
        try:
            self._client.get(f"{BASE_URL}/accounts/login/")
            csrf = self._client.cookies.get("csrftoken", "")
            response = self._client.post(
                f"{BASE_URL}/accounts/login/ajax/",
                data={
                    "username": username,
                    "enc_password": f"#PWD_INSTAGRAM_BROWSER:0:{int(time.time())}:{password}",
                },
                headers={"X-CSRFToken": csrf, "Referer": f"{BASE_URL}/accounts/login/"},
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            _log.warning("Crawler login failed: %s", exc)
            return None
        if not isinstance(payload, dict) or not payload.get("authenticated"):
            _log.warning("Crawler login rejected for %s", username)
            return None
        _log.info("Crawler logged in as %s", username)
        return {name: value for name, value in self._client.cookies.items()}

    def ensure_session(self) -> bool:
        if self.credentials is None:
            return False
        return self.session.ensure_live(self._is_live, self._login)

    # ── Fetching ─────────────────────────────────────────────────────

    def _get(self, url: str, timeout_seconds: float | None = None) -> httpx.Response | None:
        try:
            response = self._client.get(url, timeout=timeout_seconds or self.timeout_seconds)
        except httpx.HTTPError as exc:
            raise CrawlerTransportError(f"GET {url} failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise CrawlerTransportError(f"GET {url} returned HTTP {response.status_code}")
        return response

    def fetch_candidates(self, source_url: str, limit: int) -> list[RawPost]:
        self.ensure_session()
        page_url = source_page_url(source_url)
        response = self._get(page_url)
        if response is None:
            _log.info("Source page not found: %s", page_url)
            return []
        candidates = parse_candidate_links(page_url, response.text, limit)
        _log.info("Found %d candidate posts on %s", len(candidates), page_url)
        return candidates

    def fetch_detail(self, post_url: str, timeout_seconds: float) -> RawPost | None:
        response = self._get(canonicalize_post_url(post_url), timeout_seconds)
        if response is None:
            return None
        return parse_post_page(post_url, response.text)
