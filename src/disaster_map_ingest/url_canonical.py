"""Post URL canonicalization so repeated crawls map to the same natural key."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

TRACKING_QUERY_PREFIXES = ("utm_",)
TRACKING_QUERY_KEYS = {
    "igsh",
    "igshid",
    "img_index",
    "fbclid",
    "hl",
}

_POST_PATH_RE = re.compile(r"^/(?:[^/]+/)?(p|reel|tv)/([A-Za-z0-9_\-]+)/?$")


def _strip_tracking_params(query: str) -> str:
    qs = parse_qs(query, keep_blank_values=False)
    clean_qs: dict[str, list[str]] = {}
    for key, values in qs.items():
        lk = key.lower()
        if lk in TRACKING_QUERY_KEYS:
            continue
        if any(lk.startswith(prefix) for prefix in TRACKING_QUERY_PREFIXES):
            continue
        clean_qs[key] = values
    return urlencode(clean_qs, doseq=True)


def canonicalize_post_url(url: str) -> str:
    raw = (url or "").strip()
    if not raw:
        return raw
    if raw.startswith("//"):
        raw = "https:" + raw
    elif not re.match(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://", raw):
        raw = "https://" + raw.lstrip("/")

    parsed = urlparse(raw)
    host = parsed.netloc.lower()
    if host == "instagram.com":
        host = "www.instagram.com"
    path = parsed.path or "/"
    match = _POST_PATH_RE.match(path)
    if match:
        # Profile-scoped post links (/<user>/p/<code>/) resolve to the same post.
        path = f"/{match.group(1)}/{match.group(2)}/"
    return urlunparse(("https", host, path, "", _strip_tracking_params(parsed.query), ""))
