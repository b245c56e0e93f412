"""Platform resolution and URL fingerprinting for content URLs."""

from __future__ import annotations

import re
from typing import Literal, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


PlatformTag = Literal["youtube", "instagram", "tiktok", "unknown"]

SUPPORTED_PLATFORMS: Tuple[str, ...] = ("youtube", "instagram", "tiktok")
UNKNOWN_PLATFORM = "unknown"

_PLATFORM_PATTERNS = (
    ("youtube", re.compile(r"(?:^|[/.@])(?:youtube\.com|youtu\.be)(?:[/:?#]|$)", re.IGNORECASE)),
    ("instagram", re.compile(r"(?:^|[/.@])instagram\.com(?:[/:?#]|$)", re.IGNORECASE)),
    ("tiktok", re.compile(r"(?:^|[/.@])tiktok\.com(?:[/:?#]|$)", re.IGNORECASE)),
)

_YOUTUBE_VIDEO_ID = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts|live)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})",
    re.IGNORECASE,
)

# Query parameters that identify the content; everything else is tracking noise.
_IDENTIFYING_PARAMS = {"v"}
_STRIPPED_HOST_PREFIXES = ("www.", "m.", "mobile.")


def resolve_platform(url: object) -> PlatformTag:
    """Classify a content URL by platform. Never raises; unmatched input is 'unknown'."""
    if not isinstance(url, str):
        return UNKNOWN_PLATFORM
    candidate = url.strip()
    if not candidate:
        return UNKNOWN_PLATFORM
    for platform, pattern in _PLATFORM_PATTERNS:
        if pattern.search(candidate):
            return platform  # type: ignore[return-value]
    return UNKNOWN_PLATFORM


def normalize_url(url: str) -> str:
    """Canonical form used for cache fingerprints."""
    raw = str(url or "").strip()
    if "://" not in raw:
        raw = f"https://{raw}"
    parts = urlsplit(raw)
    host = parts.netloc.lower()
    for prefix in _STRIPPED_HOST_PREFIXES:
        if host.startswith(prefix):
            host = host[len(prefix):]
            break
    query = urlencode(
        sorted((key, value) for key, value in parse_qsl(parts.query) if key in _IDENTIFYING_PARAMS)
    )
    path = parts.path.rstrip("/")
    return urlunsplit(("https", host, path, query, ""))


def fingerprint(platform: str, url: str) -> str:
    """Cache key for one fetch request: '<platform>:<normalized url>'."""
    return f"{platform}:{normalize_url(url)}"


def extract_youtube_video_id(url: str) -> Optional[str]:
    match = _YOUTUBE_VIDEO_ID.search(str(url or ""))
    return match.group(1) if match else None
