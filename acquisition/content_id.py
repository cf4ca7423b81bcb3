"""Content id parsing for YouTube / YouTube Music links."""

import re
from typing import Optional
from urllib.parse import urlparse, parse_qs

from shared.constants import CANONICAL_WATCH_URL, CONTENT_ID_PATTERN, THUMBNAIL_URL_TEMPLATE

_CONTENT_ID_RE = re.compile(rf"^{CONTENT_ID_PATTERN}$")
# Generic fallback for links the structured parse does not recognise
_FALLBACK_RE = re.compile(rf"(?:v=|/|youtu\.be/)({CONTENT_ID_PATTERN})")
_PATH_PREFIXES = ("shorts", "embed", "live", "v")


def is_valid_content_id(content_id: Optional[str]) -> bool:
    """True if this looks like a YouTube video id (11 chars, alphanumeric + -_)."""
    if not content_id or not isinstance(content_id, str):
        return False
    return bool(_CONTENT_ID_RE.match(content_id))


def _from_parsed_url(url: str) -> Optional[str]:
    parsed = urlparse(url)
    host = (parsed.netloc or "").lower()
    if "youtu.be" in host:
        vid = (parsed.path or "").strip("/").split("/")[0]
        return vid or None
    if "youtube.com" in host:
        q = parse_qs(parsed.query)
        vid = (q.get("v") or [None])[0]
        if vid:
            return vid
        parts = [p for p in (parsed.path or "").split("/") if p]
        if len(parts) >= 2 and parts[0] in _PATH_PREFIXES:
            return parts[1]
    return None


def extract_content_id(url: str) -> Optional[str]:
    """
    Extract the video id from youtube.com, youtu.be, music.youtube.com,
    /shorts/ and /embed/ links. Returns None when nothing valid is found.
    """
    if not url or not isinstance(url, str):
        return None
    url = url.strip()
    vid = _from_parsed_url(url)
    if is_valid_content_id(vid):
        return vid
    match = _FALLBACK_RE.search(url)
    if match:
        return match.group(1)
    return None


def canonical_url(content_id: str) -> str:
    return CANONICAL_WATCH_URL.format(content_id=content_id)


def default_thumbnail_url(content_id: str) -> str:
    return THUMBNAIL_URL_TEMPLATE.format(content_id=content_id)
