"""Source URL parsing: YouTube video and Reddit post identifiers."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from ..errors import ErrorKind, InsightsError
from ..models.comments import Platform

_YOUTUBE_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
_REDDIT_ID = re.compile(r"^[a-z0-9]{5,10}$", re.IGNORECASE)


def _is_youtube_host(host: str) -> bool:
    """Check if host is a youtube.com domain (including subdomains like www.youtube.com)."""
    host = host.lower().split(":", 1)[0]
    return host == "youtube.com" or host.endswith(".youtube.com")


def _is_youtu_be_host(host: str) -> bool:
    host = host.lower().split(":", 1)[0]
    return host in {"youtu.be", "www.youtu.be"}


def _is_reddit_host(host: str) -> bool:
    host = host.lower().split(":", 1)[0]
    return host == "reddit.com" or host.endswith(".reddit.com")


def extract_youtube_id(url: str) -> str | None:
    """Extract a video ID from a YouTube URL or bare 11-char ID.

    Handles youtu.be/<id>, youtube.com/watch?v=<id>, and /shorts|embed|live/<id>.
    """
    url = url.strip()
    if _YOUTUBE_ID.match(url):
        return url
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = parsed.netloc.lower()
    if _is_youtu_be_host(host):
        candidate = parsed.path.strip("/").split("/", 1)[0]
    elif _is_youtube_host(host):
        candidate = parse_qs(parsed.query).get("v", [""])[0]
        if not candidate:
            parts = [p for p in parsed.path.split("/") if p]
            if len(parts) >= 2 and parts[0] in {"shorts", "embed", "live"}:
                candidate = parts[1]
    else:
        return None
    return candidate if _YOUTUBE_ID.match(candidate or "") else None


def extract_reddit_id(url: str) -> str | None:
    """Extract a post ID from reddit.com/r/<sub>/comments/<id>/... or redd.it/<id>."""
    url = url.strip()
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = parsed.netloc.lower()
    parts = [p for p in parsed.path.split("/") if p]
    if host in {"redd.it", "www.redd.it"} and parts:
        candidate = parts[0]
    elif _is_reddit_host(host) and "comments" in parts:
        idx = parts.index("comments")
        candidate = parts[idx + 1] if idx + 1 < len(parts) else ""
    else:
        return None
    return candidate.lower() if _REDDIT_ID.match(candidate) else None


def resolve_source(url: str) -> tuple[Platform, str]:
    """Map a URL (or bare ID) to ``(platform, external_id)``.

    Raises:
        InsightsError: URL_INVALID when neither platform recognises it.
    """
    video_id = extract_youtube_id(url)
    if video_id:
        return "youtube", video_id
    post_id = extract_reddit_id(url)
    if post_id:
        return "reddit", post_id
    bare = url.strip()
    if _REDDIT_ID.match(bare):
        return "reddit", bare.lower()
    raise InsightsError(ErrorKind.URL_INVALID, f"Not a YouTube or Reddit URL: {url}")
