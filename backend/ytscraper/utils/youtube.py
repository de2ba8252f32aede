"""Helpers for recognising YouTube video URLs."""

import re
from urllib.parse import parse_qs, urlparse

YOUTUBE_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
}
SHORT_HOSTS = {"youtu.be", "www.youtu.be"}
PATH_PREFIXES = ("shorts", "embed", "live", "v")

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def extract_video_id(url: str) -> str | None:
    """Return the YouTube video id carried by ``url``, or None if it is not a video URL.

    Supported forms::

        https://www.youtube.com/watch?v=<id>
        https://youtu.be/<id>
        https://www.youtube.com/shorts/<id>   (also /embed/, /live/, /v/)
    """
    if not url or not isinstance(url, str):
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https"):
        return None

    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]

    candidate = None
    if host in SHORT_HOSTS:
        candidate = segments[0] if segments else None
    elif host in YOUTUBE_HOSTS:
        if parsed.path.rstrip("/") == "/watch":
            values = parse_qs(parsed.query).get("v")
            candidate = values[0] if values else None
        elif len(segments) >= 2 and segments[0] in PATH_PREFIXES:
            candidate = segments[1]

    if candidate and _VIDEO_ID_RE.match(candidate):
        return candidate
    return None


def is_video_url(url: str) -> bool:
    return extract_video_id(url) is not None


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"
