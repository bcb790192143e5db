"""Normalize extractor output into a deduplicated media-URL list.

gallery-dl prints one candidate URL per line. yt-dlp prints a JSON document
describing a single media item or a playlist-like object with ``entries``.
Both end up as an ``ExtractedMedia``.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

_HTTP_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


class ExtractorOutputError(ValueError):
    """Raised when extractor output cannot be decoded."""


@dataclass(frozen=True)
class ExtractedMedia:
    media_urls: list[str] = field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None


def is_http_url(value: Any) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(value, str) or not _HTTP_URL_RE.match(value):
        return False
    try:
        return bool(urlparse(value).netloc)
    except ValueError:
        # Unbalanced IPv6 brackets, e.g. "http://[x"
        return False


def dedupe(urls: Iterable[Optional[str]]) -> list[str]:
    """Drop empty values and duplicates, keeping first-occurrence order."""
    return list(dict.fromkeys(url for url in urls if url))


def parse_gallery_output(stdout: str) -> ExtractedMedia:
    lines = (line.strip() for line in (stdout or "").splitlines())
    return ExtractedMedia(media_urls=dedupe(line for line in lines if is_http_url(line)))


def load_json_payload(stdout: str) -> Any:
    """Decode yt-dlp output.

    The whole payload is tried first. Some yt-dlp builds print several JSON
    documents (or stray log lines) separated by newlines; in that case the
    last line that decodes wins.

    Raises:
        ExtractorOutputError: Output is empty or no line is valid JSON.
    """
    trimmed = (stdout or "").strip()
    if not trimmed:
        raise ExtractorOutputError("yt-dlp returned empty output")

    try:
        return json.loads(trimmed)
    except ValueError:
        pass

    for line in reversed(trimmed.splitlines()):
        try:
            return json.loads(line)
        except ValueError:
            continue

    raise ExtractorOutputError("Failed to parse yt-dlp JSON output")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _thumbnail_area(thumb: dict) -> float:
    width, height = thumb.get("width"), thumb.get("height")
    if _is_number(width) and _is_number(height):
        return width * height
    return 0


def largest_thumbnail_url(entry: dict) -> Optional[str]:
    """URL of the thumbnail with the largest pixel area.

    Thumbnails without numeric width and height count as area 0. Ties keep
    list order (sorted() is stable).
    """
    thumbnails = entry.get("thumbnails")
    if not isinstance(thumbnails, list):
        return None

    candidates = [
        thumb
        for thumb in thumbnails
        if isinstance(thumb, dict) and is_http_url(thumb.get("url"))
    ]
    if not candidates:
        return None

    candidates = sorted(candidates, key=_thumbnail_area, reverse=True)
    return candidates[0]["url"]


def entry_media_urls(entry: dict) -> list[str]:
    urls = []
    if is_http_url(entry.get("url")):
        urls.append(entry["url"])
    if is_http_url(entry.get("thumbnail")):
        urls.append(entry["thumbnail"])

    urls.append(largest_thumbnail_url(entry))

    formats = entry.get("formats")
    if isinstance(formats, list):
        for fmt in formats:
            if isinstance(fmt, dict) and is_http_url(fmt.get("url")):
                urls.append(fmt["url"])

    return dedupe(urls)


def _string_field(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def parse_general_output(stdout: str) -> ExtractedMedia:
    """Normalize yt-dlp ``--dump-single-json`` output.

    Only the top-level title/description are surfaced; per-entry metadata of
    multi-item posts is dropped.

    Raises:
        ExtractorOutputError: Output is not decodable JSON.
    """
    payload = load_json_payload(stdout)
    if not isinstance(payload, dict):
        return ExtractedMedia()

    raw_entries = payload.get("entries")
    entries = (
        [item for item in raw_entries if isinstance(item, dict)]
        if isinstance(raw_entries, list)
        else []
    )

    if entries:
        media_urls = dedupe(url for entry in entries for url in entry_media_urls(entry))
    else:
        media_urls = entry_media_urls(payload)

    return ExtractedMedia(
        media_urls=media_urls,
        title=_string_field(payload, "title"),
        description=_string_field(payload, "description"),
    )
