"""Text and URL normalization shared by extraction and validation."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f\u200b-\u200f\ufeff]")
_WHITESPACE_RE = re.compile(r"\s+")
_PLAY_COUNT_RE = re.compile(r"[^0-9.万亿千]")


def clean_text(text: str | None) -> str:
    """Collapse whitespace, strip control characters and trim."""
    if not text:
        return ""
    text = _CONTROL_CHARS_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def is_absolute_url(url: str | None) -> bool:
    """True for syntactically valid absolute http(s) URLs."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_url(url: str | None, base_url: str) -> str:
    """Resolve a possibly relative URL against the source's base origin.

    - absolute http(s) URLs are returned unchanged
    - protocol-relative URLs (//host/x) take the base URL's scheme
    - everything else is joined onto the base URL

    Returns "" for empty input, javascript:/data: pseudo links, or
    anything that still isn't a valid absolute URL after resolution.
    """
    url = clean_text(url)
    if not url or url.startswith(("javascript:", "data:", "#", "mailto:")):
        return ""
    if url.startswith("//"):
        scheme = urlparse(base_url).scheme or "https"
        resolved = f"{scheme}:{url}"
    elif is_absolute_url(url):
        resolved = url
    else:
        resolved = urljoin(base_url.rstrip("/") + "/", url)
    return resolved if is_absolute_url(resolved) else ""


def parse_play_count(text: str | None) -> int:
    """Parse play/like counts such as "1.2万", "3亿", "15,300"."""
    if not text:
        return 0
    cleaned = _PLAY_COUNT_RE.sub("", text.replace(",", ""))
    multiplier = 1
    if "亿" in cleaned:
        multiplier = 100_000_000
    elif "万" in cleaned:
        multiplier = 10_000
    elif "千" in cleaned:
        multiplier = 1_000
    number = re.sub(r"[万亿千]", "", cleaned)
    try:
        return int(float(number) * multiplier)
    except ValueError:
        return 0


def parse_score(text: str | None) -> float | None:
    match = re.search(r"\d+(?:\.\d+)?", text or "")
    if not match:
        return None
    return float(match.group(0))
