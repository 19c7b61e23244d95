"""Text helpers: HTML sanitizing and hashtag extraction."""
import re

import nh3

HASHTAG_RE = re.compile(r"#(\w+)", re.UNICODE)
MAX_HASHTAG_LENGTH = 50

# Tags removed together with everything inside them.
_STRIP_WITH_CONTENT = {"script", "style", "iframe"}


def sanitize_html(value: str | None) -> str | None:
    """Strip all markup; script, style and iframe bodies are dropped entirely."""
    if value is None:
        return None
    return nh3.clean(value, tags=set(), clean_content_tags=_STRIP_WITH_CONTENT).strip()


def normalize_hashtag(tag: str) -> str:
    return tag.strip().lstrip("#").lower()


def extract_hashtags(text: str | None) -> list[str]:
    """Lowercased ``#tags`` from ``text``, first occurrence order, no duplicates."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for match in HASHTAG_RE.findall(text):
        tag = match.lower()
        if len(tag) <= MAX_HASHTAG_LENGTH:
            seen.setdefault(tag, None)
    return list(seen)


def merge_hashtags(explicit: list[str] | None, caption: str | None) -> list[str]:
    """Explicit tags first, then tags found in the caption."""
    seen: dict[str, None] = {}
    for tag in explicit or []:
        name = normalize_hashtag(tag)
        if name and len(name) <= MAX_HASHTAG_LENGTH:
            seen.setdefault(name, None)
    for name in extract_hashtags(caption):
        seen.setdefault(name, None)
    return list(seen)
