# chatrooms/services/sanitize.py

from __future__ import annotations

import html
from typing import Any, Iterable, List

NAME_MAX = 50
TAG_MAX = 50
TEXT_MAX = 2000
PASSWORD_MAX = 200


def sanitize(value: Any, max_len: int = TEXT_MAX) -> str:
    """
    Escape markup in an untrusted value and cap its length.

    None becomes an empty string, anything else is converted with str().
    Truncation happens after escaping so the stored text never exceeds max_len.
    """
    if value is None:
        return ""
    return html.escape(str(value), quote=True)[:max_len]


def sanitize_name(value: Any, default: str = "Anonymous") -> str:
    """Sanitize a display name, falling back to ``default`` when blank."""
    name = sanitize(value, NAME_MAX).strip()
    return name or default


def parse_tags(raw: Any) -> List[str]:
    """
    Turn a comma-separated string (or a list of strings) into tags.

    Each tag is trimmed, sanitized and capped; empties and repeats are dropped
    while the first-seen order is kept.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts: Iterable[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        parts = raw
    else:
        parts = str(raw).split(",")

    tags: List[str] = []
    for part in parts:
        tag = sanitize(str(part).strip(), TAG_MAX).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags
