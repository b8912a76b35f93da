"""Text normalisation shared by every text comparison in the package.

All matching is whitespace- and case-insensitive by construction:
both sides of a comparison go through :func:`normalize_text`.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Collapse whitespace runs to one space, trim, and lower-case."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip().lower()


def contains_any(haystack: str, needles: list[str] | tuple[str, ...]) -> bool:
    """Return ``True`` if normalised *haystack* contains any normalised needle.

    Empty needles never match.
    """
    text = normalize_text(haystack)
    for needle in needles:
        term = normalize_text(needle)
        if term and term in text:
            return True
    return False
