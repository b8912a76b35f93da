"""
URL helpers used for per-domain dedup and region detection.
"""

from __future__ import annotations

from urllib import parse


def extract_domain(url: str) -> str:
    """Extract the lower-cased hostname from a URL string.

    Returns an empty string when the URL has no hostname
    (``about:blank``, ``data:`` URLs, malformed input).
    """
    try:
        parsed = parse.urlparse(url)
    except ValueError:
        return ""
    return (parsed.hostname or "").lower()
