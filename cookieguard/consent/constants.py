"""Shared vocabularies and limits for consent detection and interaction."""

from __future__ import annotations

import re

# Generic clickable controls scanned when no selector rule matches.
CLICKABLE_SELECTOR = (
    "button, [role='button'], input[type='button'], input[type='submit'], a[class*='button'], a[class*='btn']"
)

CHECKBOX_SELECTOR = "input[type='checkbox'], [role='checkbox'], [role='switch']"

# Tags whose elements the dialog content scan considers as containers.
CONTAINER_TAGS: tuple[str, ...] = (
    "div",
    "section",
    "aside",
    "header",
    "footer",
    "main",
    "article",
    "nav",
    "form",
    "dialog",
)

# Minimum rendered size for a content-scan dialog candidate.
MIN_DIALOG_WIDTH = 50
MIN_DIALOG_HEIGHT = 30

# A candidate found by id/class keyword earns this bonus per category,
# and one exposing at least one control earns the control bonus.
KEYWORD_BONUS = 5.0
CONTROL_BONUS = 3.0

# Minimum score for reverse classification to name a type.
MIN_TYPE_SCORE = 5.0

# Bonus for an id/class pattern hit during reverse classification.
ATTRIBUTE_PATTERN_SCORE = 5.0

# Phrases that mark a link as informational (policy pages), never a
# consent action.
INFORMATIONAL_PHRASES: tuple[str, ...] = (
    "more about",
    "learn more",
    "read more",
    "cookie policy",
    "privacy policy",
    "cookie information",
    "more information",
    "our cookies",
    "data protection",
    "learn about",
    "find out more",
    "privacy statement",
)

INFORMATIONAL_HREF_TERMS: tuple[str, ...] = ("policy", "cookie", "privacy", "legal")

# Reject-style vocabulary used to confirm a reject control really is one.
REJECT_VOCABULARY_RE: re.Pattern[str] = re.compile(
    r"reject|decline|necessary|essential|only|no thanks",
    re.IGNORECASE,
)

# Class prefixes of component frameworks that bind activation to the
# keyboard rather than to a native click.
FRAMEWORK_CLASS_PREFIXES: tuple[str, ...] = ("css-", "r-", "sc-", "mui", "chakra-")

# Mutation attributes that can reveal a dialog.
WATCHED_ATTRIBUTES: frozenset[str] = frozenset({"style", "class", "hidden", "aria-hidden"})

# Per-record re-scan bounds.
MIN_RESCAN_WIDTH = 200
MIN_RESCAN_HEIGHT = 50

SIGNATURE_TEXT_LENGTH = 50
