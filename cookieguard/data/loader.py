"""
Loader for the rule document shipped with the package, plus the
hard-coded minimal rule set used when no rule document can be loaded.

The JSON data file lives alongside this module in the rules/
subdirectory.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any

from cookieguard.models import rules

# Resolve path to the data directory (same directory as this module)
_DATA_DIR = pathlib.Path(__file__).resolve().parent

BUNDLED_RULES_FILE = "rules/default-rules.json"

# ============================================================================
# JSON File Loading
# ============================================================================


def _load_json(relative_path: str) -> Any:
    """Load and parse a JSON file relative to the data directory.

    Raises:
        FileNotFoundError: If the JSON file does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
    """
    full_path = _DATA_DIR / relative_path
    if not full_path.exists():
        raise FileNotFoundError(f"Data file not found: {relative_path}")
    with open(full_path, encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise json.JSONDecodeError(
                f"Invalid JSON in {relative_path}: {exc.msg}",
                exc.doc,
                exc.pos,
            ) from exc


def load_bundled_document() -> Any:
    """Raw (unvalidated) bundled rule document."""
    return _load_json(BUNDLED_RULES_FILE)


# ============================================================================
# Bundled Rules
# ============================================================================

_bundled_rules: rules.ClassificationConfig | None = None


def get_bundled_rules() -> rules.ClassificationConfig:
    """Get the bundled rule document (lazy loaded and cached).

    Raises:
        FileNotFoundError: If the data file is missing.
        json.JSONDecodeError: If the data file is not valid JSON.
        pydantic.ValidationError: If the document has the wrong shape.
    """
    global _bundled_rules
    if _bundled_rules is None:
        _bundled_rules = rules.ClassificationConfig.model_validate(load_bundled_document())
    return _bundled_rules


# ============================================================================
# Built-in Fallback
# ============================================================================


def _sel(query: str, priority: float) -> rules.SelectorRule:
    return rules.SelectorRule(query=query, priority=priority)


def _text(pattern: str, priority: float) -> rules.TextPatternRule:
    return rules.TextPatternRule(pattern=pattern, priority=priority)


_SETTINGS_TERMS = ["settings", "preferences", "customize", "customise", "manage", "options"]


def builtin_rules() -> rules.ClassificationConfig:
    """Small hard-coded rule set substituted when no rule document loads.

    Built in code so that it is available even when the package data
    directory is broken.
    """
    return rules.ClassificationConfig(
        version="builtin",
        dialogs=rules.DialogRules(
            selectors=[
                _sel("#onetrust-banner-sdk", 10),
                _sel("#CybotCookiebotDialog", 10),
                _sel("div[class*='cookie-banner']", 6),
                _sel("div[id*='cookie-banner']", 6),
                _sel("div[class*='cookie-consent']", 6),
            ],
            text_patterns=[_text("we use cookies", 5), _text("cookies", 2)],
            content_patterns=["cookie", "privacy", "consent", "gdpr"],
            keywords=["cookie", "consent", "gdpr"],
        ),
        button_types={
            "accept": rules.TypeRules(
                selectors=[_sel("#onetrust-accept-btn-handler", 10), _sel("button[id*='accept']", 6)],
                text_patterns=[_text("accept all cookies", 10), _text("accept all", 9), _text("accept", 5)],
                exclude_patterns=_SETTINGS_TERMS + ["necessary", "essential", "reject"],
                id_patterns=["accept"],
                class_patterns=["accept"],
            ),
            "reject": rules.TypeRules(
                selectors=[_sel("#onetrust-reject-all-handler", 10), _sel("button[id*='reject']", 6)],
                text_patterns=[_text("reject all", 10), _text("decline", 7), _text("reject", 7)],
                exclude_patterns=list(_SETTINGS_TERMS),
                id_patterns=["reject", "decline"],
                class_patterns=["reject", "decline"],
            ),
            "essential": rules.TypeRules(
                text_patterns=[_text("necessary only", 9), _text("only necessary", 9), _text("essential only", 9)],
                exclude_patterns=list(_SETTINGS_TERMS),
                id_patterns=["necessary", "essential"],
                class_patterns=["necessary", "essential"],
            ),
            "customize": rules.TypeRules(
                selectors=[_sel("#onetrust-pc-btn-handler", 10)],
                text_patterns=[_text("cookie settings", 10), _text("manage preferences", 10), _text("settings", 7)],
                id_patterns=["settings", "preferences", "customize"],
                class_patterns=["settings", "preferences", "customize"],
            ),
        },
        checkbox_types={
            "analytics": rules.TypeRules(text_patterns=[_text("analytics", 10), _text("statistics", 9)]),
            "advertising": rules.TypeRules(text_patterns=[_text("advertising", 10), _text("marketing", 10)]),
            "necessary": rules.TypeRules(text_patterns=[_text("necessary", 9), _text("essential", 9)]),
        },
        exclude_selectors=["footer", "nav"],
        region_detection={
            "eu": rules.RegionRules(text_patterns=["gdpr"], location_patterns=[".eu", ".de", ".fr", ".uk"]),
            "california": rules.RegionRules(text_patterns=["ccpa", "california consumer privacy act"]),
        },
    )
