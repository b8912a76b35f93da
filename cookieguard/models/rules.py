"""Pydantic models for the classification rule document."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

import pydantic

from cookieguard.utils import serialization

BUTTON_TYPES: tuple[str, ...] = ("accept", "reject", "essential", "customize", "save")
CHECKBOX_TYPES: tuple[str, ...] = ("analytics", "advertising", "necessary")


class _CamelModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel,
        populate_by_name=True,
        frozen=True,
    )


class SelectorRule(_CamelModel):
    """A CSS selector matched structurally against a subtree."""

    query: str
    priority: float = 5


class TextPatternRule(_CamelModel):
    """A phrase matched by normalised substring containment."""

    pattern: str
    priority: float = 5

    @pydantic.field_validator("pattern")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text pattern must not be blank")
        return value


class TypeRules(_CamelModel):
    """Rules for one control type (``accept``, ``analytics``...)."""

    selectors: list[SelectorRule] = pydantic.Field(default_factory=list)
    text_patterns: list[TextPatternRule] = pydantic.Field(default_factory=list)
    exclude_patterns: list[str] = pydantic.Field(default_factory=list)
    exclude_selectors: list[str] = pydantic.Field(default_factory=list)
    # Substrings of ``id`` / ``class`` that hint at the type during
    # reverse classification.
    id_patterns: list[str] = pydantic.Field(default_factory=list)
    class_patterns: list[str] = pydantic.Field(default_factory=list)


class DialogRules(_CamelModel):
    """Rules for locating consent dialog containers."""

    selectors: list[SelectorRule] = pydantic.Field(default_factory=list)
    text_patterns: list[TextPatternRule] = pydantic.Field(default_factory=list)
    # Vocabulary the content-scan fallback requires in a container's text.
    content_patterns: list[str] = pydantic.Field(default_factory=list)
    # Substrings of ``id`` / ``class`` that earn the keyword bonus.
    keywords: list[str] = pydantic.Field(default_factory=list)


class RegionRules(_CamelModel):
    text_patterns: list[str] = pydantic.Field(default_factory=list)
    location_patterns: list[str] = pydantic.Field(default_factory=list)


class DarkPatternWeights(_CamelModel):
    """Weights for the accept-versus-reject visual comparison."""

    font_size_threshold_px: float = 2.0
    font_size: float = 1.0
    muted_colour: float = 1.0
    filled_background: float = 1.0
    padding: float = 0.5
    position: float = 0.5
    threshold: float = 1.5


class ClassificationConfig(_CamelModel):
    """Validated rule document consumed by every finder."""

    version: str = "0"
    dialogs: DialogRules = pydantic.Field(default_factory=DialogRules)
    button_types: dict[str, TypeRules] = pydantic.Field(default_factory=dict)
    checkbox_types: dict[str, TypeRules] = pydantic.Field(default_factory=dict)
    exclude_selectors: list[str] = pydantic.Field(default_factory=list)
    region_detection: dict[str, RegionRules] = pydantic.Field(default_factory=dict)
    dark_pattern_weights: DarkPatternWeights = pydantic.Field(default_factory=DarkPatternWeights)

    def rules_for(self, control_type: str) -> TypeRules | None:
        """Look a control type up in the button table, then the checkbox table."""
        rules = self.button_types.get(control_type)
        if rules is None:
            rules = self.checkbox_types.get(control_type)
        return rules

    def control_types(self) -> list[str]:
        """Every configured type: button types first, then checkbox types."""
        return list(self.button_types) + [t for t in self.checkbox_types if t not in self.button_types]

    def missing_sections(self) -> list[str]:
        """Sections without which no dialog or control can ever match.

        Every field has a default, so a document of the wrong shape
        validates as an empty config; callers use this to reject it.
        """
        missing: list[str] = []
        if not self.button_types:
            missing.append("buttonTypes")
        if not (self.dialogs.selectors or self.dialogs.content_patterns):
            missing.append("dialogs")
        return missing


_R = TypeVar("_R", SelectorRule, TextPatternRule)


def by_priority(rules: Iterable[_R]) -> list[_R]:
    """Sort rules by descending priority; equal priorities keep declared order."""
    return sorted(rules, key=lambda rule: rule.priority, reverse=True)
