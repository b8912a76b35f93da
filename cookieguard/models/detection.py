"""Detection results, change notifications and interaction reports."""

from __future__ import annotations

import dataclasses
from typing import Literal

import pydantic

from cookieguard.dom import document
from cookieguard.utils import serialization

Region = Literal["eu", "california", "international", "unknown"]
Variant = Literal["standard", "dark-pattern", "no-choice", "unknown"]
DetectionMethod = Literal["selector", "text", "checkbox"]
ChangeKind = Literal["added", "attributes"]


@dataclasses.dataclass
class DialogCandidate:
    """A subtree hypothesised to be a consent dialog."""

    element: document.Element
    score: float
    matched_rule_ids: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class RegionVariant:
    region: Region
    variant: Variant


@dataclasses.dataclass(frozen=True)
class ChangeRecord:
    """One entry of a subtree-mutation batch delivered by the host."""

    kind: ChangeKind
    ref: int
    attribute: str | None = None


@dataclasses.dataclass(frozen=True)
class DetectionResult:
    """What the loop did with one dialog."""

    signature: str
    region: Region
    variant: Variant
    control_type: str | None
    clicked: bool
    domain: str = ""


class InteractionReport(pydantic.BaseModel):
    """Outcome of one interaction attempt, as sent to the reporting sink."""

    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)

    signature: str
    matched_rule: str | None = None
    detection_method: DetectionMethod | None = None
    control_type: str | None = None
    control_text: str = ""
    succeeded: bool
    timestamp: str
    domain: str = ""
    region: Region | None = None
    variant: Variant | None = None
