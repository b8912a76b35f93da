"""
Granular consent checkbox classification.

Checkboxes rarely carry meaningful text of their own, so text patterns
are matched against the checkbox's label.  The label is resolved in a
fixed order: an explicit ``<label for=...>``, a wrapping ``<label>``, an
adjacent sibling ``<label>``, and finally the text node right after the
checkbox, wrapped as a :class:`VirtualLabel`.
"""

from __future__ import annotations

import dataclasses

from cookieguard.consent import constants, element_finder
from cookieguard.dom import document, text
from cookieguard.models import rules
from cookieguard.utils import errors, logger

log = logger.create_logger("Checkbox-Classifier")

# Written into live snapshots so the current ``checked`` property (not
# just the initial attribute) is visible in the markup.
CHECKED_STATE_ATTRIBUTE = "data-cg-checked"

_LABEL_SEARCH_STOP = frozenset({"form", "body"})


@dataclasses.dataclass(frozen=True)
class VirtualLabel:
    """Stand-in label built from a bare text node next to a checkbox."""

    text: str

    @property
    def visible_text(self) -> str:
        return text.normalize_text(self.text)


Label = document.Element | VirtualLabel


@dataclasses.dataclass(frozen=True)
class CheckboxMatch:
    checkbox: document.Element
    control_type: str
    label_text: str
    method: element_finder.MatchMethod
    rule: str

    @property
    def checked(self) -> bool:
        return is_checked(self.checkbox)


def is_checked(checkbox: document.Element) -> bool:
    state = checkbox.get(CHECKED_STATE_ATTRIBUTE)
    if state is not None:
        return state == "true"
    if checkbox.has_attribute("checked"):
        return True
    return (checkbox.get("aria-checked") or "").lower() == "true"


def is_disabled(checkbox: document.Element) -> bool:
    return checkbox.has_attribute("disabled") or (checkbox.get("aria-disabled") or "").lower() == "true"


class CheckboxClassifier:
    """Finds and classifies analytics / advertising / necessary checkboxes."""

    def __init__(
        self,
        config: rules.ClassificationConfig,
        finder: element_finder.ElementFinder | None = None,
    ) -> None:
        self.config = config
        self.finder = finder or element_finder.ElementFinder(config)

    def checkboxes(self, container: document.Element) -> list[document.Element]:
        try:
            return container.query_all(constants.CHECKBOX_SELECTOR)
        except errors.InvalidSelectorError:
            return []

    # ── Labels ──────────────────────────────────────────────────

    def find_label(self, checkbox: document.Element) -> Label | None:
        """Resolve the label of *checkbox*; the first strategy that hits wins."""
        checkbox_id = checkbox.id
        if checkbox_id:
            for label in checkbox.document.root.query_all("label[for]"):
                if label.get("for") == checkbox_id:
                    return label

        for ancestor in checkbox.ancestors():
            if ancestor.tag_name == "label":
                return ancestor
            if ancestor.tag_name in _LABEL_SEARCH_STOP:
                break

        sibling = checkbox.next_element_sibling
        if sibling is not None and sibling.tag_name == "label":
            return sibling
        sibling = checkbox.previous_element_sibling
        if sibling is not None and sibling.tag_name == "label":
            return sibling

        trailing = checkbox.trailing_text
        if trailing:
            return VirtualLabel(trailing)
        return None

    def label_text(self, checkbox: document.Element, label: Label | None = None) -> str:
        """Normalised label text, falling back to the checkbox's own attributes."""
        if label is None:
            label = self.find_label(checkbox)
        if label is not None and label.visible_text:
            return label.visible_text
        return checkbox.visible_text

    # ── Classification ──────────────────────────────────────────

    def find_by_type(self, container: document.Element, control_type: str) -> CheckboxMatch | None:
        """Locate the checkbox of *control_type* inside *container*."""
        type_rules = self.config.checkbox_types.get(control_type)
        if type_rules is None:
            return None
        try:
            match = self.finder.find_by_selectors(container, type_rules.selectors)
            if match is not None:
                return CheckboxMatch(
                    checkbox=match.element,
                    control_type=control_type,
                    label_text=self.label_text(match.element),
                    method="selector",
                    rule=match.rule,
                )

            candidates = [(cb, self.label_text(cb)) for cb in self.checkboxes(container)]
            exclude_selectors = [*self.config.exclude_selectors, *type_rules.exclude_selectors]
            for rule in rules.by_priority(type_rules.text_patterns):
                needle = text.normalize_text(rule.pattern)
                for checkbox, label in candidates:
                    if needle not in label or text.contains_any(label, type_rules.exclude_patterns):
                        continue
                    if self.finder.is_excluded(checkbox, exclude_selectors):
                        continue
                    return CheckboxMatch(
                        checkbox=checkbox,
                        control_type=control_type,
                        label_text=label,
                        method="text",
                        rule=rule.pattern,
                    )
        except Exception as exc:
            log.error("Checkbox lookup failed", {"type": control_type, "error": errors.get_error_message(exc)})
        return None

    def determine_type(self, checkbox: document.Element, label: Label | None = None) -> str | None:
        """Classify *checkbox* by its attributes and label text."""
        try:
            label_text = self.label_text(checkbox, label)
            scores = {
                control_type: self.finder.score_type(checkbox, type_rules, label=label_text)
                for control_type, type_rules in self.config.checkbox_types.items()
            }
            return element_finder.best_type(scores)
        except Exception as exc:
            log.error("Checkbox classification failed", {"error": errors.get_error_message(exc)})
            return None

    def find_all_with_types(self, container: document.Element) -> list[CheckboxMatch]:
        """Every checkbox under *container* that classifies to a type."""
        found: list[CheckboxMatch] = []
        for checkbox in self.checkboxes(container):
            label = self.find_label(checkbox)
            control_type = self.determine_type(checkbox, label)
            if control_type is None:
                continue
            found.append(
                CheckboxMatch(
                    checkbox=checkbox,
                    control_type=control_type,
                    label_text=self.label_text(checkbox, label),
                    method="text",
                    rule="classified",
                )
            )
        return found
