"""
Consent button classification.

Locates accept / reject / essential / customize / save controls inside a
dialog, and classifies an arbitrary element back to a button type.
"""

from __future__ import annotations

from cookieguard.consent import constants, element_finder
from cookieguard.dom import document
from cookieguard.models import rules
from cookieguard.utils import errors, logger

log = logger.create_logger("Button-Classifier")

# Text matches for these types are double-checked so that a settings
# link worded like a refusal is never taken for one.
_VALIDATED_TYPES = frozenset({"reject", "essential"})


class ButtonClassifier:
    """Finds and classifies consent buttons using the rule document."""

    def __init__(
        self,
        config: rules.ClassificationConfig,
        finder: element_finder.ElementFinder | None = None,
    ) -> None:
        self.config = config
        self.finder = finder or element_finder.ElementFinder(config)

    def clickables(self, container: document.Element) -> list[document.Element]:
        """Visible generic clickable controls under *container*."""
        try:
            found = container.query_all(constants.CLICKABLE_SELECTOR)
        except errors.InvalidSelectorError:
            return []
        return [el for el in found if document.is_visible(el)]

    def find_by_type(self, container: document.Element, control_type: str) -> element_finder.Match | None:
        """Locate the control of *control_type* inside *container*.

        Selector rules are trusted outright; otherwise the visible
        clickables are matched against the type's text patterns.
        """
        type_rules = self.config.button_types.get(control_type)
        if type_rules is None:
            return None
        try:
            match = self.finder.find_by_selectors(container, type_rules.selectors)
            if match is not None:
                log.debug("Button found by selector", {"type": control_type, "selector": match.rule})
                return match

            exclude_selectors = [*self.config.exclude_selectors, *type_rules.exclude_selectors]
            for match in self.finder.iter_by_text(
                container,
                type_rules.text_patterns,
                self.clickables(container),
                type_rules.exclude_patterns,
                exclude_selectors=exclude_selectors,
            ):
                if control_type in _VALIDATED_TYPES and self.determine_type(match.element) == "customize":
                    log.debug(
                        "Ignoring settings control worded like a refusal",
                        {"type": control_type, "text": match.element.visible_text[:60]},
                    )
                    continue
                log.debug("Button found by text", {"type": control_type, "pattern": match.rule})
                return match
        except Exception as exc:
            log.error("Button lookup failed", {"type": control_type, "error": errors.get_error_message(exc)})
        return None

    def find_accept(self, container: document.Element) -> element_finder.Match | None:
        return self.find_by_type(container, "accept")

    def find_reject(self, container: document.Element) -> element_finder.Match | None:
        return self.find_by_type(container, "reject")

    def find_essential(self, container: document.Element) -> element_finder.Match | None:
        return self.find_by_type(container, "essential")

    def find_customize(self, container: document.Element) -> element_finder.Match | None:
        return self.find_by_type(container, "customize")

    def find_all_with_types(self, container: document.Element) -> dict[str, element_finder.Match]:
        """The best control for every configured button type that has one."""
        found: dict[str, element_finder.Match] = {}
        for control_type in self.config.button_types:
            match = self.find_by_type(container, control_type)
            if match is not None:
                found[control_type] = match
        return found

    def type_scores(self, element: document.Element) -> dict[str, float]:
        return {
            control_type: self.finder.score_type(element, type_rules)
            for control_type, type_rules in self.config.button_types.items()
        }

    def determine_type(self, element: document.Element) -> str | None:
        """Classify *element* as a button type, or ``None`` below the threshold."""
        try:
            return element_finder.best_type(self.type_scores(element))
        except Exception as exc:
            log.error("Button classification failed", {"error": errors.get_error_message(exc)})
            return None
