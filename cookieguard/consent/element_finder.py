"""
Rule-driven element lookup: selector rules, text-pattern rules and
exclusion selectors, all evaluated in priority order.

Selector rules are tried before text patterns by every caller because
a structural match is the stronger signal.  Within each list a higher
priority wins and equal priorities keep their declared order.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Sequence
from typing import Literal

from cookieguard.consent import constants
from cookieguard.dom import document, text
from cookieguard.models import rules
from cookieguard.utils import errors, logger

log = logger.create_logger("Element-Finder")

MatchMethod = Literal["selector", "text"]


@dataclasses.dataclass(frozen=True)
class Match:
    """An element together with the rule that found it."""

    element: document.Element
    method: MatchMethod
    rule: str
    priority: float

    @property
    def rule_id(self) -> str:
        return f"{self.method}:{self.rule}"


class ElementFinder:
    """Evaluates selector and text-pattern rules against a subtree."""

    def __init__(self, config: rules.ClassificationConfig) -> None:
        self.config = config

    # ── Selector rules ──────────────────────────────────────────

    def find_by_selectors(
        self,
        container: document.Element,
        selector_rules: Sequence[rules.SelectorRule],
    ) -> Match | None:
        """Return the first match of the highest-priority matching rule.

        Invalid selectors are logged and skipped.
        """
        for rule in rules.by_priority(selector_rules):
            try:
                element = container.query(rule.query)
            except errors.InvalidSelectorError as exc:
                log.debug("Skipping invalid selector", {"selector": rule.query, "reason": exc.reason})
                continue
            if element is not None:
                return Match(element=element, method="selector", rule=rule.query, priority=rule.priority)
        return None

    def find_all_by_selectors(
        self,
        container: document.Element,
        selector_rules: Sequence[rules.SelectorRule],
        *,
        include_container: bool = False,
    ) -> list[Match]:
        """Every element matched by any rule, once, attributed to its best rule."""
        seen: set[document.Element] = set()
        found: list[Match] = []
        for rule in rules.by_priority(selector_rules):
            try:
                elements = container.query_all(rule.query)
                if include_container and container.matches(rule.query):
                    elements.insert(0, container)
            except errors.InvalidSelectorError as exc:
                log.debug("Skipping invalid selector", {"selector": rule.query, "reason": exc.reason})
                continue
            for element in elements:
                if element in seen:
                    continue
                seen.add(element)
                found.append(Match(element=element, method="selector", rule=rule.query, priority=rule.priority))
        return found

    def matching_selectors(
        self,
        element: document.Element,
        selector_rules: Sequence[rules.SelectorRule],
    ) -> list[rules.SelectorRule]:
        """Rules whose selector matches *element* itself."""
        matched: list[rules.SelectorRule] = []
        for rule in selector_rules:
            try:
                if element.matches(rule.query):
                    matched.append(rule)
            except errors.InvalidSelectorError:
                continue
        return matched

    def score_type(
        self,
        element: document.Element,
        type_rules: rules.TypeRules,
        *,
        label: str | None = None,
    ) -> float:
        """Evidence that *element* is of the type described by *type_rules*.

        Sums the priorities of matching selector rules, a fixed bonus per
        id and per class pattern hit, and the best matching text pattern
        (ignored when the text carries an exclude term).  *label* replaces
        the element's own text, for controls labelled from elsewhere.
        """
        score = sum(rule.priority for rule in self.matching_selectors(element, type_rules.selectors))

        element_id = element.id.lower()
        if element_id and any(p.lower() in element_id for p in type_rules.id_patterns if p):
            score += constants.ATTRIBUTE_PATTERN_SCORE
        class_name = element.class_name.lower()
        if class_name and any(p.lower() in class_name for p in type_rules.class_patterns if p):
            score += constants.ATTRIBUTE_PATTERN_SCORE

        label = element.visible_text if label is None else text.normalize_text(label)
        if label and not text.contains_any(label, type_rules.exclude_patterns):
            text_scores = [
                rule.priority for rule in type_rules.text_patterns if text.normalize_text(rule.pattern) in label
            ]
            if text_scores:
                score += max(text_scores)
        return score

    # ── Text-pattern rules ──────────────────────────────────────

    def find_by_text(
        self,
        container: document.Element,
        patterns: Sequence[rules.TextPatternRule],
        candidates: str | Iterable[document.Element],
        exclude_patterns: Sequence[str] = (),
        *,
        exclude_selectors: Sequence[str] = (),
    ) -> Match | None:
        """Return the first candidate matching the highest-priority pattern.

        Args:
            container: Subtree to search.
            patterns: Text patterns; tried by descending priority.
            candidates: A selector enumerating candidate elements under
                *container*, or the candidates themselves.
            exclude_patterns: A candidate whose text contains any of
                these is never returned.
            exclude_selectors: A candidate inside an element matching
                any of these (below *container*) is never returned.
        """
        return next(
            self.iter_by_text(
                container,
                patterns,
                candidates,
                exclude_patterns,
                exclude_selectors=exclude_selectors,
            ),
            None,
        )

    def iter_by_text(
        self,
        container: document.Element,
        patterns: Sequence[rules.TextPatternRule],
        candidates: str | Iterable[document.Element],
        exclude_patterns: Sequence[str] = (),
        *,
        exclude_selectors: Sequence[str] = (),
    ) -> Iterator[Match]:
        """Yield text matches best-first: pattern priority, then document order."""
        elements = self._candidates(container, candidates)
        if not elements:
            return
        excludes = [text.normalize_text(term) for term in exclude_patterns if term.strip()]
        excluded_cache: dict[document.Element, bool] = {}

        for rule in rules.by_priority(patterns):
            needle = text.normalize_text(rule.pattern)
            for element in elements:
                label = element.visible_text
                if needle not in label:
                    continue
                if text.contains_any(label, excludes):
                    continue
                if element not in excluded_cache:
                    excluded_cache[element] = self.is_excluded(element, exclude_selectors)
                if excluded_cache[element]:
                    continue
                yield Match(element=element, method="text", rule=rule.pattern, priority=rule.priority)

    def _candidates(
        self,
        container: document.Element,
        candidates: str | Iterable[document.Element],
    ) -> list[document.Element]:
        if not isinstance(candidates, str):
            return list(candidates)
        try:
            return container.query_all(candidates)
        except errors.InvalidSelectorError as exc:
            log.debug("Invalid candidate selector", {"selector": candidates, "reason": exc.reason})
            return []

    # ── Exclusion ───────────────────────────────────────────────

    def is_excluded(
        self,
        element: document.Element,
        exclude_selectors: Sequence[str],
    ) -> bool:
        """``True`` if *element* or any ancestor matches an exclude selector.

        The walk runs to the document root, past whatever container the
        search started from.
        """
        if not exclude_selectors:
            return False
        node: document.Element | None = element
        while node is not None:
            for selector in exclude_selectors:
                try:
                    if node.matches(selector):
                        return True
                except errors.InvalidSelectorError:
                    continue
            node = node.parent
        return False


def best_type(scores: dict[str, float], minimum: float = constants.MIN_TYPE_SCORE) -> str | None:
    """Highest-scoring type at or above *minimum*; ties go to the first declared."""
    best: str | None = None
    best_score = 0.0
    for control_type, score in scores.items():
        if score >= minimum and score > best_score:
            best, best_score = control_type, score
    return best
