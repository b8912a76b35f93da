"""
Consent dialog detection.

Finds dialog candidates with the configured dialog selectors, falling
back to a bounded content scan when no selector matches.  Candidates are
scored, containment pairs are collapsed to the larger element, and the
result is ranked best-first.
"""

from __future__ import annotations

import hashlib

from cookieguard.consent import constants, element_finder
from cookieguard.dom import document, text
from cookieguard.models import detection, rules
from cookieguard.utils import errors, logger

log = logger.create_logger("Dialog-Detector")

DEFAULT_MAX_SCAN_ELEMENTS = 5000
DEFAULT_MAX_CANDIDATE_ELEMENTS = 500


def dialog_signature(element: document.Element) -> str:
    """Content-derived key identifying a dialog across re-renders."""
    sample = element.normalized_text[: constants.SIGNATURE_TEXT_LENGTH]
    raw = "|".join([element.tag_name, element.id, element.class_name, sample])
    return "dialog_" + hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


class DialogDetector:
    """Finds, scores, deduplicates and ranks consent dialog candidates."""

    def __init__(
        self,
        config: rules.ClassificationConfig,
        finder: element_finder.ElementFinder | None = None,
        *,
        max_scan_elements: int = DEFAULT_MAX_SCAN_ELEMENTS,
        max_candidate_elements: int = DEFAULT_MAX_CANDIDATE_ELEMENTS,
    ) -> None:
        self.config = config
        self.finder = finder or element_finder.ElementFinder(config)
        self.max_scan_elements = max_scan_elements
        self.max_candidate_elements = max_candidate_elements

    # ── Public API ──────────────────────────────────────────────

    def find_all(self, container: document.Element) -> list[detection.DialogCandidate]:
        """All dialog candidates under (and including) *container*, best first."""
        try:
            return self._find_all(container)
        except Exception as exc:
            log.error("Dialog detection failed", {"error": errors.get_error_message(exc)})
            return []

    def find_best(self, container: document.Element) -> document.Element | None:
        candidates = self.find_all(container)
        return candidates[0].element if candidates else None

    def score(self, element: document.Element) -> detection.DialogCandidate:
        """Score *element* as a dialog candidate."""
        dialog_rules = self.config.dialogs
        score = 0.0
        matched: list[str] = []

        for rule in self.finder.matching_selectors(element, dialog_rules.selectors):
            score += rule.priority
            matched.append(f"dialog:selector:{rule.query}")

        content = element.normalized_text
        for rule in dialog_rules.text_patterns:
            if text.normalize_text(rule.pattern) in content:
                score += rule.priority
                matched.append(f"dialog:text:{rule.pattern}")

        keywords = [k.lower() for k in dialog_rules.keywords if k]
        element_id = element.id.lower()
        if element_id and any(k in element_id for k in keywords):
            score += constants.KEYWORD_BONUS
        class_name = element.class_name.lower()
        if class_name and any(k in class_name for k in keywords):
            score += constants.KEYWORD_BONUS

        if self.has_control(element):
            score += constants.CONTROL_BONUS

        return detection.DialogCandidate(element=element, score=score, matched_rule_ids=matched)

    def has_control(self, element: document.Element) -> bool:
        """``True`` if *element* exposes at least one visible control."""
        try:
            controls = element.query_all(f"{constants.CLICKABLE_SELECTOR}, {constants.CHECKBOX_SELECTOR}")
        except errors.InvalidSelectorError:
            return False
        return any(document.is_visible(control) for control in controls)

    # ── Internals ───────────────────────────────────────────────

    def _find_all(self, container: document.Element) -> list[detection.DialogCandidate]:
        elements = [
            match.element
            for match in self.finder.find_all_by_selectors(
                container,
                self.config.dialogs.selectors,
                include_container=True,
            )
            if document.is_visible(match.element)
        ]
        method = "selector"
        if not elements:
            elements = self._content_scan(container)
            method = "content"

        candidates = [self.score(element) for element in elements]
        kept = _dedupe_containment(candidates)
        kept.sort(key=lambda c: c.score, reverse=True)

        if kept:
            log.debug(
                "Dialog candidates found",
                {
                    "method": method,
                    "candidates": len(candidates),
                    "kept": len(kept),
                    "best": kept[0].element.describe(),
                    "score": kept[0].score,
                },
            )
        return kept

    def _content_scan(self, container: document.Element) -> list[document.Element]:
        """Visible, reasonably sized containers with consent vocabulary and a control.

        Walks the subtree with an explicit work-list, skipping the
        descendants of ``display:none`` elements.
        """
        vocabulary = [p for p in self.config.dialogs.content_patterns if p.strip()]
        if not vocabulary:
            return []

        found: list[document.Element] = []
        stack = [container]
        visited = 0
        while stack and visited < self.max_scan_elements:
            element = stack.pop()
            visited += 1
            if element.style.display == "none":
                continue
            stack.extend(reversed(element.children))

            if element.tag_name not in constants.CONTAINER_TAGS:
                continue
            if not document.is_visible(element):
                continue
            box = element.box
            if box.width <= constants.MIN_DIALOG_WIDTH or box.height <= constants.MIN_DIALOG_HEIGHT:
                continue
            if not text.contains_any(element.normalized_text, vocabulary):
                continue
            if element.count_descendants(self.max_candidate_elements) > self.max_candidate_elements:
                continue
            if not self.has_control(element):
                continue
            found.append(element)

        if stack:
            log.warn("Content scan stopped at element limit", {"limit": self.max_scan_elements})
        return found


def _dedupe_containment(candidates: list[detection.DialogCandidate]) -> list[detection.DialogCandidate]:
    """Collapse every ancestor/descendant pair to the candidate with more content.

    Ties go to the higher score, then to the earlier-found candidate.
    """
    order = {id(c): index for index, c in enumerate(candidates)}
    ranked = sorted(candidates, key=lambda c: (-c.element.content_size, -c.score, order[id(c)]))
    kept: list[detection.DialogCandidate] = []
    for candidate in ranked:
        element = candidate.element
        if any(k.element.contains(element) or element.contains(k.element) for k in kept):
            continue
        kept.append(candidate)
    kept.sort(key=lambda c: order[id(c)])
    return kept
