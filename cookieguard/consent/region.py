"""
Jurisdiction and UI-variant classification for a consent dialog.

The region comes from the dialog's own disclosure text when it names a
regime (GDPR, CCPA...), otherwise from the domain, otherwise it is
``international``.  The variant compares the accept and reject controls
visually to spot designs that steer users toward accepting.
"""

from __future__ import annotations

from cookieguard.consent import constants
from cookieguard.dom import document, styles, text
from cookieguard.models import detection, rules
from cookieguard.utils import errors, logger

log = logger.create_logger("Region-Detector")


def _matches_location(domain: str, pattern: str) -> bool:
    """Suffix-style patterns (``.de``) must align with a label boundary."""
    pattern = pattern.lower()
    if pattern.startswith("."):
        return f"{domain}.".find(f"{pattern}.") != -1
    return pattern in domain


class RegionVariantDetector:
    """Classifies dialogs by jurisdiction and by consent-UI variant."""

    def __init__(self, config: rules.ClassificationConfig) -> None:
        self.config = config

    @property
    def weights(self) -> rules.DarkPatternWeights:
        return self.config.dark_pattern_weights

    # ── Region ──────────────────────────────────────────────────

    def detect_region(self, dialog_text: str, domain: str) -> detection.Region:
        """Region from disclosure text first, then domain, else international."""
        content = text.normalize_text(dialog_text)
        host = (domain or "").strip().lower()
        if not content and not host:
            return "unknown"

        regions = self.config.region_detection
        try:
            if content:
                for region, region_rules in regions.items():
                    if text.contains_any(content, region_rules.text_patterns):
                        log.debug("Region from dialog text", {"region": region})
                        return _as_region(region)
            if host:
                for region, region_rules in regions.items():
                    if any(_matches_location(host, p) for p in region_rules.location_patterns if p):
                        log.debug("Region from domain", {"region": region, "domain": host})
                        return _as_region(region)
        except Exception as exc:
            log.error("Region detection failed", {"error": errors.get_error_message(exc)})
        return "international"

    # ── Variant ─────────────────────────────────────────────────

    def detect_variant(
        self,
        dialog: document.Element | None,
        accept: document.Element | None,
        reject: document.Element | None,
    ) -> detection.Variant:
        """Classify the dialog's consent UI.

        No reject control means ``no-choice``.  A reject control that does
        not read like one, or a missing accept control, is ``unknown``.
        """
        if reject is None:
            return "no-choice"
        if not self.is_reject_control(reject):
            return "unknown"
        if accept is None:
            return "unknown"
        try:
            score = self.compare_styles(accept, reject)
        except Exception as exc:
            log.error("Style comparison failed", {"error": errors.get_error_message(exc)})
            return "unknown"
        return "dark-pattern" if score >= self.weights.threshold else "standard"

    def detect(
        self,
        dialog: document.Element,
        domain: str,
        accept: document.Element | None,
        reject: document.Element | None,
    ) -> detection.RegionVariant:
        return detection.RegionVariant(
            region=self.detect_region(dialog.text, domain),
            variant=self.detect_variant(dialog, accept, reject),
        )

    def is_reject_control(self, element: document.Element) -> bool:
        if constants.REJECT_VOCABULARY_RE.search(element.visible_text):
            return True
        return "reject" in element.id.lower() or "reject" in element.class_name.lower()

    def compare_styles(self, accept: document.Element, reject: document.Element) -> float:
        """Score how strongly the styling favours *accept* over *reject*."""
        weights = self.weights
        a_style, r_style = accept.style, reject.style
        score = 0.0
        reasons: list[str] = []

        if abs(a_style.font_size - r_style.font_size) > weights.font_size_threshold_px:
            score += weights.font_size
            reasons.append("font-size")

        if styles.is_muted(r_style.color) and not styles.is_muted(a_style.color):
            score += weights.muted_colour
            reasons.append("muted-reject")

        if not styles.is_transparent(a_style.background_color) and styles.is_transparent(r_style.background_color):
            score += weights.filled_background
            reasons.append("filled-accept")

        if a_style.padding != r_style.padding:
            score += weights.padding
            reasons.append("padding")

        a_box, r_box = accept.box, reject.box
        if (a_box.y, a_box.x) < (r_box.y, r_box.x) and accept.parent != reject.parent:
            score += weights.position
            reasons.append("position")

        log.debug("Compared control styles", {"score": score, "reasons": reasons})
        return score


def _as_region(name: str) -> detection.Region:
    if name in ("eu", "california", "international"):
        return name  # type: ignore[return-value]
    return "international"
