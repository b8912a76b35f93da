"""Tests for cookieguard.consent.dialogs — dialog detection, scoring and dedup."""

from __future__ import annotations

from cookieguard.consent import dialogs
from cookieguard.models import rules
from tests._helpers import first, page

ONETRUST = "<div id='onetrust-banner-sdk'><p>We use cookies.</p><button>Accept all</button></div>"


class TestSelectorDetection:
    def test_finds_vendor_banner(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page(ONETRUST)
        best = dialogs.DialogDetector(bundled_rules).find_best(doc.root)
        assert best is not None
        assert best.id == "onetrust-banner-sdk"

    def test_score_components(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page(ONETRUST)
        candidate = dialogs.DialogDetector(bundled_rules).score(first(doc, "#onetrust-banner-sdk"))
        # selector 10, text 5 + 2, id keyword 5, control 3
        assert candidate.score == 25
        assert candidate.matched_rule_ids == [
            "dialog:selector:#onetrust-banner-sdk",
            "dialog:text:we use cookies",
            "dialog:text:cookies",
        ]

    def test_hidden_banner_ignored(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page("<div id='onetrust-banner-sdk' style='display:none'><p>We use cookies</p><button>OK</button></div>")
        assert dialogs.DialogDetector(bundled_rules).find_all(doc.root) == []

    def test_ranked_best_first(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page(
            "<div class='cookie-bar'><p>Cookies help us.</p><button>OK</button></div>"
            "<div id='CybotCookiebotDialog'><p>This website uses cookies</p><button>Allow all</button></div>"
        )
        found = dialogs.DialogDetector(bundled_rules).find_all(doc.root)
        assert [c.element.describe() for c in found] == ["div#CybotCookiebotDialog", "div.cookie-bar"]
        assert found[0].score > found[1].score

    def test_container_itself_can_match(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page(ONETRUST)
        banner = first(doc, "#onetrust-banner-sdk")
        found = dialogs.DialogDetector(bundled_rules).find_all(banner)
        assert [c.element for c in found] == [banner]

    def test_containment_keeps_outer(self) -> None:
        config = rules.ClassificationConfig(
            dialogs=rules.DialogRules(
                selectors=[
                    rules.SelectorRule(query="#inner", priority=10),
                    rules.SelectorRule(query="div[class*='cookie-notice']", priority=5),
                ]
            )
        )
        doc = page(
            "<div class='cookie-notice'><h2>Cookies</h2>"
            "<div id='inner'><p>We use cookies</p><button>Accept</button></div>"
            "</div>"
        )
        found = dialogs.DialogDetector(config).find_all(doc.root)
        assert len(found) == 1
        assert found[0].element.class_list == ["cookie-notice"]


class TestContentScan:
    def test_fallback_without_selectors(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page(
            "<div id='box' style='width:300px;height:100px'>"
            "<p>This site stores data, see our privacy notice.</p><button>OK</button>"
            "</div>"
        )
        found = dialogs.DialogDetector(bundled_rules).find_all(doc.root)
        assert [c.element.id for c in found] == ["box"]
        assert found[0].score == 3

    def test_nested_candidates_collapse_to_outer(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page("<section id='outer'><div id='inner'><p>Privacy choices</p><button>OK</button></div></section>")
        found = dialogs.DialogDetector(bundled_rules).find_all(doc.root)
        assert [c.element.id for c in found] == ["outer"]

    def test_requires_a_control(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page("<div>Read about our privacy practices.</div>")
        assert dialogs.DialogDetector(bundled_rules).find_all(doc.root) == []

    def test_requires_vocabulary(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page("<div><p>Subscribe to our newsletter</p><button>OK</button></div>")
        assert dialogs.DialogDetector(bundled_rules).find_all(doc.root) == []

    def test_too_small(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page("<div style='width:40px;height:20px'>privacy<button>x</button></div>")
        assert dialogs.DialogDetector(bundled_rules).find_all(doc.root) == []

    def test_oversized_subtree_skipped(self, bundled_rules: rules.ClassificationConfig) -> None:
        doc = page("<div><p>privacy</p>" + "<button>x</button>" * 5 + "</div>")
        detector = dialogs.DialogDetector(bundled_rules, max_candidate_elements=3)
        assert detector.find_all(doc.root) == []

    def test_no_vocabulary_configured(self) -> None:
        doc = page("<div>cookies<button>x</button></div>")
        assert dialogs.DialogDetector(rules.ClassificationConfig()).find_all(doc.root) == []


class TestDialogSignature:
    def test_stable_across_renders(self) -> None:
        assert dialogs.dialog_signature(first(page(ONETRUST), "div")) == dialogs.dialog_signature(
            first(page(ONETRUST), "div")
        )

    def test_changes_with_content(self) -> None:
        other = ONETRUST.replace("We use cookies.", "We use biscuits.")
        assert dialogs.dialog_signature(first(page(ONETRUST), "div")) != dialogs.dialog_signature(
            first(page(other), "div")
        )

    def test_prefix(self) -> None:
        assert dialogs.dialog_signature(first(page(ONETRUST), "div")).startswith("dialog_")
