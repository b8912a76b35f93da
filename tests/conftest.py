"""Shared fixtures for the test suite."""

from __future__ import annotations

import pytest

from cookieguard import config as config_mod
from cookieguard.data import loader
from cookieguard.models import rules
from cookieguard.utils import logger
from tests._helpers import CollectingSink, FakeDriver

# ── Rules ───────────────────────────────────────────────────────


@pytest.fixture()
def bundled_rules() -> rules.ClassificationConfig:
    """The rule document shipped with the package."""
    return loader.get_bundled_rules()


@pytest.fixture()
def minimal_rules() -> rules.ClassificationConfig:
    """A tiny hand-built rule set with no surprises."""
    return rules.ClassificationConfig(
        version="test",
        dialogs=rules.DialogRules(
            selectors=[rules.SelectorRule(query="#consent", priority=10)],
            content_patterns=["cookie"],
            keywords=["consent"],
        ),
        button_types={
            "accept": rules.TypeRules(
                text_patterns=[
                    rules.TextPatternRule(pattern="accept", priority=5),
                    rules.TextPatternRule(pattern="accept all", priority=9),
                ],
                exclude_patterns=["settings"],
            ),
            "reject": rules.TypeRules(text_patterns=[rules.TextPatternRule(pattern="reject", priority=7)]),
        },
        exclude_selectors=["footer"],
    )


# ── Runtime ─────────────────────────────────────────────────────


@pytest.fixture()
def settings() -> config_mod.CookieGuardSettings:
    """Settings with a long window and no real waiting."""
    return config_mod.CookieGuardSettings(
        detection_window_ms=60_000,
        failsafe_grace_ms=1_000,
        rollback_delay_ms=0,
        delayed_rescan_ms=0,
        max_subtree_elements=500,
    )


@pytest.fixture()
def fake_driver() -> FakeDriver:
    """A page driver that records calls and never navigates."""
    return FakeDriver()


@pytest.fixture()
def sink() -> CollectingSink:
    """A reporting sink that keeps every report."""
    return CollectingSink()


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep debug output out of the test log and start each test with an empty buffer."""
    monkeypatch.setenv("COOKIEGUARD_LOG_LEVEL", "warn")
    monkeypatch.delenv("WRITE_TO_FILE", raising=False)
    logger.clear_log_buffer()
