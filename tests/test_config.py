"""Tests for cookieguard.config — environment-bound settings."""

from __future__ import annotations

from collections.abc import Iterator

import pydantic
import pytest

from cookieguard import config as config_mod


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Drop cached settings around every test."""
    config_mod.reset_settings()
    yield
    config_mod.reset_settings()


class TestCookieGuardSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("COOKIEGUARD_DETECTION_WINDOW_MS", "COOKIEGUARD_RULES_URL", "COOKIEGUARD_RULES_PATH"):
            monkeypatch.delenv(name, raising=False)
        settings = config_mod.CookieGuardSettings()
        assert settings.detection_window_ms == 10_000
        assert settings.rollback_delay_ms == 300
        assert settings.max_subtree_elements == 500

    def test_environment_binding(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COOKIEGUARD_DETECTION_WINDOW_MS", "2500")
        monkeypatch.setenv("COOKIEGUARD_RULES_PATH", "/etc/cookieguard/rules.json")
        settings = config_mod.CookieGuardSettings()
        assert settings.detection_window_ms == 2500
        assert settings.rules_path == "/etc/cookieguard/rules.json"

    def test_negative_window_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            config_mod.CookieGuardSettings(detection_window_ms=-1)

    def test_get_settings_is_cached(self) -> None:
        assert config_mod.get_settings() is config_mod.get_settings()

    def test_reset_rereads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COOKIEGUARD_ROLLBACK_DELAY_MS", "50")
        assert config_mod.get_settings().rollback_delay_ms == 50
        monkeypatch.setenv("COOKIEGUARD_ROLLBACK_DELAY_MS", "75")
        config_mod.reset_settings()
        assert config_mod.get_settings().rollback_delay_ms == 75
