"""Tests for cookieguard.data.loader — bundled and built-in rule documents."""

from __future__ import annotations

from cookieguard.data import loader
from cookieguard.models import rules


class TestBundledRules:
    def test_loads_and_validates(self) -> None:
        config = loader.get_bundled_rules()
        assert config.version == "2024.3"
        assert config.dialogs.selectors

    def test_cached(self) -> None:
        assert loader.get_bundled_rules() is loader.get_bundled_rules()

    def test_every_button_type_present(self) -> None:
        assert set(loader.get_bundled_rules().button_types) == set(rules.BUTTON_TYPES)

    def test_every_checkbox_type_present(self) -> None:
        assert set(loader.get_bundled_rules().checkbox_types) == set(rules.CHECKBOX_TYPES)

    def test_patterns_are_lowercase(self) -> None:
        config = loader.get_bundled_rules()
        for control_type, type_rules in config.button_types.items():
            for rule in type_rules.text_patterns:
                assert rule.pattern == rule.pattern.lower(), f"{control_type}: {rule.pattern!r}"

    def test_regions(self) -> None:
        assert set(loader.get_bundled_rules().region_detection) == {"eu", "california"}


class TestBuiltinRules:
    def test_version(self) -> None:
        assert loader.builtin_rules().version == "builtin"

    def test_covers_main_button_types(self) -> None:
        config = loader.builtin_rules()
        for control_type in ("accept", "reject", "essential", "customize"):
            assert control_type in config.button_types

    def test_fresh_instance_each_call(self) -> None:
        assert loader.builtin_rules() is not loader.builtin_rules()
