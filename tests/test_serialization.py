"""Tests for cookieguard.utils.serialization — camelCase conversion."""

from __future__ import annotations

from cookieguard.utils import serialization


class TestSnakeToCamel:
    def test_single_word(self) -> None:
        assert serialization.snake_to_camel("selectors") == "selectors"

    def test_two_words(self) -> None:
        assert serialization.snake_to_camel("text_patterns") == "textPatterns"

    def test_many_words(self) -> None:
        assert serialization.snake_to_camel("font_size_threshold_px") == "fontSizeThresholdPx"
