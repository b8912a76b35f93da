"""Tests for cookieguard.utils.logger — buffering, level threshold and timers."""

from __future__ import annotations

import pytest

from cookieguard.utils import logger


class TestLogger:
    def test_lines_are_buffered_without_ansi(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COOKIEGUARD_LOG_LEVEL", "debug")
        log = logger.create_logger("Unit")
        log.info("Hello", {"count": 3})
        lines = logger.get_log_buffer()
        assert len(lines) == 1
        assert "[Unit] Hello" in lines[0]
        assert "count=3" in lines[0]
        assert "\033[" not in lines[0]

    def test_threshold_filters_lower_levels(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COOKIEGUARD_LOG_LEVEL", "warn")
        log = logger.create_logger("Unit")
        log.debug("hidden")
        log.info("hidden")
        log.warn("shown")
        lines = logger.get_log_buffer()
        assert len(lines) == 1
        assert "shown" in lines[0]

    def test_clear_log_buffer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COOKIEGUARD_LOG_LEVEL", "debug")
        logger.create_logger("Unit").error("boom")
        logger.clear_log_buffer()
        assert logger.get_log_buffer() == []

    def test_timer_returns_duration(self) -> None:
        log = logger.create_logger("Unit")
        log.start_timer("work")
        assert log.end_timer("work") >= 0.0

    def test_unknown_timer(self) -> None:
        assert logger.create_logger("Unit").end_timer("never-started") == 0.0

    def test_file_logging_disabled_by_default(self) -> None:
        assert logger.start_log_file("example.com") is None
