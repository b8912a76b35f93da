"""
Runtime configuration for consent detection.

Centralises all environment variable names and default values.

Uses ``pydantic_settings.BaseSettings`` for automatic environment
variable binding, type coercion, and validation.  A ``.env`` file in
the working directory is honoured.
"""

from __future__ import annotations

import dotenv
import pydantic
import pydantic_settings

from cookieguard.utils import logger

log = logger.create_logger("Config")


class CookieGuardSettings(pydantic_settings.BaseSettings):
    """Settings for rule loading, reporting and the detection loop.

    Attributes:
        rules_url: Remote rule document; takes precedence over ``rules_path``.
        rules_path: Local rule document (JSON file).
        report_url: Collector endpoint for interaction reports.
        detection_window_ms: How long the loop keeps reacting to changes.
        failsafe_grace_ms: Extra time before the failsafe stop fires.
        rollback_delay_ms: Wait before checking whether a click navigated.
        delayed_rescan_ms: Delay of the one-off full re-scan after start.
        max_subtree_elements: Changed subtrees larger than this are skipped.
        http_timeout_s: Timeout for rule and report HTTP calls.
    """

    model_config = pydantic_settings.SettingsConfigDict(populate_by_name=True, extra="ignore")

    rules_url: str | None = pydantic.Field(default=None, validation_alias="COOKIEGUARD_RULES_URL")
    rules_path: str | None = pydantic.Field(default=None, validation_alias="COOKIEGUARD_RULES_PATH")
    report_url: str | None = pydantic.Field(default=None, validation_alias="COOKIEGUARD_REPORT_URL")
    detection_window_ms: int = pydantic.Field(
        default=10_000, ge=0, validation_alias="COOKIEGUARD_DETECTION_WINDOW_MS"
    )
    failsafe_grace_ms: int = pydantic.Field(default=2_000, ge=0, validation_alias="COOKIEGUARD_FAILSAFE_GRACE_MS")
    rollback_delay_ms: int = pydantic.Field(default=300, ge=0, validation_alias="COOKIEGUARD_ROLLBACK_DELAY_MS")
    delayed_rescan_ms: int = pydantic.Field(default=1_500, ge=0, validation_alias="COOKIEGUARD_DELAYED_RESCAN_MS")
    max_subtree_elements: int = pydantic.Field(
        default=500, ge=1, validation_alias="COOKIEGUARD_MAX_SUBTREE_ELEMENTS"
    )
    http_timeout_s: float = pydantic.Field(default=5.0, gt=0, validation_alias="COOKIEGUARD_HTTP_TIMEOUT_S")


_settings: CookieGuardSettings | None = None


def get_settings() -> CookieGuardSettings:
    """Get the process settings (loaded once, then cached)."""
    global _settings
    if _settings is None:
        dotenv.load_dotenv()
        _settings = CookieGuardSettings()
        log.debug(
            "Settings loaded",
            {
                "rulesUrl": _settings.rules_url,
                "rulesPath": _settings.rules_path,
                "reportUrl": _settings.report_url,
                "detectionWindowMs": _settings.detection_window_ms,
            },
        )
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
