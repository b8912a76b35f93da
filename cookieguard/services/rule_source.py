"""
Rule document sources and the caching rule repository.

A source only fetches the raw document and raises
:class:`~cookieguard.utils.errors.RuleSourceError` when it cannot.  The
repository validates the document into a ``ClassificationConfig``,
caches the first success, and substitutes the built-in rules on any
failure, so initialisation never fails outright.
"""

from __future__ import annotations

import asyncio
import json
import pathlib
from typing import Any, Protocol

import aiohttp
import pydantic

from cookieguard import config as config_mod
from cookieguard.data import loader
from cookieguard.models import rules
from cookieguard.utils import errors, logger, retry

log = logger.create_logger("Rule-Source")


class RuleSource(Protocol):
    name: str

    async def load(self) -> Any:
        """Fetch the raw rule document.

        Raises:
            RuleSourceError: If the document cannot be fetched or parsed.
        """
        ...


# ============================================================================
# Sources
# ============================================================================


class BundledRuleSource:
    """The rule document shipped inside the package."""

    name = "bundled"

    async def load(self) -> Any:
        try:
            return loader.load_bundled_document()
        except (OSError, json.JSONDecodeError) as exc:
            raise errors.RuleSourceError(f"Bundled rules unavailable: {errors.get_error_message(exc)}") from exc


class FileRuleSource:
    """A rule document on the local filesystem."""

    def __init__(self, path: str | pathlib.Path) -> None:
        self.path = pathlib.Path(path)
        self.name = f"file:{self.path}"

    async def load(self) -> Any:
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            return json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            raise errors.RuleSourceError(f"Cannot read rules from {self.path}: {errors.get_error_message(exc)}") from exc


class HttpRuleSource:
    """A rule document served over HTTP.

    Accepts a shared ``aiohttp.ClientSession``.  Rate limits, 5xx answers
    and dropped connections are retried with backoff.
    """

    def __init__(
        self,
        url: str,
        http_session: aiohttp.ClientSession,
        *,
        timeout_s: float = 5.0,
        max_retries: int = 2,
    ) -> None:
        self.url = url
        self.name = f"http:{url}"
        self._session = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._max_retries = max_retries

    async def load(self) -> Any:
        async def _fetch() -> Any:
            async with self._session.get(self.url, timeout=self._timeout) as response:
                response.raise_for_status()
                return await response.json(content_type=None)

        try:
            return await retry.with_retry(_fetch, max_retries=self._max_retries, context="rules")
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as exc:
            raise errors.RuleSourceError(f"Cannot fetch rules from {self.url}: {errors.get_error_message(exc)}") from exc


def from_settings(
    settings: config_mod.CookieGuardSettings,
    http_session: aiohttp.ClientSession | None = None,
) -> RuleSource:
    """Pick the configured source: URL, then file path, then bundled."""
    if settings.rules_url and http_session is not None:
        return HttpRuleSource(settings.rules_url, http_session, timeout_s=settings.http_timeout_s)
    if settings.rules_url:
        log.warn("Rules URL configured without an HTTP session, ignoring", {"url": settings.rules_url})
    if settings.rules_path:
        return FileRuleSource(settings.rules_path)
    return BundledRuleSource()


# ============================================================================
# Repository
# ============================================================================


class RuleRepository:
    """Loads, validates and caches the rule document."""

    def __init__(self, source: RuleSource | None = None) -> None:
        self.source: RuleSource = source or BundledRuleSource()
        self._cached: rules.ClassificationConfig | None = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._cached is not None

    async def get(self) -> rules.ClassificationConfig:
        """Return the validated rules; never raises.

        The built-in rules stand in (uncached) when the source fails, so
        a later call gets another chance at the real document.
        """
        if self._cached is not None:
            return self._cached
        async with self._lock:
            if self._cached is not None:
                return self._cached
            log.start_timer("rule-load")
            try:
                raw = await self.source.load()
                config = rules.ClassificationConfig.model_validate(raw)
            except errors.RuleSourceError as exc:
                log.warn("Rule source unavailable, using built-in rules", {"source": self.source.name, "error": str(exc)})
                log.end_timer("rule-load", "Rule load failed")
                return loader.builtin_rules()
            except pydantic.ValidationError as exc:
                log.warn(
                    "Rule document malformed, using built-in rules",
                    {"source": self.source.name, "errors": exc.error_count()},
                )
                log.end_timer("rule-load", "Rule load failed")
                return loader.builtin_rules()
            except Exception as exc:
                log.error(
                    "Unexpected rule load failure, using built-in rules",
                    {"source": self.source.name, "error": errors.get_error_message(exc)},
                )
                log.end_timer("rule-load", "Rule load failed")
                return loader.builtin_rules()

            missing = config.missing_sections()
            if missing:
                log.warn(
                    "Rule document incomplete, using built-in rules",
                    {"source": self.source.name, "missing": missing},
                )
                log.end_timer("rule-load", "Rule load failed")
                return loader.builtin_rules()

            self._cached = config
            log.end_timer("rule-load", "Rules loaded")
            log.success(
                "Rule document ready",
                {
                    "source": self.source.name,
                    "version": config.version,
                    "buttonTypes": len(config.button_types),
                    "dialogSelectors": len(config.dialogs.selectors),
                },
            )
            return config

    def invalidate(self) -> None:
        """Forget the cached document; the next ``get`` reloads it."""
        self._cached = None
