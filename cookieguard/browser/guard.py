"""
Wire consent detection onto a Playwright page.

``guard_page`` loads the rules, builds the snapshot function, driver,
reporting sink and detection loop for one page load, installs the
change observer and runs the initial scan.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools

import aiohttp
from playwright import async_api

from cookieguard import config as config_mod
from cookieguard.browser import driver, observer, snapshot
from cookieguard.models import policy as policy_mod
from cookieguard.pipeline import detection_loop
from cookieguard.services import reporting, rule_source
from cookieguard.utils import logger, url

log = logger.create_logger("Page-Guard")


@dataclasses.dataclass
class PageGuard:
    """Handle on the detection attached to one page."""

    page: async_api.Page
    loop: detection_loop.DetectionLoop
    change_observer: observer.ChangeObserver
    _detaching: asyncio.Task[None] | None = dataclasses.field(default=None, init=False, repr=False)

    def on_loop_stopped(self, reason: str) -> None:
        """Detach the page observer once detection has stopped on its own."""
        if reason == "closed" or self._detaching is not None:
            return
        self._detaching = asyncio.get_running_loop().create_task(self.change_observer.stop())

    async def close(self) -> None:
        """Stop detection and detach from the page."""
        self.loop.stop("closed")
        if self._detaching is not None:
            await self._detaching
        await self.change_observer.stop()
        logger.end_log_file()


def build_sink(
    settings: config_mod.CookieGuardSettings,
    http_session: aiohttp.ClientSession | None,
) -> reporting.ReportSink:
    if settings.report_url and http_session is not None:
        return reporting.HttpReportSink(settings.report_url, http_session, timeout_s=settings.http_timeout_s)
    return reporting.LoggingReportSink()


async def guard_page(
    page: async_api.Page,
    *,
    policy: policy_mod.ConsentPolicy | None = None,
    settings: config_mod.CookieGuardSettings | None = None,
    http_session: aiohttp.ClientSession | None = None,
    sink: reporting.ReportSink | None = None,
    repository: rule_source.RuleRepository | None = None,
) -> PageGuard:
    """Attach consent detection to *page* and run the initial scan.

    Args:
        page: The page to guard; normally right after ``goto``.
        policy: Consent policy; defaults to accepting.
        settings: Runtime settings; defaults to the environment.
        http_session: Shared session for remote rules and reports.
        sink: Reporting sink; defaults from settings.
        repository: Rule repository to share between pages.

    Returns:
        A :class:`PageGuard` whose ``close`` detaches everything.
    """
    settings = settings or config_mod.get_settings()
    policy = policy or policy_mod.ConsentPolicy()
    repository = repository or rule_source.RuleRepository(rule_source.from_settings(settings, http_session))

    domain = url.extract_domain(page.url)
    logger.start_log_file(domain or "page")
    log.info("Guarding page", {"url": page.url[:100], "enabled": policy.enabled})

    rules = await repository.get()

    loop = detection_loop.DetectionLoop(
        functools.partial(snapshot.capture, page),
        driver.PlaywrightDriver(page),
        rules,
        policy,
        sink=sink or build_sink(settings, http_session),
        settings=settings,
    )
    change_observer = observer.ChangeObserver(page, loop.handle_changes)
    guard = PageGuard(page=page, loop=loop, change_observer=change_observer)

    if not policy.enabled:
        loop.stop("disabled")
        return guard

    loop.add_stop_callback(guard.on_loop_stopped)
    await change_observer.start()
    await loop.start()
    return guard
