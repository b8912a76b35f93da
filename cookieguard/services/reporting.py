"""
Reporting sinks for interaction outcomes.

A sink acknowledges each :class:`InteractionReport`.  Sinks never abort
detection: transport failures are logged and turned into a negative
acknowledgement.
"""

from __future__ import annotations

import collections
from typing import Protocol

import aiohttp

from cookieguard.models import detection
from cookieguard.utils import errors, logger, retry

log = logger.create_logger("Reporting")

DEFAULT_HISTORY_SIZE = 200


class ReportSink(Protocol):
    async def report(self, report: detection.InteractionReport) -> bool:
        """Deliver *report*; return whether it was acknowledged."""
        ...


class LoggingReportSink:
    """Logs every report and keeps the most recent ones in memory."""

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        self._history: collections.deque[detection.InteractionReport] = collections.deque(maxlen=history_size)

    @property
    def history(self) -> list[detection.InteractionReport]:
        return list(self._history)

    async def report(self, report: detection.InteractionReport) -> bool:
        self._history.append(report)
        data = {
            "signature": report.signature,
            "type": report.control_type,
            "text": report.control_text,
            "rule": report.matched_rule,
            "domain": report.domain,
        }
        if report.succeeded:
            log.success("Interaction recorded", data)
        else:
            log.warn("Failed interaction recorded", data)
        return True


class HttpReportSink:
    """POSTs reports as camelCase JSON to a collector endpoint.

    Accepts a shared ``aiohttp.ClientSession`` so that connections are
    reused across reports.  Rate limits and 5xx answers are retried.
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
        self._session = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._max_retries = max_retries

    async def report(self, report: detection.InteractionReport) -> bool:
        payload = report.model_dump(mode="json", by_alias=True)

        async def _post() -> bool:
            async with self._session.post(self.url, json=payload, timeout=self._timeout) as response:
                response.raise_for_status()
                return True

        try:
            return await retry.with_retry(_post, max_retries=self._max_retries, context="report")
        except Exception as exc:
            log.warn("Report delivery failed", {"url": self.url, "error": errors.get_error_message(exc)})
            return False
