"""
Subtree change notifications from a live page.

A ``MutationObserver`` in the page reports added elements and changes to
the attributes that can reveal a dialog.  Batches cross into Python
through an exposed binding and are queued; a single consumer task hands
them to the handler one at a time, in delivery order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from playwright import async_api

from cookieguard.browser import snapshot
from cookieguard.consent import constants
from cookieguard.models import detection
from cookieguard.utils import errors, logger

log = logger.create_logger("Change-Observer")

BINDING_NAME = "__cookieguardChanges"

ChangeHandler = Callable[[list[detection.ChangeRecord]], Awaitable[Any]]

OBSERVER_SCRIPT = (
    "(() => {"
    + snapshot.REF_PRELUDE
    + r"""
    if (cg.observer) {
        return;
    }
    const watched = %s;
    const start = () => {
        const root = document.documentElement;
        if (!root) {
            return false;
        }
        cg.observer = new MutationObserver((mutations) => {
            const batch = [];
            for (const m of mutations) {
                if (m.type === 'childList') {
                    for (const node of m.addedNodes) {
                        if (node.nodeType === Node.ELEMENT_NODE) {
                            batch.push({ kind: 'added', ref: refOf(node), attribute: null });
                        }
                    }
                } else if (m.type === 'attributes' && watched.includes(m.attributeName)) {
                    batch.push({ kind: 'attributes', ref: refOf(m.target), attribute: m.attributeName });
                }
            }
            if (batch.length && typeof window.%s === 'function') {
                window.%s(batch);
            }
        });
        cg.observer.observe(root, { childList: true, subtree: true, attributes: true, attributeFilter: watched });
        return true;
    };
    if (!start()) {
        document.addEventListener('DOMContentLoaded', start, { once: true });
    }
})()
"""
    % (sorted(constants.WATCHED_ATTRIBUTES), BINDING_NAME, BINDING_NAME)
)

_DISCONNECT_SCRIPT = """() => {
    const cg = window.__cookieguard;
    if (cg && cg.observer) {
        cg.observer.disconnect();
        cg.observer = null;
    }
}"""


def parse_batch(raw: Any) -> list[detection.ChangeRecord]:
    """Validate one batch from the page; malformed entries are dropped."""
    records: list[detection.ChangeRecord] = []
    if not isinstance(raw, list):
        return records
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        kind = entry.get("kind")
        ref = entry.get("ref")
        if kind not in ("added", "attributes") or not isinstance(ref, int):
            continue
        attribute = entry.get("attribute")
        records.append(
            detection.ChangeRecord(kind=kind, ref=ref, attribute=attribute if isinstance(attribute, str) else None)
        )
    return records


class ChangeObserver:
    """Feeds page mutation batches to *handler*, strictly in order."""

    def __init__(self, page: async_api.Page, handler: ChangeHandler) -> None:
        self._page = page
        self._handler = handler
        self._queue: asyncio.Queue[list[detection.ChangeRecord]] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._bound = False

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    async def start(self) -> None:
        """Install the observer in the page and start consuming batches."""
        if self.running:
            return
        if not self._bound:
            await self._page.expose_binding(BINDING_NAME, self._on_batch)
            await self._page.add_init_script(OBSERVER_SCRIPT)
            self._bound = True
        await self._page.evaluate(OBSERVER_SCRIPT)
        self._consumer = asyncio.get_running_loop().create_task(self._consume())
        log.debug("Change observer installed")

    async def stop(self) -> None:
        """Disconnect the page observer and stop the consumer."""
        try:
            await self._page.evaluate(_DISCONNECT_SCRIPT)
        except Exception as exc:
            log.debug("Could not disconnect page observer", {"error": errors.get_error_message(exc)})
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

    def _on_batch(self, source: Any, raw: Any) -> None:
        records = parse_batch(raw)
        if records:
            self._queue.put_nowait(records)

    async def _consume(self) -> None:
        while True:
            records = await self._queue.get()
            try:
                await self._handler(records)
            except Exception as exc:
                log.error("Change handler failed", {"error": errors.get_error_message(exc)})
            finally:
                self._queue.task_done()
