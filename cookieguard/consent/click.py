"""
Safe consent-control interaction.

Every click goes through one gate: a control that was already clicked
(same DOM node, or a re-render with the same signature) is refused, as
is an informational link that opens a new context.  The ledger entry is
written before the first suspension point, so two triggers arriving in
the same turn cannot both get through.

Dispatch tries a realistic pointer sequence first, with any enclosing
form neutralised for its duration, then a detached clone, then a plain
activation.  If the page navigates anyway, loading is stopped and the
browser goes back.
"""

from __future__ import annotations

import asyncio
import dataclasses
import hashlib
from datetime import UTC, datetime
from typing import Any

from cookieguard.consent import constants
from cookieguard.dom import document, driver, text
from cookieguard.models import detection
from cookieguard.services import reporting
from cookieguard.utils import errors, logger

log = logger.create_logger("Consent-Click")

DEFAULT_ROLLBACK_DELAY_MS = 300

_NEW_CONTEXT_REL = ("noopener", "noreferrer", "external")


def element_signature(element: document.Element) -> str:
    """Content-derived identity that survives the node being re-rendered."""
    sample = element.normalized_text[: constants.SIGNATURE_TEXT_LENGTH]
    box = element.box
    raw = "|".join([
        element.tag_name,
        element.id,
        " ".join(sorted(element.class_list)),
        sample,
        f"{round(box.width)}x{round(box.height)}",
    ])
    return "el_" + hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


@dataclasses.dataclass
class ClickLedger:
    """Controls already acted on, keyed by node identity and by signature."""

    by_identity: dict[tuple[str, int], bool] = dataclasses.field(default_factory=dict)
    by_signature: dict[str, bool] = dataclasses.field(default_factory=dict)

    def has(self, element: document.Element, signature: str) -> bool:
        return self.by_identity.get(element.identity, False) or self.by_signature.get(signature, False)

    def record(self, element: document.Element, signature: str) -> None:
        self.by_identity[element.identity] = True
        self.by_signature[signature] = True

    def clear(self) -> None:
        self.by_identity.clear()
        self.by_signature.clear()

    def __len__(self) -> int:
        return len(self.by_signature)


@dataclasses.dataclass(frozen=True)
class ClickContext:
    """What the caller knows about the control, carried into the report."""

    control_type: str | None = None
    matched_rule: str | None = None
    detection_method: detection.DetectionMethod | None = None
    domain: str = ""
    region: detection.Region | None = None
    variant: detection.Variant | None = None


def is_informational_link(element: document.Element) -> bool:
    """An anchor that opens a new context and points at policy information."""
    if element.tag_name != "a":
        return False
    target = (element.get("target") or "").lower()
    rel = (element.get("rel") or "").lower()
    if target != "_blank" and not any(token in rel for token in _NEW_CONTEXT_REL):
        return False
    if text.contains_any(element.visible_text, constants.INFORMATIONAL_PHRASES):
        return True
    href = (element.get("href") or "").lower()
    return any(term in href for term in constants.INFORMATIONAL_HREF_TERMS)


def _needs_keyboard_activation(element: document.Element) -> bool:
    if element.has_attribute("role"):
        return True
    return any(cls.startswith(constants.FRAMEWORK_CLASS_PREFIXES) for cls in element.class_list)


def _pointer_init(element: document.Element) -> dict[str, Any]:
    box = element.box
    return {
        "bubbles": True,
        "cancelable": True,
        "button": 0,
        "clientX": box.x + box.width / 2,
        "clientY": box.y + box.height / 2,
    }


class InteractionController:
    """Performs at most one safety-checked click per control."""

    def __init__(
        self,
        page_driver: driver.PageDriver,
        *,
        ledger: ClickLedger | None = None,
        sink: reporting.ReportSink | None = None,
        rollback_delay_ms: int = DEFAULT_ROLLBACK_DELAY_MS,
    ) -> None:
        self.driver = page_driver
        self.ledger = ledger if ledger is not None else ClickLedger()
        self.sink = sink
        self.rollback_delay_ms = rollback_delay_ms

    def check(self, element: document.Element) -> str | None:
        """Return why *element* may not be clicked, or ``None`` if it may."""
        if self.ledger.has(element, element_signature(element)):
            return "already-clicked"
        if is_informational_link(element):
            return "informational-link"
        return None

    async def safe_click(self, element: document.Element, context: ClickContext | None = None) -> bool:
        """Click *element* once, safely.

        Returns:
            ``True`` if the click was attempted; ``False`` if a safety
            rule refused it.  Dispatch failures are reported, not raised.
        """
        context = context or ClickContext()
        signature = element_signature(element)

        # Check-then-insert must not be split by an await.
        if self.ledger.has(element, signature):
            log.debug("Refusing repeat click", {"signature": signature, "element": element.describe()})
            return False
        if is_informational_link(element):
            log.info("Refusing informational link", {"text": element.visible_text[:60]})
            return False
        self.ledger.record(element, signature)

        log.info(
            "Clicking consent control",
            {"type": context.control_type, "text": element.visible_text[:60], "element": element.describe()},
        )
        before = await self._navigation_identity()
        succeeded = await self._dispatch(element)
        if before is not None and await self._rolled_back(before):
            succeeded = False

        if succeeded:
            log.success("Consent control clicked", {"type": context.control_type, "signature": signature})
        else:
            log.warn("Consent click did not take effect", {"type": context.control_type, "signature": signature})

        await self._report(element, signature, context, succeeded)
        return True

    async def set_checkbox(self, checkbox: document.Element, checked: bool) -> bool:
        """Set a consent checkbox; ``False`` when the host refuses."""
        try:
            await self.driver.set_checked(checkbox, checked)
        except Exception as exc:
            log.warn("Could not toggle checkbox", {"element": checkbox.describe(), "error": errors.get_error_message(exc)})
            return False
        log.debug("Checkbox toggled", {"element": checkbox.describe(), "checked": checked})
        return True

    # ── Dispatch ────────────────────────────────────────────────

    async def _dispatch(self, element: document.Element) -> bool:
        try:
            form = element.closest("form")
            if form is not None:
                await self._click_in_form(element, form)
            else:
                await self._pointer_click(element)
                if _needs_keyboard_activation(element):
                    await self._keyboard_activate(element)
            return True
        except Exception as exc:
            log.warn("Direct dispatch failed, trying clone", {"error": errors.get_error_message(exc)})

        try:
            await self.driver.click_clone(element)
            return True
        except Exception as exc:
            log.warn("Clone click failed, trying activation", {"error": errors.get_error_message(exc)})

        try:
            await self.driver.activate(element)
            return True
        except Exception as exc:
            log.error("All click strategies failed", {"error": errors.get_error_message(exc)})
        return False

    async def _click_in_form(self, element: document.Element, form: document.Element) -> None:
        handle = await self.driver.neutralize_form(form)
        try:
            await self._pointer_click(element)
        finally:
            await self.driver.restore_form(handle)

    async def _pointer_click(self, element: document.Element) -> None:
        init = _pointer_init(element)
        for event_type in ("mousedown", "mouseup", "click"):
            await self.driver.dispatch_event(element, event_type, init)

    async def _keyboard_activate(self, element: document.Element) -> None:
        await self.driver.dispatch_event(element, "focus", {"bubbles": False})
        key = {"bubbles": True, "cancelable": True, "key": "Enter", "code": "Enter", "keyCode": 13}
        await self.driver.dispatch_event(element, "keydown", key)
        await self.driver.dispatch_event(element, "keyup", key)

    # ── Navigation rollback ─────────────────────────────────────

    async def _navigation_identity(self) -> str | None:
        try:
            return await self.driver.navigation_identity()
        except Exception as exc:
            log.debug("Could not read navigation identity", {"error": errors.get_error_message(exc)})
            return None

    async def _rolled_back(self, before: str) -> bool:
        """After a short delay, undo any navigation the click caused."""
        await asyncio.sleep(self.rollback_delay_ms / 1000)
        after = await self._navigation_identity()
        if after is None or after == before:
            return False
        log.warn("Click caused navigation, going back", {"from": before[:80], "to": after[:80]})
        try:
            await self.driver.stop_loading()
            await self.driver.go_back()
        except Exception as exc:
            log.error("Navigation rollback failed", {"error": errors.get_error_message(exc)})
        return True

    # ── Reporting ───────────────────────────────────────────────

    async def _report(
        self,
        element: document.Element,
        signature: str,
        context: ClickContext,
        succeeded: bool,
    ) -> None:
        if self.sink is None:
            return
        report = detection.InteractionReport(
            signature=signature,
            matched_rule=context.matched_rule,
            detection_method=context.detection_method,
            control_type=context.control_type,
            control_text=element.visible_text[:100],
            succeeded=succeeded,
            timestamp=datetime.now(UTC).isoformat(),
            domain=context.domain,
            region=context.region,
            variant=context.variant,
        )
        try:
            acknowledged = await self.sink.report(report)
        except Exception as exc:
            log.warn("Failed to report interaction", {"error": errors.get_error_message(exc)})
            return
        if not acknowledged:
            log.debug("Interaction report not acknowledged", {"signature": signature})
