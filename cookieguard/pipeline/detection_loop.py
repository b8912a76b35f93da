"""
Continuous consent-dialog detection for one page load.

Runs the dialog detector over the initial document, then over every
batch of change notifications, and hands the preferred control of each
new dialog to the interaction controller.  Detection runs inside a hard
time window: when it elapses (or its failsafe companion fires) the loop
stops for good, and only :meth:`DetectionLoop.reinitialize` starts a
fresh session.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable, Sequence

from cookieguard import config as config_mod
from cookieguard.consent import buttons, checkboxes, click, constants, dialogs, element_finder, region
from cookieguard.dom import document, driver
from cookieguard.models import detection, policy, rules
from cookieguard.services import reporting
from cookieguard.utils import errors, logger, url

log = logger.create_logger("Detection-Loop")

SnapshotFn = Callable[[], Awaitable[document.Document]]
StopCallback = Callable[[str], object]

# Checkbox types unchecked when the policy prefers essential-only consent.
_OPTIONAL_CHECKBOX_TYPES = ("analytics", "advertising")


def _current_task() -> asyncio.Task[object] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


@dataclasses.dataclass
class SessionState:
    """Dedup state for one detection session.

    ``stopped`` only ever goes from ``False`` to ``True``; a new session
    gets a new ``SessionState``.
    """

    processed_dialog_signatures: set[str] = dataclasses.field(default_factory=set)
    processed_domains: set[str] = dataclasses.field(default_factory=set)
    stopped: bool = False


class DetectionLoop:
    """Detects consent dialogs on one page and acts on them per policy.

    Usage::

        loop = DetectionLoop(snapshot, page_driver, rules, policy)
        await loop.start()
        ...
        await loop.handle_changes(records)
    """

    def __init__(
        self,
        snapshot: SnapshotFn,
        page_driver: driver.PageDriver,
        config: rules.ClassificationConfig,
        consent_policy: policy.ConsentPolicy,
        *,
        sink: reporting.ReportSink | None = None,
        settings: config_mod.CookieGuardSettings | None = None,
    ) -> None:
        self._snapshot_fn = snapshot
        self.config = config
        self.policy = consent_policy
        self.settings = settings or config_mod.get_settings()

        finder = element_finder.ElementFinder(config)
        self.buttons = buttons.ButtonClassifier(config, finder)
        self.checkboxes = checkboxes.CheckboxClassifier(config, finder)
        self.dialogs = dialogs.DialogDetector(
            config,
            finder,
            max_candidate_elements=self.settings.max_subtree_elements,
        )
        self.region = region.RegionVariantDetector(config)

        self.state = SessionState()
        self.ledger = click.ClickLedger()
        self.controller = click.InteractionController(
            page_driver,
            ledger=self.ledger,
            sink=sink,
            rollback_delay_ms=self.settings.rollback_delay_ms,
        )
        self.results: list[detection.DetectionResult] = []

        self._started = False
        self._timers: list[asyncio.TimerHandle] = []
        self._tasks: set[asyncio.Task[object]] = set()
        self._stop_callbacks: list[StopCallback] = []

    # ── Lifecycle ───────────────────────────────────────────────

    @property
    def active(self) -> bool:
        return self._started and not self.state.stopped

    async def start(self) -> list[detection.DetectionResult]:
        """Arm the timers and scan the initial document."""
        if self._started:
            return []
        self._started = True

        loop = asyncio.get_running_loop()
        window_s = self.settings.detection_window_ms / 1000
        grace_s = self.settings.failsafe_grace_ms / 1000
        self._timers.append(loop.call_later(window_s, self.stop, "detection-window-elapsed"))
        self._timers.append(loop.call_later(window_s + grace_s, self.stop, "failsafe"))
        if self.settings.delayed_rescan_ms > 0:
            self._timers.append(
                loop.call_later(self.settings.delayed_rescan_ms / 1000, self._spawn_delayed_rescan)
            )

        log.info(
            "Detection started",
            {"windowMs": self.settings.detection_window_ms, "policyOrder": self.policy.control_order()},
        )
        return await self.scan()

    def add_stop_callback(self, callback: StopCallback) -> None:
        """Call *callback* with the reason whenever detection stops for good."""
        self._stop_callbacks.append(callback)

    def stop(self, reason: str = "disabled") -> None:
        """Stop detection for this session.  Safe to call repeatedly."""
        if not self._halt(reason):
            return
        for callback in list(self._stop_callbacks):
            try:
                callback(reason)
            except Exception as exc:
                log.error("Stop callback failed", {"reason": reason, "error": errors.get_error_message(exc)})

    def _halt(self, reason: str) -> bool:
        if self.state.stopped:
            return False
        self.state.stopped = True
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        current = _current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self._tasks.clear()
        log.info("Detection stopped", {"reason": reason, "dialogs": len(self.results)})
        return True

    async def reinitialize(self) -> list[detection.DetectionResult]:
        """Stop the current session and start a fresh one.

        Stop callbacks are not called; the host stays attached.
        """
        self._halt("reinitialize")
        self.state = SessionState()
        self.ledger = click.ClickLedger()
        self.controller.ledger = self.ledger
        self.results = []
        self._started = False
        return await self.start()

    # ── Scanning ────────────────────────────────────────────────

    async def scan(self, doc: document.Document | None = None) -> list[detection.DetectionResult]:
        """Run the dialog detector over the whole document."""
        if self.state.stopped:
            return []
        if doc is None:
            doc = await self._take_snapshot()
            if doc is None:
                return []

        produced: list[detection.DetectionResult] = []
        for candidate in self.dialogs.find_all(doc.root):
            if self.state.stopped:
                break
            result = await self._process_dialog(candidate.element, doc)
            if result is not None:
                produced.append(result)
        return produced

    async def rescan(self, *, user_triggered: bool = False) -> list[detection.DetectionResult]:
        """Scan again.  A user-triggered re-scan re-enables the current domain."""
        if self.state.stopped:
            log.debug("Ignoring re-scan of a stopped session")
            return []
        doc = await self._take_snapshot()
        if doc is None:
            return []
        if user_triggered:
            domain = url.extract_domain(doc.url)
            self.state.processed_domains.discard(domain)
            self.state.processed_dialog_signatures.clear()
            log.info("User re-scan, interaction re-enabled", {"domain": domain})
        return await self.scan(doc)

    async def handle_changes(self, records: Sequence[detection.ChangeRecord]) -> list[detection.DetectionResult]:
        """Re-scan the subtrees named by one batch of change notifications, in order."""
        if self.state.stopped or not records:
            return []
        relevant = [
            r for r in records if r.kind == "added" or (r.attribute or "") in constants.WATCHED_ATTRIBUTES
        ]
        if not relevant:
            return []
        doc = await self._take_snapshot()
        if doc is None:
            return []

        produced: list[detection.DetectionResult] = []
        for record in relevant:
            if self.state.stopped:
                break
            target = doc.by_ref(record.ref)
            if target is None or not self._worth_scanning(target):
                continue
            for candidate in self.dialogs.find_all(target):
                if self.state.stopped:
                    break
                result = await self._process_dialog(candidate.element, doc)
                if result is not None:
                    produced.append(result)
        return produced

    def _worth_scanning(self, target: document.Element) -> bool:
        """Visible, reasonably large, and not an enormous subtree."""
        if not document.is_visible(target):
            return False
        box = target.box
        if box.width < constants.MIN_RESCAN_WIDTH or box.height < constants.MIN_RESCAN_HEIGHT:
            return False
        limit = self.settings.max_subtree_elements
        return target.count_descendants(limit) <= limit

    async def _take_snapshot(self) -> document.Document | None:
        try:
            return await self._snapshot_fn()
        except Exception as exc:
            log.error("Snapshot failed", {"error": errors.get_error_message(exc)})
            return None

    def _spawn_delayed_rescan(self) -> None:
        if self.state.stopped:
            return
        task: asyncio.Task[object] = asyncio.get_running_loop().create_task(self.scan())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ── Per-dialog processing ───────────────────────────────────

    async def _process_dialog(
        self,
        dialog: document.Element,
        doc: document.Document,
    ) -> detection.DetectionResult | None:
        signature = dialogs.dialog_signature(dialog)
        if signature in self.state.processed_dialog_signatures:
            return None
        self.state.processed_dialog_signatures.add(signature)

        domain = url.extract_domain(doc.url)
        found = self.buttons.find_all_with_types(dialog)
        accept = found.get("accept")
        refusal = found.get("reject") or found.get("essential")
        classified = self.region.detect(
            dialog,
            domain,
            accept.element if accept else None,
            refusal.element if refusal else None,
        )
        log.info(
            "Consent dialog detected",
            {
                "dialog": dialog.describe(),
                "signature": signature,
                "region": classified.region,
                "variant": classified.variant,
                "controls": list(found),
            },
        )

        control_type: str | None = None
        clicked = False
        if not self.policy.allows_interaction():
            log.debug("Policy does not allow interaction", {"signature": signature})
        elif domain in self.state.processed_domains:
            log.debug("Domain already handled this session", {"domain": domain})
        else:
            # Claimed before the first await so a concurrent batch skips it.
            self.state.processed_domains.add(domain)
            clicked, control_type = await self._interact(dialog, found, classified, domain)
            if not clicked:
                self.state.processed_domains.discard(domain)

        result = detection.DetectionResult(
            signature=signature,
            region=classified.region,
            variant=classified.variant,
            control_type=control_type,
            clicked=clicked,
            domain=domain,
        )
        self.results.append(result)
        return result

    async def _interact(
        self,
        dialog: document.Element,
        found: dict[str, element_finder.Match],
        classified: detection.RegionVariant,
        domain: str,
    ) -> tuple[bool, str | None]:
        if self.policy.prefer_essential and "essential" not in found and "reject" not in found:
            if await self._apply_checkbox_preferences(dialog, found, classified, domain):
                return True, "save"

        for control_type in self.policy.control_order():
            match = found.get(control_type)
            if match is None:
                continue
            refusal = self.controller.check(match.element)
            if refusal is not None:
                log.debug("Skipping control", {"type": control_type, "reason": refusal})
                continue
            context = click.ClickContext(
                control_type=control_type,
                matched_rule=match.rule_id,
                detection_method=match.method,
                domain=domain,
                region=classified.region,
                variant=classified.variant,
            )
            if await self.controller.safe_click(match.element, context):
                return True, control_type
        log.debug("No permitted control in dialog", {"available": list(found)})
        return False, None

    async def _apply_checkbox_preferences(
        self,
        dialog: document.Element,
        found: dict[str, element_finder.Match],
        classified: detection.RegionVariant,
        domain: str,
    ) -> bool:
        """Uncheck optional categories and save, when the dialog allows it."""
        save = found.get("save")
        if save is None:
            return False
        changed = False
        for match in self.checkboxes.find_all_with_types(dialog):
            if match.control_type not in _OPTIONAL_CHECKBOX_TYPES:
                continue
            if not match.checked or checkboxes.is_disabled(match.checkbox):
                continue
            changed = await self.controller.set_checkbox(match.checkbox, False) or changed
        if not changed:
            return False
        context = click.ClickContext(
            control_type="save",
            matched_rule=save.rule_id,
            detection_method="checkbox",
            domain=domain,
            region=classified.region,
            variant=classified.variant,
        )
        return await self.controller.safe_click(save.element, context)
