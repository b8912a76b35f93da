"""Tests for cookieguard.browser — snapshot payloads, driver scripts, change observer and page wiring."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright import async_api

from cookieguard import config as config_mod
from cookieguard.browser import driver, guard, observer, snapshot
from cookieguard.models import detection, policy
from cookieguard.services import reporting, rule_source
from cookieguard.utils import errors

# ── Helpers ──────────────────────────────────────────────────────────


def _layout(*, display: str = "block", width: float = 300, height: float = 80, **extra: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "display": display,
        "visibility": "visible",
        "opacity": 1,
        "color": "rgb(0, 0, 0)",
        "backgroundColor": "rgba(0, 0, 0, 0)",
        "fontSize": 16,
        "padding": "0px 0px 0px 0px",
        "x": 0,
        "y": 0,
        "width": width,
        "height": height,
    }
    raw.update(extra)
    return raw


def _banner_payload() -> dict[str, Any]:
    return {
        "url": "https://shop.example.com/",
        "scope": "tab-1",
        "html": (
            '<html data-cg-ref="1"><head data-cg-ref="2"></head><body data-cg-ref="3">'
            '<div id="onetrust-banner-sdk" data-cg-ref="4"><p data-cg-ref="5">We use cookies</p>'
            '<button id="onetrust-accept-btn-handler" data-cg-ref="6">Accept all</button></div>'
            "</body></html>"
        ),
        "layouts": {
            "1": _layout(width=1280, height=800),
            "2": _layout(display="none", width=0, height=0),
            "3": _layout(width=1280, height=800),
            "4": _layout(width=1280, height=120),
            "5": _layout(width=600, height=20),
            "6": _layout(width=120, height=40, backgroundColor="rgb(0, 128, 0)"),
        },
    }


def _mock_page(payload: dict[str, Any] | None = None) -> MagicMock:
    async def evaluate(script: str, arg: Any = None) -> Any:
        if script == snapshot.SNAPSHOT_SCRIPT:
            return payload
        return None

    page = MagicMock()
    page.url = "https://shop.example.com/"
    page.evaluate = AsyncMock(side_effect=evaluate)
    page.expose_binding = AsyncMock()
    page.add_init_script = AsyncMock()
    page.go_back = AsyncMock()
    return page


# ── Snapshot ─────────────────────────────────────────────────────────


class TestSnapshotPayload:
    def test_layout_from_payload(self) -> None:
        layout = snapshot.layout_from_payload(_layout(fontSize="14", opacity="0.5", x=5, y=6))
        assert layout.style.font_size == 14.0
        assert layout.style.opacity == 0.5
        assert (layout.box.x, layout.box.y, layout.box.width, layout.box.height) == (5, 6, 300, 80)

    def test_layout_defaults_for_garbage(self) -> None:
        layout = snapshot.layout_from_payload({"fontSize": "big", "opacity": None})
        assert layout.style.font_size == 16.0
        assert layout.style.opacity == 1.0
        assert layout.box.width == 0.0

    def test_document_from_payload(self) -> None:
        doc = snapshot.document_from_payload(_banner_payload())
        assert doc.url == "https://shop.example.com/"
        assert doc.scope == "tab-1"
        button = doc.by_ref(6)
        assert button is not None
        assert button.id == "onetrust-accept-btn-handler"
        assert button.style.background_color == "rgb(0, 128, 0)"
        assert button.identity == ("tab-1", 6)

    def test_empty_payload(self) -> None:
        doc = snapshot.document_from_payload({})
        assert doc.root.tag_name == "html"

    @pytest.mark.asyncio
    async def test_capture(self) -> None:
        page = _mock_page(_banner_payload())
        doc = await snapshot.capture(page)
        page.evaluate.assert_awaited_once_with(snapshot.SNAPSHOT_SCRIPT)
        assert doc.by_ref(4) is not None


# ── Driver ───────────────────────────────────────────────────────────


class TestPlaywrightDriver:
    @pytest.mark.asyncio
    async def test_dispatch_event(self) -> None:
        page = _mock_page()
        button = snapshot.document_from_payload(_banner_payload()).by_ref(6)
        await driver.PlaywrightDriver(page).dispatch_event(button, "click", {"bubbles": True})
        page.evaluate.assert_awaited_once_with(
            driver._DISPATCH_SCRIPT, {"ref": 6, "type": "click", "init": {"bubbles": True}}
        )

    @pytest.mark.asyncio
    async def test_failed_dispatch_raises_dispatch_error(self) -> None:
        page = _mock_page()
        page.evaluate = AsyncMock(side_effect=async_api.Error("element 6 is no longer in the page"))
        button = snapshot.document_from_payload(_banner_payload()).by_ref(6)
        with pytest.raises(errors.DispatchError) as info:
            await driver.PlaywrightDriver(page).dispatch_event(button, "mousedown")
        assert info.value.event_type == "mousedown"
        assert info.value.ref == 6
        assert "no longer in the page" in str(info.value)

    @pytest.mark.asyncio
    async def test_set_checked(self) -> None:
        page = _mock_page()
        button = snapshot.document_from_payload(_banner_payload()).by_ref(6)
        await driver.PlaywrightDriver(page).set_checked(button, False)
        page.evaluate.assert_awaited_once_with(driver._SET_CHECKED_SCRIPT, {"ref": 6, "checked": False})

    @pytest.mark.asyncio
    async def test_navigation_identity_is_url(self) -> None:
        assert await driver.PlaywrightDriver(_mock_page()).navigation_identity() == "https://shop.example.com/"

    @pytest.mark.asyncio
    async def test_go_back(self) -> None:
        page = _mock_page()
        await driver.PlaywrightDriver(page).go_back()
        page.go_back.assert_awaited_once_with(wait_until="domcontentloaded", timeout=5000)


# ── Change observer ──────────────────────────────────────────────────


class TestParseBatch:
    def test_valid_entries(self) -> None:
        records = observer.parse_batch(
            [{"kind": "added", "ref": 3, "attribute": None}, {"kind": "attributes", "ref": 4, "attribute": "class"}]
        )
        assert records == [
            detection.ChangeRecord(kind="added", ref=3),
            detection.ChangeRecord(kind="attributes", ref=4, attribute="class"),
        ]

    def test_malformed_entries_dropped(self) -> None:
        records = observer.parse_batch(
            [{"kind": "removed", "ref": 1}, {"kind": "added", "ref": "x"}, "junk", {"kind": "added", "ref": 9}]
        )
        assert records == [detection.ChangeRecord(kind="added", ref=9)]

    def test_not_a_list(self) -> None:
        assert observer.parse_batch({"kind": "added"}) == []


class TestChangeObserver:
    @pytest.mark.asyncio
    async def test_batches_reach_handler_in_order(self) -> None:
        page = _mock_page()
        seen: list[int] = []

        async def handler(records: list[detection.ChangeRecord]) -> None:
            await asyncio.sleep(0)
            seen.extend(r.ref for r in records)

        change_observer = observer.ChangeObserver(page, handler)
        await change_observer.start()
        page.expose_binding.assert_awaited_once()
        assert change_observer.running

        change_observer._on_batch(None, [{"kind": "added", "ref": 1}])
        change_observer._on_batch(None, [{"kind": "added", "ref": 2}, {"kind": "added", "ref": 3}])
        change_observer._on_batch(None, "junk")
        for _ in range(10):
            await asyncio.sleep(0)
        await change_observer.stop()

        assert seen == [1, 2, 3]
        assert not change_observer.running

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_stop_consumption(self) -> None:
        page = _mock_page()
        handler = AsyncMock(side_effect=[RuntimeError("boom"), None])
        change_observer = observer.ChangeObserver(page, handler)
        await change_observer.start()
        change_observer._on_batch(None, [{"kind": "added", "ref": 1}])
        change_observer._on_batch(None, [{"kind": "added", "ref": 2}])
        for _ in range(10):
            await asyncio.sleep(0)
        await change_observer.stop()
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_binding_installed_once(self) -> None:
        page = _mock_page()
        change_observer = observer.ChangeObserver(page, AsyncMock())
        await change_observer.start()
        await change_observer.stop()
        await change_observer.start()
        await change_observer.stop()
        assert page.expose_binding.await_count == 1
        assert page.add_init_script.await_count == 1


# ── Page wiring ──────────────────────────────────────────────────────


class TestGuardPage:
    @pytest.mark.asyncio
    async def test_accepts_banner(self, settings: config_mod.CookieGuardSettings) -> None:
        page = _mock_page(_banner_payload())
        sink = reporting.LoggingReportSink()
        page_guard = await guard.guard_page(
            page,
            settings=settings,
            sink=sink,
            repository=rule_source.RuleRepository(rule_source.BundledRuleSource()),
        )
        try:
            assert page_guard.loop.active
            assert [r.control_type for r in page_guard.loop.results] == ["accept"]
            dispatched = [c.args[1]["type"] for c in page.evaluate.await_args_list if c.args[0] == driver._DISPATCH_SCRIPT]
            assert dispatched == ["mousedown", "mouseup", "click"]
            assert sink.history[0].matched_rule == "selector:#onetrust-accept-btn-handler"
        finally:
            await page_guard.close()
        assert not page_guard.loop.active

    @pytest.mark.asyncio
    async def test_window_elapsing_detaches_observer(self, settings: config_mod.CookieGuardSettings) -> None:
        page = _mock_page(_banner_payload())
        short = settings.model_copy(update={"detection_window_ms": 10})
        page_guard = await guard.guard_page(
            page,
            settings=short,
            repository=rule_source.RuleRepository(rule_source.BundledRuleSource()),
        )
        assert page_guard.change_observer.running
        await asyncio.sleep(0.05)
        assert not page_guard.loop.active
        assert not page_guard.change_observer.running
        scripts = [c.args[0] for c in page.evaluate.await_args_list]
        assert observer._DISCONNECT_SCRIPT in scripts
        await page_guard.close()

    @pytest.mark.asyncio
    async def test_disabled_policy_installs_nothing(self, settings: config_mod.CookieGuardSettings) -> None:
        page = _mock_page(_banner_payload())
        page_guard = await guard.guard_page(
            page,
            policy=policy.ConsentPolicy(enabled=False),
            settings=settings,
            repository=rule_source.RuleRepository(rule_source.BundledRuleSource()),
        )
        assert not page_guard.loop.active
        page.expose_binding.assert_not_awaited()
        assert page_guard.loop.results == []

    def test_build_sink(self, settings: config_mod.CookieGuardSettings) -> None:
        assert isinstance(guard.build_sink(settings, None), reporting.LoggingReportSink)
        remote = settings.model_copy(update={"report_url": "https://collector.example.com/r"})
        assert isinstance(guard.build_sink(remote, MagicMock()), reporting.HttpReportSink)
