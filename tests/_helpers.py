"""Markup builders and test doubles shared across the test modules."""

from __future__ import annotations

from typing import Any

from cookieguard.dom import document, html
from cookieguard.models import detection


def page(body: str, *, url: str = "https://shop.example.com/", scope: str | None = None) -> document.Document:
    """Parse *body* wrapped in a minimal HTML page."""
    return html.parse_html(f"<html><head><title>t</title></head><body>{body}</body></html>", url=url, scope=scope)


def first(doc: document.Document, selector: str) -> document.Element:
    """First element matching *selector*; fails the test when absent."""
    element = doc.root.query(selector)
    assert element is not None, f"No element matches {selector!r}"
    return element


class FakeDriver:
    """Records every host call; failures and navigation are opt-in."""

    def __init__(
        self,
        *,
        url: str = "https://shop.example.com/",
        navigate_to: str | None = None,
        fail_dispatch: bool = False,
        fail_clone: bool = False,
        fail_activate: bool = False,
        fail_set_checked: bool = False,
    ) -> None:
        self.url = url
        self.navigate_to = navigate_to
        self.fail_dispatch = fail_dispatch
        self.fail_clone = fail_clone
        self.fail_activate = fail_activate
        self.fail_set_checked = fail_set_checked
        self.events: list[tuple[Any, ...]] = []

    @property
    def clicks(self) -> list[int]:
        """Refs that received a synthetic ``click`` event."""
        return [e[1] for e in self.events if e[0] == "dispatch" and e[2] == "click"]

    async def navigation_identity(self) -> str:
        return self.url

    async def dispatch_event(self, element: document.Element, event_type: str, init: dict[str, Any] | None = None) -> None:
        if self.fail_dispatch:
            raise RuntimeError("dispatch refused")
        self.events.append(("dispatch", element.ref, event_type))
        if event_type == "click" and self.navigate_to:
            self.url = self.navigate_to

    async def neutralize_form(self, form: document.Element) -> Any:
        self.events.append(("neutralize", form.ref))
        return form.ref

    async def restore_form(self, handle: Any) -> None:
        self.events.append(("restore", handle))

    async def click_clone(self, element: document.Element) -> None:
        if self.fail_clone:
            raise RuntimeError("clone refused")
        self.events.append(("clone", element.ref))

    async def activate(self, element: document.Element) -> None:
        if self.fail_activate:
            raise RuntimeError("activation refused")
        self.events.append(("activate", element.ref))

    async def set_checked(self, element: document.Element, checked: bool) -> None:
        if self.fail_set_checked:
            raise RuntimeError("checkbox locked")
        self.events.append(("set_checked", element.ref, checked))

    async def stop_loading(self) -> None:
        self.events.append(("stop_loading",))

    async def go_back(self) -> None:
        self.events.append(("go_back",))


class CollectingSink:
    """Reporting sink that keeps every report."""

    def __init__(self, *, acknowledge: bool = True, fail: bool = False) -> None:
        self.acknowledge = acknowledge
        self.fail = fail
        self.reports: list[detection.InteractionReport] = []

    async def report(self, report: detection.InteractionReport) -> bool:
        if self.fail:
            raise RuntimeError("collector down")
        self.reports.append(report)
        return self.acknowledge


class SnapshotSequence:
    """Snapshot function returning the given documents in turn, then the last one."""

    def __init__(self, *docs: document.Document) -> None:
        self._docs = list(docs)
        self.calls = 0

    async def __call__(self) -> document.Document:
        doc = self._docs[min(self.calls, len(self._docs) - 1)]
        self.calls += 1
        return doc
