"""Host boundary used by the interaction controller to act on a live page."""

from __future__ import annotations

from typing import Any, Protocol

from cookieguard.dom.document import Element


class PageDriver(Protocol):
    """Operations the host performs on the page the snapshot came from.

    Elements are addressed by their snapshot ref; implementations raise
    on failure and the caller decides how to degrade.
    """

    async def navigation_identity(self) -> str:
        """Current URL (or equivalent) used to detect unexpected navigation."""
        ...

    async def dispatch_event(self, element: Element, event_type: str, init: dict[str, Any] | None = None) -> None:
        """Dispatch a synthetic DOM event on *element*."""
        ...

    async def neutralize_form(self, form: Element) -> Any:
        """Disable the form's submit path and ``action``; return a restore handle."""
        ...

    async def restore_form(self, handle: Any) -> None:
        ...

    async def click_clone(self, element: Element) -> None:
        """Click an off-screen clone of *element*, then discard it."""
        ...

    async def activate(self, element: Element) -> None:
        """Plain ``element.click()``."""
        ...

    async def set_checked(self, element: Element, checked: bool) -> None:
        """Set a checkbox state and fire a bubbling ``change`` event."""
        ...

    async def stop_loading(self) -> None:
        ...

    async def go_back(self) -> None:
        ...
