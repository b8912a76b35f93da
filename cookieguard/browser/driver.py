"""
Playwright implementation of :class:`~cookieguard.dom.driver.PageDriver`.

Elements are located in the page through the ``data-cg-ref`` attribute
written by the snapshot script.  Every script throws when its element
is gone.  A failed event dispatch is raised as
:class:`~cookieguard.utils.errors.DispatchError`; the other calls let the
Playwright error through for the caller to handle.
"""

from __future__ import annotations

from typing import Any

from playwright import async_api

from cookieguard.dom import document
from cookieguard.utils import errors, logger

log = logger.create_logger("Page-Driver")

_GO_BACK_TIMEOUT_MS = 5000

_FIND = r"""
const find = (ref) => {
    const el = document.querySelector(`[data-cg-ref="${ref}"]`);
    if (!el) {
        throw new Error(`element ${ref} is no longer in the page`);
    }
    return el;
};
"""

_DISPATCH_SCRIPT = (
    "({ ref, type, init }) => {"
    + _FIND
    + r"""
    const el = find(ref);
    const options = Object.assign({ view: window }, init || {});
    let event;
    if (type.startsWith('mouse') || type === 'click') {
        event = new MouseEvent(type, options);
    } else if (type.startsWith('key')) {
        delete options.view;
        event = new KeyboardEvent(type, options);
    } else if (type === 'focus') {
        el.focus();
        event = new FocusEvent(type, options);
    } else {
        delete options.view;
        event = new Event(type, options);
    }
    el.dispatchEvent(event);
}
"""
)

_NEUTRALIZE_FORM_SCRIPT = (
    "({ ref }) => {"
    + _FIND
    + r"""
    const form = find(ref);
    const saved = window.__cookieguardForms || (window.__cookieguardForms = {});
    const blockSubmit = (event) => { event.preventDefault(); event.stopImmediatePropagation(); };
    saved[ref] = {
        hadAction: form.hasAttribute('action'),
        action: form.getAttribute('action'),
        submit: Object.prototype.hasOwnProperty.call(form, 'submit') ? form.submit : undefined,
        requestSubmit: Object.prototype.hasOwnProperty.call(form, 'requestSubmit') ? form.requestSubmit : undefined,
        blockSubmit,
    };
    form.setAttribute('action', 'javascript:void(0)');
    form.submit = () => {};
    form.requestSubmit = () => {};
    form.addEventListener('submit', blockSubmit, true);
    return ref;
}
"""
)

_RESTORE_FORM_SCRIPT = (
    "({ ref }) => {"
    + _FIND
    + r"""
    const saved = (window.__cookieguardForms || {})[ref];
    if (!saved) {
        return;
    }
    delete window.__cookieguardForms[ref];
    const form = find(ref);
    form.removeEventListener('submit', saved.blockSubmit, true);
    if (saved.hadAction) {
        form.setAttribute('action', saved.action);
    } else {
        form.removeAttribute('action');
    }
    if (saved.submit === undefined) {
        delete form.submit;
    } else {
        form.submit = saved.submit;
    }
    if (saved.requestSubmit === undefined) {
        delete form.requestSubmit;
    } else {
        form.requestSubmit = saved.requestSubmit;
    }
}
"""
)

_CLICK_CLONE_SCRIPT = (
    "({ ref }) => {"
    + _FIND
    + r"""
    const clone = find(ref).cloneNode(true);
    clone.removeAttribute('data-cg-ref');
    clone.style.position = 'fixed';
    clone.style.left = '-9999px';
    clone.style.top = '-9999px';
    document.body.appendChild(clone);
    try {
        clone.click();
    } finally {
        clone.remove();
    }
}
"""
)

_ACTIVATE_SCRIPT = "({ ref }) => {" + _FIND + "find(ref).click(); }"

_SET_CHECKED_SCRIPT = (
    "({ ref, checked }) => {"
    + _FIND
    + r"""
    const el = find(ref);
    if ('checked' in el) {
        el.checked = checked;
    } else {
        el.setAttribute('aria-checked', String(checked));
    }
    el.setAttribute('data-cg-checked', String(checked));
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
}
"""
)


class PlaywrightDriver:
    """Acts on the live page a snapshot was taken from."""

    def __init__(self, page: async_api.Page) -> None:
        self._page = page

    async def navigation_identity(self) -> str:
        return self._page.url

    async def dispatch_event(self, element: document.Element, event_type: str, init: dict[str, Any] | None = None) -> None:
        try:
            await self._page.evaluate(_DISPATCH_SCRIPT, {"ref": element.ref, "type": event_type, "init": init or {}})
        except async_api.Error as exc:
            raise errors.DispatchError(event_type, element.ref, exc.message) from exc

    async def neutralize_form(self, form: document.Element) -> Any:
        return await self._page.evaluate(_NEUTRALIZE_FORM_SCRIPT, {"ref": form.ref})

    async def restore_form(self, handle: Any) -> None:
        await self._page.evaluate(_RESTORE_FORM_SCRIPT, {"ref": handle})

    async def click_clone(self, element: document.Element) -> None:
        await self._page.evaluate(_CLICK_CLONE_SCRIPT, {"ref": element.ref})

    async def activate(self, element: document.Element) -> None:
        await self._page.evaluate(_ACTIVATE_SCRIPT, {"ref": element.ref})

    async def set_checked(self, element: document.Element, checked: bool) -> None:
        await self._page.evaluate(_SET_CHECKED_SCRIPT, {"ref": element.ref, "checked": checked})

    async def stop_loading(self) -> None:
        await self._page.evaluate("() => window.stop()")

    async def go_back(self) -> None:
        await self._page.go_back(wait_until="domcontentloaded", timeout=_GO_BACK_TIMEOUT_MS)
        log.debug("Navigated back", {"url": self._page.url[:80]})
