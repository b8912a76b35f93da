"""
Live page snapshots.

Captures the page's markup together with the computed style and
bounding box of every element, and turns it into a
:class:`~cookieguard.dom.document.Document`.

Elements get stable refs in the page: a ``WeakMap`` keeps the ref of
each node for as long as the node lives, and the ref is mirrored into a
``data-cg-ref`` attribute so that it survives serialisation.  A re-rendered
node is a new object and therefore gets a new ref.
"""

from __future__ import annotations

from typing import Any

from playwright import async_api

from cookieguard.dom import document, html
from cookieguard.utils import logger

log = logger.create_logger("Snapshot")

# Shared by the snapshot and the change observer so both hand out the
# same refs for the same nodes.
REF_PRELUDE = r"""
const cg = window.__cookieguard || (window.__cookieguard = {
    refs: new WeakMap(),
    next: 1,
    scope: (crypto.randomUUID ? crypto.randomUUID() : String(Math.random()).slice(2)),
});
const refOf = (el) => {
    let ref = cg.refs.get(el);
    if (ref === undefined) {
        ref = cg.next++;
        cg.refs.set(el, ref);
    }
    if (el.getAttribute('data-cg-ref') !== String(ref)) {
        el.setAttribute('data-cg-ref', String(ref));
    }
    return ref;
};
"""

SNAPSHOT_SCRIPT = (
    "() => {"
    + REF_PRELUDE
    + r"""
    const root = document.documentElement;
    if (!root) {
        return { url: location.href, scope: cg.scope, html: '', layouts: {} };
    }
    const layouts = {};
    for (const el of [root, ...root.querySelectorAll('*')]) {
        const ref = refOf(el);
        if (el instanceof HTMLInputElement && (el.type === 'checkbox' || el.type === 'radio')) {
            el.setAttribute('data-cg-checked', String(el.checked));
        }
        const cs = getComputedStyle(el);
        const rect = el.getBoundingClientRect();
        layouts[ref] = {
            display: cs.display,
            visibility: cs.visibility,
            opacity: parseFloat(cs.opacity),
            color: cs.color,
            backgroundColor: cs.backgroundColor,
            fontSize: parseFloat(cs.fontSize),
            padding: [cs.paddingTop, cs.paddingRight, cs.paddingBottom, cs.paddingLeft].join(' '),
            x: rect.left,
            y: rect.top,
            width: rect.width,
            height: rect.height,
        };
    }
    return { url: location.href, scope: cg.scope, html: root.outerHTML, layouts };
}
"""
)


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def layout_from_payload(raw: dict[str, Any]) -> document.Layout:
    """Build a :class:`Layout` from one entry of the snapshot payload."""
    style = document.ComputedStyle(
        display=str(raw.get("display") or "block"),
        visibility=str(raw.get("visibility") or "visible"),
        opacity=_float(raw.get("opacity"), 1.0),
        color=str(raw.get("color") or "rgb(0, 0, 0)"),
        background_color=str(raw.get("backgroundColor") or "rgba(0, 0, 0, 0)"),
        font_size=_float(raw.get("fontSize"), 16.0),
        padding=str(raw.get("padding") or "0px 0px 0px 0px"),
    )
    box = document.Box(
        x=_float(raw.get("x")),
        y=_float(raw.get("y")),
        width=_float(raw.get("width")),
        height=_float(raw.get("height")),
    )
    return document.Layout(style=style, box=box)


def document_from_payload(payload: dict[str, Any]) -> document.Document:
    """Turn the raw snapshot payload into a document."""
    layouts = {
        int(ref): layout_from_payload(raw)
        for ref, raw in (payload.get("layouts") or {}).items()
        if str(ref).isdigit() and isinstance(raw, dict)
    }
    return html.parse_html(
        payload.get("html") or "<html></html>",
        url=payload.get("url") or "",
        scope=payload.get("scope") or None,
        layouts=layouts,
    )


async def capture(page: async_api.Page) -> document.Document:
    """Snapshot *page*'s main frame."""
    log.start_timer("snapshot")
    payload = await page.evaluate(SNAPSHOT_SCRIPT)
    doc = document_from_payload(payload)
    log.end_timer("snapshot", f"Snapshot captured ({len(payload.get('layouts') or {})} elements)")
    return doc
