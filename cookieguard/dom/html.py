"""
Build a :class:`~cookieguard.dom.document.Document` from HTML markup.

Used for both entry points into the DOM model:

* static markup (fixtures, saved pages): computed style is derived from
  inline ``style`` attributes, since there is no layout engine;
* live snapshots: the browser supplies per-ref layouts and markup whose
  elements carry a ``data-cg-ref`` attribute.
"""

from __future__ import annotations

from collections.abc import Mapping

import bs4

from cookieguard.dom import styles
from cookieguard.dom.document import REF_ATTRIBUTE, Box, ComputedStyle, Document, Layout

# Static markup has no layout engine; elements without explicit
# dimensions are assumed to occupy a nominal on-screen box.
NOMINAL_WIDTH = 400.0
NOMINAL_HEIGHT = 60.0

NON_RENDERED_TAGS = frozenset({
    "head",
    "meta",
    "link",
    "script",
    "style",
    "template",
    "noscript",
    "title",
    "base",
})

_ROOT_STYLE = ComputedStyle()


def parse_html(
    markup: str,
    *,
    url: str = "",
    scope: str | None = None,
    layouts: Mapping[int, Layout] | None = None,
) -> Document:
    """Parse *markup* into a snapshot document.

    Args:
        markup: HTML source.
        url: URL the markup was loaded from.
        scope: Identity scope; snapshots of one live page share it.
        layouts: Browser-reported layout per element ref.  When given,
            refs are read from ``data-cg-ref`` and no style is derived.

    Returns:
        The parsed document.
    """
    soup = bs4.BeautifulSoup(markup, "html.parser")
    if layouts is not None:
        refs, resolved = _from_snapshot(soup, layouts)
    else:
        refs, resolved = _derive_layouts(soup)
    return Document(soup, refs=refs, layouts=resolved, url=url, scope=scope)


def _from_snapshot(
    soup: bs4.BeautifulSoup,
    layouts: Mapping[int, Layout],
) -> tuple[dict[int, int], dict[int, Layout]]:
    refs: dict[int, int] = {}
    resolved: dict[int, Layout] = {}
    for tag in soup.find_all(True):
        raw = tag.get(REF_ATTRIBUTE)
        if not isinstance(raw, str) or not raw.isdigit():
            continue
        ref = int(raw)
        refs[id(tag)] = ref
        layout = layouts.get(ref)
        if layout is not None:
            resolved[id(tag)] = layout
    return refs, resolved


def _derive_layouts(soup: bs4.BeautifulSoup) -> tuple[dict[int, int], dict[int, Layout]]:
    """Walk the tree iteratively, deriving style with inheritance."""
    refs: dict[int, int] = {}
    resolved: dict[int, Layout] = {}

    # Honour refs already present in the markup, number the rest after them.
    taken = {
        int(t[REF_ATTRIBUTE])
        for t in soup.find_all(attrs={REF_ATTRIBUTE: True})
        if isinstance(t[REF_ATTRIBUTE], str) and t[REF_ATTRIBUTE].isdigit()
    }
    next_ref = max(taken, default=0) + 1

    stack: list[tuple[bs4.Tag, ComputedStyle, bool]] = [
        (child, _ROOT_STYLE, False) for child in reversed(list(soup.children)) if isinstance(child, bs4.Tag)
    ]
    while stack:
        tag, parent_style, collapsed = stack.pop()

        raw = tag.get(REF_ATTRIBUTE)
        if isinstance(raw, str) and raw.isdigit():
            refs[id(tag)] = int(raw)
        else:
            refs[id(tag)] = next_ref
            next_ref += 1

        style = _style_for(tag, parent_style)
        collapsed = collapsed or style.display == "none"
        resolved[id(tag)] = Layout(style=style, box=Box() if collapsed else _box_for(tag))

        children = [c for c in tag.children if isinstance(c, bs4.Tag)]
        stack.extend((child, style, collapsed) for child in reversed(children))
    return refs, resolved


def _style_for(tag: bs4.Tag, parent: ComputedStyle) -> ComputedStyle:
    props = styles.parse_inline_style(_attr(tag, "style"))

    display = props.get("display", "block").lower()
    if tag.name in NON_RENDERED_TAGS or tag.has_attr("hidden"):
        display = "none"

    visibility = props.get("visibility", parent.visibility).lower()

    try:
        opacity = float(props.get("opacity", "1"))
    except ValueError:
        opacity = 1.0

    font_size = styles.parse_length(props.get("font-size"), base=parent.font_size)
    if font_size is None:
        font_size = parent.font_size

    sides = styles.expand_box_shorthand(props.get("padding"))
    for index, side in enumerate(("top", "right", "bottom", "left")):
        value = props.get(f"padding-{side}")
        if value:
            sides[index] = styles.expand_box_shorthand(value)[0]

    return ComputedStyle(
        display=display,
        visibility=visibility,
        opacity=opacity,
        color=styles.normalize_colour(props.get("color")) or parent.color,
        background_color=styles.background_colour(props) or styles.TRANSPARENT,
        font_size=font_size,
        padding=" ".join(sides),
    )


def _box_for(tag: bs4.Tag) -> Box:
    props = styles.parse_inline_style(_attr(tag, "style"))
    width = styles.parse_length(props.get("width"))
    height = styles.parse_length(props.get("height"))
    return Box(
        x=styles.parse_length(props.get("left")) or 0.0,
        y=styles.parse_length(props.get("top")) or 0.0,
        width=NOMINAL_WIDTH if width is None else width,
        height=NOMINAL_HEIGHT if height is None else height,
    )


def _attr(tag: bs4.Tag, name: str) -> str | None:
    value = tag.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return value
