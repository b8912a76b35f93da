"""Snapshot DOM model the detection core runs against.

A :class:`Document` wraps a parsed BeautifulSoup tree plus the layout
facts a browser would report for every element (computed style and
bounding box).  :class:`Element` exposes the small, DOM-like surface
the finders need: attribute access, text, tree navigation, and CSS
selector evaluation through soupsieve.

Element identity is ``(scope, ref)``.  All snapshots taken from one
live page share a scope and the page hands out stable refs, so the
same DOM node keeps its identity across snapshots while a re-rendered
node gets a new one.
"""

from __future__ import annotations

import dataclasses
import functools
import uuid
from collections.abc import Iterator, Mapping

import bs4
import soupsieve

from cookieguard.dom import text as text_mod
from cookieguard.utils import errors

REF_ATTRIBUTE = "data-cg-ref"

_TEXT_INPUT_TYPES = frozenset({"button", "submit", "reset"})


@dataclasses.dataclass(frozen=True)
class Box:
    """Rendered bounding box in CSS pixels."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclasses.dataclass(frozen=True)
class ComputedStyle:
    """The subset of computed style the heuristics look at."""

    display: str = "block"
    visibility: str = "visible"
    opacity: float = 1.0
    color: str = "rgb(0, 0, 0)"
    background_color: str = "rgba(0, 0, 0, 0)"
    font_size: float = 16.0
    padding: str = "0px 0px 0px 0px"


@dataclasses.dataclass(frozen=True)
class Layout:
    style: ComputedStyle
    box: Box


_EMPTY_LAYOUT = Layout(style=ComputedStyle(display="none"), box=Box())


@functools.lru_cache(maxsize=512)
def _compile(selector: str) -> soupsieve.SoupSieve:
    """Compile and cache a CSS selector.

    Raises:
        InvalidSelectorError: If soupsieve rejects the selector.
    """
    if not selector or not selector.strip():
        raise errors.InvalidSelectorError(selector, "empty selector")
    try:
        return soupsieve.compile(selector)
    except soupsieve.SelectorSyntaxError as exc:
        raise errors.InvalidSelectorError(selector, str(exc).splitlines()[0]) from exc
    except (NotImplementedError, ValueError) as exc:
        raise errors.InvalidSelectorError(selector, errors.get_error_message(exc)) from exc


class Document:
    """A parsed page snapshot.

    Use :func:`cookieguard.dom.html.parse_html` or
    :func:`cookieguard.browser.snapshot.capture` to build one.
    """

    def __init__(
        self,
        soup: bs4.BeautifulSoup,
        *,
        refs: Mapping[int, int],
        layouts: Mapping[int, Layout],
        url: str = "",
        scope: str | None = None,
    ) -> None:
        self._soup = soup
        # Keyed by id() of the bs4 Tag; the soup keeps every tag alive.
        self._refs = dict(refs)
        self._layouts = dict(layouts)
        self._wrappers: dict[int, Element] = {}
        self._by_ref: dict[int, bs4.Tag] = {}
        self.url = url
        self.scope = scope or uuid.uuid4().hex[:12]

        for tag in soup.find_all(True):
            ref = self._refs.get(id(tag))
            if ref is not None:
                self._by_ref[ref] = tag

    @property
    def root(self) -> Element:
        """The ``<html>`` element, or the first element when there is none."""
        html_tag = self._soup.find("html")
        if isinstance(html_tag, bs4.Tag):
            return self.element(html_tag)
        first = self._soup.find(True)
        if not isinstance(first, bs4.Tag):
            raise ValueError("Document contains no elements")
        return self.element(first)

    @property
    def body(self) -> Element:
        body_tag = self._soup.find("body")
        if isinstance(body_tag, bs4.Tag):
            return self.element(body_tag)
        return self.root

    def element(self, tag: bs4.Tag) -> Element:
        """Return the cached wrapper for *tag*."""
        key = id(tag)
        wrapper = self._wrappers.get(key)
        if wrapper is None:
            wrapper = Element(self, tag)
            self._wrappers[key] = wrapper
        return wrapper

    def by_ref(self, ref: int) -> Element | None:
        """Resolve an element by its page-assigned ref."""
        tag = self._by_ref.get(ref)
        return self.element(tag) if tag is not None else None

    def _ref_of(self, tag: bs4.Tag) -> int:
        return self._refs.get(id(tag), -1)

    def _layout_of(self, tag: bs4.Tag) -> Layout:
        return self._layouts.get(id(tag), _EMPTY_LAYOUT)


class Element:
    """DOM-like view of one element inside a :class:`Document`."""

    __slots__ = ("_doc", "_tag", "__dict__")

    def __init__(self, document: Document, tag: bs4.Tag) -> None:
        self._doc = document
        self._tag = tag

    # ── Identity ────────────────────────────────────────────────

    @property
    def document(self) -> Document:
        return self._doc

    @property
    def ref(self) -> int:
        return self._doc._ref_of(self._tag)

    @property
    def identity(self) -> tuple[str, int]:
        """``(scope, ref)``, stable for the lifetime of one DOM node."""
        return (self._doc.scope, self.ref)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Element):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __repr__(self) -> str:
        return f"<Element {self.describe()} ref={self.ref}>"

    # ── Attributes ──────────────────────────────────────────────

    @property
    def tag_name(self) -> str:
        return (self._tag.name or "").lower()

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return an attribute value; multi-valued attributes are space-joined."""
        value = self._tag.get(name)
        if value is None:
            return default
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def has_attribute(self, name: str) -> bool:
        return self._tag.has_attr(name)

    @property
    def id(self) -> str:
        return self.get("id", "") or ""

    @property
    def class_list(self) -> list[str]:
        value = self._tag.get("class")
        if value is None:
            return []
        if isinstance(value, str):
            return value.split()
        return list(value)

    @property
    def class_name(self) -> str:
        return " ".join(self.class_list)

    # ── Text ────────────────────────────────────────────────────

    @functools.cached_property
    def text(self) -> str:
        """Raw text content of the subtree."""
        return self._tag.get_text()

    @functools.cached_property
    def normalized_text(self) -> str:
        return text_mod.normalize_text(self.text)

    @functools.cached_property
    def visible_text(self) -> str:
        """Normalised label a user would read on this control.

        Button-like inputs carry their label in ``value``; icon-only
        controls fall back to ``aria-label`` or ``title``.
        """
        if self.tag_name == "input" and (self.get("type", "") or "").lower() in _TEXT_INPUT_TYPES:
            label = self.get("value", "") or ""
        else:
            label = self.text
        if not label.strip():
            label = self.get("aria-label") or self.get("title") or ""
        return text_mod.normalize_text(label)

    @property
    def trailing_text(self) -> str | None:
        """Text of the node directly after this element, if it is text."""
        sibling = self._tag.next_sibling
        if isinstance(sibling, bs4.NavigableString) and not isinstance(sibling, bs4.Comment):
            value = str(sibling)
            return value if value.strip() else None
        return None

    # ── Tree navigation ─────────────────────────────────────────

    @property
    def parent(self) -> Element | None:
        parent = self._tag.parent
        if parent is None or isinstance(parent, bs4.BeautifulSoup):
            return None
        return self._doc.element(parent)

    @property
    def children(self) -> list[Element]:
        return [self._doc.element(c) for c in self._tag.children if isinstance(c, bs4.Tag)]

    def ancestors(self) -> Iterator[Element]:
        """Yield parents from the nearest outwards."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def contains(self, other: Element) -> bool:
        """``True`` if *other* is a strict descendant of this element."""
        return any(a is self for a in other.ancestors())

    def iter_descendants(self) -> Iterator[Element]:
        """Yield descendants in document order using an explicit work-list."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def count_descendants(self, limit: int) -> int:
        """Count descendants, stopping early once *limit* is exceeded."""
        count = 0
        for node in self._tag.descendants:
            if not isinstance(node, bs4.Tag):
                continue
            count += 1
            if count > limit:
                break
        return count

    @property
    def next_element_sibling(self) -> Element | None:
        sibling = self._tag.find_next_sibling()
        return self._doc.element(sibling) if isinstance(sibling, bs4.Tag) else None

    @property
    def previous_element_sibling(self) -> Element | None:
        sibling = self._tag.find_previous_sibling()
        return self._doc.element(sibling) if isinstance(sibling, bs4.Tag) else None

    # ── Selectors ───────────────────────────────────────────────

    def query_all(self, selector: str) -> list[Element]:
        """Descendants matching *selector*, in document order.

        Raises:
            InvalidSelectorError: If the selector cannot be used.
        """
        return [self._doc.element(t) for t in _compile(selector).select(self._tag)]

    def query(self, selector: str) -> Element | None:
        """First descendant matching *selector*.

        Raises:
            InvalidSelectorError: If the selector cannot be used.
        """
        tag = _compile(selector).select_one(self._tag)
        return self._doc.element(tag) if tag is not None else None

    def matches(self, selector: str) -> bool:
        """Raises:
        InvalidSelectorError: If the selector cannot be used.
        """
        return bool(_compile(selector).match(self._tag))

    def closest(self, selector: str) -> Element | None:
        """Nearest inclusive ancestor matching *selector*.

        Raises:
            InvalidSelectorError: If the selector cannot be used.
        """
        tag = _compile(selector).closest(self._tag)
        return self._doc.element(tag) if tag is not None else None

    # ── Layout ──────────────────────────────────────────────────

    @property
    def style(self) -> ComputedStyle:
        return self._doc._layout_of(self._tag).style

    @property
    def box(self) -> Box:
        return self._doc._layout_of(self._tag).box

    @functools.cached_property
    def content_size(self) -> int:
        """Serialized-size proxy for how much content the subtree renders."""
        return len(str(self._tag))

    def describe(self) -> str:
        """Short selector-like label for logs (``button#accept.btn``)."""
        label = self.tag_name
        if self.id:
            label += f"#{self.id}"
        classes = self.class_list[:2]
        if classes:
            label += "." + ".".join(classes)
        return label


def is_visible(element: Element) -> bool:
    """Rendered and on screen: shown, not hidden, opaque, non-zero size."""
    style = element.style
    if style.display == "none":
        return False
    if style.visibility in ("hidden", "collapse"):
        return False
    if style.opacity <= 0:
        return False
    box = element.box
    return box.width > 0 and box.height > 0
