"""Snapshot DOM model: documents, elements, styles and the host driver boundary."""

from cookieguard.dom.document import Box, ComputedStyle, Document, Element, Layout, is_visible
from cookieguard.dom.html import parse_html

__all__ = [
    "Box",
    "ComputedStyle",
    "Document",
    "Element",
    "Layout",
    "is_visible",
    "parse_html",
]
