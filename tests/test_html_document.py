"""Tests for cookieguard.dom.html and cookieguard.dom.document — the snapshot DOM model."""

from __future__ import annotations

import pytest

from cookieguard.dom import document, html
from cookieguard.utils import errors
from tests._helpers import first, page


class TestDerivedLayout:
    def test_nominal_box_when_unsized(self) -> None:
        doc = page("<div id='a'>x</div>")
        box = first(doc, "#a").box
        assert (box.width, box.height) == (html.NOMINAL_WIDTH, html.NOMINAL_HEIGHT)

    def test_explicit_box(self) -> None:
        doc = page("<div id='a' style='left:10px;top:20px;width:300px;height:80px'>x</div>")
        assert first(doc, "#a").box == document.Box(x=10, y=20, width=300, height=80)

    def test_head_is_not_rendered(self) -> None:
        doc = page("<div>x</div>")
        assert not document.is_visible(first(doc, "title"))

    def test_hidden_attribute(self) -> None:
        doc = page("<div id='a' hidden>x</div>")
        assert not document.is_visible(first(doc, "#a"))

    def test_display_none_collapses_descendants(self) -> None:
        doc = page("<div style='display:none'><button id='b'>Accept</button></div>")
        button = first(doc, "#b")
        assert button.box == document.Box()
        assert not document.is_visible(button)

    def test_visibility_is_inherited(self) -> None:
        doc = page("<div style='visibility:hidden'><span id='s'>x</span></div>")
        assert not document.is_visible(first(doc, "#s"))

    def test_zero_opacity(self) -> None:
        doc = page("<div id='a' style='opacity:0'>x</div>")
        assert not document.is_visible(first(doc, "#a"))

    def test_colour_and_font_size_inherited(self) -> None:
        doc = page("<div style='color:#999;font-size:12px'><button id='b'>No</button></div>")
        style = first(doc, "#b").style
        assert style.color == "rgb(153, 153, 153)"
        assert style.font_size == 12.0

    def test_background_not_inherited(self) -> None:
        doc = page("<div style='background:green'><span id='s'>x</span></div>")
        assert first(doc, "#s").style.background_color == "rgba(0, 0, 0, 0)"

    def test_padding_longhand_overrides_shorthand(self) -> None:
        doc = page("<button id='b' style='padding:4px;padding-left:10px'>x</button>")
        assert first(doc, "#b").style.padding == "4px 4px 4px 10px"


class TestRefs:
    def test_refs_unique_and_resolvable(self) -> None:
        doc = page("<div id='a'><p id='b'>x</p></div>")
        a, b = first(doc, "#a"), first(doc, "#b")
        assert a.ref != b.ref
        assert doc.by_ref(a.ref) is a
        assert doc.by_ref(9999) is None

    def test_existing_refs_honoured(self) -> None:
        doc = page("<div id='a' data-cg-ref='40'>x</div><p id='p'>y</p>")
        assert first(doc, "#a").ref == 40
        assert first(doc, "#p").ref > 40

    def test_identity_stable_within_scope(self) -> None:
        markup = "<button id='b'>Accept</button>"
        one = first(page(markup, scope="tab-1"), "#b")
        two = first(page(markup, scope="tab-1"), "#b")
        assert one.identity == two.identity
        assert one == two

    def test_identity_differs_across_scopes(self) -> None:
        markup = "<button id='b'>Accept</button>"
        assert first(page(markup), "#b") != first(page(markup), "#b")

    def test_snapshot_layouts_by_ref(self) -> None:
        layout = document.Layout(style=document.ComputedStyle(font_size=20.0), box=document.Box(width=50, height=20))
        doc = html.parse_html(
            "<html data-cg-ref='1'><body data-cg-ref='2'><b data-cg-ref='3'>x</b><i>y</i></body></html>",
            layouts={3: layout},
        )
        assert first(doc, "b").style.font_size == 20.0
        assert not document.is_visible(first(doc, "i"))


class TestElement:
    def test_attributes(self) -> None:
        el = first(page("<button id='ok' class='btn primary' data-x='1'>Go</button>"), "#ok")
        assert el.tag_name == "button"
        assert el.class_list == ["btn", "primary"]
        assert el.class_name == "btn primary"
        assert el.get("data-x") == "1"
        assert el.get("missing", "d") == "d"
        assert el.describe() == "button#ok.btn.primary"

    def test_visible_text_of_button_input(self) -> None:
        el = first(page("<input type='submit' id='i' value=' Accept  All '>"), "#i")
        assert el.visible_text == "accept all"

    def test_visible_text_falls_back_to_aria_label(self) -> None:
        el = first(page("<button id='x' aria-label='Close cookie banner'></button>"), "#x")
        assert el.visible_text == "close cookie banner"

    def test_normalized_text(self) -> None:
        el = first(page("<div id='d'>We   use\n<b>Cookies</b></div>"), "#d")
        assert el.normalized_text == "we use cookies"

    def test_tree_navigation(self) -> None:
        doc = page("<div id='outer'><label id='l'>L</label><input id='i'><span id='s'>S</span></div>")
        outer, inp = first(doc, "#outer"), first(doc, "#i")
        assert inp.parent is outer
        assert outer.contains(inp)
        assert not inp.contains(outer)
        assert not outer.contains(outer)
        assert inp.previous_element_sibling is first(doc, "#l")
        assert inp.next_element_sibling is first(doc, "#s")
        assert [e.id for e in outer.iter_descendants()] == ["l", "i", "s"]

    def test_count_descendants_stops_at_limit(self) -> None:
        doc = page("<ul id='u'>" + "<li>x</li>" * 20 + "</ul>")
        assert first(doc, "#u").count_descendants(5) == 6
        assert first(doc, "#u").count_descendants(100) == 20

    def test_closest_is_inclusive(self) -> None:
        doc = page("<form id='f'><button id='b'>x</button></form>")
        button = first(doc, "#b")
        assert button.closest("form") is first(doc, "#f")
        assert button.closest("button") is button
        assert button.closest("nav") is None

    def test_trailing_text(self) -> None:
        doc = page("<input type='checkbox' id='c'> Marketing<input id='d'><b>x</b>")
        assert first(doc, "#c").trailing_text == " Marketing"
        assert first(doc, "#d").trailing_text is None


class TestSelectors:
    def test_invalid_selector_raises(self) -> None:
        root = page("<div>x</div>").root
        with pytest.raises(errors.InvalidSelectorError):
            root.query_all("div[")

    def test_empty_selector_raises(self) -> None:
        root = page("<div>x</div>").root
        with pytest.raises(errors.InvalidSelectorError) as exc_info:
            root.query("  ")
        assert exc_info.value.reason == "empty selector"

    def test_case_insensitive_attribute_selector(self) -> None:
        doc = page("<div id='d' aria-label='Cookie notice'>x</div>")
        assert doc.root.query("[aria-label*='cookie' i]") is first(doc, "#d")
