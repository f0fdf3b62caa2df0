# pyright: reportPrivateUsage=false

"""Test suite for `mxformat.partition.html.parser` module."""

from __future__ import annotations

from typing import Optional

import pytest

from mxformat.documents.annotated_text import AnnotatedTextBuilder, Tag
from mxformat.documents.styles import ParagraphStyle
from mxformat.partition.html.normalize import parse_fragment
from mxformat.partition.html.parser import (
    Lookahead,
    Node,
    OrderedListScope,
    PreviousRenderedInfo,
    RenderContext,
    RenderOutput,
    TextNode,
    UnorderedListScope,
    _parse_hex_color,
    append_text_content,
    first_not_empty,
    has_implicit_newline,
    normalize_whitespace,
    should_trim_encompassing_whitespace,
)
from mxformat.partition.html.partition import PreFormatStyle


def _nodes(html: str) -> list[Node]:
    return parse_fragment(html).child_nodes()


# ================================================================================================
# HELPERS
# ================================================================================================


@pytest.mark.parametrize(
    ("text", "expected_value"),
    [
        ("a  b", "a b"),
        ("\n\ta\n", " a "),
        ("a\xa0\xa0b", "a b"),
        ("soft\u00adhyphen zero\u200bwidth", "softhyphen zerowidth"),
        ("", ""),
    ],
)
def test_normalize_whitespace(text: str, expected_value: str):
    assert normalize_whitespace(text) == expected_value


@pytest.mark.parametrize(
    ("value", "expected_value"),
    [
        ("#ff0000", 0xFFFF0000),
        ("00Ff00", 0xFF00FF00),
        ("#000000", 0xFF000000),
        ("#fff", None),
        ("#ff00001", None),
        ("red", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_hex_color(value: Optional[str], expected_value: Optional[int]):
    assert _parse_hex_color(value) == expected_value


# ================================================================================================
# DOMAIN MODEL
# ================================================================================================


class DescribeTextNode:
    """Unit-test suite for `mxformat.partition.html.parser.TextNode` objects."""

    @pytest.mark.parametrize(
        ("whole_text", "expected_value"),
        [(" \n\t", True), ("", True), ("\xa0", False), (" x ", False)],
    )
    def it_knows_whether_it_is_blank(self, whole_text: str, expected_value: bool):
        assert TextNode(whole_text).is_blank is expected_value

    def it_provides_its_whitespace_normalized_text(self):
        node = TextNode("  one\n two ")

        assert node.text() == " one two "
        assert node.whole_text == "  one\n two "
        assert node.normal_name == "#text"


class DescribeLookahead:
    """Unit-test suite for `mxformat.partition.html.parser.Lookahead` objects."""

    def it_iterates_the_siblings_after_its_start(self):
        a, b, c = TextNode("a"), TextNode("b"), TextNode("c")

        assert list(Lookahead([a, b, c], 1)) == [b, c]
        assert bool(Lookahead([a, b, c], 2)) is True
        assert bool(Lookahead([a, b, c], 3)) is False


class DescribeRenderContext:
    """Unit-test suite for `mxformat.partition.html.parser.RenderContext` objects."""

    @pytest.mark.parametrize(
        ("unordered", "ordered", "preformatted", "expected_value"),
        [
            (None, None, False, False),
            (UnorderedListScope("* "), None, False, True),
            (None, OrderedListScope(), False, True),
            (UnorderedListScope("* "), None, True, False),
        ],
    )
    def it_ignores_whitespace_directly_inside_a_list(
        self,
        unordered: Optional[UnorderedListScope],
        ordered: Optional[OrderedListScope],
        preformatted: bool,
        expected_value: bool,
    ):
        ctx = RenderContext(
            PreFormatStyle(),
            True,
            unordered_list_scope=unordered,
            ordered_list_scope=ordered,
            preformatted_text=preformatted,
        )

        assert ctx.should_ignore_whitespace is expected_value


class DescribeRenderOutput:
    """Unit-test suite for `mxformat.partition.html.parser.RenderOutput` objects."""

    def it_reports_offsets_relative_to_the_whole_document_when_forked(self):
        out = RenderOutput()
        out.builder.append("abc")

        fork = out.fork()
        fork.builder.append("de")

        assert out.offset == 3
        assert fork.offset == 5
        assert fork.inline_images is out.inline_images
        assert fork.expandable_items is out.expandable_items

    def it_marks_newlines_when_debugging_them(self):
        out = RenderOutput(newline_debug=True)
        out.builder.append("a")

        out.append_newline("br")

        assert out.builder.to_annotated_text().text == "a[br]\n"

    @pytest.mark.parametrize(
        ("text", "expected_value"),
        [("", ""), ("a", "a\n"), ("a\n", "a\n")],
    )
    def it_separates_content_by_a_newline_only_when_needed(self, text: str, expected_value: str):
        out = RenderOutput()
        out.builder.append(text)

        out.ensure_newline_separation("x")

        assert out.builder.to_annotated_text().text == expected_value

    def but_not_when_the_next_sibling_implies_a_line_break(self):
        out = RenderOutput()
        out.builder.append("a")

        out.ensure_newline_separation("x", Lookahead(_nodes(" <ul><li>b</li></ul>")))

        assert out.builder.to_annotated_text().text == "a"

    def and_not_when_a_paragraph_style_ends_there(self):
        out = RenderOutput()
        with out.builder.style(ParagraphStyle()):
            out.builder.append("title")

        out.ensure_newline_separation("x")

        assert out.builder.to_annotated_text().text == "title"

    def it_can_produce_a_parse_result(self):
        out = RenderOutput()
        out.builder.append("x")
        out.expandable_items.add(0)

        result = out.to_parse_result()

        assert result.text.text == "x"
        assert result.expandable_items == frozenset({0})


# ================================================================================================
# LOOKAHEAD
# ================================================================================================


class Describe_should_trim_encompassing_whitespace:
    """Unit-test suite for `should_trim_encompassing_whitespace()`."""

    @pytest.mark.parametrize(
        ("html", "expected_value"),
        [
            # -- a block element follows --
            ("<ul><li>a</li></ul>", True),
            ("<h1>a</h1>", True),
            # -- text or inline formatting follows --
            ("x", False),
            ("<b>x</b>", False),
            ("<p>x</p>", False),
            ("<br>", False),
        ],
    )
    def it_decides_from_the_first_rendered_sibling(self, html: str, expected_value: bool):
        assert should_trim_encompassing_whitespace(_nodes(html)) is expected_value

    def it_skips_over_blank_text(self):
        assert should_trim_encompassing_whitespace([TextNode("  "), TextNode("\n")]) is True
        assert should_trim_encompassing_whitespace([TextNode(" "), TextNode("x")]) is False
        assert should_trim_encompassing_whitespace([]) is True


class Describe_has_implicit_newline:
    """Unit-test suite for `mxformat.partition.html.parser.has_implicit_newline()`."""

    @pytest.mark.parametrize(
        ("html", "expected_value"),
        [
            ("<ul><li>a</li></ul>", True),
            ("<ol><li>a</li></ol>", True),
            ("<blockquote>q</blockquote>", True),
            ("<br>", False),
            ("<p>x</p>", False),
            ("x", False),
        ],
    )
    def it_is_true_only_for_elements_wrapped_in_a_paragraph_style(
        self, html: str, expected_value: bool
    ):
        assert has_implicit_newline(_nodes(html)) is expected_value

    def it_skips_over_blank_text(self):
        nodes: list[Node] = [TextNode(" "), *_nodes("<blockquote>q</blockquote>")]

        assert has_implicit_newline(nodes) is True
        assert has_implicit_newline([]) is False


def test_first_not_empty():
    blank, text = TextNode(" \n"), TextNode("x")

    assert first_not_empty([blank, text]) is text
    assert first_not_empty([blank]) is None
    assert first_not_empty([]) is None


def test_previous_rendered_info_defaults():
    info = PreviousRenderedInfo()

    assert info.next_should_trim_blank is False
    assert info.has_implicit_newline is False


def it_renders_into_a_builder_with_room_mentions_and_links():
    builder = AnnotatedTextBuilder()

    append_text_content(builder, "@room see https://w.org", RenderContext(PreFormatStyle(), True))

    text = builder.to_annotated_text()
    assert text.text == "@room see https://w.org"
    assert [(r.tag, r.start, r.end) for r in text.annotations] == [
        (Tag.ROOM_MENTION, 0, 5),
        (Tag.WEB_LINK, 10, 23),
    ]
