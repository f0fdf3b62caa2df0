"""Test suite for `mxformat.staging.formatter` module."""

from __future__ import annotations

import logging

import pytest

from mxformat.documents.annotated_text import AnnotatedText, Annotation, Range, Tag
from mxformat.documents.elements import ParseResult, UserMention
from mxformat.documents.styles import (
    ClickableLink,
    Color,
    FontFamily,
    FontWeight,
    ParagraphStyle,
    RunStyle,
    TextIndent,
    TextStyle,
    TextUnit,
    UrlLink,
)
from mxformat.errors import FormatterConfigurationError
from mxformat.partition.html.partition import parse_html
from mxformat.staging.formatter import (
    DEFAULT_URL_STYLE,
    DefaultMatrixBodyStyledFormatter,
    FixedWidthTextMeasurer,
    FormatContext,
    MatrixBodyStyledFormatter,
)
from mxformat.staging.render_state import InteractionState
from test_mxformat.unit_utils import (
    FixtureRequest,
    LogCaptureFixture,
    Mock,
    instance_mock,
    method_mock,
)

LOGGER_NAME = "test_mxformat.staging.formatter"


def _indent(first_line: float, rest_line: float) -> ParagraphStyle:
    return ParagraphStyle(text_indent=TextIndent(TextUnit.sp(first_line), TextUnit.sp(rest_line)))


def _directives_of(styled: AnnotatedText, tag: Tag) -> list[object]:
    """Directives sharing the bounds of the first `tag` annotation in `styled`."""
    anchor = styled.get_annotations(tag)[0]
    return [r.item for r in styled.directives if (r.start, r.end) == (anchor.start, anchor.end)]


class DescribeFixedWidthTextMeasurer:
    """Unit-test suite for `mxformat.staging.formatter.FixedWidthTextMeasurer` objects."""

    def it_measures_each_character_at_the_same_width(self):
        assert FixedWidthTextMeasurer().measure_width("• ") == TextUnit.sp(16)
        assert FixedWidthTextMeasurer(TextUnit.sp(5)).measure_width("12. ") == TextUnit.sp(20)


class DescribeFormatContext:
    """Unit-test suite for `mxformat.staging.formatter.FormatContext` objects."""

    def it_knows_the_deepest_indenting_block_at_a_position(self):
        text = AnnotatedText(
            "abcdef",
            (
                Range(Annotation(Tag.BLOCK_QUOTE, "1"), 0, 6),
                Range(Annotation(Tag.UNORDERED_LIST_ITEM, "2"), 2, 4),
                Range(Annotation(Tag.SPAN, "9"), 0, 6),
                Range(Annotation(Tag.ORDERED_LIST_ITEM, "junk"), 0, 6),
            ),
        )
        context = FormatContext(text)

        assert context.nesting_depth(0) == 1
        assert context.nesting_depth(3) == 2
        assert context.nesting_depth(4) == 1

    def it_is_zero_outside_any_indenting_block(self):
        assert FormatContext(AnnotatedText("abc")).nesting_depth(1) == 0

    def it_agrees_with_a_scan_of_every_covering_range_at_every_position(self):
        # -- overlapping, nested, touching and empty ranges --
        spans = [(0, 20, 1), (2, 9, 3), (3, 5, 2), (5, 5, 9), (9, 14, 2), (12, 30, 1), (25, 26, 4)]
        text = AnnotatedText(
            "x" * 32,
            tuple(
                Range(Annotation(Tag.UNORDERED_LIST_ITEM, str(depth)), start, end)
                for start, end, depth in spans
            ),
        )
        context = FormatContext(text)

        for position in range(33):
            expected = max((d for s, e, d in spans if s <= position < e), default=0)
            assert context.nesting_depth(position) == expected, position

    def it_looks_up_the_depth_of_a_long_list_item_by_item(self):
        item_count = 4000
        ranges = [Range(Annotation(Tag.BLOCK_QUOTE, "1"), 0, 3 * item_count)]
        ranges += [
            Range(Annotation(Tag.ORDERED_LIST_ITEM, str(2 + i % 3)), 3 * i, 3 * i + 3)
            for i in range(item_count)
        ]
        context = FormatContext(AnnotatedText("a. " * item_count, tuple(ranges)))

        depths = [context.nesting_depth(3 * i + 1) for i in range(item_count)]

        assert depths == [2 + i % 3 for i in range(item_count)]
        assert context.nesting_depth(3 * item_count) == 0


class DescribeMatrixBodyStyledFormatter:
    """Unit-test suite for `mxformat.staging.formatter.MatrixBodyStyledFormatter` objects."""

    def it_cannot_be_instantiated_without_format_methods(self):
        with pytest.raises(TypeError):
            MatrixBodyStyledFormatter()  # type: ignore[abstract]

    def it_keeps_every_raw_annotation_of_the_parse_result(self):
        result = parse_html("<h1>T</h1><blockquote>q <code>c</code></blockquote>@room")
        formatter = DefaultMatrixBodyStyledFormatter(FixedWidthTextMeasurer())

        styled = formatter.apply_style(result, InteractionState())

        assert styled.text == result.text.text
        assert styled.annotations == result.text.annotations
        assert len(styled.directives) > 0

    def it_maps_directive_ranges_to_nothing(self, formatter: DefaultMatrixBodyStyledFormatter):
        context = FormatContext(AnnotatedText("x"))

        assert formatter.map_annotation(Range(RunStyle(), 0, 1), InteractionState(), context) == []

    def but_it_logs_an_undecodable_span_and_keeps_the_raw_range(
        self, formatter: DefaultMatrixBodyStyledFormatter, caplog: LogCaptureFixture
    ):
        span = Range(Annotation(Tag.SPAN, "not json"), 0, 1)
        context = FormatContext(AnnotatedText("x", (span,)))

        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            mapped = formatter.map_annotation(span, InteractionState(), context)

        assert mapped == [span]
        assert "span data parsing error" in caplog.text

    @pytest.mark.parametrize(
        ("tag", "payload", "message"),
        [
            (Tag.BLOCK_QUOTE, "deep", "block_quote data parsing error, is not an int depth: 'deep"),
            (Tag.DETAILS_SUMMARY, "x", "details_summary data parsing error, is not an int id"),
            (Tag.USER_MENTION, "{}", "user_mention data parsing error"),
        ],
    )
    def and_it_logs_other_undecodable_payloads_and_leaves_their_text_undecorated(
        self,
        formatter: DefaultMatrixBodyStyledFormatter,
        caplog: LogCaptureFixture,
        tag: Tag,
        payload: str,
        message: str,
    ):
        annotation = Range(Annotation(tag, payload), 0, 1)
        context = FormatContext(AnnotatedText("x", (annotation,)))

        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            mapped = formatter.map_annotation(annotation, InteractionState(), context)

        assert mapped == []
        assert message in caplog.text

    # -- fixtures --------------------------------------------------------------------------------

    @pytest.fixture
    def formatter(self) -> DefaultMatrixBodyStyledFormatter:
        return DefaultMatrixBodyStyledFormatter(
            FixedWidthTextMeasurer(), logger=logging.getLogger(LOGGER_NAME)
        )


class DescribeDefaultMatrixBodyStyledFormatter:
    """Unit-test suite for `mxformat.staging.formatter.DefaultMatrixBodyStyledFormatter`."""

    def it_rejects_a_block_indention_that_is_not_in_sp(self):
        with pytest.raises(FormatterConfigurationError) as e:
            DefaultMatrixBodyStyledFormatter(
                FixedWidthTextMeasurer(), block_indention=TextUnit.em(1)
            )

        assert e.value.setting == "block_indention"

    def it_scales_headings_from_the_body_text_style(self):
        formatter = DefaultMatrixBodyStyledFormatter(
            FixedWidthTextMeasurer(), text_style=TextStyle(TextUnit.sp(14), TextUnit.sp(20))
        )

        assert formatter.format_heading("h2") == [
            ParagraphStyle(line_height=TextUnit.sp(30)),
            RunStyle(font_weight=FontWeight.BOLD, font_size=TextUnit.sp(21)),
        ]
        assert formatter.format_heading("h7") is None

    def it_indents_wrapped_lines_of_a_list_item_past_the_bullet(self):
        styled = self._styled("<ul><li>item</li></ul>")

        assert _directives_of(styled, Tag.UNORDERED_LIST_ITEM) == [_indent(0, 16)]

    def it_indents_ordered_list_items_by_the_block_indention(self):
        styled = self._styled("<ol><li>item</li></ol>")

        assert _directives_of(styled, Tag.ORDERED_LIST_ITEM) == [_indent(0, 16)]

    def it_indents_a_list_inside_a_block_quote_one_level_further(self):
        styled = self._styled("<blockquote><ul><li>x</li></ul></blockquote>")

        # -- quote, list and item share their bounds; the list itself adds nothing --
        assert _directives_of(styled, Tag.UNORDERED_LIST_ITEM) == [
            _indent(16, 16),
            _indent(16, 32),
        ]

    def it_indents_details_content_to_its_nesting_depth(self):
        styled = self._styled(
            "<blockquote><details><summary>S</summary>c</details></blockquote>"
        )

        assert _directives_of(styled, Tag.DETAILS_CONTENT) == [_indent(16, 16)]

    def but_it_gives_top_level_details_content_a_plain_paragraph(self):
        styled = self._styled("<details><summary>S</summary>c</details>")

        assert _directives_of(styled, Tag.DETAILS_CONTENT) == [ParagraphStyle()]

    def it_styles_mentions_links_and_code(self):
        html = (
            '@room <a href="https://matrix.to/#/@a:x.org">A</a> <a href="https://w.org">w</a>'
            " <code>c</code>"
        )

        styled = self._styled(html)

        assert _directives_of(styled, Tag.ROOM_MENTION) == [
            RunStyle(color=Color.RED, font_weight=FontWeight.BOLD)
        ]
        assert _directives_of(styled, Tag.USER_MENTION) == [
            RunStyle(color=Color.WHITE, font_weight=FontWeight.BOLD)
        ]
        assert _directives_of(styled, Tag.WEB_LINK) == [UrlLink("https://w.org", DEFAULT_URL_STYLE)]
        assert _directives_of(styled, Tag.INLINE_CODE) == [
            RunStyle(font_family=FontFamily.MONOSPACE, color=Color.WHITE)
        ]

    def it_colors_a_span_and_makes_a_spoiler_clickable(self):
        result = parse_html('<span data-mx-color="#00ff00" data-mx-spoiler>s</span>')
        state = InteractionState.for_parse_result(result)
        formatter = DefaultMatrixBodyStyledFormatter(FixedWidthTextMeasurer())

        styled = formatter.apply_style(result, state)

        color, reveal = _directives_of(styled, Tag.SPAN)
        assert color == RunStyle(color=0xFF00FF00)
        assert isinstance(reveal, ClickableLink)
        assert reveal.tag == Tag.CLICK_TO_REVEAL.value
        reveal.activate()
        assert state.is_expanded(0)

    def it_toggles_the_reveal_id_when_a_click_to_reveal_link_is_activated(
        self, state_: Mock
    ):
        formatter = DefaultMatrixBodyStyledFormatter(FixedWidthTextMeasurer())

        formatter.click_to_reveal(state_, 7).activate()

        state_.toggle.assert_called_once_with(7)

    def it_measures_each_bullet_only_once(self, request: FixtureRequest):
        measure_width_ = method_mock(
            request, FixedWidthTextMeasurer, "measure_width", return_value=TextUnit.sp(10)
        )
        measurer = FixedWidthTextMeasurer()
        formatter = DefaultMatrixBodyStyledFormatter(measurer)

        formatter.format_unordered_list_item(0)
        formatter.format_unordered_list_item(1)
        directives = formatter.format_unordered_list_item(2)

        measure_width_.assert_called_once_with(measurer, "• ")
        assert directives == [_indent(32, 42)]

    def it_makes_the_details_summary_a_clickable_paragraph(self):
        result = parse_html("<details><summary>S</summary>c</details>")
        state = InteractionState.for_parse_result(result)
        formatter = DefaultMatrixBodyStyledFormatter(FixedWidthTextMeasurer())

        styled = formatter.apply_style(result, state)
        paragraph, reveal = _directives_of(styled, Tag.DETAILS_SUMMARY)

        assert paragraph == ParagraphStyle()
        assert isinstance(reveal, ClickableLink)
        reveal.activate()
        assert state.expanded_items == frozenset({0})

    def it_accepts_a_user_mention_without_looking_at_its_body(self):
        formatter = DefaultMatrixBodyStyledFormatter(FixedWidthTextMeasurer())

        assert formatter.format_user_mention(UserMention("@a:x.org", "u")) == [
            RunStyle(color=Color.WHITE, font_weight=FontWeight.BOLD)
        ]

    # -- fixtures and helpers --------------------------------------------------------------------

    @staticmethod
    def _styled(html: str) -> AnnotatedText:
        result: ParseResult = parse_html(html)
        formatter = DefaultMatrixBodyStyledFormatter(FixedWidthTextMeasurer())
        return formatter.apply_style(result, InteractionState.for_parse_result(result))

    @pytest.fixture
    def state_(self, request: FixtureRequest) -> Mock:
        return instance_mock(request, InteractionState)
