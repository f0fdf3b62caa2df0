"""Test suite for `mxformat.documents.annotated_text` module."""

from __future__ import annotations

import pytest

from mxformat.documents.annotated_text import (
    AnnotatedText,
    AnnotatedTextBuilder,
    Annotation,
    Range,
    Tag,
    build_annotated_text,
)
from mxformat.documents.styles import (
    ClickableLink,
    FontWeight,
    ParagraphStyle,
    RunStyle,
    TextIndent,
    TextUnit,
    UrlLink,
)

BOLD = RunStyle(font_weight=FontWeight.BOLD)


class DescribeRange:
    """Unit-test suite for `mxformat.documents.annotated_text.Range` objects."""

    @pytest.mark.parametrize(("start", "end"), [(-1, 2), (3, 2)])
    def it_rejects_invalid_bounds(self, start: int, end: int):
        with pytest.raises(ValueError, match="invalid range bounds"):
            Range(Annotation(Tag.HEADING, "h1"), start, end)

    def it_knows_the_tag_of_its_annotation(self):
        assert Range(Annotation(Tag.SPAN), 0, 1).tag is Tag.SPAN
        assert Range(BOLD, 0, 1).tag is None

    @pytest.mark.parametrize(
        ("start", "end", "window", "expected_value"),
        [
            # -- inside the window --
            (3, 5, (2, 8), (1, 3)),
            # -- clipped on both sides --
            (0, 10, (2, 8), (0, 6)),
            # -- touching the window start only --
            (0, 2, (2, 8), None),
            # -- past the window --
            (8, 9, (2, 8), None),
            # -- an empty range inside the window is kept --
            (4, 4, (2, 8), (2, 2)),
            # -- but not one at the window end --
            (8, 8, (2, 8), None),
            # -- unless the window is that same empty position --
            (8, 8, (8, 8), (0, 0)),
        ],
    )
    def it_can_clip_itself_to_a_window(
        self,
        start: int,
        end: int,
        window: tuple[int, int],
        expected_value: tuple[int, int] | None,
    ):
        clipped = Range(BOLD, start, end).clipped(*window)

        if expected_value is None:
            assert clipped is None
        else:
            assert clipped == Range(BOLD, *expected_value)


class DescribeAnnotatedText:
    """Unit-test suite for `mxformat.documents.annotated_text.AnnotatedText` objects."""

    def it_rejects_a_range_that_extends_past_its_text(self):
        with pytest.raises(ValueError, match="exceeds text length 3"):
            AnnotatedText("abc", (Range(BOLD, 1, 4),))

    def it_separates_annotations_from_directives(self):
        heading = Range(Annotation(Tag.HEADING, "h1"), 0, 3)
        bold = Range(BOLD, 0, 3)
        text = AnnotatedText("abc", (bold, heading))

        assert text.annotations == (heading,)
        assert text.directives == (bold,)

    def it_can_find_annotations_by_tag_and_position(self):
        first = Range(Annotation(Tag.SPAN, "1"), 0, 2)
        second = Range(Annotation(Tag.SPAN, "2"), 5, 7)
        quote = Range(Annotation(Tag.BLOCK_QUOTE, "1"), 0, 7)
        text = AnnotatedText("abcdefg", (first, quote, second))

        assert text.get_annotations(Tag.SPAN) == [first, second]
        assert text.get_annotations(Tag.SPAN, 3, 4) == []
        # -- the query interval is closed --
        assert text.get_annotations(Tag.SPAN, 2, 4) == [first]
        assert text.get_annotations() == [first, quote, second]

    def it_can_find_the_links_covering_an_offset(self):
        url = Range(UrlLink("https://example.org"), 2, 5)
        reveal = Range(ClickableLink(Tag.CLICK_TO_REVEAL.value, lambda: None), 4, 6)
        text = AnnotatedText("abcdefg", (Range(BOLD, 0, 7), url, reveal))

        assert text.get_link_ranges(1) == []
        assert text.get_link_ranges(4) == [url, reveal]
        assert text.get_link_ranges(5) == [reveal]

    def it_provides_a_subsequence_with_ranges_clipped_to_it(self):
        text = AnnotatedText(
            "Hello World",
            (
                Range(BOLD, 0, 5),
                Range(Annotation(Tag.SPAN, "x"), 4, 8),
                Range(Annotation(Tag.WEB_LINK, "https://w.org"), 6, 11),
            ),
        )

        sub = text.subsequence(3, 7)

        assert sub.text == "lo W"
        assert sub.ranges == (
            Range(BOLD, 0, 2),
            Range(Annotation(Tag.SPAN, "x"), 1, 4),
            Range(Annotation(Tag.WEB_LINK, "https://w.org"), 3, 4),
        )

    def but_it_rejects_a_subsequence_window_outside_the_text(self):
        with pytest.raises(ValueError, match="invalid window"):
            AnnotatedText("abc").subsequence(1, 4)

    def it_can_map_each_range_to_zero_or_more_ranges(self):
        heading = Range(Annotation(Tag.HEADING, "h1"), 0, 3)
        text = AnnotatedText("abc", (heading, Range(BOLD, 1, 2)))

        mapped = text.flat_map_ranges(
            lambda r: [Range(ParagraphStyle(), r.start, r.end), r] if r.tag else []
        )

        assert mapped.text == "abc"
        assert mapped.ranges == (Range(ParagraphStyle(), 0, 3), heading)

    def it_round_trips_through_a_dict(self):
        indent = TextIndent(TextUnit.sp(16), TextUnit.sp(24))
        text = AnnotatedText(
            "Title body",
            (
                Range(Annotation(Tag.HEADING, "h2"), 0, 5),
                Range(Annotation(Tag.WEB_LINK, "https://w.org"), 6, 10),
                Range(BOLD, 0, 5),
                Range(ParagraphStyle(text_indent=indent), 6, 10),
                Range(UrlLink("https://w.org"), 6, 10),
            ),
        )

        assert AnnotatedText.from_dict(text.to_dict()) == text

    def but_it_drops_directives_that_cannot_be_serialized(self):
        reveal = ClickableLink(Tag.CLICK_TO_REVEAL.value, lambda: None)
        text = AnnotatedText("abc", (Range(reveal, 0, 3), Range(Annotation(Tag.SPAN, "{}"), 0, 3)))

        text_dict = text.to_dict()

        assert text_dict["styles"] == []
        assert text_dict["annotations"] == [
            {"tag": "mx:SPAN", "payload": "{}", "start": 0, "end": 3}
        ]


class DescribeAnnotatedTextBuilder:
    """Unit-test suite for `mxformat.documents.annotated_text.AnnotatedTextBuilder` objects."""

    def it_records_nested_ranges_in_the_order_they_were_opened(self):
        builder = AnnotatedTextBuilder()

        builder.append("a")
        with builder.annotation(Tag.BLOCK_QUOTE, "1"):
            builder.append("b")
            with builder.style(BOLD):
                builder.append("cd")
        builder.append("e")

        text = builder.to_annotated_text()
        assert text.text == "abcde"
        assert text.ranges == (
            Range(Annotation(Tag.BLOCK_QUOTE, "1"), 1, 4),
            Range(BOLD, 2, 4),
        )

    def it_omits_ranges_that_are_still_open_from_a_snapshot(self):
        builder = AnnotatedTextBuilder()

        with builder.annotation(Tag.SPAN, "{}"):
            builder.append("abc")
            snapshot = builder.to_annotated_text()

        assert snapshot.ranges == ()
        assert len(builder.to_annotated_text().ranges) == 1

    def it_shifts_the_ranges_of_appended_annotated_text(self):
        builder = AnnotatedTextBuilder()
        builder.append("12")

        builder.append(AnnotatedText("abc", (Range(BOLD, 1, 3),)))

        assert builder.to_annotated_text() == AnnotatedText("12abc", (Range(BOLD, 3, 5),))

    def it_knows_the_last_character_appended(self):
        builder = AnnotatedTextBuilder()
        assert not builder.ends_with("\n")

        builder.append("a\n")
        builder.append("")

        assert builder.ends_with("\n")
        assert builder.length == len(builder) == 2

    def it_knows_when_a_paragraph_style_ends_at_the_current_end(self):
        builder = AnnotatedTextBuilder()

        with builder.style(ParagraphStyle()):
            builder.append("para")
        assert builder.has_paragraph_ending_at_end()

        builder.append(" more")
        assert not builder.has_paragraph_ending_at_end()


def it_builds_annotated_text_from_parts():
    text = build_annotated_text(["x", AnnotatedText("yz", (Range(BOLD, 0, 2),)), "!"])

    assert text == AnnotatedText("xyz!", (Range(BOLD, 1, 3),))
