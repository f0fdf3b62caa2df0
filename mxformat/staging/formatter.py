"""Style formatters, turning the raw structural annotations of a parse result into directives.

A parse result says *what* the markup contained; a formatter decides what that should *look*
like given a theme, text metrics and the current interaction state. The formatter never removes
a raw annotation: the styled text carries every original range plus the directives mapped from
it, so later passes (collapsing, drawing) can still find the structure.
"""

from __future__ import annotations

import abc
import bisect
import dataclasses as dc
import heapq
import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional, Protocol, Sequence

from mxformat.documents.annotated_text import AnnotatedText, Range, Tag
from mxformat.documents.elements import (
    MatrixToLink,
    MessageLink,
    ParseResult,
    RoomLink,
    SpanAttributes,
    UserMention,
    matrix_to_link_from_payload,
)
from mxformat.documents.styles import (
    ClickableLink,
    Color,
    Directive,
    FontFamily,
    FontWeight,
    ParagraphStyle,
    RunStyle,
    TextDecoration,
    TextIndent,
    TextLinkStyles,
    TextStyle,
    TextUnit,
    UrlLink,
)
from mxformat.errors import FormatterConfigurationError, PayloadDecodeError
from mxformat.logger import logger as package_logger
from mxformat.logger import trace_logger
from mxformat.partition.utils.constants import DEFAULT_UNORDERED_BULLET_STRING
from mxformat.utils import int_or_none, lazyproperty

if TYPE_CHECKING:
    from mxformat.staging.render_state import InteractionState

# -- structural annotations whose depth payload contributes to the indentation of nested blocks --
_INDENTING_TAGS = (Tag.BLOCK_QUOTE, Tag.UNORDERED_LIST_ITEM, Tag.ORDERED_LIST_ITEM)

# -- font sizes relative to regular text size, as browsers render `<h1>` through `<h6>` --
HEADING_SCALES: dict[str, float] = {
    "h1": 2.0,
    "h2": 1.5,
    "h3": 1.17,
    "h4": 1.0,
    "h5": 0.83,
    "h6": 0.67,
}


def _default_list_bullet(depth: int) -> str:
    return DEFAULT_UNORDERED_BULLET_STRING


DEFAULT_URL_STYLE = TextLinkStyles(
    style=RunStyle(color=Color.BLUE, text_decoration=TextDecoration.UNDERLINE)
)


# ------------------------------------------------------------------------------------------------
# TEXT MEASUREMENT
# ------------------------------------------------------------------------------------------------


class TextMeasurer(Protocol):
    """Measures rendered text; supplied by the text-layout engine of the client."""

    def measure_width(self, text: str) -> TextUnit:
        """Width `text` occupies when laid out in the body text style, in sp."""
        ...


@dc.dataclass(frozen=True)
class FixedWidthTextMeasurer:
    """Approximates every character as `char_width` wide, for use without a layout engine."""

    char_width: TextUnit = TextUnit.sp(8)

    def measure_width(self, text: str) -> TextUnit:
        return self.char_width * len(text)


# ------------------------------------------------------------------------------------------------
# FORMAT CONTEXT
# ------------------------------------------------------------------------------------------------


class FormatContext:
    """The text being styled, with lookups that need more than the range at hand."""

    def __init__(self, text: AnnotatedText):
        self.text = text

    def nesting_depth(self, position: int) -> int:
        """Deepest block-quote or list-item depth covering text `position`, 0 when none does."""
        boundaries, depths = self._depth_steps
        i = bisect.bisect_right(boundaries, position) - 1
        return depths[i] if i >= 0 else 0

    @lazyproperty
    def _depth_steps(self) -> tuple[list[int], list[int]]:
        """Sorted range boundaries and the nesting depth from each boundary up to the next."""
        ranges = sorted(self._indenting_ranges)
        boundaries = sorted({p for start, end, _ in ranges for p in (start, end)})
        depths: list[int] = []
        # -- (-depth, end) of ranges started so far; ended ones are popped once they surface --
        open_ranges: list[tuple[int, int]] = []
        i = 0
        for boundary in boundaries:
            while i < len(ranges) and ranges[i][0] <= boundary:
                _, end, depth = ranges[i]
                heapq.heappush(open_ranges, (-depth, end))
                i += 1
            while open_ranges and open_ranges[0][1] <= boundary:
                heapq.heappop(open_ranges)
            depths.append(-open_ranges[0][0] if open_ranges else 0)
        return boundaries, depths

    @lazyproperty
    def _indenting_ranges(self) -> list[tuple[int, int, int]]:
        ranges: list[tuple[int, int, int]] = []
        for r in self.text.annotations:
            if r.tag not in _INDENTING_TAGS:
                continue
            depth = int_or_none(r.item.payload)  # pyright: ignore[reportAttributeAccessIssue]
            if depth is not None:
                ranges.append((r.start, r.end, depth))
        return ranges


# ------------------------------------------------------------------------------------------------
# FORMATTERS
# ------------------------------------------------------------------------------------------------


class MatrixBodyStyledFormatter(abc.ABC):
    """Maps each raw annotation of a parse result to the directives that present it.

    Subclasses provide one `format_*()` method per construct. Each returns the directives to attach
    at the bounds of the annotation, or None to leave it undecorated. `map_annotation()` does the
    payload decoding and dispatch and can be overridden to handle annotations differently.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or package_logger

    @abc.abstractmethod
    def format_heading(self, tag: str) -> Optional[Sequence[Directive]]:
        """Directives for a heading; `tag` is the element name, "h1" through "h6"."""

    @abc.abstractmethod
    def format_span(
        self, attributes: SpanAttributes, state: InteractionState
    ) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_inline_code(self) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_code_block(self) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_block_quote(self, depth: int) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_room_mention(self) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_user_mention(self, mention: UserMention) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_room_link(self, room_link: RoomLink) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_message_link(self, message_link: MessageLink) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_web_link(self, href: str) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_unordered_list_item(self, depth: int) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_ordered_list_item(self, depth: int) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_details_summary(
        self, reveal_id: int, state: InteractionState
    ) -> Optional[Sequence[Directive]]: ...

    @abc.abstractmethod
    def format_details_content(
        self, reveal_id: int, state: InteractionState, depth: int
    ) -> Optional[Sequence[Directive]]:
        """Directives for hideable details content; `depth` is the nesting depth it sits at."""

    def map_annotation(
        self, range: Range, state: InteractionState, context: FormatContext
    ) -> list[Range]:
        """Ranges of directives presenting the annotation in `range`, at the same bounds.

        Directive ranges, and annotations this formatter does not decorate, map to nothing.
        Undecodable payloads are logged and leave their text undecorated.
        """
        tag = range.tag
        if tag is None:
            return []
        payload: str = range.item.payload  # pyright: ignore[reportAttributeAccessIssue]

        directives: Optional[Sequence[Directive]] = None
        if tag is Tag.HEADING:
            directives = self.format_heading(payload)
        elif tag is Tag.ROOM_MENTION:
            directives = self.format_room_mention()
        elif tag in (Tag.USER_MENTION, Tag.ROOM_LINK, Tag.MESSAGE_LINK):
            link = self._decode_link(tag, payload)
            if isinstance(link, UserMention):
                directives = self.format_user_mention(link)
            elif isinstance(link, RoomLink):
                directives = self.format_room_link(link)
            elif isinstance(link, MessageLink):
                directives = self.format_message_link(link)
        elif tag is Tag.WEB_LINK:
            directives = self.format_web_link(payload)
        elif tag is Tag.INLINE_CODE:
            directives = self.format_inline_code()
        elif tag is Tag.BLOCK_CODE:
            directives = self.format_code_block()
        elif tag is Tag.SPAN:
            try:
                attributes = SpanAttributes.from_payload(payload)
            except PayloadDecodeError as e:
                self.logger.error("span data parsing error: %s", e)
                return [range]
            directives = self.format_span(attributes, state)
        elif tag in _INDENTING_TAGS:
            depth = self._decode_int(tag, payload, "depth")
            if depth is not None:
                depth = max(depth, context.nesting_depth(range.start))
                if tag is Tag.BLOCK_QUOTE:
                    directives = self.format_block_quote(depth)
                elif tag is Tag.UNORDERED_LIST_ITEM:
                    directives = self.format_unordered_list_item(depth)
                else:
                    directives = self.format_ordered_list_item(depth)
        elif tag is Tag.DETAILS_SUMMARY:
            reveal_id = self._decode_int(tag, payload, "id")
            if reveal_id is not None:
                directives = self.format_details_summary(reveal_id, state)
        elif tag is Tag.DETAILS_CONTENT:
            reveal_id = self._decode_int(tag, payload, "id")
            if reveal_id is not None:
                depth = context.nesting_depth(range.start)
                directives = self.format_details_content(reveal_id, state, depth)
        # -- lists as a whole, inline images, rules and click-to-reveal need no directives --

        return [Range(d, range.start, range.end) for d in directives or ()]

    def apply_style(self, parse_result: ParseResult, state: InteractionState) -> AnnotatedText:
        """Styled text for `parse_result`: every original range plus the directives mapped from it.

        Click-to-reveal links in the result toggle ids in `state`, so the styled text stays valid
        across expand and collapse; only the collapsed display text has to be recomputed.
        """
        start_time = time.perf_counter()
        text = parse_result.text
        context = FormatContext(text)

        def transform(r: Range) -> list[Range]:
            mapped = self.map_annotation(r, state, context)
            # -- keep the raw annotation so later passes can still see the structure --
            return mapped if r in mapped else mapped + [r]

        styled = text.flat_map_ranges(transform)
        trace_logger.detail(  # type: ignore
            "styled text in %.2f ms; %d->%d ranges",
            (time.perf_counter() - start_time) * 1000,
            len(text.ranges),
            len(styled.ranges),
        )
        return styled

    def _decode_link(self, tag: Tag, payload: str) -> Optional[MatrixToLink]:
        try:
            return matrix_to_link_from_payload(payload)
        except PayloadDecodeError as e:
            self.logger.error("%s data parsing error: %s", tag.name.lower(), e)
            return None

    def _decode_int(self, tag: Tag, payload: str, what: str) -> Optional[int]:
        value = int_or_none(payload)
        if value is None:
            self.logger.error(
                "%s data parsing error, is not an int %s: %r", tag.name.lower(), what, payload
            )
        return value


class DefaultMatrixBodyStyledFormatter(MatrixBodyStyledFormatter):
    """Formatter with sensible defaults derived from the body text metrics.

    text_measurer
        Measures bullet strings so wrapped lines of a list item align with the text after the
        bullet.
    text_style
        Font size and line height of body text; headings are scaled from these.
    block_indention
        Indent per nesting level of block quotes and lists. Must be in sp.
    list_bullet_for_depth
        Bullet of unordered list items at a depth; must agree with the one used while parsing.
    url_style
        Link styles applied to web links.
    click_to_reveal_style
        Link styles applied to spoilers and details summaries.
    """

    def __init__(
        self,
        text_measurer: TextMeasurer,
        text_style: TextStyle = TextStyle(),
        block_indention: TextUnit = TextUnit.sp(16),
        list_bullet_for_depth: Callable[[int], str] = _default_list_bullet,
        url_style: Optional[TextLinkStyles] = DEFAULT_URL_STYLE,
        click_to_reveal_style: Optional[TextLinkStyles] = TextLinkStyles(),
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(logger)
        if not block_indention.is_sp:
            raise FormatterConfigurationError(
                "block_indention", f"indention must be in sp, got {block_indention.unit}"
            )
        self.text_measurer = text_measurer
        self.text_style = text_style
        self.block_indention = block_indention
        self.list_bullet_for_depth = list_bullet_for_depth
        self.url_style = url_style
        self.click_to_reveal_style = click_to_reveal_style
        self._bullet_widths: dict[str, TextUnit] = {}
        self._bullet_widths_lock = threading.Lock()

    def format_heading_scaled(self, scale: float, underline: bool = False) -> list[Directive]:
        return [
            ParagraphStyle(line_height=self.text_style.line_height * scale),
            RunStyle(
                font_weight=FontWeight.BOLD,
                font_size=self.text_style.font_size * scale,
                text_decoration=TextDecoration.UNDERLINE if underline else None,
            ),
        ]

    def format_heading(self, tag: str) -> Optional[Sequence[Directive]]:
        scale = HEADING_SCALES.get(tag)
        # -- unknown heading level, keep it unchanged --
        if scale is None:
            return None
        return self.format_heading_scaled(scale)

    def click_to_reveal(self, state: InteractionState, reveal_id: int) -> ClickableLink:
        return ClickableLink(
            Tag.CLICK_TO_REVEAL.value,
            lambda: state.toggle(reveal_id),
            self.click_to_reveal_style,
        )

    def format_span(
        self, attributes: SpanAttributes, state: InteractionState
    ) -> Optional[Sequence[Directive]]:
        directives: list[Directive] = []
        if attributes.fg_color is not None:
            directives.append(RunStyle(color=attributes.fg_color))
        if attributes.is_spoiler:
            directives.append(self.click_to_reveal(state, attributes.reveal_id))
        return directives

    def format_inline_code(self) -> Optional[Sequence[Directive]]:
        return [RunStyle(font_family=FontFamily.MONOSPACE, color=Color.WHITE)]

    def format_code_block(self) -> Optional[Sequence[Directive]]:
        return [RunStyle(font_family=FontFamily.MONOSPACE, color=Color.WHITE)]

    def format_block_quote(self, depth: int) -> Optional[Sequence[Directive]]:
        indent = self.block_indention * depth
        return [ParagraphStyle(text_indent=TextIndent(first_line=indent, rest_line=indent))]

    def format_room_mention(self) -> Optional[Sequence[Directive]]:
        return [RunStyle(color=Color.RED, font_weight=FontWeight.BOLD)]

    def format_user_mention(self, mention: UserMention) -> Optional[Sequence[Directive]]:
        return [RunStyle(color=Color.WHITE, font_weight=FontWeight.BOLD)]

    def format_room_link(self, room_link: RoomLink) -> Optional[Sequence[Directive]]:
        return [RunStyle(color=Color.BLUE)]

    def format_message_link(self, message_link: MessageLink) -> Optional[Sequence[Directive]]:
        return [RunStyle(color=Color.BLUE)]

    def format_web_link(self, href: str) -> Optional[Sequence[Directive]]:
        return [UrlLink(href, self.url_style)]

    def format_list_item(self, depth: int, bullet_width: TextUnit) -> list[Directive]:
        """Wrapped lines of the item are indented past its bullet."""
        base = self.block_indention * depth
        indent = TextIndent(first_line=base, rest_line=base + bullet_width)
        return [ParagraphStyle(text_indent=indent)]

    def format_unordered_list_item(self, depth: int) -> Optional[Sequence[Directive]]:
        return self.format_list_item(depth, self._bullet_width(self.list_bullet_for_depth(depth)))

    def format_ordered_list_item(self, depth: int) -> Optional[Sequence[Directive]]:
        return self.format_list_item(depth, self.block_indention)

    def format_details_summary(
        self, reveal_id: int, state: InteractionState
    ) -> Optional[Sequence[Directive]]:
        return [ParagraphStyle(), self.click_to_reveal(state, reveal_id)]

    def format_details_content(
        self, reveal_id: int, state: InteractionState, depth: int
    ) -> Optional[Sequence[Directive]]:
        if depth <= 0:
            return [ParagraphStyle()]
        indent = self.block_indention * depth
        return [ParagraphStyle(text_indent=TextIndent(first_line=indent, rest_line=indent))]

    def _bullet_width(self, bullet: str) -> TextUnit:
        with self._bullet_widths_lock:
            width = self._bullet_widths.get(bullet)
            if width is None:
                width = self._bullet_widths[bullet] = self.text_measurer.measure_width(bullet)
            return width
