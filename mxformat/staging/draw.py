"""Decorations drawn around laid-out message text.

Some constructs are presented by painting rather than by text styling: the pill behind a user
mention, the bar beside a block quote, the cover over an unrevealed spoiler, the disclosure
triangle in front of a `<details>` summary. Drawing happens in two steps, both independent of any
particular graphics toolkit:

1. `resolve_draw_positions()` locates each decorated annotation in the laid-out text through the
   `TextLayout` protocol, which the client implements on top of its layout engine.
2. `draw_commands()` runs the drawers of a `MatrixBodyDrawStyle` over those positions, producing
   plain `DrawCommand` values for the client to paint behind and above the text.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import logging
from typing import Any, Callable, Generic, Optional, Protocol, Sequence, TypeVar, Union

from typing_extensions import TypeAlias

from mxformat.documents.annotated_text import AnnotatedText, Range, Tag
from mxformat.documents.elements import SpanAttributes, UserMention, matrix_to_link_from_payload
from mxformat.documents.styles import Color
from mxformat.errors import PayloadDecodeError
from mxformat.logger import logger as package_logger
from mxformat.utils import int_or_none

_P = TypeVar("_P")

# -- sin(60°), height of an equilateral triangle with unit sides --
_TRIANGLE_HEIGHT_RATIO = 0.8660254


# ------------------------------------------------------------------------------------------------
# GEOMETRY
# ------------------------------------------------------------------------------------------------


class TextDirection(enum.Enum):
    LTR = "ltr"
    RTL = "rtl"


@dc.dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in layout pixels; y grows downwards."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def inflate(self, horizontal: float, vertical: float) -> Rect:
        return Rect(
            self.left - horizontal,
            self.top - vertical,
            self.right + horizontal,
            self.bottom + vertical,
        )


@dc.dataclass(frozen=True)
class InlinePosition:
    """Bounds of the part of a text range that sits on one line."""

    rect: Rect
    start: int
    end: int
    line: int
    text_direction: TextDirection

    @property
    def is_rtl(self) -> bool:
        return self.text_direction is TextDirection.RTL


@dc.dataclass(frozen=True)
class BlockPosition:
    """Bounds of all the lines a text range spans."""

    rect: Rect
    start: int
    end: int
    text_direction: TextDirection

    @property
    def is_rtl(self) -> bool:
        return self.text_direction is TextDirection.RTL


DrawPosition: TypeAlias = Union[InlinePosition, BlockPosition]


class TextLayout(Protocol):
    """Queries against text that has been laid out.

    Every method raises ValueError when its offset or line is out of range.
    """

    def get_line_for_offset(self, offset: int) -> int: ...

    def get_line_start(self, line: int) -> int: ...

    def get_line_end(self, line: int) -> int: ...

    def get_bounding_box(self, offset: int) -> Rect: ...

    def get_line_top(self, line: int) -> float: ...

    def get_line_bottom(self, line: int) -> float: ...

    def get_line_left(self, line: int) -> float: ...

    def get_line_right(self, line: int) -> float: ...

    def get_paragraph_direction(self, offset: int) -> TextDirection: ...


def per_line_bounding_boxes_for_range(
    layout: TextLayout, start: int, end: int
) -> list[InlinePosition]:
    """One bounding box per line the text in `[start, end)` occupies.

    Lines the layout cannot answer for are left out, so the result may have fewer boxes than the
    range has lines, or none at all.
    """
    try:
        first_line = layout.get_line_for_offset(start)
        last_line = layout.get_line_for_offset(end)
    except ValueError:
        return []

    positions: list[InlinePosition] = []
    for line in range(first_line, last_line + 1):
        try:
            start_in_line = start if line == first_line else layout.get_line_start(line)
            end_in_line = end if line == last_line else layout.get_line_end(line)
            boxes: list[Rect] = []
            for offset in range(start_in_line, end_in_line):
                try:
                    boxes.append(layout.get_bounding_box(offset))
                except ValueError:
                    continue
            if not boxes:
                continue
            # -- which of the first and last box is leftmost depends on the text direction --
            rect = Rect(
                left=min(boxes[0].left, boxes[-1].left),
                top=min(box.top for box in boxes),
                right=max(boxes[0].right, boxes[-1].right),
                bottom=max(box.bottom for box in boxes),
            )
            positions.append(
                InlinePosition(
                    rect,
                    start_in_line,
                    end_in_line,
                    line,
                    layout.get_paragraph_direction(start_in_line),
                )
            )
        except ValueError:
            continue
    return positions


def block_bounding_box(layout: TextLayout, start: int, end: int) -> Optional[BlockPosition]:
    """Bounding box of the full lines the text in `[start, end)` occupies, None if unavailable.

    A range ending exactly at the start of a line (after its closing newline) does not extend
    onto that line.
    """
    try:
        first_line = layout.get_line_for_offset(start)
        last_line = layout.get_line_for_offset(end)
        if last_line > first_line and layout.get_line_start(last_line) == end:
            last_line -= 1
        lines = range(first_line, last_line + 1)
        rect = Rect(
            left=min(layout.get_line_left(line) for line in lines),
            top=layout.get_line_top(first_line),
            right=max(layout.get_line_right(line) for line in lines),
            bottom=layout.get_line_bottom(last_line),
        )
        return BlockPosition(rect, start, end, layout.get_paragraph_direction(start))
    except ValueError:
        return None


# ------------------------------------------------------------------------------------------------
# DRAW COMMANDS
# ------------------------------------------------------------------------------------------------


@dc.dataclass(frozen=True)
class RoundRect:
    rect: Rect
    color: int
    corner_radius: float


@dc.dataclass(frozen=True)
class FilledRect:
    rect: Rect
    color: int


@dc.dataclass(frozen=True)
class FilledPath:
    """Closed polygon through `points`, filled."""

    points: tuple[tuple[float, float], ...]
    color: int


DrawCommand: TypeAlias = Union[RoundRect, FilledRect, FilledPath]


@dc.dataclass(frozen=True)
class DrawScope:
    """What a drawer knows besides the decorated item: screen density, state and theme."""

    density: float
    expanded_items: frozenset[int]
    default_foreground_color: int


Drawer: TypeAlias = Callable[[Any, Any, DrawScope], Sequence[DrawCommand]]
"""`(payload, position, scope) -> commands`; payload and position types depend on the construct."""


def draw_user_mention_pill(
    mention: UserMention, pos: InlinePosition, scope: DrawScope
) -> list[DrawCommand]:
    return [RoundRect(pos.rect, Color.BLUE, 4 * scope.density)]


def draw_block_quote_bar(depth: int, pos: BlockPosition, scope: DrawScope) -> list[DrawCommand]:
    """A bar in the indentation gap, on the side the text starts at."""
    rect, density = pos.rect, scope.density
    width = 4 * density
    if pos.is_rtl:
        left = rect.right + 12 * density
    else:
        left = rect.left - 12 * density
    bar = Rect(left, rect.top, left + width, rect.bottom)
    return [RoundRect(bar, scope.default_foreground_color, 4 * density)]


def draw_inline_code_background(
    payload: None, pos: InlinePosition, scope: DrawScope
) -> list[DrawCommand]:
    return [RoundRect(pos.rect, Color.BLACK, 4 * scope.density)]


def draw_block_code_background(
    payload: None, pos: BlockPosition, scope: DrawScope
) -> list[DrawCommand]:
    density = scope.density
    return [RoundRect(pos.rect.inflate(4 * density, 1 * density), Color.BLACK, 4 * density)]


def draw_span_background(
    attributes: SpanAttributes, pos: InlinePosition, scope: DrawScope
) -> list[DrawCommand]:
    if attributes.bg_color is None:
        return []
    return [FilledRect(pos.rect, attributes.bg_color)]


def draw_spoiler_cover(
    attributes: SpanAttributes, pos: InlinePosition, scope: DrawScope
) -> list[DrawCommand]:
    if not attributes.is_spoiler or attributes.reveal_id in scope.expanded_items:
        return []
    return [RoundRect(pos.rect, scope.default_foreground_color, 4 * scope.density)]


def draw_details_disclosure_triangle(
    reveal_id: int, pos: InlinePosition, scope: DrawScope
) -> list[DrawCommand]:
    """Triangle over the summary placeholder; points down when expanded and forward otherwise.

    The triangle is sized from the line height and centered vertically in the line.
    """
    rect = pos.rect
    line_height = rect.height
    side = line_height / 2
    short_side_padding = (side - side * _TRIANGLE_HEIGHT_RATIO) / 2
    if reveal_id in scope.expanded_items:
        points = [
            (0.0, short_side_padding),
            (side / 2, side - short_side_padding),
            (side, short_side_padding),
        ]
    else:
        points = [
            (short_side_padding, 0.0),
            (side - short_side_padding, side / 2),
            (short_side_padding, side),
        ]

    canvas_padding = (line_height - side) / 2
    dx = rect.right - side + canvas_padding if pos.is_rtl else rect.left + canvas_padding
    dy = rect.top + canvas_padding
    return [
        FilledPath(tuple((x + dx, y + dy) for x, y in points), scope.default_foreground_color)
    ]


@dc.dataclass(frozen=True)
class MatrixBodyDrawStyle:
    """Drawers for each decorated construct; a construct whose drawer is None is not located.

    Drawers named `draw_behind_*` paint under the text, `draw_above_span` over it.
    """

    default_foreground_color: int = Color.GRAY
    draw_behind_user_mention: Optional[Drawer] = draw_user_mention_pill
    draw_behind_room_mention: Optional[Drawer] = None
    draw_behind_block_quote: Optional[Drawer] = draw_block_quote_bar
    draw_behind_inline_code: Optional[Drawer] = draw_inline_code_background
    draw_behind_block_code: Optional[Drawer] = draw_block_code_background
    draw_behind_span: Optional[Drawer] = draw_span_background
    draw_above_span: Optional[Drawer] = draw_spoiler_cover
    draw_behind_details_summary: Optional[Drawer] = None
    draw_behind_details_summary_first_line: Optional[Drawer] = draw_details_disclosure_triangle
    draw_behind_details_content: Optional[Drawer] = None


# ------------------------------------------------------------------------------------------------
# POSITION RESOLUTION
# ------------------------------------------------------------------------------------------------


@dc.dataclass(frozen=True)
class Positioned(Generic[_P]):
    payload: _P
    position: DrawPosition


@dc.dataclass(frozen=True)
class DrawPositions:
    """Located decorations of one laid-out text, each paired with its decoded payload."""

    user_mentions: tuple[Positioned[UserMention], ...] = ()
    room_mentions: tuple[Positioned[None], ...] = ()
    block_quotes: tuple[Positioned[int], ...] = ()
    inline_code: tuple[Positioned[None], ...] = ()
    block_code: tuple[Positioned[None], ...] = ()
    spans: tuple[Positioned[SpanAttributes], ...] = ()
    details_summaries: tuple[Positioned[int], ...] = ()
    details_summary_first_lines: tuple[Positioned[int], ...] = ()
    details_contents: tuple[Positioned[int], ...] = ()


class _PositionResolver:
    def __init__(self, text: AnnotatedText, layout: TextLayout, logger: logging.Logger):
        self._text = text
        self._layout = layout
        self._logger = logger

    def inline(
        self, enabled: Optional[Drawer], tag: Tag, decode: Callable[[str], Any]
    ) -> tuple[Positioned[Any], ...]:
        if enabled is None:
            return ()
        found: list[Positioned[Any]] = []
        for r, payload in self._decoded(tag, decode):
            for pos in per_line_bounding_boxes_for_range(self._layout, r.start, r.end):
                found.append(Positioned(payload, pos))
        return tuple(found)

    def first_line(
        self, enabled: Optional[Drawer], tag: Tag, decode: Callable[[str], Any]
    ) -> tuple[Positioned[Any], ...]:
        if enabled is None:
            return ()
        found: list[Positioned[Any]] = []
        for r, payload in self._decoded(tag, decode):
            positions = per_line_bounding_boxes_for_range(self._layout, r.start, r.end)
            if positions:
                found.append(Positioned(payload, positions[0]))
        return tuple(found)

    def block(
        self, enabled: Optional[Drawer], tag: Tag, decode: Callable[[str], Any]
    ) -> tuple[Positioned[Any], ...]:
        if enabled is None:
            return ()
        found: list[Positioned[Any]] = []
        for r, payload in self._decoded(tag, decode):
            pos = block_bounding_box(self._layout, r.start, r.end)
            if pos is not None:
                found.append(Positioned(payload, pos))
        return tuple(found)

    def _decoded(self, tag: Tag, decode: Callable[[str], Any]) -> list[tuple[Range, Any]]:
        decoded: list[tuple[Range, Any]] = []
        for r in self._text.get_annotations(tag):
            payload: str = r.item.payload  # pyright: ignore[reportAttributeAccessIssue]
            try:
                decoded.append((r, decode(payload)))
            except PayloadDecodeError as e:
                self._logger.error("%s data parsing error: %s", tag.name.lower(), e)
        return decoded


def _no_payload(payload: str) -> None:
    return None


def _decode_int(payload: str) -> int:
    value = int_or_none(payload)
    if value is None:
        raise PayloadDecodeError(f"not an int: {payload!r}")
    return value


def _decode_user_mention(payload: str) -> UserMention:
    link = matrix_to_link_from_payload(payload)
    if not isinstance(link, UserMention):
        raise PayloadDecodeError(f"not a user mention: {payload!r}")
    return link


def resolve_draw_positions(
    text: AnnotatedText,
    layout: TextLayout,
    draw_style: MatrixBodyDrawStyle,
    logger: Optional[logging.Logger] = None,
) -> DrawPositions:
    """Locate, in laid-out `text`, every construct `draw_style` has a drawer for.

    `text` must be the text `layout` was computed from, typically the display text of a
    `MatrixBodyRenderState`. Annotations with undecodable payloads are logged and skipped.
    """
    resolve = _PositionResolver(text, layout, logger or package_logger)
    s = draw_style
    return DrawPositions(
        user_mentions=resolve.inline(
            s.draw_behind_user_mention, Tag.USER_MENTION, _decode_user_mention
        ),
        room_mentions=resolve.inline(s.draw_behind_room_mention, Tag.ROOM_MENTION, _no_payload),
        block_quotes=resolve.block(s.draw_behind_block_quote, Tag.BLOCK_QUOTE, _decode_int),
        inline_code=resolve.inline(s.draw_behind_inline_code, Tag.INLINE_CODE, _no_payload),
        block_code=resolve.block(s.draw_behind_block_code, Tag.BLOCK_CODE, _no_payload),
        spans=resolve.inline(
            s.draw_behind_span or s.draw_above_span, Tag.SPAN, SpanAttributes.from_payload
        ),
        details_summaries=resolve.block(
            s.draw_behind_details_summary, Tag.DETAILS_SUMMARY, _decode_int
        ),
        details_summary_first_lines=resolve.first_line(
            s.draw_behind_details_summary_first_line, Tag.DETAILS_SUMMARY, _decode_int
        ),
        details_contents=resolve.block(
            s.draw_behind_details_content, Tag.DETAILS_CONTENT, _decode_int
        ),
    )


def draw_commands(
    positions: DrawPositions,
    draw_style: MatrixBodyDrawStyle,
    expanded_items: frozenset[int],
    density: float = 1.0,
) -> tuple[list[DrawCommand], list[DrawCommand]]:
    """Commands to paint `(behind, above)` the text, in paint order."""
    scope = DrawScope(density, frozenset(expanded_items), draw_style.default_foreground_color)
    s = draw_style

    def run(drawer: Optional[Drawer], items: Sequence[Positioned[Any]]) -> list[DrawCommand]:
        if drawer is None:
            return []
        return [command for item in items for command in drawer(item.payload, item.position, scope)]

    behind = [
        *run(s.draw_behind_block_quote, positions.block_quotes),
        *run(s.draw_behind_block_code, positions.block_code),
        *run(s.draw_behind_inline_code, positions.inline_code),
        *run(s.draw_behind_room_mention, positions.room_mentions),
        *run(s.draw_behind_user_mention, positions.user_mentions),
        *run(s.draw_behind_span, positions.spans),
        *run(s.draw_behind_details_summary, positions.details_summaries),
        *run(s.draw_behind_details_summary_first_line, positions.details_summary_first_lines),
        *run(s.draw_behind_details_content, positions.details_contents),
    ]
    above = run(s.draw_above_span, positions.spans)
    return behind, above
