"""Annotated text, the document model shared by the parser, the formatter and the renderer.

An `AnnotatedText` is a flat string plus an ordered collection of ranges over it. A range carries
either a raw structural `Annotation` (what the markup said: "this is a level-2 list item") or a
presentation directive (what it should look like: "indent by 32sp"). Ranges may share bounds and
are not required to nest strictly, but every range always lies within the text it belongs to;
operations that cut text re-base or drop the ranges they affect.
"""

from __future__ import annotations

import contextlib
import dataclasses as dc
import enum
import json
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Union

from mxformat.documents.styles import (
    DIRECTIVE_TYPES,
    ClickableLink,
    Directive,
    ParagraphStyle,
    UrlLink,
    directive_type_name,
)
from mxformat.logger import logger


class Tag(enum.Enum):
    """Closed set of structural annotation kinds produced by the HTML parser."""

    HEADING = "mx:HEADING"
    USER_MENTION = "mx:USER_MENTION"
    ROOM_MENTION = "mx:ROOM_MENTION"
    ROOM_LINK = "mx:ROOM_LINK"
    MESSAGE_LINK = "mx:MESSAGE_LINK"
    WEB_LINK = "mx:WEB_LINK"
    BLOCK_QUOTE = "mx:BLOCK_QUOTE"
    UNORDERED_LIST = "mx:UNORDERED_LIST"
    UNORDERED_LIST_ITEM = "mx:UNORDERED_LIST_ITEM"
    ORDERED_LIST = "mx:ORDERED_LIST"
    ORDERED_LIST_ITEM = "mx:ORDERED_LIST_ITEM"
    INLINE_CODE = "mx:INLINE_CODE"
    BLOCK_CODE = "mx:BLOCK_CODE"
    SPAN = "mx:SPAN"
    DETAILS_SUMMARY = "mx:DETAILS_SUMMARY"
    DETAILS_CONTENT = "mx:DETAILS_CONTENT"
    INLINE_IMAGE = "mx:INLINE_IMAGE"
    HORIZONTAL_RULE = "mx:HORIZONTAL_RULE"
    CLICK_TO_REVEAL = "mx:CLICK_TO_REVEAL"


@dc.dataclass(frozen=True)
class Annotation:
    """A raw structural annotation; `payload` is interpreted according to `tag`."""

    tag: Tag
    payload: str = ""


RangeItem = Union[Annotation, Directive]


@dc.dataclass(frozen=True)
class Range:
    """`item` applied to the half-open text interval `[start, end)`."""

    item: RangeItem
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid range bounds [{self.start}, {self.end})")

    @property
    def tag(self) -> Optional[Tag]:
        """Annotation tag of this range, None when it carries a directive."""
        return self.item.tag if isinstance(self.item, Annotation) else None

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def shifted(self, offset: int) -> Range:
        return Range(self.item, self.start + offset, self.end + offset)

    def clipped(self, start: int, end: int) -> Optional[Range]:
        """This range intersected with window `[start, end)` and re-based to the window start.

        None when the range falls outside the window. A non-empty range must overlap the window
        by at least one character; an empty range must sit inside the window (or the window must
        be the same empty position).
        """
        if self.is_empty:
            inside = start <= self.start < end or start == end == self.start
            if not inside:
                return None
        elif max(start, self.start) >= min(end, self.end):
            return None
        return Range(self.item, max(start, self.start) - start, min(end, self.end) - start)


@dc.dataclass(frozen=True)
class AnnotatedText:
    """Immutable text with ranges. Construct through `AnnotatedTextBuilder` or `plain()`."""

    text: str
    ranges: tuple[Range, ...] = ()

    def __post_init__(self):
        length = len(self.text)
        for r in self.ranges:
            if r.end > length:
                raise ValueError(f"range [{r.start}, {r.end}) exceeds text length {length}")

    @classmethod
    def plain(cls, text: str) -> AnnotatedText:
        return cls(text)

    def __len__(self) -> int:
        return len(self.text)

    def __str__(self) -> str:
        return self.text

    # -- queries ----------------------------------------------------------

    @property
    def annotations(self) -> tuple[Range, ...]:
        """Ranges carrying raw structural annotations, in document order of their creation."""
        return tuple(r for r in self.ranges if isinstance(r.item, Annotation))

    @property
    def directives(self) -> tuple[Range, ...]:
        """Ranges carrying presentation directives."""
        return tuple(r for r in self.ranges if not isinstance(r.item, Annotation))

    def get_annotations(
        self, tag: Optional[Tag] = None, start: int = 0, end: Optional[int] = None
    ) -> list[Range]:
        """Annotation ranges with `tag` (any tag when None) that intersect `[start, end]`."""
        end = len(self.text) if end is None else end
        return [
            r
            for r in self.ranges
            if isinstance(r.item, Annotation)
            and (tag is None or r.item.tag is tag)
            and r.start <= end
            and r.end >= start
        ]

    def get_ranges(self, kind: type) -> list[Range]:
        """All ranges whose item is an instance of `kind`."""
        return [r for r in self.ranges if isinstance(r.item, kind)]

    def get_link_ranges(self, offset: int) -> list[Range]:
        """Clickable directives (URL or reveal links) covering text `offset`."""
        return [
            r
            for r in self.ranges
            if isinstance(r.item, (UrlLink, ClickableLink)) and r.start <= offset < r.end
        ]

    # -- derivations ------------------------------------------------------

    def subsequence(self, start: int, end: int) -> AnnotatedText:
        """The text in `[start, end)` with every intersecting range clipped to it."""
        if start < 0 or end > len(self.text) or start > end:
            raise ValueError(f"invalid window [{start}, {end}) for length {len(self.text)}")
        ranges = (r.clipped(start, end) for r in self.ranges)
        return AnnotatedText(self.text[start:end], tuple(r for r in ranges if r is not None))

    def flat_map_ranges(self, transform: Callable[[Range], Iterable[Range]]) -> AnnotatedText:
        """New text with each range replaced by the ranges `transform` produces for it."""
        return AnnotatedText(self.text, tuple(r for rng in self.ranges for r in transform(rng)))

    # -- serialization ----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable form. Directives that cannot be serialized are dropped."""
        annotations: list[dict[str, Any]] = []
        styles: list[dict[str, Any]] = []
        for r in self.ranges:
            if isinstance(r.item, Annotation):
                annotations.append(
                    {
                        "tag": r.item.tag.value,
                        "payload": r.item.payload,
                        "start": r.start,
                        "end": r.end,
                    }
                )
                continue
            type_name = directive_type_name(r.item)
            if type_name is None:
                logger.debug("dropping non-serializable %s range", type(r.item).__name__)
                continue
            styles.append(
                {
                    "type": type_name,
                    "value": r.item.to_dict(encode_json=True),
                    "start": r.start,
                    "end": r.end,
                }
            )
        return {"text": self.text, "annotations": annotations, "styles": styles}

    @classmethod
    def from_dict(cls, input_dict: dict[str, Any]) -> AnnotatedText:
        """Restore from `to_dict()` output; ranges are returned annotations first, then styles."""
        ranges: list[Range] = [
            Range(Annotation(Tag(a["tag"]), a.get("payload", "")), a["start"], a["end"])
            for a in input_dict.get("annotations", [])
        ]
        for s in input_dict.get("styles", []):
            directive_cls = DIRECTIVE_TYPES[s["type"]]
            ranges.append(Range(directive_cls.from_dict(s["value"]), s["start"], s["end"]))
        return cls(input_dict["text"], tuple(ranges))

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


class AnnotatedTextBuilder:
    """Accumulates text and ranges; ranges are recorded in the order they are opened.

    Open ranges (via the `annotation()` and `style()` context managers) are closed at the builder
    length current when the `with` block exits, so nested blocks produce nested ranges.
    """

    def __init__(self):
        self._parts: list[str] = []
        self._length = 0
        self._last_char = ""
        # -- slots are `None` while a range is still open --
        self._ranges: list[Optional[Range]] = []
        self._paragraph_ends: set[int] = set()

    @property
    def length(self) -> int:
        return self._length

    def __len__(self) -> int:
        return self._length

    def ends_with(self, char: str) -> bool:
        return self._last_char == char

    def has_paragraph_ending_at_end(self) -> bool:
        """True when a paragraph-style directive was closed at the current end of the text."""
        return self._length in self._paragraph_ends

    def append(self, content: Union[str, AnnotatedText]) -> None:
        if isinstance(content, AnnotatedText):
            offset = self._length
            for r in content.ranges:
                self._add_range(r.shifted(offset))
            content = content.text
        if not content:
            return
        self._parts.append(content)
        self._length += len(content)
        self._last_char = content[-1]

    def add_annotation(self, tag: Tag, payload: str, start: int, end: int) -> None:
        self._add_range(Range(Annotation(tag, payload), start, end))

    @contextlib.contextmanager
    def annotation(self, tag: Tag, payload: str = "") -> Iterator[None]:
        with self._open(Annotation(tag, payload)):
            yield

    @contextlib.contextmanager
    def style(self, directive: Directive) -> Iterator[None]:
        with self._open(directive):
            yield

    def to_annotated_text(self) -> AnnotatedText:
        """Snapshot of the text so far; ranges still open are omitted."""
        return AnnotatedText(
            "".join(self._parts), tuple(r for r in self._ranges if r is not None)
        )

    @contextlib.contextmanager
    def _open(self, item: Any) -> Iterator[None]:
        start = self._length
        index = len(self._ranges)
        self._ranges.append(None)
        try:
            yield
        finally:
            self._ranges[index] = Range(item, start, self._length)
            if isinstance(item, ParagraphStyle):
                self._paragraph_ends.add(self._length)

    def _add_range(self, r: Range) -> None:
        self._ranges.append(r)
        if isinstance(r.item, ParagraphStyle):
            self._paragraph_ends.add(r.end)


def build_annotated_text(parts: Sequence[Union[str, AnnotatedText]]) -> AnnotatedText:
    """Concatenate `parts` into a single annotated text."""
    builder = AnnotatedTextBuilder()
    for part in parts:
        builder.append(part)
    return builder.to_annotated_text()
