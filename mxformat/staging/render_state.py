"""Interaction state of a rendered message and the collapsed text derived from it.

Styled text is computed once per parse result; expanding or collapsing a spoiler or `<details>`
block only changes which parts of it are displayed.
"""

from __future__ import annotations

import bisect
import logging
import threading
import time
from typing import Callable, Collection, Iterable, Iterator, Optional

from mxformat.documents.annotated_text import AnnotatedText, Range, Tag
from mxformat.documents.elements import ParseResult
from mxformat.logger import logger as package_logger
from mxformat.logger import trace_logger
from mxformat.staging.formatter import MatrixBodyStyledFormatter
from mxformat.utils import int_or_none, lazyproperty

StateListener = Callable[["InteractionState"], None]


class InteractionState:
    """Which expandable items of one message the reader has expanded.

    `expandable_items` is fixed at construction. `expanded_items` is an immutable snapshot; writers
    replace it under a lock, so a reader never sees a half-applied change. Listeners are called,
    outside the lock, after every change that altered the expanded set.
    """

    def __init__(
        self,
        expandable_items: Iterable[int] = (),
        expanded_items: Iterable[int] = (),
    ):
        self.expandable_items: frozenset[int] = frozenset(expandable_items)
        self._expanded: frozenset[int] = frozenset(expanded_items)
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []

    @classmethod
    def for_parse_result(cls, parse_result: ParseResult) -> InteractionState:
        """Fresh state for `parse_result` with everything collapsed."""
        return cls(parse_result.expandable_items)

    @property
    def expanded_items(self) -> frozenset[int]:
        return self._expanded

    @property
    def all_expanded(self) -> bool:
        return self.expandable_items <= self._expanded

    def is_expanded(self, reveal_id: int) -> bool:
        return reveal_id in self._expanded

    def toggle(self, reveal_id: int) -> None:
        self._update(lambda expanded: expanded ^ {reveal_id})

    def expand(self, *reveal_ids: int) -> None:
        self._update(lambda expanded: expanded | set(reveal_ids))

    def collapse(self, *reveal_ids: int) -> None:
        self._update(lambda expanded: expanded - set(reveal_ids))

    def expand_all(self) -> None:
        self._update(lambda expanded: expanded | self.expandable_items)

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        self._listeners.remove(listener)

    def _update(self, change: Callable[[frozenset[int]], frozenset[int]]) -> None:
        with self._lock:
            before = self._expanded
            self._expanded = change(before)
            changed = self._expanded != before
        if changed:
            for listener in list(self._listeners):
                listener(self)

    def __repr__(self) -> str:
        return (
            f"InteractionState(expandable_items={sorted(self.expandable_items)}, "
            f"expanded_items={sorted(self._expanded)})"
        )


# ------------------------------------------------------------------------------------------------
# COLLAPSE
# ------------------------------------------------------------------------------------------------


def collapse_text(
    styled: AnnotatedText,
    expanded_ids: Collection[int],
    logger: Optional[logging.Logger] = None,
) -> AnnotatedText:
    """`styled` with the content of every collapsed `<details>` block removed.

    Ranges over the text that remains are re-based onto the shortened text; a range spanning a
    removed region is split around it and ranges wholly inside one are dropped. Returns `styled`
    itself when nothing is hidden.
    """
    logger = logger or package_logger
    contents = sorted(styled.get_annotations(Tag.DETAILS_CONTENT), key=lambda r: r.start)
    if not contents:
        return styled

    # -- [start, end) intervals of `styled` that stay visible, in order --
    windows: list[tuple[int, int]] = []
    index = 0
    for r in contents:
        payload: str = r.item.payload  # pyright: ignore[reportAttributeAccessIssue]
        reveal_id = int_or_none(payload)
        if reveal_id is None:
            logger.error("details content data parsing error, is not an int id: %r", payload)
            continue
        if reveal_id in expanded_ids:
            continue
        if index > r.start:
            logger.warning(
                "details content [%d, %d) starts inside already hidden content, ignoring it",
                r.start,
                r.end,
            )
            continue
        windows.append((index, r.start))
        index = max(index, r.end)
    windows.append((index, len(styled)))

    if windows == [(0, len(styled))]:
        return styled

    start_time = time.perf_counter()
    starts = [start for start, _ in windows]
    offsets: list[int] = []
    length = 0
    for start, end in windows:
        offsets.append(length)
        length += end - start

    text = "".join(styled.text[start:end] for start, end in windows)
    ranges = tuple(p for r in styled.ranges for p in _rebase(r, windows, starts, offsets))
    collapsed = AnnotatedText(text, ranges)

    trace_logger.detail(  # type: ignore
        "collapsed text in %.2f ms; len=%d->%d",
        (time.perf_counter() - start_time) * 1000,
        len(styled),
        len(collapsed),
    )
    return collapsed


def _rebase(
    r: Range, windows: list[tuple[int, int]], starts: list[int], offsets: list[int]
) -> Iterator[Range]:
    """Pieces of `r` that fall into the visible `windows`, positioned in the collapsed text."""
    # -- last window starting at or before the range --
    i = max(bisect.bisect_right(starts, r.start) - 1, 0)

    if r.is_empty:
        start, end = windows[i]
        if start <= r.start <= end:
            position = offsets[i] + r.start - start
            yield Range(r.item, position, position)
        return

    while i < len(windows) and windows[i][0] < r.end:
        start, end = windows[i]
        lo, hi = max(start, r.start), min(end, r.end)
        if lo < hi:
            yield Range(r.item, offsets[i] + lo - start, offsets[i] + hi - start)
        i += 1


# ------------------------------------------------------------------------------------------------
# RENDER STATE
# ------------------------------------------------------------------------------------------------


class MatrixBodyRenderState:
    """Styled and display text of one parse result, kept current with its interaction state.

    The styled text is computed on first use and reused for the lifetime of this object. The
    display text is recomputed only when the expanded-item snapshot changes.
    """

    def __init__(
        self,
        formatter: MatrixBodyStyledFormatter,
        parse_result: ParseResult,
        state: Optional[InteractionState] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.formatter = formatter
        self.parse_result = parse_result
        self.state = state or InteractionState.for_parse_result(parse_result)
        self.logger = logger or formatter.logger
        self._display: Optional[tuple[frozenset[int], AnnotatedText]] = None
        self._lock = threading.Lock()

    @lazyproperty
    def styled_text(self) -> AnnotatedText:
        """Full text of the parse result with the formatter's directives; nothing is hidden."""
        return self.formatter.apply_style(self.parse_result, self.state)

    @property
    def text(self) -> AnnotatedText:
        """Text to display for the current interaction state."""
        expanded = self.state.expanded_items
        with self._lock:
            cached = self._display
        if cached is not None and cached[0] == expanded:
            return cached[1]

        if self.state.expandable_items <= expanded:
            text = self.styled_text
        else:
            text = collapse_text(self.styled_text, expanded, self.logger)

        with self._lock:
            self._display = (expanded, text)
        return text
