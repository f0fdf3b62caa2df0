"""Provides `parse_html()` and `parse_plaintext()`."""

from __future__ import annotations

import dataclasses as dc
import logging
import re
import time
from typing import Callable, Optional, Sequence

from lxml import etree

from mxformat.documents.annotated_text import AnnotatedText, AnnotatedTextBuilder
from mxformat.documents.elements import InlineImageInfo, ParseResult
from mxformat.logger import logger as package_logger
from mxformat.logger import trace_logger
from mxformat.nlp.patterns import DEFAULT_WEB_URL_RE
from mxformat.partition.html.normalize import parse_fragment
from mxformat.partition.html.parser import (
    RenderContext,
    RenderOutput,
    append_nodes,
    append_text_content,
)
from mxformat.partition.utils.constants import (
    DEFAULT_DETAILS_SUMMARY_INDICATOR_PLACEHOLDER,
    DEFAULT_INLINE_IMAGE_FALLBACK_TEXT,
    DEFAULT_UNORDERED_BULLET_STRING,
    MENTION_ROOM,
    MXFORMAT_NEWLINE_DEBUG,
)


def _default_list_bullet(depth: int) -> str:
    return DEFAULT_UNORDERED_BULLET_STRING


def _default_room_mention() -> str:
    return MENTION_ROOM


def _default_user_mention(user_id: str, content: AnnotatedText) -> AnnotatedText:
    return content


def _default_room_link(
    room_id: str, via: Sequence[str], content: AnnotatedText
) -> AnnotatedText:
    return content


def _default_message_link(
    room_id: str, message_id: str, via: Sequence[str], content: AnnotatedText
) -> AnnotatedText:
    return content


def _default_inline_image_fallback(info: InlineImageInfo) -> str:
    return info.title or info.alt or DEFAULT_INLINE_IMAGE_FALLBACK_TEXT


@dc.dataclass(frozen=True)
class PreFormatStyle:
    """Formatting applied while parsing, independent of screen density, text size and theme.

    list_bullet_for_depth
        Bullet (including any trailing space) for items of an unordered list at a nesting depth.
    format_room_mention
        Text that replaces each `@room` mention.
    format_user_mention, format_room_link, format_message_link
        Receive the rendered body of a `matrix.to` link and return the text to show in its
        place, for example a display name for a user mention. The default keeps the body.
    details_summary_indicator_placeholder
        Text reserving room for the disclosure indicator in front of a `<details>` summary.
    format_inline_image_fallback
        Text standing in for an inline image; title, else alt text, else "IMG" by default.
    auto_link_url_pattern
        URLs in text matching this pattern are annotated as links. None turns this off.
    """

    list_bullet_for_depth: Callable[[int], str] = _default_list_bullet
    format_room_mention: Callable[[], str] = _default_room_mention
    format_user_mention: Callable[[str, AnnotatedText], AnnotatedText] = _default_user_mention
    format_room_link: Callable[[str, Sequence[str], AnnotatedText], AnnotatedText] = (
        _default_room_link
    )
    format_message_link: Callable[[str, str, Sequence[str], AnnotatedText], AnnotatedText] = (
        _default_message_link
    )
    details_summary_indicator_placeholder: str = DEFAULT_DETAILS_SUMMARY_INDICATOR_PLACEHOLDER
    format_inline_image_fallback: Callable[[InlineImageInfo], str] = _default_inline_image_fallback
    auto_link_url_pattern: Optional[re.Pattern[str]] = DEFAULT_WEB_URL_RE


def parse_html(
    html: str,
    style: Optional[PreFormatStyle] = None,
    allow_room_mention: bool = True,
    *,
    newline_debug: Optional[bool] = None,
    logger: Optional[logging.Logger] = None,
) -> ParseResult:
    """Parse a `formatted_body` in `org.matrix.custom.html` format into annotated text.

    The result carries raw structural annotations only; styling that depends on theme or density
    is applied afterwards by a style formatter.

    html
        The markup to parse, a fragment without `<html>` or `<body>` wrapper.
    style
        Formatting applied while parsing; `PreFormatStyle()` when omitted.
    allow_room_mention
        When False, `@room` is left as literal text.
    newline_debug
        When True, a visible "[label]" marker precedes every newline the parser emits. Defaults
        to the `MXFORMAT_NEWLINE_DEBUG` environment variable.
    logger
        Receives warnings about input that had to be rendered as plain text.

    Malformed markup never raises. Blank input produces an empty result.
    """
    logger = logger or package_logger
    style = style or PreFormatStyle()
    newline_debug = MXFORMAT_NEWLINE_DEBUG if newline_debug is None else newline_debug

    # -- parser rejects an empty document, nip that edge-case in the bud here --
    if not html.strip():
        return ParseResult.empty()

    start_time = time.perf_counter()
    try:
        body = parse_fragment(html)
    except (etree.LxmlError, ValueError) as e:
        logger.warning("could not parse formatted body, rendering it as plain text: %s", e)
        return parse_plaintext(html, style, allow_room_mention, logger=logger)
    tree_time = time.perf_counter()

    out = RenderOutput(newline_debug)
    try:
        append_nodes(out, body.child_nodes(), RenderContext(style, allow_room_mention))
    except RecursionError:
        logger.warning(
            "formatted body is nested too deeply to render, rendering its text as plain text"
        )
        return parse_plaintext(body.text_content(), style, allow_room_mention, logger=logger)
    result = out.to_parse_result()

    end_time = time.perf_counter()
    trace_logger.detail(  # type: ignore
        "parsed formatted body in %.2f ms (%.2f ms tree + %.2f ms walk); len=%d->%d",
        (end_time - start_time) * 1000,
        (tree_time - start_time) * 1000,
        (end_time - tree_time) * 1000,
        len(html),
        len(result.text),
    )
    return result


def parse_plaintext(
    text: str,
    style: Optional[PreFormatStyle] = None,
    allow_room_mention: bool = True,
    *,
    logger: Optional[logging.Logger] = None,
) -> ParseResult:
    """Like `parse_html()` but for a plain `body`.

    Only `@room` substitution and auto-linking are applied; the text is otherwise kept as is.
    """
    logger = logger or package_logger
    style = style or PreFormatStyle()

    builder = AnnotatedTextBuilder()
    append_text_content(builder, text, RenderContext(style, allow_room_mention))
    result = ParseResult(builder.to_annotated_text())
    logger.debug("parsed plain body; len=%d, %d annotations", len(text), len(result.text.ranges))
    return result
