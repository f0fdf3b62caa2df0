# pyright: reportPrivateUsage=false

"""Provides the HTML tree walker used by `parse_html()`.

The walker renders a `formatted_body` fragment into annotated text in a single depth-first pass.
It emits the text as a browser would show it plus raw structural annotations (heading, list item
at depth n, spoiler span, ...). Styling that depends on theme or screen density is left to the
style formatter, which reads those annotations later.

PRINCIPLES

- _Whitespace is normalized per text node._ A text node contributes its text with each run of
  whitespace reduced to a single space. Inside `<pre>` the text is taken verbatim, except that a
  newline right after the start tag and a trailing newline on the last text node are dropped.

- _Blank text is often insignificant._ A whitespace-only text node is dropped when it sits
  directly in a list, when the previously rendered node asked for leading blanks to be trimmed, or
  when what follows it is a block element. Inline formatting elements (and `<p>`, `<br>`, `<img>`)
  are the exception; whitespace before them is kept.

- _Newlines are explicit, except where a paragraph style will imply one._ Block containers make
  sure their content is separated from what came before by a newline. Lists and block quotes are
  later wrapped in a paragraph style, which implies a line break of its own, so no newline is
  emitted directly in front of them.

- _Context flows down, rendered-info flows sideways._ Each element receives an immutable
  `RenderContext` from its parent and returns a `PreviousRenderedInfo` that is handed to its next
  sibling. The one piece of mutable state, the running number of an ordered list, lives in an
  `OrderedListScope` owned by that single `<ol>`.

Other background

- As with any lxml-based parser here, the tree is built from lxml Custom Element Classes. Each
  whitelisted tag is instantiated with a class that knows how to render itself; every other tag
  gets `MatrixElement`, which renders its children only (the tag is unwrapped).

- lxml stores character data as the `.text` and `.tail` of elements. The walker works on the
  sequence of child *nodes* instead, where a `TextNode` stands for a text or tail string, because
  the whitespace rules above look ahead across siblings regardless of their kind.
"""

from __future__ import annotations

import dataclasses as dc
import itertools
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Sequence, Union

from lxml import etree
from typing_extensions import TypeAlias

from mxformat.documents.annotated_text import AnnotatedText, AnnotatedTextBuilder, Tag
from mxformat.documents.elements import (
    InlineImageInfo,
    MatrixToLink,
    MessageLink,
    ParseResult,
    RoomLink,
    SpanAttributes,
    UserMention,
)
from mxformat.documents.styles import FontStyle, FontWeight, RunStyle, TextDecoration
from mxformat.nlp.patterns import HEX_COLOR_RE, INVISIBLE_CHARS_RE, TEXT_WHITESPACE_RUN_RE
from mxformat.partition.link_type import is_valid_matrix_uri, parse_matrix_to_url
from mxformat.partition.utils.constants import (
    HORIZONTAL_RULE_TEXT,
    INLINE_IMAGE_PREFIX,
    MENTION_ROOM,
)
from mxformat.utils import int_or_none, is_blank, lazyproperty

if TYPE_CHECKING:
    from mxformat.partition.html.partition import PreFormatStyle


def normalize_whitespace(text: str) -> str:
    """`text` with each whitespace run (NBSP included) reduced to a single space.

    Zero-width spaces and soft hyphens are removed. Leading and trailing whitespace is reduced but
    not removed, the surrounding nodes decide whether it is significant.
    """
    return TEXT_WHITESPACE_RUN_RE.sub(" ", INVISIBLE_CHARS_RE.sub("", text))


def _parse_hex_color(value: Optional[str]) -> Optional[int]:
    """Opaque ARGB color from a "#rrggbb" (or "rrggbb") attribute value, None when malformed."""
    if value is None:
        return None
    match = HEX_COLOR_RE.fullmatch(value)
    if match is None:
        return None
    return int(match.group(1), 16) | 0xFF000000


# ------------------------------------------------------------------------------------------------
# DOMAIN MODEL
# ------------------------------------------------------------------------------------------------


class TextNode:
    """A run of character data in the tree, the `.text` or `.tail` of some element."""

    normal_name = "#text"

    def __init__(self, whole_text: str):
        self.whole_text = whole_text

    def __repr__(self) -> str:
        return f"TextNode({self.whole_text!r})"

    @lazyproperty
    def is_blank(self) -> bool:
        """True when this node holds only HTML whitespace (NBSP is not whitespace here)."""
        return is_blank(self.whole_text)

    def text(self) -> str:
        return normalize_whitespace(self.whole_text)


Node: TypeAlias = Union[TextNode, "MatrixElement"]


class Lookahead:
    """The siblings that follow the node being rendered, in document order.

    A view on the parent's node list; nothing is copied.
    """

    __slots__ = ("_nodes", "_start")

    def __init__(self, nodes: Sequence[Node], start: int = 0):
        self._nodes = nodes
        self._start = start

    def __bool__(self) -> bool:
        return self._start < len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return itertools.islice(self._nodes, self._start, None)


@dc.dataclass(frozen=True)
class PreviousRenderedInfo:
    """What a rendered node tells its next sibling."""

    # -- leading blank text of the next node is insignificant --
    next_should_trim_blank: bool = False
    # -- the node will be wrapped in a paragraph style by the formatter, which implies a newline --
    has_implicit_newline: bool = False


@dc.dataclass(frozen=True)
class UnorderedListScope:
    bullet: str


@dc.dataclass(eq=False)
class OrderedListScope:
    """Running item number of one `<ol>`, advanced by each `<li>` rendered in it."""

    next_number: int = 1


@dc.dataclass(frozen=True)
class RenderContext:
    """Rendering state inherited from ancestors; replaced, never mutated, on the way down."""

    style: PreFormatStyle
    allow_room_mention: bool
    unordered_list_scope: Optional[UnorderedListScope] = None
    ordered_list_scope: Optional[OrderedListScope] = None
    # -- inside a `<pre>` element --
    preformatted_text: bool = False
    # -- href of the enclosing `<a>`, when there is one --
    link_url: Optional[str] = None
    indented_block_depth: int = 0

    @property
    def should_ignore_whitespace(self) -> bool:
        return not self.preformatted_text and (
            self.unordered_list_scope is not None or self.ordered_list_scope is not None
        )


class RenderOutput:
    """Text under construction plus the metadata collected alongside it.

    A link body is rendered into a forked output so the link formatting callbacks can wrap it.
    The fork has its own text builder but records inline images and expandable items into the
    same collections as its parent.
    """

    def __init__(
        self,
        newline_debug: bool = False,
        *,
        base_offset: int = 0,
        inline_images: Optional[dict[str, InlineImageInfo]] = None,
        expandable_items: Optional[set[int]] = None,
    ):
        self.builder = AnnotatedTextBuilder()
        self.newline_debug = newline_debug
        self.inline_images: dict[str, InlineImageInfo] = (
            {} if inline_images is None else inline_images
        )
        self.expandable_items: set[int] = set() if expandable_items is None else expandable_items
        self._base_offset = base_offset

    @property
    def offset(self) -> int:
        """Position of the end of the text so far, relative to the start of the whole document.

        Reveal ids are taken from this so they stay unique when content is rendered in a fork.
        """
        return self._base_offset + self.builder.length

    def fork(self) -> RenderOutput:
        return RenderOutput(
            self.newline_debug,
            base_offset=self.offset,
            inline_images=self.inline_images,
            expandable_items=self.expandable_items,
        )

    def append_newline(self, label: str) -> None:
        """Append a newline, preceded by a visible "[label]" marker when debugging newlines."""
        if self.newline_debug:
            self.builder.append(f"[{label}]")
        self.builder.append("\n")

    def ensure_newline_separation(self, label: str, lookahead: Optional[Lookahead] = None) -> None:
        """Append a newline unless the text is empty or already ends a line or paragraph.

        No newline is added either when the next sibling in `lookahead` implies one.
        """
        if self.builder.has_paragraph_ending_at_end():
            return
        if lookahead is not None and has_implicit_newline(lookahead):
            return
        if self.builder.length and not self.builder.ends_with("\n"):
            self.append_newline(label)

    def to_parse_result(self) -> ParseResult:
        return ParseResult(
            text=self.builder.to_annotated_text(),
            inline_images=self.inline_images,
            expandable_items=frozenset(self.expandable_items),
        )


# ------------------------------------------------------------------------------------------------
# LOOKAHEAD
# ------------------------------------------------------------------------------------------------

# -- elements before which trailing whitespace is significant --
_WHITESPACE_SIGNIFICANT_BEFORE = frozenset(
    ("b", "strong", "i", "em", "code", "s", "del", "font", "span", "br", "a", "p", "img")
)
# -- elements the formatter wraps in a paragraph style --
_IMPLICIT_NEWLINE_ELEMENTS = frozenset(("ul", "ol", "blockquote"))


def should_trim_encompassing_whitespace(lookahead: Iterable[Node]) -> bool:
    """True when whitespace in front of the next rendered sibling is insignificant.

    Blank text nodes are skipped over. Whitespace is insignificant at the end of the parent and in
    front of a block element, but not in front of non-blank text or inline formatting.
    """
    for node in lookahead:
        if isinstance(node, TextNode):
            if node.is_blank:
                continue
            return False
        return node.normal_name not in _WHITESPACE_SIGNIFICANT_BEFORE
    return True


def has_implicit_newline(lookahead: Iterable[Node]) -> bool:
    """True when the next rendered sibling will get its line break from a paragraph style.

    Explicit newlines, like those of `<br>` or `<p>`, do not count.
    """
    for node in lookahead:
        if isinstance(node, TextNode):
            if node.is_blank:
                continue
            return False
        return node.normal_name in _IMPLICIT_NEWLINE_ELEMENTS
    return False


def first_not_empty(lookahead: Iterable[Node]) -> Optional[Node]:
    """The next sibling that is not a blank text node."""
    for node in lookahead:
        if isinstance(node, TextNode) and node.is_blank:
            continue
        return node
    return None


# ------------------------------------------------------------------------------------------------
# TEXT
# ------------------------------------------------------------------------------------------------

_LINK_TAGS: dict[type, Tag] = {
    UserMention: Tag.USER_MENTION,
    RoomLink: Tag.ROOM_LINK,
    MessageLink: Tag.MESSAGE_LINK,
}


def append_nodes(
    out: RenderOutput,
    nodes: Sequence[Node],
    ctx: RenderContext,
    first_previous: Optional[PreviousRenderedInfo] = None,
) -> Optional[PreviousRenderedInfo]:
    """Render `nodes` in order; the info of the last node that rendered anything, if any."""
    previous = first_previous
    for index, node in enumerate(nodes):
        lookahead = Lookahead(nodes, index + 1)
        if isinstance(node, TextNode):
            rendered = append_text(out, node, lookahead, previous, ctx)
        else:
            rendered = node.append_to(out, lookahead, previous, ctx)
        if rendered is not None:
            previous = rendered
    return previous


def append_text(
    out: RenderOutput,
    node: TextNode,
    lookahead: Lookahead,
    previous: Optional[PreviousRenderedInfo],
    ctx: RenderContext,
) -> Optional[PreviousRenderedInfo]:
    """Render a text node, None when it is dropped as insignificant whitespace."""
    if ctx.should_ignore_whitespace and node.is_blank:
        return None
    if (
        not ctx.preformatted_text
        and node.is_blank
        and (
            should_trim_encompassing_whitespace(lookahead)
            or previous is None
            or previous.next_should_trim_blank
        )
    ):
        return None

    if ctx.preformatted_text:
        text = node.whole_text if lookahead else node.whole_text.removesuffix("\n")
    elif previous is not None and previous.next_should_trim_blank:
        text = node.text().lstrip()
    else:
        text = node.text()

    if out.newline_debug:
        text = text.replace("\n", "[T]\n")

    append_text_content(out.builder, text, ctx)
    return PreviousRenderedInfo()


def append_text_content(builder: AnnotatedTextBuilder, text: str, ctx: RenderContext) -> None:
    """Append `text`, substituting room mentions (when allowed) and auto-linking URLs."""
    if not ctx.allow_room_mention:
        _append_text_with_auto_linkify(builder, text, ctx)
        return

    current = 0
    index = text.find(MENTION_ROOM)
    while index >= 0:
        _append_text_with_auto_linkify(builder, text[current:index], ctx)
        with builder.annotation(Tag.ROOM_MENTION):
            builder.append(ctx.style.format_room_mention())
        current = index + len(MENTION_ROOM)
        index = text.find(MENTION_ROOM, current)
    _append_text_with_auto_linkify(builder, text[current:], ctx)


def _append_text_with_auto_linkify(
    builder: AnnotatedTextBuilder, text: str, ctx: RenderContext
) -> None:
    """Append `text`, annotating each URL the auto-link pattern finds in it.

    Auto-linked deep links are annotated as mentions or room/message links but, unlike `<a>`
    elements, their text is not passed through the link formatting callbacks.
    """
    start = builder.length
    builder.append(text)

    pattern = ctx.style.auto_link_url_pattern
    if ctx.link_url is not None or pattern is None:
        return

    for match in pattern.finditer(text):
        url = match.group(0)
        link = parse_matrix_to_url(url)
        if link is None:
            tag, payload = Tag.WEB_LINK, url
        else:
            tag, payload = _LINK_TAGS[type(link)], link.to_payload()
        builder.add_annotation(tag, payload, start + match.start(), start + match.end())


# ------------------------------------------------------------------------------------------------
# CUSTOM ELEMENT-CLASSES
# ------------------------------------------------------------------------------------------------


class MatrixElement(etree.ElementBase):
    """Base and default class for elements.

    An element without a more specific class is not supported in message bodies. It is unwrapped:
    its children are rendered as though they were children of its parent.
    """

    @property
    def normal_name(self) -> str:
        return self.tag

    def child_nodes(self) -> list[Node]:
        """Text nodes and child elements of this element, in document order."""
        nodes: list[Node] = []
        if self.text:
            nodes.append(TextNode(self.text))
        for child in self:
            # -- processing instructions and the like are skipped but their tail text is not --
            if isinstance(child, MatrixElement):
                nodes.append(child)
            if child.tail:
                nodes.append(TextNode(child.tail))
        return nodes

    def text_content(self) -> str:
        """All text within this element, whitespace-normalized and trimmed."""
        return normalize_whitespace("".join(self.itertext())).strip(" ")

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        """Render this element into `out`.

        Returns None when nothing was rendered that should change the info handed on to the next
        sibling.
        """
        return append_nodes(out, self.child_nodes(), ctx)


# -- PHRASING ELEMENTS ---------------------------------------------------------------------------


class _StyledPhrasing(MatrixElement):
    """Inline element that applies a fixed run style to its contents."""

    _run_style = RunStyle()

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        with out.builder.style(self._run_style):
            rendered = append_nodes(out, self.child_nodes(), ctx)
        return rendered or PreviousRenderedInfo()


class Bold(_StyledPhrasing):
    """`<b>` and `<strong>`."""

    _run_style = RunStyle(font_weight=FontWeight.BOLD)


class Italic(_StyledPhrasing):
    """`<i>` and `<em>`."""

    _run_style = RunStyle(font_style=FontStyle.ITALIC)


class Strikethrough(_StyledPhrasing):
    """`<s>` and `<del>`."""

    _run_style = RunStyle(text_decoration=TextDecoration.LINE_THROUGH)


class Code(MatrixElement):
    """`<code>`, inline code unless it is inside a `<pre>` block."""

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        tag = Tag.BLOCK_CODE if ctx.preformatted_text else Tag.INLINE_CODE
        with out.builder.annotation(tag):
            rendered = append_nodes(out, self.child_nodes(), ctx)
        # -- a code block gets a paragraph style from the formatter --
        if ctx.preformatted_text:
            return PreviousRenderedInfo(next_should_trim_blank=True)
        return rendered or PreviousRenderedInfo()


class Span(MatrixElement):
    """`<span>`, and the deprecated `<font>` which is treated the same way.

    Supports foreground and background colors plus the spoiler flag. A spoiler registers the
    offset it starts at as an expandable item.
    """

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        fg_color = _parse_hex_color(self.get("data-mx-color"))
        if fg_color is None:
            fg_color = _parse_hex_color(self.get("color"))
        attributes = SpanAttributes(
            fg_color=fg_color,
            bg_color=_parse_hex_color(self.get("data-mx-bg-color")),
            is_spoiler="data-mx-spoiler" in self.attrib,
            reveal_id=out.offset,
        )
        if attributes.is_spoiler:
            out.expandable_items.add(attributes.reveal_id)

        with out.builder.annotation(Tag.SPAN, attributes.to_payload()):
            rendered = append_nodes(out, self.child_nodes(), ctx)
        return rendered or PreviousRenderedInfo()


class Anchor(MatrixElement):
    """`<a>` element.

    A `matrix.to` deep link is annotated as a mention or a room or message link, and its rendered
    body is passed through the matching formatting callback of the style. Any other link gets a
    web-link annotation around its unmodified body.
    """

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        href = self.get("href", "")
        link = parse_matrix_to_url(href)
        inner_ctx = dc.replace(ctx, link_url=href)

        if link is None:
            with out.builder.annotation(Tag.WEB_LINK, href):
                rendered = append_nodes(out, self.child_nodes(), inner_ctx)
            return rendered or PreviousRenderedInfo()

        content_out = out.fork()
        rendered = append_nodes(content_out, self.child_nodes(), inner_ctx)
        content = content_out.builder.to_annotated_text()
        with out.builder.annotation(_LINK_TAGS[type(link)], link.to_payload()):
            out.builder.append(self._format_link(link, content, ctx.style))
        return rendered or PreviousRenderedInfo()

    @staticmethod
    def _format_link(
        link: MatrixToLink, content: AnnotatedText, style: PreFormatStyle
    ) -> AnnotatedText:
        if isinstance(link, UserMention):
            return style.format_user_mention(link.user_id, content)
        if isinstance(link, RoomLink):
            return style.format_room_link(link.room_id, link.via, content)
        return style.format_message_link(link.room_id, link.message_id, link.via, content)


class LineBreak(MatrixElement):
    """`<br>` element."""

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        if not has_implicit_newline(lookahead):
            out.append_newline("br")
        elif previous is not None and previous.has_implicit_newline:
            # -- two paragraph styles back-to-back collapse into one line break; anything at all
            # -- in between keeps them apart by exactly one empty line
            out.builder.append(" ")
        return PreviousRenderedInfo(next_should_trim_blank=True)


class Image(MatrixElement):
    """`<img>` element, an inline image when its source is a media repository URI.

    The image's fallback text stands in for it in the text, wrapped in an inline-image annotation
    whose payload is the key of its metadata in the parse result. An image with any other source
    is unwrapped.
    """

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        uri = self.get("src", "")
        if not is_valid_matrix_uri(uri):
            append_nodes(out, self.child_nodes(), ctx)
            return PreviousRenderedInfo()

        title = self.get("title", "")
        alt = self.get("alt", "")
        info = InlineImageInfo(
            uri=uri,
            is_emote="data-mx-emoticon" in self.attrib,
            width=int_or_none(self.get("width")),
            height=int_or_none(self.get("height")),
            title=title if title.strip() else None,
            alt=alt if alt.strip() else None,
        )
        image_id = INLINE_IMAGE_PREFIX + uri
        with out.builder.annotation(Tag.INLINE_IMAGE, image_id):
            out.builder.append(ctx.style.format_inline_image_fallback(info))
        out.inline_images[image_id] = info
        return PreviousRenderedInfo()


# -- BLOCK ELEMENTS ------------------------------------------------------------------------------


class Heading(MatrixElement):
    """`<h1>`..`<h6>`; the formatter's paragraph style provides the line breaks."""

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        with out.builder.annotation(Tag.HEADING, self.normal_name):
            append_nodes(out, self.child_nodes(), ctx)
        return PreviousRenderedInfo(next_should_trim_blank=True)


class Paragraph(MatrixElement):
    """`<p>` and `<div>`.

    Content is set off from preceding content by a newline and followed by one, unless nothing
    significant follows. Consecutive paragraphs are separated by an empty line.
    """

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        if previous is not None and not previous.next_should_trim_blank:
            out.ensure_newline_separation("p1")

        start = out.builder.length
        append_nodes(out, self.child_nodes(), ctx)
        if should_trim_encompassing_whitespace(lookahead) or out.builder.length == start:
            return PreviousRenderedInfo()

        if not has_implicit_newline(lookahead):
            out.append_newline("p2")
            next_node = first_not_empty(lookahead)
            if self.normal_name == "p" and next_node is not None and next_node.normal_name == "p":
                out.append_newline("p3")
        return PreviousRenderedInfo(next_should_trim_blank=True)


class BlockQuote(MatrixElement):
    """`<blockquote>`; each nesting level is annotated with its own depth, starting at 1."""

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        depth = ctx.indented_block_depth + 1
        with out.builder.annotation(Tag.BLOCK_QUOTE, str(depth)):
            append_nodes(out, self.child_nodes(), dc.replace(ctx, indented_block_depth=depth))
        return PreviousRenderedInfo(next_should_trim_blank=True, has_implicit_newline=True)


class Pre(MatrixElement):
    """`<pre>`; whitespace within is preserved and `<code>` inside it is a code block."""

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        if previous is not None and not previous.next_should_trim_blank:
            out.ensure_newline_separation("pre1")

        append_nodes(out, self._content_nodes(), dc.replace(ctx, preformatted_text=True))
        if should_trim_encompassing_whitespace(lookahead):
            return PreviousRenderedInfo()

        out.ensure_newline_separation("pre2", lookahead)
        return PreviousRenderedInfo(next_should_trim_blank=True)

    def _content_nodes(self) -> list[Node]:
        """Child nodes, less the one newline allowed directly after the `<pre>` start tag."""
        nodes = self.child_nodes()
        if not (self.text and self.text.startswith("\n")):
            return nodes
        rest = self.text[1:]
        return [TextNode(rest), *nodes[1:]] if rest else nodes[1:]


class HorizontalRule(MatrixElement):
    """`<hr>`, a single no-break space on a line of its own.

    The character gives the rule a non-empty bounding box to draw the divider in.
    """

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        out.ensure_newline_separation("hr1")
        with out.builder.annotation(Tag.HORIZONTAL_RULE):
            out.builder.append(HORIZONTAL_RULE_TEXT)
        if not has_implicit_newline(lookahead):
            out.append_newline("hr2")
        return PreviousRenderedInfo(next_should_trim_blank=True)


class Details(MatrixElement):
    """`<details>` with a `<summary>`, a block whose content is hidden until revealed.

    Content before and after the summary forms up to two details-content ranges, both identified
    by the offset the element starts at. The summary is prefixed with a placeholder the disclosure
    indicator is later drawn over. Without a summary, or without anything to hide, the element is
    rendered as plain content.
    """

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        children = self.child_nodes()
        summary_index = next(
            (i for i, node in enumerate(children) if node.normal_name == "summary"), None
        )
        if summary_index is None:
            return append_nodes(out, children, ctx)

        pre_summary = children[:summary_index]
        summary = children[summary_index]
        post_summary = children[summary_index + 1 :]
        if not pre_summary and not post_summary:
            return append_nodes(out, children, ctx, previous)

        reveal_id = out.offset
        out.expandable_items.add(reveal_id)
        payload = str(reveal_id)

        inner_previous = previous
        if pre_summary:
            with out.builder.annotation(Tag.DETAILS_CONTENT, payload):
                inner_previous = append_nodes(out, pre_summary, ctx, inner_previous)
        with out.builder.annotation(Tag.DETAILS_SUMMARY, payload):
            out.builder.append(ctx.style.details_summary_indicator_placeholder)
            append_nodes(out, [summary], ctx, inner_previous)
        # -- summary and content get paragraph styles from the formatter --
        if post_summary:
            with out.builder.annotation(Tag.DETAILS_CONTENT, payload):
                append_nodes(
                    out, post_summary, ctx, PreviousRenderedInfo(next_should_trim_blank=True)
                )
        return PreviousRenderedInfo(next_should_trim_blank=True)


# -- LIST ELEMENTS -------------------------------------------------------------------------------


class UnorderedList(MatrixElement):
    """`<ul>`; its items are prefixed with the style's bullet for the list depth."""

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        depth = ctx.indented_block_depth
        scope = UnorderedListScope(bullet=ctx.style.list_bullet_for_depth(depth))
        with out.builder.annotation(Tag.UNORDERED_LIST, str(depth)):
            append_nodes(
                out,
                self.child_nodes(),
                dc.replace(ctx, unordered_list_scope=scope, ordered_list_scope=None),
            )
        return PreviousRenderedInfo(next_should_trim_blank=True, has_implicit_newline=True)


class OrderedList(MatrixElement):
    """`<ol>`; numbering starts at its `start` attribute, or 1."""

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        depth = ctx.indented_block_depth
        start = int_or_none(self.get("start"))
        scope = OrderedListScope(next_number=1 if start is None else start)
        with out.builder.annotation(Tag.ORDERED_LIST, str(depth)):
            append_nodes(
                out,
                self.child_nodes(),
                dc.replace(ctx, ordered_list_scope=scope, unordered_list_scope=None),
            )
        return PreviousRenderedInfo(next_should_trim_blank=True, has_implicit_newline=True)


class ListItem(MatrixElement):
    """`<li>` element.

    In an ordered list the item takes the running number, or its own `value` attribute, which also
    re-seeds the numbering of the items after it. In an unordered list the bullet is omitted when
    the item holds nothing but nested lists. An item outside any list is unwrapped.
    """

    def append_to(
        self,
        out: RenderOutput,
        lookahead: Lookahead,
        previous: Optional[PreviousRenderedInfo],
        ctx: RenderContext,
    ) -> Optional[PreviousRenderedInfo]:
        inner_ctx = dc.replace(ctx, indented_block_depth=ctx.indented_block_depth + 1)

        if ctx.ordered_list_scope is not None:
            value = int_or_none(self.get("value"))
            number = ctx.ordered_list_scope.next_number if value is None else value
            ctx.ordered_list_scope.next_number = number + 1
            bullet, tag = f"{number}. ", Tag.ORDERED_LIST_ITEM
        elif ctx.unordered_list_scope is not None:
            if not self._has_non_list_content:
                return append_nodes(out, self.child_nodes(), inner_ctx)
            bullet, tag = ctx.unordered_list_scope.bullet, Tag.UNORDERED_LIST_ITEM
        else:
            return append_nodes(out, self.child_nodes(), ctx)

        with out.builder.annotation(tag, str(ctx.indented_block_depth)):
            out.builder.append(bullet)
            rendered = append_nodes(out, self.child_nodes(), inner_ctx)
        return rendered or PreviousRenderedInfo(next_should_trim_blank=True)

    @property
    def _has_non_list_content(self) -> bool:
        """True when this item holds text, directly or in an element other than a nested list."""
        for node in self.child_nodes():
            if isinstance(node, TextNode):
                if node.text().strip():
                    return True
            elif node.normal_name not in ("ul", "ol") and node.text_content().strip():
                return True
        return False


# ------------------------------------------------------------------------------------------------
# HTML PARSER
# ------------------------------------------------------------------------------------------------


# -- without `huge_tree` libxml2 stops building the tree at nesting depth 256 --
html_parser = etree.HTMLParser(remove_comments=True, remove_pis=True, huge_tree=True)
# -- elements that don't have a registered class get MatrixElement (unwrapped) --
fallback = etree.ElementDefaultClassLookup(element=MatrixElement)
# -- elements that do have a registered class are assigned that class via lookup --
element_class_lookup = etree.ElementNamespaceClassLookup(fallback)
html_parser.set_element_class_lookup(element_class_lookup)

# -- register classes --
element_class_lookup.get_namespace(None).update(
    {
        # -- headings --
        "h1": Heading,
        "h2": Heading,
        "h3": Heading,
        "h4": Heading,
        "h5": Heading,
        "h6": Heading,
        # -- styled phrasing --
        "b": Bold,
        "strong": Bold,
        "i": Italic,
        "em": Italic,
        "s": Strikethrough,
        "del": Strikethrough,
        "code": Code,
        "span": Span,
        "font": Span,  # -- deprecated but handled like `span` --
        # -- blocks --
        "p": Paragraph,
        "div": Paragraph,
        "blockquote": BlockQuote,
        "pre": Pre,
        "hr": HorizontalRule,
        "details": Details,
        # -- line break --
        "br": LineBreak,
        # -- links and images --
        "a": Anchor,
        "img": Image,
        # -- lists --
        "ul": UnorderedList,
        "ol": OrderedList,
        "li": ListItem,
    }
)
