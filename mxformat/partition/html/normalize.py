"""Whitespace normalization of `formatted_body` markup ahead of parsing.

Whitespace that only serves to lay out the HTML source is reduced here so the walker sees text
nodes whose whitespace is (mostly) significant. Contents of `<pre>`, `<textarea>`, `<script>` and
`<style>` blocks pass through untouched.
"""

from __future__ import annotations

import re

from lxml import etree

from mxformat.nlp.patterns import (
    HTML_COMMENT_RE,
    HTML_TAG_RE,
    INVALID_XML_CHARS_RE,
    PRESERVED_BLOCK_RE,
    TAG_TRAILING_WHITESPACE_RE,
    WHITESPACE_RUN_RE,
)
from mxformat.partition.html.parser import MatrixElement, html_parser

# -- a single space right after these opening tags would otherwise survive as leading text --
_TAG_SPACE_QUIRKS = (("<br> ", "<br>"), ("<br/> ", "<br/>"), ("<p> ", "<p>"))


def _clean_tag(match: re.Match[str]) -> str:
    """`<p  >` becomes `<p>` and `<br />` becomes `<br/>`."""
    return "<" + TAG_TRAILING_WHITESPACE_RE.sub(r"\1", match.group(1), count=1) + ">"


def _compress(html: str) -> str:
    html = WHITESPACE_RUN_RE.sub(" ", html)
    return HTML_TAG_RE.sub(_clean_tag, html)


def normalize_html(html: str) -> str:
    """Minified form of `html`.

    - Comments and characters that cannot appear in an XML document are removed.
    - Outside preformatted blocks each run of whitespace becomes a single space and whitespace
      before the closing `>` of a tag is dropped.
    - A single space directly after `<br>`, `<br/>` or `<p>` is removed.
    """
    html = INVALID_XML_CHARS_RE.sub("", html)
    html = HTML_COMMENT_RE.sub("", html)

    pieces: list[str] = []
    pos = 0
    for match in PRESERVED_BLOCK_RE.finditer(html):
        pieces.append(_compress(html[pos : match.start()]))
        pieces.append(match.group(1))
        pos = match.end()
    pieces.append(_compress(html[pos:]))

    normalized = "".join(pieces).strip(" ")
    for old, new in _TAG_SPACE_QUIRKS:
        normalized = normalized.replace(old, new)
    return normalized


def parse_fragment(html: str) -> MatrixElement:
    """The `<body>` element of the tree parsed from the normalized `html` fragment.

    The fragment is wrapped in an explicit document so the parser does not invent a paragraph
    around leading bare text. Malformed markup is recovered from; a parser-level failure raises
    `lxml.etree.LxmlError` (or `ValueError` for text lxml refuses outright).
    """
    root = etree.fromstring(f"<html><body>{normalize_html(html)}</body></html>", html_parser)
    body = root.find("body")
    if body is None:
        raise etree.ParserError("document has no body element")
    return body
