#! /usr/bin/env python3

from typing import Tuple

import click

from mxformat.documents.annotated_text import Range
from mxformat.documents.styles import directive_type_name
from mxformat.logger import get_logger
from mxformat.partition.html.partition import parse_html, parse_plaintext
from mxformat.staging.formatter import DefaultMatrixBodyStyledFormatter, FixedWidthTextMeasurer
from mxformat.staging.render_state import InteractionState, MatrixBodyRenderState


def _describe_range(r: Range) -> str:
    if r.tag is not None:
        kind, value = r.tag.value, r.item.payload  # pyright: ignore[reportAttributeAccessIssue]
    else:
        kind, value = directive_type_name(r.item) or type(r.item).__name__, repr(r.item)
    return f"[{r.start}, {r.end}) {kind} {value}".rstrip()


@click.group()
def cli():
    """Parse and render Matrix `formatted_body` HTML."""
    get_logger()


@cli.command()
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--plaintext",
    is_flag=True,
    default=False,
    help="Treat the input as a plain `body` rather than HTML.",
)
@click.option(
    "--no-room-mention",
    is_flag=True,
    default=False,
    help="Leave `@room` as literal text.",
)
@click.option(
    "--newline-debug",
    is_flag=True,
    default=False,
    help="Prefix every newline the parser emits with a visible [label] marker.",
)
@click.option("--indent", type=int, default=2, show_default=True, help="JSON indentation.")
def parse(source, plaintext: bool, no_room_mention: bool, newline_debug: bool, indent: int):
    """Print the parse result of SOURCE (a file, or - for stdin) as JSON."""
    body = source.read()
    if plaintext:
        result = parse_plaintext(body, allow_room_mention=not no_room_mention)
    else:
        result = parse_html(
            body, allow_room_mention=not no_room_mention, newline_debug=newline_debug
        )
    click.echo(result.to_json(indent=indent))


@cli.command()
@click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--expand",
    type=int,
    multiple=True,
    help="Reveal id of a spoiler or details block to expand; may be repeated.",
)
@click.option(
    "--expand-all",
    is_flag=True,
    default=False,
    help="Expand every spoiler and details block.",
)
@click.option(
    "--ranges",
    "show_ranges",
    is_flag=True,
    default=False,
    help="List the annotations and styles of the displayed text after it.",
)
def render(source, expand: Tuple[int, ...], expand_all: bool, show_ranges: bool):
    """Print the text of SOURCE as displayed, after styling and collapsing."""
    result = parse_html(source.read())
    state = InteractionState.for_parse_result(result)
    if expand_all:
        state.expand_all()
    elif expand:
        state.expand(*expand)

    formatter = DefaultMatrixBodyStyledFormatter(FixedWidthTextMeasurer())
    text = MatrixBodyRenderState(formatter, result, state).text
    click.echo(text.text)
    if show_ranges:
        click.echo("---")
        for r in text.ranges:
            click.echo(_describe_range(r))


if __name__ == "__main__":
    cli()
