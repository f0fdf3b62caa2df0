"""Presentation directives attached to annotated text.

These are toolkit-neutral descriptions of how a run of text should look or behave. A renderer maps
them onto whatever its text-layout engine provides. Bold, italic and strike-through runs are
emitted while parsing; everything else is produced by the style formatter from the raw structural
annotations.
"""

from __future__ import annotations

import dataclasses as dc
import enum
from typing import Any, Callable, Literal, Optional, Union

from dataclasses_json import DataClassJsonMixin
from typing_extensions import TypeAlias


class Color:
    """32-bit ARGB color constants."""

    BLACK = 0xFF000000
    BLUE = 0xFF0000FF
    GRAY = 0xFF888888
    RED = 0xFFFF0000
    WHITE = 0xFFFFFFFF


class FontWeight(enum.Enum):
    NORMAL = 400
    BOLD = 700


class FontStyle(enum.Enum):
    NORMAL = "normal"
    ITALIC = "italic"


class FontFamily(enum.Enum):
    DEFAULT = "default"
    MONOSPACE = "monospace"


class TextDecoration(enum.Enum):
    NONE = "none"
    UNDERLINE = "underline"
    LINE_THROUGH = "line_through"


@dc.dataclass(frozen=True)
class TextUnit(DataClassJsonMixin):
    """A typographic length, either scaled pixels ("sp") or relative to font size ("em")."""

    value: float
    unit: Literal["sp", "em"] = "sp"

    @classmethod
    def sp(cls, value: float) -> TextUnit:
        return cls(float(value), "sp")

    @classmethod
    def em(cls, value: float) -> TextUnit:
        return cls(float(value), "em")

    @property
    def is_sp(self) -> bool:
        return self.unit == "sp"

    def __mul__(self, factor: float) -> TextUnit:
        return TextUnit(self.value * factor, self.unit)

    __rmul__ = __mul__

    def __add__(self, other: TextUnit) -> TextUnit:
        if other.unit != self.unit:
            raise ValueError(f"cannot add {other.unit} to {self.unit}")
        return TextUnit(self.value + other.value, self.unit)


@dc.dataclass(frozen=True)
class TextStyle:
    """Base text metrics the formatter scales headings against."""

    font_size: TextUnit = TextUnit.sp(14)
    line_height: TextUnit = TextUnit.sp(20)


@dc.dataclass(frozen=True)
class TextIndent(DataClassJsonMixin):
    first_line: TextUnit = TextUnit.sp(0)
    rest_line: TextUnit = TextUnit.sp(0)


@dc.dataclass(frozen=True)
class RunStyle(DataClassJsonMixin):
    """Character-level styling of a run of text. Unset (None) properties are inherited."""

    color: Optional[int] = None
    background: Optional[int] = None
    font_size: Optional[TextUnit] = None
    font_weight: Optional[FontWeight] = None
    font_style: Optional[FontStyle] = None
    font_family: Optional[FontFamily] = None
    text_decoration: Optional[TextDecoration] = None


@dc.dataclass(frozen=True)
class ParagraphStyle(DataClassJsonMixin):
    """Paragraph-level styling. A paragraph style always implies a line break at its bounds."""

    line_height: Optional[TextUnit] = None
    text_indent: Optional[TextIndent] = None


@dc.dataclass(frozen=True)
class TextLinkStyles(DataClassJsonMixin):
    style: Optional[RunStyle] = None


@dc.dataclass(frozen=True)
class UrlLink(DataClassJsonMixin):
    """A clickable link that opens `url`."""

    url: str
    styles: Optional[TextLinkStyles] = None


@dc.dataclass(frozen=True)
class ClickableLink:
    """A clickable region that invokes `on_activate` rather than navigating anywhere.

    Not serializable; it only exists on styled text, which is derived on the client.
    """

    tag: str
    on_activate: Callable[[], Any] = dc.field(compare=False, repr=False)
    styles: Optional[TextLinkStyles] = None

    def activate(self) -> None:
        self.on_activate()


Directive: TypeAlias = Union[RunStyle, ParagraphStyle, UrlLink, ClickableLink]
"""Any presentation directive that can be attached to a text range."""

# -- wire names of the serializable directive types --
DIRECTIVE_TYPES: dict[str, type[DataClassJsonMixin]] = {
    "run_style": RunStyle,
    "paragraph_style": ParagraphStyle,
    "url_link": UrlLink,
}


def directive_type_name(directive: Any) -> Optional[str]:
    """Wire name for `directive`, None when the directive cannot be serialized."""
    for name, cls in DIRECTIVE_TYPES.items():
        if type(directive) is cls:
            return name
    return None
