"""Value types carried by annotations and produced alongside the annotated text."""

from __future__ import annotations

import dataclasses as dc
import json
from types import MappingProxyType
from typing import Any, ClassVar, List, Mapping, Optional, Union

from dataclasses_json import DataClassJsonMixin
from typing_extensions import TypeAlias

from mxformat.documents.annotated_text import AnnotatedText
from mxformat.errors import PayloadDecodeError


def _load_json_object(payload: str, what: str) -> dict[str, Any]:
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise PayloadDecodeError(f"{what} payload is not valid JSON: {payload!r}") from e
    if not isinstance(data, dict):
        raise PayloadDecodeError(f"{what} payload is not a JSON object: {payload!r}")
    return data


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ------------------------------------------------------------------------------------------------
# SPAN ATTRIBUTES
# ------------------------------------------------------------------------------------------------


@dc.dataclass(frozen=True)
class SpanAttributes(DataClassJsonMixin):
    """Supported attributes of a Matrix `<span>` (or `<font>`) element.

    Colors are 32-bit ARGB with the alpha channel forced opaque. `reveal_id` is the text offset at
    which the span starts; it identifies a spoiler within its own parse result only.
    """

    fg_color: Optional[int]
    bg_color: Optional[int]
    is_spoiler: bool
    reveal_id: int

    def to_payload(self) -> str:
        return self.to_json()

    @classmethod
    def from_payload(cls, payload: str) -> SpanAttributes:
        """Decode a span annotation payload, raising `PayloadDecodeError` when malformed."""
        data = _load_json_object(payload, "span")
        fg_color, bg_color = data.get("fg_color"), data.get("bg_color")
        is_spoiler, reveal_id = data.get("is_spoiler"), data.get("reveal_id")
        if (
            not (fg_color is None or _is_int(fg_color))
            or not (bg_color is None or _is_int(bg_color))
            or not isinstance(is_spoiler, bool)
            or not _is_int(reveal_id)
        ):
            raise PayloadDecodeError(f"span payload has missing or mistyped fields: {payload!r}")
        return cls.from_dict(data)


# ------------------------------------------------------------------------------------------------
# MATRIX.TO LINKS
# ------------------------------------------------------------------------------------------------


@dc.dataclass(frozen=True)
class UserMention(DataClassJsonMixin):
    """A `matrix.to` link to a user, rendered as a mention."""

    link_type: ClassVar[str] = "user_mention"

    user_id: str
    raw_url: str

    def to_payload(self) -> str:
        return json.dumps({"type": self.link_type, **self.to_dict()})


@dc.dataclass(frozen=True)
class RoomLink(DataClassJsonMixin):
    """A `matrix.to` link to a room by id or alias; `via` lists routing servers in order."""

    link_type: ClassVar[str] = "room_link"

    room_id: str
    via: List[str]
    raw_url: str

    def to_payload(self) -> str:
        return json.dumps({"type": self.link_type, **self.to_dict()})


@dc.dataclass(frozen=True)
class MessageLink(DataClassJsonMixin):
    """A `matrix.to` link to one message (event) in a room."""

    link_type: ClassVar[str] = "message_link"

    room_id: str
    message_id: str
    via: List[str]
    raw_url: str

    def to_payload(self) -> str:
        return json.dumps({"type": self.link_type, **self.to_dict()})


MatrixToLink: TypeAlias = Union[UserMention, RoomLink, MessageLink]
"""Classified `matrix.to` deep link."""

_LINK_TYPES: dict[str, type[DataClassJsonMixin]] = {
    UserMention.link_type: UserMention,
    RoomLink.link_type: RoomLink,
    MessageLink.link_type: MessageLink,
}

# -- every field must be present and a string (or list of strings for `via`) --
_LINK_FIELDS: dict[str, tuple[str, ...]] = {
    UserMention.link_type: ("user_id", "raw_url"),
    RoomLink.link_type: ("room_id", "raw_url"),
    MessageLink.link_type: ("room_id", "message_id", "raw_url"),
}


def matrix_to_link_from_payload(payload: str) -> MatrixToLink:
    """Decode a link annotation payload, raising `PayloadDecodeError` when malformed."""
    data = _load_json_object(payload, "link")
    link_type = data.pop("type", None)
    if link_type not in _LINK_TYPES:
        raise PayloadDecodeError(f"unknown link type {link_type!r} in payload: {payload!r}")
    if not all(isinstance(data.get(name), str) for name in _LINK_FIELDS[link_type]):
        raise PayloadDecodeError(f"link payload has missing or mistyped fields: {payload!r}")
    if link_type != UserMention.link_type:
        via = data.get("via")
        if via is None:
            data["via"] = []
        elif not isinstance(via, list) or not all(isinstance(v, str) for v in via):
            raise PayloadDecodeError(f"link payload has a malformed via list: {payload!r}")
    return _LINK_TYPES[link_type].from_dict(data)  # pyright: ignore[reportReturnType]


# ------------------------------------------------------------------------------------------------
# INLINE IMAGES
# ------------------------------------------------------------------------------------------------


@dc.dataclass(frozen=True)
class Placeholder:
    """Size reserved in the text layout for an inline image, in sp."""

    width: float
    height: float


@dc.dataclass(frozen=True)
class InlineImageInfo(DataClassJsonMixin):
    """Metadata of an inline image referenced by an `<img>` element."""

    # -- the mxc URI of the image --
    uri: str
    # -- whether the `data-mx-emoticon` attribute is present (its value does not matter) --
    is_emote: bool = False
    width: Optional[int] = None
    height: Optional[int] = None
    # -- shortcode for custom emotes --
    title: Optional[str] = None
    alt: Optional[str] = None

    def placeholder(
        self,
        default_height: float,
        min_width: float = 16,
        max_width: float = 512,
        min_height: float = 16,
        max_height: float = 512,
    ) -> Placeholder:
        """Placeholder size for this image.

        Emotes, and images that declare neither dimension, get a square of `default_height` so
        they flow like a glyph. Otherwise a missing dimension is taken from the other one and both
        are clamped into their bounds.
        """
        if self.is_emote or (self.width is None and self.height is None):
            return Placeholder(default_height, default_height)

        def clamp(value: float, lower: float, upper: float) -> float:
            return max(lower, min(upper, value))

        width = self.width if self.width is not None else self.height
        height = self.height if self.height is not None else self.width
        assert width is not None and height is not None
        return Placeholder(
            clamp(width, min_width, max_width), clamp(height, min_height, max_height)
        )


# ------------------------------------------------------------------------------------------------
# PARSE RESULT
# ------------------------------------------------------------------------------------------------


@dc.dataclass(frozen=True)
class ParseResult:
    """Output of parsing one message body; immutable and safe to share.

    `inline_images` maps inline-image ids (as found in `INLINE_IMAGE` annotation payloads) to image
    metadata. `expandable_items` holds the reveal ids of every spoiler and `<details>` block.
    """

    text: AnnotatedText
    inline_images: Mapping[str, InlineImageInfo] = dc.field(
        default_factory=lambda: MappingProxyType({})
    )
    expandable_items: frozenset[int] = frozenset()

    def __post_init__(self):
        if not isinstance(self.inline_images, MappingProxyType):
            object.__setattr__(self, "inline_images", MappingProxyType(dict(self.inline_images)))
        if not isinstance(self.expandable_items, frozenset):
            object.__setattr__(self, "expandable_items", frozenset(self.expandable_items))

    @classmethod
    def empty(cls) -> ParseResult:
        return cls(AnnotatedText(""))

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text.to_dict(),
            "inline_images": {k: v.to_dict() for k, v in self.inline_images.items()},
            "expandable_items": sorted(self.expandable_items),
        }

    @classmethod
    def from_dict(cls, input_dict: dict[str, Any]) -> ParseResult:
        return cls(
            text=AnnotatedText.from_dict(input_dict["text"]),
            inline_images={
                k: InlineImageInfo.from_dict(v)
                for k, v in input_dict.get("inline_images", {}).items()
            },
            expandable_items=frozenset(input_dict.get("expandable_items", ())),
        )

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> ParseResult:
        return cls.from_dict(json.loads(text))
