"""Provides functions for classifying link targets found in message bodies."""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, unquote, urlsplit

from mxformat.documents.elements import MatrixToLink, MessageLink, RoomLink, UserMention
from mxformat.nlp.patterns import MESSAGE_ID_RE, ROOM_ALIAS_RE, ROOM_ID_RE, USER_ID_RE
from mxformat.partition.utils.constants import MATRIX_TO_LINK_PREFIX, MATRIX_URI_SCHEMES


def is_room_id_or_alias(text: str) -> bool:
    """True when `text` has the shape of a room id (`!...`) or a room alias (`#...:...`)."""
    return bool(ROOM_ID_RE.fullmatch(text) or ROOM_ALIAS_RE.fullmatch(text))


def is_valid_matrix_uri(url: str) -> bool:
    """True when `url` references the media repository, the only accepted inline-image source."""
    return url.startswith(MATRIX_URI_SCHEMES)


def parse_matrix_to_url(url: str) -> Optional[MatrixToLink]:
    """Classify a `https://matrix.to/#/...` deep link, None for any other URL.

    The part after the prefix is read as a server-relative path plus query. A `#` in it belongs to
    a room alias rather than starting a fragment, so it is escaped before the URL is split. Path
    segments are percent-decoded.

    - `@user:server` gives a `UserMention`.
    - `!room:server` or `#alias:server` gives a `RoomLink`.
    - a room id or alias followed by `$event` gives a `MessageLink`.

    Room and message links carry the `via` query parameters in the order they appear. A deep link
    of any other shape, or one that cannot be split, is treated as an ordinary web link (None).
    """
    if not url.startswith(MATRIX_TO_LINK_PREFIX):
        return None

    remainder = url[len(MATRIX_TO_LINK_PREFIX) :].replace("#", "%23")
    try:
        parts = urlsplit("/" + remainder)
        query = parse_qsl(parts.query)
    except ValueError:
        return None

    # -- the path always starts with "/", so the first segment is blank --
    segments = [unquote(s) for s in parts.path.split("/")[1:]]
    via = [value for key, value in query if key == "via"]

    if len(segments) == 1:
        segment = segments[0]
        if USER_ID_RE.fullmatch(segment):
            return UserMention(user_id=segment, raw_url=url)
        if is_room_id_or_alias(segment):
            return RoomLink(room_id=segment, via=via, raw_url=url)
    elif len(segments) == 2:
        room_id, message_id = segments
        if is_room_id_or_alias(room_id) and MESSAGE_ID_RE.fullmatch(message_id):
            return MessageLink(room_id=room_id, message_id=message_id, via=via, raw_url=url)

    return None
