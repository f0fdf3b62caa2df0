import re
from typing import Final

# NOTE - only the scheme-qualified form is matched, so bare domains like "example.org" are left
# as text. The trailing character class excludes sentence punctuation that commonly follows a URL.
WEB_URL_PATTERN = (
    r"\b((?:https?|ftp|file)://[-a-zA-Z0-9+&@#/%?=~_|!:,.;]*[-a-zA-Z0-9+&@#/%=~_|])"
)
DEFAULT_WEB_URL_RE: Final[re.Pattern[str]] = re.compile(WEB_URL_PATTERN, re.IGNORECASE)

# NOTE - these are a bit more permissive than the Matrix identifier grammar on purpose; a
# slightly malformed id is still better rendered as a mention than as a raw URL.
USER_ID_RE: Final[re.Pattern[str]] = re.compile(r"@.*:.+")
ROOM_ID_RE: Final[re.Pattern[str]] = re.compile(r"!.+")
ROOM_ALIAS_RE: Final[re.Pattern[str]] = re.compile(r"#.*:.+")
MESSAGE_ID_RE: Final[re.Pattern[str]] = re.compile(r"\$.+")

HEX_COLOR_RE: Final[re.Pattern[str]] = re.compile(r"#?([0-9a-fA-F]{6})")

# -- HTML normalization --
HTML_COMMENT_RE: Final[re.Pattern[str]] = re.compile(r"<!--.*?-->", re.DOTALL)
# -- blocks whose contents keep their whitespace verbatim --
PRESERVED_BLOCK_RE: Final[re.Pattern[str]] = re.compile(
    r"(<(pre|textarea|script|style)\b[^>]*>.*?</\2\s*>)", re.IGNORECASE | re.DOTALL
)
# -- ASCII whitespace only; a literal NBSP in the markup is content --
WHITESPACE_RUN_RE: Final[re.Pattern[str]] = re.compile(r"\s+", re.ASCII)
HTML_TAG_RE: Final[re.Pattern[str]] = re.compile(r"<(/?[a-zA-Z][^<>]*)>")
TAG_TRAILING_WHITESPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s*(/?)\s*$", re.ASCII)
# -- C0 controls other than tab, newline and carriage return are not XML-compatible --
INVALID_XML_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

# -- text-node whitespace is HTML whitespace plus NBSP; zero-width space and soft hyphen vanish --
TEXT_WHITESPACE_RUN_RE: Final[re.Pattern[str]] = re.compile(r"[ \t\n\f\r\xa0]+")
INVISIBLE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[\u200b\u00ad]")
