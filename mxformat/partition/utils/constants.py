import os

MENTION_ROOM = "@room"

MATRIX_TO = "https://matrix.to"
MATRIX_TO_LINK_PREFIX = f"{MATRIX_TO}/#/"

# -- content-addressed media store references, the only accepted inline image sources --
MATRIX_URI_SCHEMES = ("mxc://", "localmxc://")

INLINE_IMAGE_PREFIX = "mx:IMG:"

DEFAULT_UNORDERED_BULLET_STRING = "\u2022 "

# Figure spaces reserve room for the disclosure indicator that is drawn later, based on state.
DEFAULT_DETAILS_SUMMARY_INDICATOR_PLACEHOLDER = "\u2007\u2007"

DEFAULT_INLINE_IMAGE_FALLBACK_TEXT = "IMG"

# Single character that gives a horizontal rule a non-empty bounding box.
HORIZONTAL_RULE_TEXT = "\u00a0"

# Insert a visible "[label]" marker before every newline the parser emits.
MXFORMAT_NEWLINE_DEBUG = os.getenv("MXFORMAT_NEWLINE_DEBUG", "").lower() in ("1", "true", "yes")
