from mxformat.partition.html.partition import PreFormatStyle, parse_html, parse_plaintext
from mxformat.partition.utils.constants import MENTION_ROOM

__all__ = ["MENTION_ROOM", "PreFormatStyle", "parse_html", "parse_plaintext"]
