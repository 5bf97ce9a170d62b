"""Public parsing API for ezdom.

Simple functions cover one-off parsing; :class:`EzdomParser` keeps a
configuration and usage statistics across many documents.
"""

from .parser import (
    EzdomParser,
    free,
    new,
    parse,
    parse_bytes,
    parse_file,
    parse_stream,
    parse_string,
    to_xml,
)

__all__ = [
    "EzdomParser",
    "free",
    "new",
    "parse",
    "parse_bytes",
    "parse_file",
    "parse_stream",
    "parse_string",
    "to_xml",
]
