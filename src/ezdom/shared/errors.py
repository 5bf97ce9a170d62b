"""Exception hierarchy for ezdom.

Malformed XML is never reported by raising; these exceptions signal misuse
of the tree API, exhausted resources and internal tokenizer conditions.
"""

from typing import Optional


class EzdomError(Exception):
    """Base exception for all ezdom errors."""


class XMLSyntaxError(EzdomError):
    """Fatal lexical or structural error at a position in the source text.

    Raised by the tokenizer and converted by the tree builder into the
    document's error string.
    """

    def __init__(self, message: str, position: int) -> None:
        super().__init__(message)
        self.message = message
        self.position = position


class TreeError(EzdomError):
    """Invalid operation on a document tree."""


class AllocationError(EzdomError, MemoryError):
    """Input too large or memory exhausted while building or serializing."""

    def __init__(self, message: str, requested: Optional[int] = None) -> None:
        super().__init__(message)
        self.requested = requested
