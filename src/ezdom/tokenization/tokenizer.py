"""XML tokenizer producing markup and text tokens from decoded source text.

The tokenizer walks an immutable string and yields :class:`Token` objects
whose values are slices of it. It knows nothing about entities or the tree;
reference decoding and nesting checks belong to the tree builder. Any
construct that cannot be delimited raises :class:`XMLSyntaxError`.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, List, Optional, Tuple

from ezdom.shared.errors import XMLSyntaxError

# Whitespace recognised between markup components
XML_WHITESPACE = " \t\r\n"

COMMENT_OPEN = "<!--"
CDATA_OPEN = "<![CDATA["
DOCTYPE_OPEN = "<!DOCTYPE"


class TokenType(Enum):
    """XML token types produced by the tokenizer."""

    START_TAG = auto()               # <name attr="value">
    EMPTY_TAG = auto()               # <name attr="value"/>
    END_TAG = auto()                 # </name>
    TEXT = auto()                    # character data followed by markup
    CDATA = auto()                   # <![CDATA[ ... ]]>
    COMMENT = auto()                 # <!-- ... -->
    PROCESSING_INSTRUCTION = auto()  # <?target content?>
    DOCTYPE = auto()                 # <!DOCTYPE ... [subset]>


@dataclass
class Token:
    """A single token with its position in the source text.

    Attributes:
        type: Token type
        value: Tag name, raw text, CDATA or comment body, PI body, or the
            internal subset of a DOCTYPE (empty when there is none)
        position: Offset of the first character of the construct
        attributes: Attribute names and raw (undecoded) values, in source order
        value_position: Offset at which ``value`` starts in the source text
    """

    type: TokenType
    value: str
    position: int
    attributes: List[Tuple[str, str]] = field(default_factory=list)
    value_position: Optional[int] = None


def is_name_start(char: str) -> bool:
    """Return True if ``char`` may begin a tag name."""
    return char.isalpha() or char in "_:" or ord(char) >= 0x80


class XMLTokenizer:
    """Splits source text into tokens.

    Text before the first ``<`` and after the last markup construct is not
    reported; nothing that follows the final construct can belong to an
    element.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.length = len(text)

    def tokenize(self) -> Iterator[Token]:
        """Yield tokens in document order.

        Raises:
            XMLSyntaxError: On the first construct that cannot be delimited.
        """
        text = self.text
        pos = text.find("<")
        if pos == -1:
            raise XMLSyntaxError("root tag missing", 0)

        while pos < self.length:
            token, pos = self._markup(pos)
            yield token

            start = pos
            pos = text.find("<", pos)
            if pos == -1:
                break
            if pos > start:
                yield Token(TokenType.TEXT, text[start:pos], start)

    def _markup(self, pos: int) -> Tuple[Token, int]:
        """Read the construct starting with ``<`` at ``pos``."""
        text = self.text
        nxt = text[pos + 1:pos + 2]

        if nxt and is_name_start(nxt):
            return self._start_tag(pos)
        if nxt == "/":
            return self._end_tag(pos)
        if text.startswith(COMMENT_OPEN, pos):
            return self._comment(pos)
        if text.startswith(CDATA_OPEN, pos):
            return self._cdata(pos)
        if text.startswith(DOCTYPE_OPEN, pos):
            return self._doctype(pos)
        if nxt == "?":
            return self._processing_instruction(pos)
        raise XMLSyntaxError("unexpected <", pos)

    def _skip_whitespace(self, pos: int) -> int:
        text = self.text
        while pos < self.length and text[pos] in XML_WHITESPACE:
            pos += 1
        return pos

    def _scan_until(self, pos: int, stops: str) -> int:
        text = self.text
        while pos < self.length and text[pos] not in stops:
            pos += 1
        return pos

    def _start_tag(self, pos: int) -> Tuple[Token, int]:
        text = self.text
        name_end = self._scan_until(pos + 1, XML_WHITESPACE + "/>")
        name = text[pos + 1:name_end]
        attributes: List[Tuple[str, str]] = []

        cur = self._skip_whitespace(name_end)
        while cur < self.length and text[cur] not in "/>":
            attr_end = self._scan_until(cur, XML_WHITESPACE + "=/>")
            attr_name = text[cur:attr_end]
            value = ""
            cur = self._skip_whitespace(attr_end)
            if cur < self.length and text[cur] == "=":
                cur = self._skip_whitespace(cur + 1)
                quote = text[cur:cur + 1]
                if quote in ('"', "'"):
                    close = text.find(quote, cur + 1)
                    if close == -1:
                        raise XMLSyntaxError(f"missing {quote}", pos)
                    value = text[cur + 1:close]
                    cur = close + 1
            if attr_name:
                attributes.append((attr_name, value))
            cur = self._skip_whitespace(cur)

        if text.startswith("/>", cur):
            return Token(TokenType.EMPTY_TAG, name, pos, attributes), cur + 2
        if text.startswith(">", cur):
            return Token(TokenType.START_TAG, name, pos, attributes), cur + 1
        raise XMLSyntaxError("missing >", pos)

    def _end_tag(self, pos: int) -> Tuple[Token, int]:
        text = self.text
        name_end = self._scan_until(pos + 2, XML_WHITESPACE + ">")
        name = text[pos + 2:name_end]
        cur = self._skip_whitespace(name_end)
        if not text.startswith(">", cur):
            raise XMLSyntaxError("missing >", pos)
        return Token(TokenType.END_TAG, name, pos), cur + 1

    def _comment(self, pos: int) -> Tuple[Token, int]:
        body_start = pos + len(COMMENT_OPEN)
        end = self.text.find("--", body_start)
        if end == -1 or not self.text.startswith(">", end + 2):
            raise XMLSyntaxError("unclosed <!--", pos)
        token = Token(TokenType.COMMENT, self.text[body_start:end], pos)
        return token, end + 3

    def _cdata(self, pos: int) -> Tuple[Token, int]:
        body_start = pos + len(CDATA_OPEN)
        end = self.text.find("]]>", body_start)
        if end == -1:
            raise XMLSyntaxError("unclosed <![CDATA[", pos)
        token = Token(
            TokenType.CDATA, self.text[body_start:end], pos, value_position=body_start
        )
        return token, end + 3

    def _doctype(self, pos: int) -> Tuple[Token, int]:
        """Read a DOCTYPE declaration.

        The internal subset runs from the first ``[`` to the first ``]`` that
        is followed, after optional whitespace, by ``>``.
        """
        text = self.text
        cur = pos + len(DOCTYPE_OPEN)
        while cur < self.length and text[cur] not in "[>":
            cur += 1
        if cur >= self.length:
            raise XMLSyntaxError("unclosed <!DOCTYPE", pos)
        if text[cur] == ">":
            return Token(TokenType.DOCTYPE, "", pos), cur + 1

        subset_start = cur + 1
        close = text.find("]", subset_start)
        while close != -1:
            after = self._skip_whitespace(close + 1)
            if text.startswith(">", after):
                token = Token(
                    TokenType.DOCTYPE,
                    text[subset_start:close],
                    pos,
                    value_position=subset_start,
                )
                return token, after + 1
            close = text.find("]", close + 1)
        raise XMLSyntaxError("unclosed <!DOCTYPE", pos)

    def _processing_instruction(self, pos: int) -> Tuple[Token, int]:
        end = self.text.find("?>", pos + 2)
        if end == -1:
            raise XMLSyntaxError("unclosed <?", pos)
        token = Token(
            TokenType.PROCESSING_INSTRUCTION,
            self.text[pos + 2:end],
            pos,
            value_position=pos + 2,
        )
        return token, end + 2


def tokenize(text: str) -> Iterator[Token]:
    """Tokenize ``text``; see :meth:`XMLTokenizer.tokenize`."""
    return XMLTokenizer(text).tokenize()
