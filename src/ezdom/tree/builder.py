"""Tree building from decoded source text.

The builder consumes tokens, decodes character data and attribute values,
applies the internal DTD subset and grows the document through the mutation
engine. Structural problems stop the build: the partial tree is kept and the
document's error string names the line and the problem. Declaration problems
are recorded and the build goes on.
"""

import time
from typing import Dict, List, Optional, Sequence

from ezdom.character.entities import DecodeMode, decode
from ezdom.shared.config import ParserConfig
from ezdom.shared.errors import AllocationError, XMLSyntaxError
from ezdom.shared.logging import get_logger
from ezdom.shared.result import DiagnosticSeverity
from ezdom.tokenization.dtd import DTDProcessor
from ezdom.tokenization.tokenizer import XML_WHITESPACE, Token, TokenType, XMLTokenizer
from ezdom.tree import mutation
from ezdom.tree.document import ROOT_INDEX, Document
from ezdom.tree.nodes import (
    Attribute,
    AttributeDefault,
    AttributeKind,
    Ownership,
    PIPosition,
)

COMPONENT = "xml_tree_builder"


def line_of(text: str, position: int) -> int:
    """Return the 1-based line number of ``position`` in ``text``."""
    return text.count("\n", 0, position) + 1


class _TextBuffer:
    """Character content of an open element, joined when the element closes."""

    __slots__ = ("parts", "length", "owned")

    def __init__(self) -> None:
        self.parts: List[str] = []
        self.length = 0
        self.owned = False


class XMLTreeBuilder:
    """Builds a :class:`Document` from source text.

    A builder holds no per-document state between calls and can be reused.
    """

    def __init__(self, config: Optional[ParserConfig] = None) -> None:
        """Initialize tree builder.

        Args:
            config: Parser configuration; the default configuration when None
        """
        self.config = config or ParserConfig()
        self.correlation_id = self.config.correlation_id
        self.logger = get_logger(__name__, self.correlation_id, COMPONENT)
        self._max_expansions = self.config.decoder.max_entity_expansions

    def build(self, text: str, document: Optional[Document] = None) -> Document:
        """Parse ``text`` into a document.

        Args:
            text: Decoded source text
            document: Empty document to fill; a new one is created when None

        Returns:
            The document. Check ``document.error``: a non-empty string means
            the tree is incomplete or a declaration was rejected.

        Raises:
            AllocationError: If memory runs out while building.
        """
        start = time.perf_counter()
        if document is None:
            document = Document(config=self.config)
        document.text = text
        buffers: Dict[int, _TextBuffer] = {}
        self.logger.debug("Starting tree building", extra={"characters": len(text)})

        try:
            self._build(document, text, buffers)
        except XMLSyntaxError as e:
            self._fatal(document, text, e.message, e.position)
        except MemoryError as e:
            raise AllocationError("out of memory while parsing", len(text)) from e
        finally:
            # elements left open by an error keep the text read so far
            for index in list(buffers):
                self._flush(document, buffers, index)
            statistics = document.statistics
            statistics.characters_processed = len(text)
            statistics.processing_time_ms = (time.perf_counter() - start) * 1000

        self.logger.debug(
            "Tree building completed",
            extra={
                "elements": document.statistics.elements,
                "error": document.error or None,
                "processing_time_ms": document.statistics.processing_time_ms,
            },
        )
        return document

    def _build(
        self, document: Document, text: str, buffers: Dict[int, _TextBuffer]
    ) -> None:
        nodes = document._nodes
        current: Optional[int] = ROOT_INDEX

        for token in XMLTokenizer(text).tokenize():
            kind = token.type
            if kind is TokenType.TEXT:
                self._char_content(document, buffers, current, token.value, DecodeMode.GENERAL)
            elif kind is TokenType.START_TAG or kind is TokenType.EMPTY_TAG:
                if current is None:
                    raise XMLSyntaxError("markup outside of root element", token.position)
                opened = self._open_tag(document, buffers, current, token)
                if kind is TokenType.START_TAG:
                    current = opened
                elif opened == ROOT_INDEX:
                    current = None
            elif kind is TokenType.END_TAG:
                if current is None or nodes[current].name != token.value:
                    raise XMLSyntaxError(
                        f"unexpected closing tag </{token.value}>", token.position
                    )
                self._flush(document, buffers, current)
                current = nodes[current].parent
            elif kind is TokenType.CDATA:
                self._char_content(document, buffers, current, token.value, DecodeMode.CDATA)
            elif kind is TokenType.PROCESSING_INSTRUCTION:
                self._instruction(document, token.value)
            elif kind is TokenType.DOCTYPE:
                if token.value:
                    self._doctype(document, text, token)
            # comments contribute nothing

        if nodes[ROOT_INDEX].name is None:
            raise XMLSyntaxError("root tag missing", len(text))
        if current is not None:
            raise XMLSyntaxError(f"unclosed tag <{nodes[current].name}>", len(text))

    def _open_tag(
        self,
        document: Document,
        buffers: Dict[int, _TextBuffer],
        current: int,
        token: Token,
    ) -> int:
        record = document._nodes[current]
        if record.name is None:
            # the first tag names the document root
            record.name = token.value
            index = current
        else:
            buffer = buffers.get(current)
            offset = buffer.length if buffer is not None else len(record.text)
            index = mutation.add_child(document, current, token.value, offset)
            record = document._nodes[index]
        document.statistics.elements += 1

        if token.attributes:
            declared = document.default_attributes.get(token.value, ())
            for name, raw in token.attributes:
                value = decode(raw, document.entities, self._attribute_mode(declared, name),
                               self._max_expansions)
                ownership = Ownership.BORROWED if value is raw else Ownership.OWNED
                record.attributes.append(Attribute(name, value, ownership))
            document.statistics.attributes += len(token.attributes)
        return index

    def _attribute_mode(
        self, declared: Sequence[AttributeDefault], name: str
    ) -> DecodeMode:
        for attribute in declared:
            if attribute.name == name:
                if attribute.kind is AttributeKind.CDATA:
                    return DecodeMode.ATTRIBUTE
                return DecodeMode.ATTRIBUTE_NORMALIZED
        if self.config.decoder.normalize_undeclared_attributes:
            return DecodeMode.ATTRIBUTE_NORMALIZED
        return DecodeMode.ATTRIBUTE

    def _char_content(
        self,
        document: Document,
        buffers: Dict[int, _TextBuffer],
        current: Optional[int],
        raw: str,
        mode: DecodeMode,
    ) -> None:
        if current is None or document._nodes[current].name is None:
            return
        value = decode(raw, document.entities, mode, self._max_expansions)
        if not value:
            return
        buffer = buffers.get(current)
        if buffer is None:
            buffer = buffers[current] = _TextBuffer()
        buffer.parts.append(value)
        buffer.length += len(value)
        if value is not raw:
            buffer.owned = True

    def _flush(
        self, document: Document, buffers: Dict[int, _TextBuffer], index: int
    ) -> None:
        buffer = buffers.pop(index, None)
        if buffer is None:
            return
        record = document._nodes[index]
        if len(buffer.parts) == 1:
            # a single undecoded slice is still the source text
            record.text = buffer.parts[0]
            owned = buffer.owned
        else:
            record.text = "".join(buffer.parts)
            owned = True
        record.text_ownership = Ownership.OWNED if owned else Ownership.BORROWED

    def _instruction(self, document: Document, body: str) -> None:
        end = 0
        while end < len(body) and body[end] not in XML_WHITESPACE:
            end += 1
        target = body[:end]
        if not target:
            return
        content = body[end:].lstrip(XML_WHITESPACE)

        if target == "xml":
            found = content.find("standalone")
            if found != -1:
                value = content[found + len("standalone"):].lstrip(XML_WHITESPACE + "='\"")
                if value.startswith("yes"):
                    document.standalone = True
            return

        if document._nodes[ROOT_INDEX].name is None:
            position = PIPosition.BEFORE_ROOT
        else:
            position = PIPosition.AFTER_ROOT
        document.add_processing_instruction(target, content, position)
        document.statistics.processing_instructions += 1

    def _doctype(self, document: Document, text: str, token: Token) -> None:
        def on_error(message: str, position: int) -> None:
            document.record_error(message, line_of(text, position), "dtd")

        def on_instruction(body: str, position: int) -> None:
            self._instruction(document, body)

        processor = DTDProcessor(
            document,
            on_error=on_error,
            on_instruction=on_instruction,
            max_expansions=self._max_expansions,
        )
        processor.process(token.value, token.value_position or token.position)

    def _fatal(self, document: Document, text: str, message: str, position: int) -> None:
        line = line_of(text, position)
        document.record_error(message, line, COMPONENT, DiagnosticSeverity.FATAL)
        self.logger.info(
            "Parsing stopped",
            extra={"reason": message, "line": line, "position": position},
        )
