"""Parsing, construction and serialization entry points.

Module-level functions cover the common cases; :class:`EzdomParser` holds a
configuration and usage statistics for repeated parsing.

Malformed XML never raises: every parse returns a :class:`Document` whose
``error`` string is empty on success. Exceptions are reserved for I/O
failures (``OSError``) and exhausted resources (:class:`AllocationError`).
"""

import time
from pathlib import Path
from typing import IO, Any, Dict, Optional, Union

from ezdom.character.encoding import decode_source
from ezdom.shared.config import ParserConfig
from ezdom.shared.errors import AllocationError
from ezdom.shared.logging import get_logger
from ezdom.tree.builder import XMLTreeBuilder
from ezdom.tree.document import Document, Element
from ezdom.tree.nodes import Ownership

# Type definitions for input data
BytesLike = Union[bytes, bytearray, memoryview]
InputType = Union[str, BytesLike, Path, IO[Any]]

MS_PER_SECOND = 1000


class EzdomParser:
    """Configured parser with usage statistics.

    Example:
        >>> parser = EzdomParser(ParserConfig.strict())
        >>> doc = parser.parse_string("<r><a>1</a></r>")
        >>> doc.root.child("a").text
        '1'
    """

    def __init__(self, config: Optional[ParserConfig] = None) -> None:
        self.config = config or ParserConfig()
        self.logger = get_logger(__name__, self.config.correlation_id, "parser")
        self._builder = XMLTreeBuilder(self.config)
        self._parse_count = 0
        self._failed_parses = 0
        self._total_processing_time = 0.0

    def parse(self, input_data: InputType) -> Document:
        """Parse XML from a string, bytes, path or open file.

        Strings are taken as already decoded text. A ``Path`` is read from
        disk, and anything with a ``read`` method is read to the end.
        """
        if isinstance(input_data, str):
            return self.parse_string(input_data)
        if isinstance(input_data, (bytes, bytearray, memoryview)):
            return self.parse_bytes(input_data)
        if isinstance(input_data, Path):
            return self.parse_file(input_data)
        if hasattr(input_data, "read"):
            return self.parse_stream(input_data)
        raise TypeError(f"cannot parse input of type {type(input_data).__name__}")

    def parse_string(self, xml_string: str) -> Document:
        """Parse decoded XML text."""
        self._check_size(len(xml_string))
        document = Document(config=self.config)
        document.source = xml_string
        return self._build(document, xml_string)

    def parse_bytes(self, data: BytesLike, owned: bool = False) -> Document:
        """Parse an encoded XML buffer.

        Args:
            data: Complete document bytes; UTF-16 with a BOM is transcoded
            owned: Whether the document takes over ``data`` (recorded in
                ``document.source_owned``)
        """
        data = bytes(data)
        self._check_size(len(data))
        document = Document(config=self.config)
        document.source = data
        document.source_owned = owned

        source = decode_source(data, self.config.character)
        document.transcoded = source.transcoded
        document.statistics.transcoded = source.transcoded is not None
        for warning in source.warnings:
            document.record_warning(warning, "encoding")
        return self._build(document, source.text)

    def parse_file(self, path: Union[str, Path]) -> Document:
        """Read a whole file and parse it.

        Raises:
            OSError: If the file cannot be read.
        """
        path = Path(path)
        size = path.stat().st_size
        self._check_size(size)
        self.logger.debug("Reading file", extra={"path": str(path), "size_bytes": size})
        return self.parse_bytes(path.read_bytes(), owned=True)

    def parse_stream(self, stream: IO[Any]) -> Document:
        """Read an open binary or text stream to the end and parse it."""
        content = stream.read()
        if isinstance(content, str):
            document = self.parse_string(content)
            document.source_owned = True
            return document
        return self.parse_bytes(content, owned=True)

    def _check_size(self, size: int) -> None:
        limit = self.config.character.max_input_size_bytes
        if limit is not None and size > limit:
            raise AllocationError(
                f"input of {size} bytes exceeds the limit of {limit} bytes", size
            )

    def _build(self, document: Document, text: str) -> Document:
        start = time.perf_counter()
        self._builder.build(text, document)
        processing_time = (time.perf_counter() - start) * MS_PER_SECOND

        self._parse_count += 1
        self._total_processing_time += processing_time
        if document.error:
            self._failed_parses += 1
        self.logger.debug(
            "Parse completed",
            extra={
                "elements": document.statistics.elements,
                "failed": bool(document.error),
                "processing_time_ms": processing_time,
            },
        )
        return document

    @property
    def statistics(self) -> Dict[str, Any]:
        """Usage statistics of this parser."""
        return {
            "total_parses": self._parse_count,
            "failed_parses": self._failed_parses,
            "total_processing_time_ms": self._total_processing_time,
            "average_processing_time_ms": (
                self._total_processing_time / self._parse_count
                if self._parse_count > 0 else 0.0
            ),
            "correlation_id": self.config.correlation_id,
        }

    def reset_statistics(self) -> None:
        self._parse_count = 0
        self._failed_parses = 0
        self._total_processing_time = 0.0


def _parser(config: Optional[ParserConfig], correlation_id: Optional[str]) -> EzdomParser:
    config = config or ParserConfig()
    if correlation_id is not None:
        config = config.override(correlation_id=correlation_id)
    return EzdomParser(config)


def parse(
    input_data: InputType,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> Document:
    """Parse XML from a string, bytes, ``Path`` or open file.

    Examples:
        >>> doc = parse("<r><a>1</a><b>2</b></r>")
        >>> doc.root.child("a").text
        '1'
        >>> doc.error
        ''
    """
    return _parser(config, correlation_id).parse(input_data)


def parse_string(
    xml_string: str,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> Document:
    """Parse decoded XML text."""
    return _parser(config, correlation_id).parse_string(xml_string)


def parse_bytes(
    data: BytesLike,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
    owned: bool = False,
) -> Document:
    """Parse an encoded XML buffer."""
    return _parser(config, correlation_id).parse_bytes(data, owned=owned)


def parse_file(
    path: Union[str, Path],
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> Document:
    """Read and parse a file."""
    return _parser(config, correlation_id).parse_file(path)


def parse_stream(
    stream: IO[Any],
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> Document:
    """Read an open stream to the end and parse it."""
    return _parser(config, correlation_id).parse_stream(stream)


def new(
    name: str,
    ownership: Ownership = Ownership.BORROWED,
    config: Optional[ParserConfig] = None,
) -> Element:
    """Create a new document whose root element is named ``name``.

    Example:
        >>> root = new("inventory")
        >>> root.add_child("item").set_text("bolt")
        <Element 'item' #1>
        >>> root.to_xml()
        '<inventory><item>bolt</item></inventory>'
    """
    return Document(name, config=config, root_ownership=ownership).root


def to_xml(element: Union[Element, Document]) -> str:
    """Serialize an element or a whole document."""
    return element.to_xml()


def free(element: Union[Element, Document]) -> None:
    """Free an element's subtree, or a whole document."""
    element.free()
