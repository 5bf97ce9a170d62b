"""Integration adapters for exchanging trees with popular XML and data libraries.

Each adapter converts an ezdom :class:`Element` into the target library's
representation and back. Third-party libraries are imported only when an
adapter is used, so none of them is required to install ezdom. Conversions
never raise; problems are reported in the returned :class:`ConversionResult`.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple, Type

from ezdom.shared.logging import get_logger
from ezdom.tree.document import Element

MS_PER_SECOND = 1000
ATTRIBUTE_COLUMN_PREFIX = "@"


class AdapterType(Enum):
    """Types of integration adapters."""

    XML_LIBRARY = auto()     # XML processing libraries (lxml, BeautifulSoup, ...)
    DATA_FRAME = auto()      # DataFrame libraries (pandas)


@dataclass
class AdapterMetadata:
    """Metadata about an integration adapter."""

    name: str
    adapter_type: AdapterType
    target_library: str
    description: str


@dataclass
class ConversionResult:
    """Result of a conversion operation."""

    success: bool
    converted_data: Any
    original_data: Any
    conversion_time_ms: float
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


def _element_text_segments(element: Element) -> Tuple[str, List[Tuple[Element, str]]]:
    """Split an element's text around its children.

    Returns the text before the first child and, for every child in document
    order, the text that follows it (its tail).
    """
    text = element.text
    children = list(element.children())
    if not children:
        return text, []
    lead = text[: min(children[0].offset, len(text))]
    segments = []
    for position, child in enumerate(children):
        start = min(child.offset, len(text))
        if position + 1 < len(children):
            end = max(start, min(children[position + 1].offset, len(text)))
        else:
            end = len(text)
        segments.append((child, text[start:end]))
    return lead, segments


def _all_attributes(element: Element) -> List[Tuple[str, str]]:
    """Explicit attributes followed by applicable DTD defaults."""
    result = []
    seen = set()
    for name, value in element.attributes:
        if name not in seen:
            seen.add(name)
            result.append((name, value))
    for declared in element.document.default_attributes.get(element.name or "", ()):
        if declared.value is not None and declared.name not in seen:
            seen.add(declared.name)
            result.append((declared.name, declared.value))
    return result


class IntegrationAdapter(ABC):
    """Abstract base class for all integration adapters."""

    def __init__(self, correlation_id: Optional[str] = None) -> None:
        """Initialize the integration adapter.

        Args:
            correlation_id: Optional correlation ID for grouping log records
        """
        self.correlation_id = correlation_id
        self._logger = get_logger(__name__, correlation_id, self.__class__.__name__)

    @property
    @abstractmethod
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the target library can be imported."""

    @abstractmethod
    def _to_target(self, element: Element) -> Any:
        """Convert an element; may raise."""

    @abstractmethod
    def _from_target(self, target_data: Any) -> Element:
        """Convert target data to an element; may raise."""

    def to_target(self, element: Element) -> ConversionResult:
        """Convert an ezdom element (and its subtree) to the target format."""
        start_time = time.perf_counter()
        try:
            if element.name is None:
                raise ValueError("element has no name; the parse produced no root")
            converted = self._to_target(element)
        except Exception as e:
            return self._error_result(
                f"Failed to convert to {self.metadata.target_library}: {e}",
                element,
                start_time,
            )
        return self._success_result(converted, element, start_time)

    def from_target(self, target_data: Any) -> ConversionResult:
        """Convert target-format data to the root of a new ezdom document."""
        start_time = time.perf_counter()
        try:
            converted = self._from_target(target_data)
        except Exception as e:
            return self._error_result(
                f"Failed to convert from {self.metadata.target_library}: {e}",
                target_data,
                start_time,
            )
        result = self._success_result(converted, target_data, start_time)
        if converted.error:
            result.success = False
            result.errors.append(converted.error)
        return result

    def _success_result(
        self, converted: Any, original: Any, start_time: float
    ) -> ConversionResult:
        elapsed = (time.perf_counter() - start_time) * MS_PER_SECOND
        self._logger.debug(
            "Conversion completed",
            extra={"adapter": self.metadata.name, "conversion_time_ms": elapsed},
        )
        return ConversionResult(True, converted, original, elapsed)

    def _error_result(
        self, message: str, original: Any, start_time: float
    ) -> ConversionResult:
        elapsed = (time.perf_counter() - start_time) * MS_PER_SECOND
        self._logger.error(
            message, extra={"adapter": self.metadata.name}, exc_info=False
        )
        return ConversionResult(False, None, original, elapsed, errors=[message])

    def _parse(self, xml_string: str) -> Element:
        from ezdom.api.parser import parse_string

        return parse_string(xml_string, correlation_id=self.correlation_id).root


class _EtreeAdapter(IntegrationAdapter):
    """Shared conversion for ElementTree-compatible APIs."""

    @abstractmethod
    def _etree(self) -> Any:
        """Return the ElementTree-compatible module to convert with."""

    def _to_target(self, element: Element) -> Any:
        etree = self._etree()
        root = etree.Element(element.name)
        pending = [(element, root)]
        while pending:
            source, target = pending.pop()
            for name, value in _all_attributes(source):
                target.set(name, value)
            lead, segments = _element_text_segments(source)
            target.text = lead or None
            for child, tail in segments:
                converted = etree.SubElement(target, child.name)
                converted.tail = tail or None
                pending.append((child, converted))
        return root

    def _from_target(self, target_data: Any) -> Element:
        etree = self._etree()
        if hasattr(target_data, "getroot"):
            target_data = target_data.getroot()
        if not hasattr(target_data, "tag"):
            raise TypeError("target data is not an element")
        return self._parse(etree.tostring(target_data, encoding="unicode"))


class LxmlAdapter(_EtreeAdapter):
    """Adapter for bidirectional conversion with lxml.etree."""

    @property
    def metadata(self) -> AdapterMetadata:
        return AdapterMetadata(
            name="lxml",
            adapter_type=AdapterType.XML_LIBRARY,
            target_library="lxml",
            description="Conversion between ezdom elements and lxml.etree elements",
        )

    def is_available(self) -> bool:
        try:
            import lxml.etree  # noqa: F401
        except ImportError:
            return False
        return True

    def _etree(self) -> Any:
        import lxml.etree

        return lxml.etree


class ElementTreeAdapter(_EtreeAdapter):
    """Adapter for the standard library's xml.etree.ElementTree."""

    @property
    def metadata(self) -> AdapterMetadata:
        return AdapterMetadata(
            name="elementtree",
            adapter_type=AdapterType.XML_LIBRARY,
            target_library="xml.etree.ElementTree",
            description="Conversion between ezdom elements and ElementTree elements",
        )

    def is_available(self) -> bool:
        return True

    def _etree(self) -> Any:
        import xml.etree.ElementTree

        return xml.etree.ElementTree


class BeautifulSoupAdapter(IntegrationAdapter):
    """Adapter for bidirectional conversion with BeautifulSoup.

    The ``xml`` tree builder of BeautifulSoup needs lxml; ``html.parser`` is
    used when lxml is missing.
    """

    @property
    def metadata(self) -> AdapterMetadata:
        return AdapterMetadata(
            name="beautifulsoup",
            adapter_type=AdapterType.XML_LIBRARY,
            target_library="beautifulsoup4",
            description="Conversion between ezdom elements and BeautifulSoup documents",
        )

    def is_available(self) -> bool:
        try:
            import bs4  # noqa: F401
        except ImportError:
            return False
        return True

    def _features(self) -> str:
        return "xml" if LxmlAdapter().is_available() else "html.parser"

    def _to_target(self, element: Element) -> Any:
        from bs4 import BeautifulSoup

        return BeautifulSoup(element.to_xml(), self._features())

    def _from_target(self, target_data: Any) -> Element:
        if not hasattr(target_data, "decode_contents") and not hasattr(target_data, "name"):
            raise TypeError("target data is not a BeautifulSoup object")
        if hasattr(target_data, "find") and getattr(target_data, "name", None) == "[document]":
            target_data = target_data.find(True)
            if target_data is None:
                raise ValueError("BeautifulSoup document has no elements")
        return self._parse(str(target_data))


class PandasAdapter(IntegrationAdapter):
    """Adapter that flattens a tree into a pandas DataFrame.

    Each row describes one element in document order: its ``depth``, ``tag``,
    own ``text``, ``offset`` in its parent's text and ``path``. Attributes
    become columns named ``@name``. A frame in this layout converts back to
    a tree.
    """

    @property
    def metadata(self) -> AdapterMetadata:
        return AdapterMetadata(
            name="pandas",
            adapter_type=AdapterType.DATA_FRAME,
            target_library="pandas",
            description="Conversion between ezdom trees and pandas DataFrames",
        )

    def is_available(self) -> bool:
        try:
            import pandas  # noqa: F401
        except ImportError:
            return False
        return True

    def _to_target(self, element: Element) -> Any:
        import pandas as pd

        rows: List[Dict[str, Any]] = []
        pending: List[Tuple[Element, int, str]] = [(element, 0, f"/{element.name}")]
        while pending:
            current, depth, path = pending.pop()
            row: Dict[str, Any] = {
                "depth": depth,
                "tag": current.name,
                "text": current.text,
                "offset": current.offset if depth else 0,
                "path": path,
            }
            for name, value in _all_attributes(current):
                row[ATTRIBUTE_COLUMN_PREFIX + name] = value
            rows.append(row)

            counts: Dict[str, int] = {}
            children = []
            for child in current.children():
                position = counts.get(child.name, 0)
                counts[child.name] = position + 1
                children.append((child, depth + 1, f"{path}/{child.name}[{position}]"))
            pending.extend(reversed(children))
        return pd.DataFrame(rows)

    def _from_target(self, target_data: Any) -> Element:
        import pandas as pd

        from ezdom.api.parser import new

        if not isinstance(target_data, pd.DataFrame):
            raise TypeError("target data is not a pandas DataFrame")
        missing = {"depth", "tag"} - set(target_data.columns)
        if missing:
            raise ValueError(f"missing columns: {', '.join(sorted(missing))}")
        if target_data.empty:
            raise ValueError("DataFrame has no rows")

        attribute_columns = [
            column for column in target_data.columns
            if str(column).startswith(ATTRIBUTE_COLUMN_PREFIX)
        ]
        stack: List[Element] = []
        root: Optional[Element] = None
        for record in target_data.to_dict("records"):
            depth = int(record["depth"])
            if root is None:
                if depth != 0:
                    raise ValueError("first row must have depth 0")
                root = new(str(record["tag"]))
                element = root
            else:
                if depth < 1 or depth > len(stack):
                    raise ValueError(f"row for <{record['tag']}> has invalid depth {depth}")
                del stack[depth:]
                parent = stack[-1]
                offset = record.get("offset")
                offset = None if offset is None or pd.isna(offset) else int(offset)
                element = parent.add_child(str(record["tag"]), offset)
            text = record.get("text")
            if text is not None and not pd.isna(text):
                element.set_text(str(text))
            for column in attribute_columns:
                value = record[column]
                if value is not None and not pd.isna(value):
                    element.set_attribute(column[len(ATTRIBUTE_COLUMN_PREFIX):], str(value))
            stack.append(element)
        return root


class AdapterRegistry:
    """Registry of adapter classes by name."""

    def __init__(self) -> None:
        self._adapters: Dict[str, Type[IntegrationAdapter]] = {}

    def register(self, adapter_class: Type[IntegrationAdapter]) -> None:
        name = adapter_class().metadata.name
        self._adapters[name] = adapter_class

    def get_adapter(
        self, adapter_name: str, correlation_id: Optional[str] = None
    ) -> Optional[IntegrationAdapter]:
        adapter_class = self._adapters.get(adapter_name)
        return None if adapter_class is None else adapter_class(correlation_id)

    def list_available_adapters(self) -> List[AdapterMetadata]:
        """Metadata of registered adapters whose library is installed."""
        available = []
        for adapter_class in self._adapters.values():
            adapter = adapter_class()
            if adapter.is_available():
                available.append(adapter.metadata)
        return available

    def names(self) -> List[str]:
        return list(self._adapters)


_adapter_registry = AdapterRegistry()


def register_adapter(adapter_class: Type[IntegrationAdapter]) -> None:
    """Register an adapter class under its metadata name."""
    _adapter_registry.register(adapter_class)


def get_adapter(
    adapter_name: str, correlation_id: Optional[str] = None
) -> Optional[IntegrationAdapter]:
    """Return a new adapter instance, or None for an unknown name."""
    return _adapter_registry.get_adapter(adapter_name, correlation_id)


def list_available_adapters() -> List[AdapterMetadata]:
    return _adapter_registry.list_available_adapters()


for _adapter_class in (LxmlAdapter, ElementTreeAdapter, BeautifulSoupAdapter, PandasAdapter):
    register_adapter(_adapter_class)
