"""Document arena and element handles.

A :class:`Document` owns every node of a tree plus the document-wide tables
collected while parsing: entities, DTD attribute defaults and processing
instructions. Nodes live in an arena and are addressed by index;
:class:`Element` is a lightweight handle pairing a document with an index.
"""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from ezdom.character.entities import PREDEFINED_ENTITIES
from ezdom.shared.config import ParserConfig
from ezdom.shared.errors import TreeError
from ezdom.shared.logging import get_logger
from ezdom.shared.result import DiagnosticEntry, DiagnosticSeverity, ParseStatistics
from ezdom.tree import mutation
from ezdom.tree.nodes import (
    Attribute,
    AttributeDefault,
    Ownership,
    Path,
    PIPosition,
    ProcessingInstruction,
    StepLike,
    _NodeRecord,
)
from ezdom.tree.serializer import XMLSerializer

logger = get_logger(__name__, component="document")

ROOT_INDEX = 0


class Document:
    """Owner of a node arena and of the document-wide tables.

    Attributes:
        entities: General entities, name to replacement text
        parameter_entities: Parameter entities, name to replacement text
        default_attributes: Tag name to the attributes declared for it
        processing_instructions: Target to instructions, in first-seen order
        standalone: True when the XML declaration said ``standalone="yes"``
        diagnostics: Every problem recorded while parsing
        statistics: Counters collected while parsing
        source: The input the document was parsed from, if any
        source_owned: True when the engine read the input itself
        transcoded: UTF-8 copy of UTF-16 input
        text: Decoded working text the tree's borrowed strings come from
    """

    def __init__(
        self,
        root_name: Optional[str] = None,
        config: Optional[ParserConfig] = None,
        root_ownership: Ownership = Ownership.BORROWED,
    ) -> None:
        self.config = config or ParserConfig()
        self._nodes: List[Optional[_NodeRecord]] = [
            _NodeRecord(name=root_name, name_ownership=root_ownership)
        ]
        self.entities: Dict[str, str] = dict(PREDEFINED_ENTITIES)
        self.parameter_entities: Dict[str, str] = {}
        self.default_attributes: Dict[str, List[AttributeDefault]] = {}
        self.processing_instructions: Dict[str, List[ProcessingInstruction]] = {}
        self.standalone = False
        self.diagnostics: List[DiagnosticEntry] = []
        self.statistics = ParseStatistics()
        self.source: Union[str, bytes, None] = None
        self.source_owned = False
        self.transcoded: Optional[bytes] = None
        self.text = ""
        self._error = ""
        self._freed = False

    # Arena management

    def _record(self, index: int) -> _NodeRecord:
        if self._freed:
            raise TreeError("document has been freed")
        try:
            record = self._nodes[index]
        except IndexError:
            raise TreeError(f"no element with index {index}") from None
        if record is None:
            raise TreeError("element has been freed")
        return record

    def _allocate(
        self, name: Optional[str], ownership: Ownership = Ownership.BORROWED
    ) -> int:
        if self._freed:
            raise TreeError("document has been freed")
        self._nodes.append(_NodeRecord(name=name, name_ownership=ownership))
        return len(self._nodes) - 1

    def element(self, index: int) -> "Element":
        """Return a handle for the live node at ``index``."""
        self._record(index)
        return Element(self, index)

    @property
    def root(self) -> "Element":
        """The document root element."""
        return self.element(ROOT_INDEX)

    @property
    def is_freed(self) -> bool:
        return self._freed

    @property
    def node_count(self) -> int:
        """Number of live nodes, attached or not."""
        return sum(1 for record in self._nodes if record is not None)

    def create_element(
        self, name: str, ownership: Ownership = Ownership.BORROWED
    ) -> "Element":
        """Create a detached element owned by this document."""
        return Element(self, self._allocate(name, ownership))

    # Document tables

    def default_attribute(self, tag: Optional[str], name: str) -> Optional[AttributeDefault]:
        """Return the DTD declaration of attribute ``name`` on ``tag``."""
        for declared in self.default_attributes.get(tag or "", ()):
            if declared.name == name:
                return declared
        return None

    def add_processing_instruction(
        self, target: str, content: str, position: PIPosition
    ) -> ProcessingInstruction:
        instruction = ProcessingInstruction(target, content, position)
        self.processing_instructions.setdefault(target, []).append(instruction)
        return instruction

    # Errors

    @property
    def error(self) -> str:
        """Latest error message, empty when parsing succeeded."""
        return self._error

    def record_error(
        self,
        message: str,
        line: Optional[int],
        component: str,
        severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
    ) -> DiagnosticEntry:
        """Record an error diagnostic and make it the document error string."""
        entry = DiagnosticEntry(
            severity=severity,
            message=message,
            component=component,
            line=line,
            correlation_id=self.config.correlation_id,
        )
        self.diagnostics.append(entry)
        self._error = entry.format()[: self.config.error_capacity]
        return entry

    def record_warning(self, message: str, component: str) -> DiagnosticEntry:
        entry = DiagnosticEntry(
            severity=DiagnosticSeverity.WARNING,
            message=message,
            component=component,
            correlation_id=self.config.correlation_id,
        )
        self.diagnostics.append(entry)
        return entry

    # Lifetime

    def _release_subtree(self, index: int) -> None:
        pending = [index]
        while pending:
            current = pending.pop()
            record = self._nodes[current]
            child = record.child
            while child is not None:
                pending.append(child)
                child = self._nodes[child].ordered
            self._nodes[current] = None

    def free_element(self, index: int) -> None:
        """Free the subtree rooted at ``index``; the root frees the document."""
        if index == ROOT_INDEX:
            self.free()
            return
        mutation.cut(self, index)
        self._release_subtree(index)

    def free(self) -> None:
        """Release every node and all document tables."""
        if self._freed:
            return
        logger.bind(self.config.correlation_id).debug(
            "Freeing document", extra={"nodes": self.node_count}
        )
        self._nodes = []
        self.entities = {}
        self.parameter_entities = {}
        self.default_attributes = {}
        self.processing_instructions = {}
        self.transcoded = None
        self.source = None
        self.text = ""
        self._freed = True

    def to_xml(self) -> str:
        """Serialize the whole document."""
        return self.root.to_xml()

    def __repr__(self) -> str:
        if self._freed:
            return "<Document freed>"
        root = self._nodes[ROOT_INDEX]
        return f"<Document root={root.name!r} nodes={self.node_count}>"


class Element:
    """Handle to one node of a :class:`Document`.

    Handles are cheap and compare equal when they refer to the same node.
    Every access checks that the node is still alive and raises
    :class:`TreeError` otherwise.
    """

    __slots__ = ("document", "node_id")

    def __init__(self, document: Document, node_id: int) -> None:
        self.document = document
        self.node_id = node_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Element):
            return NotImplemented
        return self.document is other.document and self.node_id == other.node_id

    def __hash__(self) -> int:
        return hash((id(self.document), self.node_id))

    def __repr__(self) -> str:
        try:
            name = self._rec.name
        except TreeError:
            return f"<Element #{self.node_id} freed>"
        return f"<Element {name!r} #{self.node_id}>"

    @property
    def _rec(self) -> _NodeRecord:
        return self.document._record(self.node_id)

    def _check(self) -> None:
        self.document._record(self.node_id)

    def _wrap(self, index: Optional[int]) -> "Optional[Element]":
        return None if index is None else Element(self.document, index)

    # Node data

    @property
    def name(self) -> Optional[str]:
        return self._rec.name

    @property
    def text(self) -> str:
        """Character content, empty when there is none."""
        return self._rec.text

    @property
    def offset(self) -> int:
        """Position of this element within its parent's text."""
        return self._rec.offset

    @property
    def name_ownership(self) -> Ownership:
        return self._rec.name_ownership

    @property
    def text_ownership(self) -> Ownership:
        return self._rec.text_ownership

    @property
    def attributes(self) -> List[Tuple[str, str]]:
        """Explicit attributes as ``(name, value)`` pairs in document order."""
        return [(attr.name, attr.value) for attr in self._rec.attributes]

    @property
    def is_root(self) -> bool:
        return self.node_id == ROOT_INDEX

    @property
    def is_freed(self) -> bool:
        try:
            self._check()
        except TreeError:
            return True
        return False

    # Structural links

    @property
    def parent(self) -> "Optional[Element]":
        return self._wrap(self._rec.parent)

    @property
    def first_child(self) -> "Optional[Element]":
        """First child in document order, whatever its name."""
        return self._wrap(self._rec.child)

    @property
    def next(self) -> "Optional[Element]":
        """Next sibling with the same name."""
        return self._wrap(self._rec.next)

    @property
    def sibling(self) -> "Optional[Element]":
        """First child of the next distinct name (set on first-of-name nodes)."""
        return self._wrap(self._rec.sibling)

    @property
    def ordered(self) -> "Optional[Element]":
        """Next sibling in document order."""
        return self._wrap(self._rec.ordered)

    @property
    def root(self) -> "Element":
        return self.document.root

    # Queries

    def child(self, name: str) -> "Optional[Element]":
        """Return the first child named ``name``."""
        nodes = self.document._nodes
        cur = self._rec.child
        while cur is not None and nodes[cur].name != name:
            cur = nodes[cur].sibling
        return self._wrap(cur)

    def index(self, n: int) -> "Optional[Element]":
        """Return the ``n``-th element of this element's same-name chain."""
        if n < 0:
            raise ValueError("index must be >= 0")
        nodes = self.document._nodes
        self._check()
        cur: Optional[int] = self.node_id
        while cur is not None and n > 0:
            cur = nodes[cur].next
            n -= 1
        return self._wrap(cur)

    def children(self, name: Optional[str] = None) -> "Iterator[Element]":
        """Iterate over children in document order, optionally by name."""
        nodes = self.document._nodes
        if name is None:
            cur = self._rec.child
            while cur is not None:
                following = nodes[cur].ordered
                yield Element(self.document, cur)
                cur = following
            return
        first = self.child(name)
        cur = None if first is None else first.node_id
        while cur is not None:
            following = nodes[cur].next
            yield Element(self.document, cur)
            cur = following

    def get(self, path: Union[Path, Sequence[StepLike], str]) -> "Optional[Element]":
        """Follow ``path`` down the tree.

        Each step selects the ``index``-th child with the step's name. An
        empty path returns this element.

        Example:
            >>> doc.root.get([("shelf", 0), ("book", 2), ("title", 0)])
        """
        current: Optional[Element] = self
        for step in Path.of(path):
            found = current.child(step.name)
            current = None if found is None else found.index(step.index)
            if current is None:
                return None
        return current

    def attribute(self, name: str) -> Optional[str]:
        """Return an attribute value, falling back to the DTD default."""
        rec = self._rec
        for attr in rec.attributes:
            if attr.name == name:
                return attr.value
        declared = self.document.default_attribute(rec.name, name)
        return None if declared is None else declared.value

    def processing_instructions(self, target: str) -> List[str]:
        """Contents of the document's processing instructions for ``target``."""
        self._check()
        return [
            instruction.content
            for instruction in self.document.processing_instructions.get(target, ())
        ]

    @property
    def error(self) -> str:
        """The owning document's error string."""
        return self.document.error

    # Mutation

    def set_text(
        self, text: str, ownership: Ownership = Ownership.BORROWED
    ) -> "Element":
        """Replace the character content."""
        rec = self._rec
        rec.text = text
        rec.text_ownership = ownership
        return self

    def set_attribute(
        self,
        name: str,
        value: Optional[str],
        ownership: Ownership = Ownership.BORROWED,
    ) -> "Element":
        """Set an attribute; ``None`` removes it."""
        attributes = self._rec.attributes
        for position, attr in enumerate(attributes):
            if attr.name == name:
                if value is None:
                    del attributes[position]
                else:
                    attr.value = value
                    attr.ownership = ownership
                return self
        if value is not None:
            attributes.append(Attribute(name, value, ownership))
        return self

    def add_child(
        self,
        name: str,
        offset: Optional[int] = None,
        ownership: Ownership = Ownership.BORROWED,
    ) -> "Element":
        """Create a child named ``name``; the default offset appends it."""
        if offset is None:
            offset = len(self._rec.text)
        index = mutation.add_child(self.document, self.node_id, name, offset, ownership)
        return Element(self.document, index)

    def insert(self, destination: "Element", offset: int) -> "Element":
        """Insert this element under ``destination`` at ``offset``."""
        if destination.document is not self.document:
            raise TreeError("cannot insert an element into another document")
        mutation.insert(self.document, self.node_id, destination.node_id, offset)
        return self

    def cut(self) -> "Element":
        """Detach this element and its subtree without freeing them."""
        mutation.cut(self.document, self.node_id)
        return self

    def move(self, destination: "Element", offset: int) -> "Element":
        """Cut this element and insert it under ``destination``."""
        if destination.document is not self.document:
            raise TreeError("cannot move an element into another document")
        mutation.move(self.document, self.node_id, destination.node_id, offset)
        return self

    def remove(self) -> None:
        """Detach and free this element and its subtree."""
        self.free()

    def free(self) -> None:
        """Free this subtree; on the root, free the whole document."""
        self._check()
        self.document.free_element(self.node_id)

    # Output

    def to_xml(self) -> str:
        """Serialize this element (and, for the root, the whole document)."""
        return XMLSerializer(self.document).serialize(self.node_id)

    def __str__(self) -> str:
        return self.to_xml()
