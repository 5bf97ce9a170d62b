"""XML serialization of document trees.

Character content and child elements are interleaved by offset: each child
is preceded by the slice of its parent's text between the previous child and
the child's own offset, and the text after the last child closes the parent.
The tree is only read; nothing is relinked while writing.
"""

from typing import TYPE_CHECKING, List, Set

from ezdom.character.entities import escape
from ezdom.shared.errors import AllocationError
from ezdom.tree.nodes import PIPosition, _NodeRecord

if TYPE_CHECKING:
    from ezdom.tree.document import Document


class XMLSerializer:
    """Writes a node and its subtree as XML text."""

    def __init__(self, document: "Document") -> None:
        self.document = document

    def serialize(self, index: int) -> str:
        """Serialize the subtree rooted at ``index``.

        Serializing the document root also writes the processing
        instructions recorded before and after the root element. A node
        without a name (the root of a document whose parse failed before any
        tag) serializes as an empty string.
        """
        record = self.document._record(index)
        if record.name is None:
            return ""

        out: List[str] = []
        try:
            if index == 0:
                self._write_instructions(out, PIPosition.BEFORE_ROOT)
            self._write_subtree(out, index)
            if index == 0:
                self._write_instructions(out, PIPosition.AFTER_ROOT)
            return "".join(out)
        except MemoryError as e:
            raise AllocationError("out of memory while serializing") from e

    def _write_instructions(self, out: List[str], position: PIPosition) -> None:
        for target, instructions in self.document.processing_instructions.items():
            for instruction in instructions:
                if instruction.position is not position:
                    continue
                body = f"{target} {instruction.content}" if instruction.content else target
                if position is PIPosition.BEFORE_ROOT:
                    out.append(f"<?{body}?>\n")
                else:
                    out.append(f"\n<?{body}?>")

    def _write_start(self, out: List[str], record: _NodeRecord) -> None:
        out.append("<")
        out.append(record.name)
        written: Set[str] = set()
        for attr in record.attributes:
            if attr.name in written:
                continue
            written.add(attr.name)
            out.append(f' {attr.name}="{escape(attr.value, attribute=True)}"')
        for declared in self.document.default_attributes.get(record.name, ()):
            if declared.value is None or declared.name in written:
                continue
            written.add(declared.name)
            out.append(f' {declared.name}="{escape(declared.value, attribute=True)}"')
        out.append(">")

    def _write_subtree(self, out: List[str], index: int) -> None:
        nodes = self.document._nodes
        record = nodes[index]
        self._write_start(out, record)
        if record.child is None:
            out.append(escape(record.text))
            out.append(f"</{record.name}>")
            return

        # Each frame is [parent index, next child to write, text written so far].
        stack = [[index, record.child, 0]]
        while stack:
            frame = stack[-1]
            parent = nodes[frame[0]]
            child_index, start = frame[1], frame[2]
            text = parent.text

            if child_index is None:
                out.append(escape(text[start:]))
                out.append(f"</{parent.name}>")
                stack.pop()
                continue

            child = nodes[child_index]
            end = max(start, min(child.offset, len(text)))
            out.append(escape(text[start:end]))
            frame[1] = child.ordered
            frame[2] = end

            self._write_start(out, child)
            if child.child is None:
                out.append(escape(child.text))
                out.append(f"</{child.name}>")
            else:
                stack.append([child_index, child.child, 0])
