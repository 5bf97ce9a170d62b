"""Structural mutation of the node arena.

Children of a parent are linked three ways at once:

* ``ordered`` visits every child in document order,
* ``next`` visits the children that share a name, in document order,
* ``sibling`` visits the first child of each distinct name, in document order.

The parent's ``child`` link is the head of both the ``ordered`` and the
``sibling`` chain. Every function here updates all three chains together.
Document order is the ``ordered`` chain; offsets only decide where a node is
placed when it is inserted (after every child whose offset is not greater).
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from ezdom.shared.errors import TreeError
from ezdom.tree.nodes import Ownership, _NodeRecord

if TYPE_CHECKING:
    from ezdom.tree.document import Document


@dataclass
class _ChildIndex:
    """Tail pointers of a parent's chains, kept only while children are appended."""

    tail: int
    sibling_tail: int
    last_of_name: Dict[Optional[str], int] = field(default_factory=dict)


def _build_index(nodes: List[Optional[_NodeRecord]], head: int) -> _ChildIndex:
    index = _ChildIndex(tail=head, sibling_tail=head)
    cur: Optional[int] = head
    while cur is not None:
        rec = nodes[cur]
        if rec.name not in index.last_of_name:
            index.sibling_tail = cur
        index.last_of_name[rec.name] = cur
        index.tail = cur
        cur = rec.ordered
    return index


def _check_destination(doc: "Document", index: int, destination: int) -> None:
    if index == 0:
        raise TreeError("the document root cannot be inserted into another element")
    cur: Optional[int] = destination
    while cur is not None:
        if cur == index:
            raise TreeError("cannot insert an element into its own subtree")
        cur = doc._record(cur).parent


def insert(doc: "Document", index: int, destination: int, offset: int) -> int:
    """Insert node ``index`` as a child of ``destination`` at ``offset``.

    A node that is still attached somewhere is cut first. Returns ``index``.

    Raises:
        TreeError: If either node is freed, the node is the document root, or
            ``destination`` lies inside the node's own subtree.
    """
    if offset < 0:
        raise TreeError("offset must be >= 0")
    node = doc._record(index)
    doc._record(destination)
    _check_destination(doc, index, destination)
    if node.parent is not None:
        cut(doc, index)
    _attach(doc, index, destination, offset)
    return index


def _attach(doc: "Document", index: int, destination: int, offset: int) -> None:
    nodes = doc._nodes
    node = nodes[index]
    dest = nodes[destination]
    node.offset = offset
    node.parent = destination
    node.next = node.sibling = node.ordered = None

    head = dest.child
    if head is None:
        dest.child = index
        dest.child_index = _ChildIndex(index, index, {node.name: index})
        return

    if dest.child_index is None:
        dest.child_index = _build_index(nodes, head)
    chains = dest.child_index
    if nodes[chains.tail].offset <= offset:
        _append(nodes, chains, index, node)
        return

    dest.child_index = None
    _insert_ordered(nodes, dest, index, node)


def _append(
    nodes: List[Optional[_NodeRecord]],
    chains: _ChildIndex,
    index: int,
    node: _NodeRecord,
) -> None:
    nodes[chains.tail].ordered = index
    chains.tail = index
    last = chains.last_of_name.get(node.name)
    if last is None:
        nodes[chains.sibling_tail].sibling = index
        chains.sibling_tail = index
    else:
        nodes[last].next = index
    chains.last_of_name[node.name] = index


def _insert_ordered(
    nodes: List[Optional[_NodeRecord]],
    dest: _NodeRecord,
    index: int,
    node: _NodeRecord,
) -> None:
    """General insertion anywhere in the chains."""
    head = dest.child
    sibling_head = head

    # ordered chain
    if nodes[head].offset > node.offset:
        node.ordered = head
        head = index
    else:
        cur = head
        while True:
            following = nodes[cur].ordered
            if following is None or nodes[following].offset > node.offset:
                break
            cur = following
        node.ordered = nodes[cur].ordered
        nodes[cur].ordered = index

    # Locate the neighbours of the node in the name chains.
    seen = set()
    prev_same: Optional[int] = None
    prev_first: Optional[int] = None
    cur = head
    while cur != index:
        rec = nodes[cur]
        if rec.name not in seen:
            seen.add(rec.name)
            prev_first = cur
        if rec.name == node.name:
            prev_same = cur
        cur = rec.ordered

    if prev_same is not None:
        node.next = nodes[prev_same].next
        nodes[prev_same].next = index
    else:
        old_first = node.ordered
        while old_first is not None and nodes[old_first].name != node.name:
            old_first = nodes[old_first].ordered
        node.next = old_first
        if old_first is not None:
            sibling_head = _unlink_sibling(nodes, sibling_head, old_first)
        if prev_first is None:
            node.sibling = sibling_head
            sibling_head = index
        else:
            node.sibling = nodes[prev_first].sibling
            nodes[prev_first].sibling = index

    dest.child = head


def _unlink_sibling(
    nodes: List[Optional[_NodeRecord]], sibling_head: Optional[int], target: int
) -> Optional[int]:
    """Remove ``target`` from a sibling chain and return the chain's head."""
    if sibling_head == target:
        sibling_head = nodes[target].sibling
    else:
        cur = sibling_head
        while cur is not None and nodes[cur].sibling != target:
            cur = nodes[cur].sibling
        if cur is not None:
            nodes[cur].sibling = nodes[target].sibling
    nodes[target].sibling = None
    return sibling_head


def cut(doc: "Document", index: int) -> int:
    """Detach node ``index`` (with its subtree) from its parent.

    The node keeps its children, text and attributes and can be inserted
    elsewhere or freed. Cutting a detached node does nothing. Returns ``index``.
    """
    node = doc._record(index)
    if node.parent is None:
        return index

    nodes = doc._nodes
    parent = nodes[node.parent]
    parent.child_index = None
    head = parent.child

    # sibling chain membership tells whether the node is first of its name
    first_of_name = head
    while first_of_name is not None and nodes[first_of_name].name != node.name:
        first_of_name = nodes[first_of_name].sibling

    # ordered chain
    if head == index:
        head = node.ordered
    else:
        cur = head
        while nodes[cur].ordered != index:
            cur = nodes[cur].ordered
        nodes[cur].ordered = node.ordered

    if first_of_name != index:
        cur = first_of_name
        while nodes[cur].next != index:
            cur = nodes[cur].next
        nodes[cur].next = node.next
    else:
        sibling_head = _unlink_sibling(nodes, parent.child, index)
        successor = node.next
        if successor is not None:
            # The next node of the same name takes over; it belongs after the
            # last first-of-name node that precedes it in document order.
            seen = set()
            prev_first: Optional[int] = None
            cur = head
            while cur != successor:
                rec = nodes[cur]
                if rec.name not in seen:
                    seen.add(rec.name)
                    prev_first = cur
                cur = rec.ordered
            if prev_first is None:
                nodes[successor].sibling = sibling_head
            else:
                nodes[successor].sibling = nodes[prev_first].sibling
                nodes[prev_first].sibling = successor

    parent.child = head
    node.parent = node.next = node.sibling = node.ordered = None
    return index


def move(doc: "Document", index: int, destination: int, offset: int) -> int:
    """Cut node ``index`` and insert it under ``destination`` at ``offset``."""
    return insert(doc, cut(doc, index), destination, offset)


def add_child(
    doc: "Document",
    parent: int,
    name: str,
    offset: int,
    ownership: Ownership = Ownership.BORROWED,
) -> int:
    """Create an empty element named ``name`` under ``parent`` at ``offset``."""
    doc._record(parent)
    if offset < 0:
        raise TreeError("offset must be >= 0")
    index = doc._allocate(name, ownership)
    # a new node has no subtree to check against
    _attach(doc, index, parent, offset)
    return index
