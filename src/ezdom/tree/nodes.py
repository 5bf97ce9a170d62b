"""Data types stored in a document: node records, attributes and DTD tables."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, List, Optional, Sequence, Tuple, Union


class Ownership(Enum):
    """Whether a string was supplied from outside or produced by the engine.

    Borrowed strings are slices of the source text or values handed in by
    the caller; owned strings were created by decoding or concatenation.
    """

    BORROWED = auto()
    OWNED = auto()


class AttributeKind(Enum):
    """Attribute value type as declared in an ATTLIST."""

    CDATA = auto()       # value kept as written apart from whitespace mapping
    NORMALIZED = auto()  # any other type; spaces collapsed and trimmed


class PIPosition(Enum):
    """Where a processing instruction appeared relative to the root element."""

    BEFORE_ROOT = "<"
    AFTER_ROOT = ">"


@dataclass
class Attribute:
    """An explicit attribute on an element."""

    name: str
    value: str
    ownership: Ownership = Ownership.BORROWED


@dataclass(frozen=True)
class AttributeDefault:
    """An attribute declared for a tag in the internal DTD subset."""

    name: str
    value: Optional[str]
    kind: AttributeKind


@dataclass(frozen=True)
class ProcessingInstruction:
    """A stored processing instruction."""

    target: str
    content: str
    position: PIPosition


@dataclass
class _NodeRecord:
    """Arena slot for one element. Links are arena indices."""

    name: Optional[str]
    name_ownership: Ownership = Ownership.BORROWED
    attributes: List[Attribute] = field(default_factory=list)
    text: str = ""
    text_ownership: Ownership = Ownership.BORROWED
    offset: int = 0
    parent: Optional[int] = None
    child: Optional[int] = None
    next: Optional[int] = None
    sibling: Optional[int] = None
    ordered: Optional[int] = None
    # tail pointers used while children are appended in order
    child_index: Any = None


@dataclass(frozen=True)
class PathStep:
    """Select the ``index``-th child named ``name`` (zero based)."""

    name: str
    index: int = 0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("path step name cannot be empty")
        if self.index < 0:
            raise ValueError("path step index must be >= 0")

    def __str__(self) -> str:
        return self.name if self.index == 0 else f"{self.name}[{self.index}]"


StepLike = Union[PathStep, str, Tuple[str, int]]


@dataclass(frozen=True)
class Path:
    """A sequence of child steps from an element down into its subtree.

    Example:
        >>> Path.parse("shelf/book[2]/title")
        Path(steps=(PathStep(name='shelf', index=0), ...))
    """

    steps: Tuple[PathStep, ...] = ()

    @classmethod
    def of(cls, steps: Union["Path", Sequence[StepLike]]) -> "Path":
        """Build a path from steps, ``(name, index)`` pairs or bare names."""
        if isinstance(steps, Path):
            return steps
        if isinstance(steps, str):
            return cls.parse(steps)
        converted = []
        for step in steps:
            if isinstance(step, PathStep):
                converted.append(step)
            elif isinstance(step, str):
                converted.append(PathStep(step))
            else:
                name, index = step
                converted.append(PathStep(name, index))
        return cls(tuple(converted))

    @classmethod
    def parse(cls, expression: str) -> "Path":
        """Parse ``name[index]/name/...``; a missing index means 0."""
        steps = []
        for part in expression.split("/"):
            part = part.strip()
            if not part:
                continue
            if part.endswith("]") and "[" in part:
                name, _, index = part[:-1].partition("[")
                try:
                    steps.append(PathStep(name.strip(), int(index)))
                except ValueError as e:
                    raise ValueError(f"invalid path step: {part!r}") from e
            else:
                steps.append(PathStep(part))
        return cls(tuple(steps))

    def child(self, name: str, index: int = 0) -> "Path":
        """Return this path extended by one step."""
        return Path(self.steps + (PathStep(name, index),))

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __str__(self) -> str:
        return "/".join(str(step) for step in self.steps)
