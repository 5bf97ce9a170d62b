"""Document tree engine for ezdom.

This package holds the node arena and its element handles, the mutation
engine that keeps the child chains consistent, and the serializer.

Key Components:
    Document: Owner of the node arena and of the document-wide tables
    Element: Handle to one node, with query and mutation methods
    XMLSerializer: Writes a subtree back to XML text
    Path: Explicit child path used by ``Element.get``

The tree builder lives in :mod:`ezdom.tree.builder`; it depends on the
tokenization layer, which in turn uses the types defined here.
"""

from .document import Document, Element
from .nodes import (
    Attribute,
    AttributeDefault,
    AttributeKind,
    Ownership,
    Path,
    PathStep,
    PIPosition,
    ProcessingInstruction,
)
from .serializer import XMLSerializer

__all__ = [
    "Attribute",
    "AttributeDefault",
    "AttributeKind",
    "Document",
    "Element",
    "Ownership",
    "Path",
    "PathStep",
    "PIPosition",
    "ProcessingInstruction",
    "XMLSerializer",
]
