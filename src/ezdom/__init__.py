"""ezdom: a small, forgiving XML parser with a mutable document tree.

Parsing never raises on malformed input. Every document reports problems in
its ``error`` string and keeps whatever tree was built before the problem.

Progressive API Disclosure:
- Level 1: Simple functions - parse(), parse_string(), parse_file(), new()
- Level 2: Configured parser - EzdomParser class with ParserConfig
- Level 3: Tree engine - Document, Element and the mutation operations
"""

__version__ = "0.1.0"
__author__ = "ezdom developers"

# Progressive API disclosure - Level 1: Simple functions
# Progressive API disclosure - Level 2: Advanced configuration
from .api import (
    EzdomParser,
    free,
    new,
    parse,
    parse_bytes,
    parse_file,
    parse_stream,
    parse_string,
    to_xml,
)

# Configuration classes for advanced usage
from .shared.config import CharacterConfig, DecoderConfig, ParserConfig
from .shared.errors import AllocationError, EzdomError, TreeError

# Core tree objects for all API levels
from .tree import Document, Element, Ownership, Path, PathStep, PIPosition

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple parsing functions
    "parse",
    "parse_string",
    "parse_bytes",
    "parse_file",
    "parse_stream",
    "new",
    "to_xml",
    "free",

    # Level 2: Advanced parser class
    "EzdomParser",

    # Tree objects
    "Document",
    "Element",
    "Ownership",
    "Path",
    "PathStep",
    "PIPosition",

    # Configuration and errors
    "CharacterConfig",
    "DecoderConfig",
    "ParserConfig",
    "AllocationError",
    "EzdomError",
    "TreeError",
]
