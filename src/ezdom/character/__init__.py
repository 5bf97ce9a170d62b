"""Character processing layer for ezdom.

This module provides byte order mark detection, UTF-16 transcoding and the
reference decoder that expands character and entity references.
"""

from .encoding import (
    BOMDetector,
    DetectionMethod,
    SourceText,
    decode_source,
    transcode,
)
from .entities import (
    PREDEFINED_ENTITIES,
    DecodeMode,
    decode,
    entity_is_acyclic,
    escape,
    normalize_newlines,
)

__all__ = [
    # Modules
    "encoding",
    "entities",
    # Input decoding
    "BOMDetector",
    "DetectionMethod",
    "SourceText",
    "decode_source",
    "transcode",
    # Reference decoding
    "PREDEFINED_ENTITIES",
    "DecodeMode",
    "decode",
    "entity_is_acyclic",
    "escape",
    "normalize_newlines",
]
