"""Diagnostic and statistics types for ezdom parsing.

A parse never raises for malformed input; problems are reported through the
document's error string and the structured diagnostics defined here.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    INFO = auto()       # Informational messages
    WARNING = auto()    # Input was accepted with a lossy fallback
    ERROR = auto()      # Declaration errors; parsing continued
    FATAL = auto()      # Structural errors; parsing stopped


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with context information."""

    severity: DiagnosticSeverity
    message: str
    component: str
    line: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")

    def format(self) -> str:
        """Render the entry the way the document error string is rendered."""
        if self.line is None:
            return self.message
        return f"[error near line {self.line}]: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.name,
            "message": self.message,
            "component": self.component,
            "line": self.line,
            "details": self.details,
        }


@dataclass
class ParseStatistics:
    """Counters collected while building a document."""

    elements: int = 0
    attributes: int = 0
    entities_declared: int = 0
    processing_instructions: int = 0
    characters_processed: int = 0
    transcoded: bool = False
    processing_time_ms: float = 0.0

    @property
    def characters_per_second(self) -> float:
        """Calculate characters processed per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.characters_processed * 1000.0) / self.processing_time_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elements": self.elements,
            "attributes": self.attributes,
            "entities_declared": self.entities_declared,
            "processing_instructions": self.processing_instructions,
            "characters_processed": self.characters_processed,
            "transcoded": self.transcoded,
            "processing_time_ms": round(self.processing_time_ms, 3),
        }
