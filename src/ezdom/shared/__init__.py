"""Shared utilities for ezdom.

This module provides configuration objects, diagnostic types, exceptions and
logging helpers used across all processing layers.
"""

from .config import (
    CharacterConfig,
    ConfigError,
    ConfigValidationError,
    DecoderConfig,
    ParserConfig,
)
from .errors import AllocationError, EzdomError, TreeError, XMLSyntaxError
from .logging import CorrelationLogger, configure_logging, get_logger
from .result import DiagnosticEntry, DiagnosticSeverity, ParseStatistics

__all__ = [
    "CharacterConfig",
    "ConfigError",
    "ConfigValidationError",
    "DecoderConfig",
    "ParserConfig",
    "AllocationError",
    "EzdomError",
    "TreeError",
    "XMLSyntaxError",
    "CorrelationLogger",
    "configure_logging",
    "get_logger",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "ParseStatistics",
]
