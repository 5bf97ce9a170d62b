"""Command-line interface module for ezdom.

This module provides the ``ezdom`` command for parsing, checking and querying
XML files.
"""

from .main import main

__all__ = ["main"]
