"""Tokenization layer for ezdom.

This module splits decoded source text into markup tokens and interprets the
internal DTD subset.

Key Components:
    XMLTokenizer: Generator of tokens over a whole document
    Token: One piece of markup or character data with its source position
    TokenType: Enumeration of the token kinds
    DTDProcessor: Applies entity and attribute-list declarations to a document
"""

from .dtd import DTDProcessor
from .tokenizer import Token, TokenType, XMLTokenizer, tokenize

__all__ = [
    "DTDProcessor",
    "Token",
    "TokenType",
    "XMLTokenizer",
    "tokenize",
]
