"""Character and entity reference decoding, and escaping for output.

Decoding happens in two passes: line endings are normalized first, then a
single left-to-right scan resolves references. Entity replacement text is
scanned again where it was spliced in, which is how nested entities and the
predefined entities (whose values are character references) expand.
"""

import re
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from ezdom.character.encoding import HIGH_SURROGATE_START, LOW_SURROGATE_END
from ezdom.shared.logging import get_logger

logger = get_logger(__name__, component="decoder")

MAX_CODE_POINT = 0x10FFFF

#: Values of the predefined general entities; each expands on rescan.
PREDEFINED_ENTITIES: Dict[str, str] = {
    "lt": "&#60;",
    "gt": "&#62;",
    "quot": "&#34;",
    "apos": "&#39;",
    "amp": "&#38;",
}

_XML_WHITESPACE = " \t\n\r"

_CHAR_REF = re.compile(r"&#(?:x([0-9A-Fa-f]+)|([0-9]+));")
_ENTITY_REF = re.compile(r"([^\s&%<;]+);")

_TEXT_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;", "\r": "&#xD;"}
_ATTRIBUTE_ESCAPES = dict(
    _TEXT_ESCAPES, **{'"': "&quot;", "\n": "&#xA;", "\t": "&#x9;"}
)
_TEXT_ESCAPE_RE = re.compile("[&<>\r]")
_ATTRIBUTE_ESCAPE_RE = re.compile('[&<>"\r\n\t]')


class DecodeMode(Enum):
    """Which references are resolved and how whitespace is treated."""

    GENERAL = "&"               # character and general entity references
    PARAMETER = "%"             # parameter entity references only
    CDATA = "c"                 # line endings only
    ATTRIBUTE = " "             # attribute value of CDATA type
    ATTRIBUTE_NORMALIZED = "*"  # attribute value of any other type

    @property
    def expands_general(self) -> bool:
        return self in (
            DecodeMode.GENERAL, DecodeMode.ATTRIBUTE, DecodeMode.ATTRIBUTE_NORMALIZED
        )

    @property
    def is_attribute(self) -> bool:
        return self in (DecodeMode.ATTRIBUTE, DecodeMode.ATTRIBUTE_NORMALIZED)


def normalize_newlines(text: str) -> str:
    """Replace every CR LF pair and every lone CR with a single LF."""
    if "\r" not in text:
        return text
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _char_ref(text: str, pos: int) -> Optional[Tuple[str, int]]:
    """Decode the character reference at ``pos``.

    Returns the character and the position after the reference, or None
    when the text at ``pos`` is not a usable reference.
    """
    match = _CHAR_REF.match(text, pos)
    if match is None:
        return None
    hex_digits, dec_digits = match.groups()
    code_point = int(hex_digits, 16) if hex_digits else int(dec_digits)
    if code_point == 0 or code_point > MAX_CODE_POINT:
        return None
    if HIGH_SURROGATE_START <= code_point <= LOW_SURROGATE_END:
        return None
    return chr(code_point), match.end()


def _entity_name(text: str, pos: int) -> Optional[Tuple[str, int]]:
    """Return the name of the reference starting at ``pos`` and its end."""
    match = _ENTITY_REF.match(text, pos + 1)
    if match is None:
        return None
    return match.group(1), match.end()


def decode(
    text: str,
    entities: Optional[Mapping[str, str]],
    mode: DecodeMode = DecodeMode.GENERAL,
    max_expansions: int = 10000,
) -> str:
    """Decode references in ``text``.

    Args:
        text: Raw text or attribute value
        entities: Entity table consulted for ``&name;`` (or ``%name;`` in
            parameter mode); may be None
        mode: Decoding mode
        max_expansions: Entity expansions allowed in this call; references
            beyond the budget are left in place

    Returns:
        Decoded text. Unknown entities and malformed references are kept as
        written.
    """
    text = normalize_newlines(text)
    if mode is DecodeMode.CDATA:
        return text

    marker = "%" if mode is DecodeMode.PARAMETER else "&"
    attribute = mode.is_attribute
    if marker not in text and not attribute:
        return text

    out: List[str] = []
    # Pending input: replacement texts are pushed on top of the remainder of
    # the text they were found in.
    stack: List[Tuple[str, int]] = []
    current, pos = text, 0
    expansions = 0
    exhausted = False

    while True:
        if pos >= len(current):
            if not stack:
                break
            current, pos = stack.pop()
            continue

        ch = current[pos]
        if ch == marker:
            if mode.expands_general and current.startswith("&#", pos):
                decoded = _char_ref(current, pos)
                if decoded is not None:
                    out.append(decoded[0])
                    pos = decoded[1]
                    continue
            else:
                ref = _entity_name(current, pos)
                if ref is not None and entities and ref[0] in entities:
                    if expansions < max_expansions:
                        expansions += 1
                        stack.append((current, ref[1]))
                        current, pos = entities[ref[0]], 0
                        continue
                    exhausted = True
            out.append(ch)
            pos += 1
        elif attribute and ch in _XML_WHITESPACE:
            out.append(" ")
            pos += 1
        else:
            # Copy the run of characters that need no attention.
            end = pos + 1
            length = len(current)
            while end < length:
                nxt = current[end]
                if nxt == marker or (attribute and nxt in _XML_WHITESPACE):
                    break
                end += 1
            out.append(current[pos:end])
            pos = end

    if exhausted:
        logger.warning(
            "Entity expansion limit reached",
            extra={"max_expansions": max_expansions},
        )

    result = "".join(out)
    if mode is DecodeMode.ATTRIBUTE_NORMALIZED:
        result = " ".join(part for part in result.split(" ") if part)
    return result


def entity_is_acyclic(
    name: str,
    value: str,
    entities: Mapping[str, str],
    marker: str = "&",
) -> bool:
    """Check that ``value`` can be expanded without reaching ``name`` again.

    Every entity referenced from ``value`` is followed through ``entities``;
    the check fails when any path leads back to ``name``.
    """
    seen = set()
    pending = [value]
    while pending:
        current = pending.pop()
        pos = current.find(marker)
        while pos != -1:
            ref = _entity_name(current, pos)
            if ref is not None:
                ref_name = ref[0]
                if ref_name == name:
                    return False
                if ref_name in entities and ref_name not in seen:
                    seen.add(ref_name)
                    pending.append(entities[ref_name])
            pos = current.find(marker, pos + 1)
    return True


def escape(text: str, attribute: bool = False) -> str:
    """Escape ``text`` for output as character data or an attribute value."""
    if attribute:
        return _ATTRIBUTE_ESCAPE_RE.sub(lambda m: _ATTRIBUTE_ESCAPES[m.group()], text)
    return _TEXT_ESCAPE_RE.sub(lambda m: _TEXT_ESCAPES[m.group()], text)
