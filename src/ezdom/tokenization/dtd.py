"""Internal DTD subset processing.

Only the parts of a DTD that change how a document reads are interpreted:
entity declarations (general and parameter) and attribute-list declarations,
which supply default values and decide how attribute values are normalized.
Comments are skipped, processing instructions are handed back to the caller
and every other declaration is passed over unread. Problems in a declaration
are reported and the remaining declarations are still processed.
"""

from typing import TYPE_CHECKING, Callable, Optional

from ezdom.character.entities import DecodeMode, decode, entity_is_acyclic
from ezdom.shared.logging import get_logger
from ezdom.tokenization.tokenizer import XML_WHITESPACE
from ezdom.tree.nodes import AttributeDefault, AttributeKind

if TYPE_CHECKING:
    from ezdom.tree.document import Document

logger = get_logger(__name__, component="dtd")

ENTITY_OPEN = "<!ENTITY"
ATTLIST_OPEN = "<!ATTLIST"

#: Called with a message and its absolute position in the source text.
ErrorCallback = Callable[[str, int], None]
#: Called with a processing instruction body and its absolute position.
InstructionCallback = Callable[[str, int], None]


class DTDProcessor:
    """Applies the declarations of an internal subset to a document.

    Args:
        document: Document whose entity and attribute tables are filled
        on_error: Receives declaration errors
        on_instruction: Receives processing instructions found in the subset
        max_expansions: Entity expansion budget for each decoded value
    """

    def __init__(
        self,
        document: "Document",
        on_error: ErrorCallback,
        on_instruction: Optional[InstructionCallback] = None,
        max_expansions: int = 10000,
    ) -> None:
        self.document = document
        self.on_error = on_error
        self.on_instruction = on_instruction
        self.max_expansions = max_expansions
        self._subset = ""
        self._base = 0

    def process(self, subset: str, base: int = 0) -> None:
        """Process ``subset``, which starts at offset ``base`` of the source."""
        self._subset = subset
        self._base = base
        s = subset
        n = len(s)
        pos = 0

        while pos < n:
            if s.startswith(ENTITY_OPEN, pos):
                pos = self._entity(pos)
            elif s.startswith(ATTLIST_OPEN, pos):
                pos = self._attlist(pos)
            elif s.startswith("<!--", pos):
                end = s.find("-->", pos + 4)
                if end == -1:
                    self._error("unclosed <!--", pos)
                    return
                pos = end + 3
            elif s.startswith("<?", pos):
                end = s.find("?>", pos + 2)
                if end == -1:
                    self._error("unclosed <?", pos)
                    return
                if self.on_instruction is not None:
                    self.on_instruction(s[pos + 2:end], base + pos + 2)
                pos = end + 2
            elif s[pos] == "<":
                end = s.find(">", pos)
                if end == -1:
                    self._error("missing >", pos)
                    return
                pos = end + 1
            elif s[pos] == "%" and not self.document.standalone:
                # The declarations that follow may depend on an external
                # parameter entity; they cannot be trusted.
                logger.debug(
                    "Parameter entity reference stops subset processing",
                    extra={"position": base + pos},
                )
                return
            else:
                pos += 1

    def _error(self, message: str, pos: int) -> None:
        logger.warning(message, extra={"position": self._base + pos})
        self.on_error(message, self._base + pos)

    def _skip_ws(self, pos: int) -> int:
        s = self._subset
        while pos < len(s) and s[pos] in XML_WHITESPACE:
            pos += 1
        return pos

    def _scan_until(self, pos: int, stops: str) -> int:
        s = self._subset
        while pos < len(s) and s[pos] not in stops:
            pos += 1
        return pos

    def _after_declaration(self, pos: int) -> int:
        end = self._subset.find(">", pos)
        return len(self._subset) if end == -1 else end + 1

    def _entity(self, start: int) -> int:
        s = self._subset
        cur = self._skip_ws(start + len(ENTITY_OPEN))
        parameter = s.startswith("%", cur)
        if parameter:
            cur = self._skip_ws(cur + 1)
        name_end = self._scan_until(cur, XML_WHITESPACE + "\"'>")
        name = s[cur:name_end]
        cur = self._skip_ws(name_end)

        quote = s[cur:cur + 1]
        if quote not in ('"', "'"):
            # SYSTEM or PUBLIC identifier: external entities are not resolved.
            return self._after_declaration(cur)
        close = s.find(quote, cur + 1)
        if close == -1:
            self._error("unclosed <!ENTITY", start)
            return len(s)
        if not name:
            self._error("malformed <!ENTITY", start)
            return self._after_declaration(close + 1)

        value = decode(
            s[cur + 1:close],
            self.document.parameter_entities,
            DecodeMode.PARAMETER,
            self.max_expansions,
        )
        if parameter:
            table, marker = self.document.parameter_entities, "%"
        else:
            table, marker = self.document.entities, "&"

        if name in table:
            logger.debug("Ignoring redeclared entity", extra={"entity": name})
        elif not entity_is_acyclic(name, value, table, marker):
            self._error(f"circular entity declaration {marker}{name}", start)
        else:
            table[name] = value
            self.document.statistics.entities_declared += 1
        return self._after_declaration(close + 1)

    def _attlist(self, start: int) -> int:
        s = self._subset
        n = len(s)
        cur = self._skip_ws(start + len(ATTLIST_OPEN))
        if cur >= n:
            self._error("unclosed <!ATTLIST", start)
            return n
        tag_end = self._scan_until(cur, XML_WHITESPACE + ">")
        tag = s[cur:tag_end]
        cur = tag_end

        while True:
            cur = self._skip_ws(cur)
            if cur >= n:
                self._error("unclosed <!ATTLIST", start)
                return n
            if s[cur] == ">":
                return cur + 1

            if not (s[cur].isalpha() or s[cur] in "_:"):
                break
            name_end = self._scan_until(cur, XML_WHITESPACE + ">")
            name = s[cur:name_end]
            cur = self._skip_ws(name_end)

            kind = AttributeKind.CDATA if s.startswith("CDATA", cur) else AttributeKind.NORMALIZED
            if s.startswith("NOTATION", cur):
                cur = self._skip_ws(cur + len("NOTATION"))
            if s.startswith("(", cur):
                close = s.find(")", cur)
                if close == -1:
                    break
                cur = close + 1
            else:
                cur = self._scan_until(cur, XML_WHITESPACE + ">")
            cur = self._skip_ws(cur)
            if s.startswith("#FIXED", cur):
                cur = self._skip_ws(cur + len("#FIXED"))

            if s.startswith("#", cur):
                # #IMPLIED or #REQUIRED: no default value
                cur = self._scan_until(cur, XML_WHITESPACE + ">")
                if kind is AttributeKind.CDATA:
                    continue
                value = None
            elif s[cur:cur + 1] in ('"', "'"):
                close = s.find(s[cur], cur + 1)
                if close == -1:
                    break
                mode = (
                    DecodeMode.ATTRIBUTE
                    if kind is AttributeKind.CDATA
                    else DecodeMode.ATTRIBUTE_NORMALIZED
                )
                value = decode(
                    s[cur + 1:close], self.document.entities, mode, self.max_expansions
                )
                cur = close + 1
            else:
                break

            declared = self.document.default_attributes.setdefault(tag, [])
            if all(existing.name != name for existing in declared):
                declared.append(AttributeDefault(name, value, kind))

        self._error("malformed <!ATTLIST", start)
        return self._after_declaration(cur)
