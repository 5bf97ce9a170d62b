"""Byte-level input handling: BOM detection, UTF-16 transcoding and decoding.

UTF-16 input is recognised only by its byte order mark and is transcoded to
UTF-8 by hand so that surrogate pairs are reassembled exactly as they appear
in the source. Everything else is treated as UTF-8, with an optional legacy
fallback codec when the bytes are not valid UTF-8.
"""

import codecs
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional

from ezdom.shared.config import CharacterConfig
from ezdom.shared.logging import get_logger

logger = get_logger(__name__, component="encoding")

# Surrogate ranges
HIGH_SURROGATE_START = 0xD800
HIGH_SURROGATE_END = 0xDBFF
LOW_SURROGATE_START = 0xDC00
LOW_SURROGATE_END = 0xDFFF

# UTF-8 sequence length thresholds
UTF8_1BYTE_MAX = 0x80
UTF8_2BYTE_MAX = 0x800
UTF8_3BYTE_MAX = 0x10000

REPLACEMENT_CHARACTER = "\ufffd"

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


class DetectionMethod(Enum):
    """How the source encoding was determined."""
    BOM = "bom"
    UTF8 = "utf8"
    FALLBACK = "fallback"
    REPLACEMENT = "replacement"


class BOMDetector:
    """Byte Order Mark (BOM) detection."""

    BOM_PATTERNS: ClassVar[Dict[bytes, str]] = {
        codecs.BOM_UTF8: "utf-8",
        codecs.BOM_UTF16_BE: "utf-16-be",
        codecs.BOM_UTF16_LE: "utf-16-le",
    }

    def detect(self, data: bytes) -> Optional[str]:
        """Return the encoding implied by a leading BOM, or None."""
        for bom, encoding in self.BOM_PATTERNS.items():
            if data.startswith(bom):
                return encoding
        return None


def encode_code_point(code_point: int, out: bytearray) -> None:
    """Append the UTF-8 encoding of ``code_point`` to ``out``."""
    if code_point < UTF8_1BYTE_MAX:
        out.append(code_point)
    elif code_point < UTF8_2BYTE_MAX:
        out.append(0xC0 | (code_point >> 6))
        out.append(0x80 | (code_point & 0x3F))
    elif code_point < UTF8_3BYTE_MAX:
        out.append(0xE0 | (code_point >> 12))
        out.append(0x80 | ((code_point >> 6) & 0x3F))
        out.append(0x80 | (code_point & 0x3F))
    else:
        out.append(0xF0 | (code_point >> 18))
        out.append(0x80 | ((code_point >> 12) & 0x3F))
        out.append(0x80 | ((code_point >> 6) & 0x3F))
        out.append(0x80 | (code_point & 0x3F))


def transcode(data: bytes) -> Optional[bytes]:
    """Transcode a BOM-marked UTF-16 buffer to UTF-8.

    Returns None when ``data`` does not start with a UTF-16 BOM. The BOM
    itself is not copied, a trailing odd byte is ignored, and a high
    surrogate followed by a low surrogate is combined into one code point.
    Unpaired surrogates are emitted as their three-byte encoding.
    """
    if data[:2] == codecs.BOM_UTF16_BE:
        big_endian = True
    elif data[:2] == codecs.BOM_UTF16_LE:
        big_endian = False
    else:
        return None

    length = len(data) - (len(data) % 2)
    out = bytearray()
    i = 2
    while i < length:
        if big_endian:
            unit = (data[i] << 8) | data[i + 1]
        else:
            unit = data[i] | (data[i + 1] << 8)
        i += 2

        if HIGH_SURROGATE_START <= unit <= HIGH_SURROGATE_END and i < length:
            if big_endian:
                low = (data[i] << 8) | data[i + 1]
            else:
                low = data[i] | (data[i + 1] << 8)
            if LOW_SURROGATE_START <= low <= LOW_SURROGATE_END:
                unit = (((unit & 0x3FF) << 10) | (low & 0x3FF)) + 0x10000
                i += 2

        encode_code_point(unit, out)

    return bytes(out)


@dataclass
class SourceText:
    """Decoded source text with a record of how it was obtained.

    Attributes:
        text: Working text handed to the tokenizer
        encoding: Name of the codec that produced ``text``
        method: Detection method used
        transcoded: UTF-8 copy of the input when it was UTF-16, else None
        warnings: Problems found while decoding
    """
    text: str
    encoding: str
    method: DetectionMethod
    transcoded: Optional[bytes] = None
    warnings: List[str] = field(default_factory=list)


def decode_source(data: bytes, config: Optional[CharacterConfig] = None) -> SourceText:
    """Turn raw input bytes into working text.

    Args:
        data: Complete input buffer
        config: Character layer configuration

    Returns:
        SourceText describing the decoded input
    """
    config = config or CharacterConfig()
    bom = BOMDetector().detect(data) if config.detect_bom else None

    if bom in ("utf-16-be", "utf-16-le") and config.transcode_utf16:
        utf8 = transcode(data)
        if utf8 is not None:
            # Unpaired surrogates survive transcoding but are not characters.
            text = utf8.decode("utf-8", errors="surrogatepass")
            text, unpaired = _LONE_SURROGATE.subn(REPLACEMENT_CHARACTER, text)
            logger.debug(
                "Transcoded UTF-16 input",
                extra={"encoding": bom, "input_bytes": len(data)},
            )
            warnings = []
            if unpaired:
                problem = f"{unpaired} unpaired UTF-16 surrogates replaced"
                logger.warning("Replaced unpaired surrogates", extra={"reason": problem})
                warnings.append(problem)
            return SourceText(
                text, bom, DetectionMethod.BOM, transcoded=utf8, warnings=warnings
            )

    if bom == "utf-8":
        data = data[len(codecs.BOM_UTF8):]

    try:
        text = data.decode("utf-8")
        method = DetectionMethod.BOM if bom == "utf-8" else DetectionMethod.UTF8
        return SourceText(text, "utf-8", method)
    except UnicodeDecodeError as e:
        problem = f"input is not valid UTF-8 at byte {e.start}"

    if config.fallback_encoding:
        text = data.decode(config.fallback_encoding, errors="replace")
        logger.warning(
            "Decoded input with fallback encoding",
            extra={"encoding": config.fallback_encoding, "reason": problem},
        )
        return SourceText(
            text,
            config.fallback_encoding,
            DetectionMethod.FALLBACK,
            warnings=[f"{problem}; decoded as {config.fallback_encoding}"],
        )

    text = data.decode("utf-8", errors="replace")
    logger.warning("Replaced undecodable input bytes", extra={"reason": problem})
    return SourceText(
        text,
        "utf-8",
        DetectionMethod.REPLACEMENT,
        warnings=[f"{problem}; invalid bytes replaced"],
    )
