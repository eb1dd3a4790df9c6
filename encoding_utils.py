#!/usr/bin/env python3
"""
Byte-order-mark sniffing and control character helpers for dos2unix.
"""

from enum import Enum
from typing import Dict, Tuple


class Bom(Enum):
    """Byte-order-mark variants recognized at the start of a file."""

    NONE = "none"
    UTF8 = "utf-8"
    UTF16_LE = "utf-16-le"
    UTF16_BE = "utf-16-be"
    UTF32_LE = "utf-32-le"
    UTF32_BE = "utf-32-be"


# Longest signatures first: the UTF-32-LE mark begins with the UTF-16-LE one
BOM_SIGNATURES: Tuple[Tuple[bytes, Bom], ...] = (
    (b"\xff\xfe\x00\x00", Bom.UTF32_LE),
    (b"\x00\x00\xfe\xff", Bom.UTF32_BE),
    (b"\xef\xbb\xbf", Bom.UTF8),
    (b"\xff\xfe", Bom.UTF16_LE),
    (b"\xfe\xff", Bom.UTF16_BE),
)

MAX_BOM_LENGTH: int = max(len(signature) for signature, _ in BOM_SIGNATURES)

_BYTES_PER_BOM: Dict[Bom, int] = {
    Bom.NONE: 0,
    Bom.UTF8: 3,
    Bom.UTF16_LE: 2,
    Bom.UTF16_BE: 2,
    Bom.UTF32_LE: 4,
    Bom.UTF32_BE: 4,
}

_BYTES_PER_CONTROL_CHAR: Dict[Bom, int] = {
    Bom.NONE: 1,
    Bom.UTF8: 1,
    Bom.UTF16_LE: 2,
    Bom.UTF16_BE: 2,
    Bom.UTF32_LE: 4,
    Bom.UTF32_BE: 4,
}

# Codec used to render a single control character in each variant
_CODECS: Dict[Bom, str] = {
    Bom.NONE: "ascii",
    Bom.UTF8: "utf-8",
    Bom.UTF16_LE: "utf-16-le",
    Bom.UTF16_BE: "utf-16-be",
    Bom.UTF32_LE: "utf-32-le",
    Bom.UTF32_BE: "utf-32-be",
}

CR_SEQUENCES: Dict[Bom, bytes] = {bom: "\r".encode(codec) for bom, codec in _CODECS.items()}
LF_SEQUENCES: Dict[Bom, bytes] = {bom: "\n".encode(codec) for bom, codec in _CODECS.items()}
NUL_SEQUENCES: Dict[Bom, bytes] = {bom: "\x00".encode(codec) for bom, codec in _CODECS.items()}


def detect_bom_from_buffer(data: bytes) -> Bom:
    """Match the leading bytes of an in-memory buffer against known BOMs."""
    for signature, bom in BOM_SIGNATURES:
        if data.startswith(signature):
            return bom
    return Bom.NONE


def detect_bom(file_path: str) -> Bom:
    """
    Detect the byte-order mark of a file from its leading bytes.

    Raises OSError if the file cannot be opened or read.
    """
    with open(file_path, "rb") as f:
        head: bytes = f.read(MAX_BOM_LENGTH)
    return detect_bom_from_buffer(head)


def get_bytes_per_bom(bom: Bom) -> int:
    return _BYTES_PER_BOM[bom]


def get_bytes_per_control_char(bom: Bom) -> int:
    return _BYTES_PER_CONTROL_CHAR[bom]


def is_byte_sequence_cr(unit: bytes, bom: Bom = Bom.NONE) -> bool:
    """Check whether a control-unit-wide window is a carriage return."""
    return unit == CR_SEQUENCES[bom]


def is_byte_sequence_lf(unit: bytes, bom: Bom = Bom.NONE) -> bool:
    """Check whether a control-unit-wide window is a line feed."""
    return unit == LF_SEQUENCES[bom]


def does_byte_sequence_suggest_binary(unit: bytes, bom: Bom = Bom.NONE) -> bool:
    """
    Check whether a control-unit-wide window indicates non-text content.

    A unit is binary only when it is the NUL character of the encoding,
    i.e. every byte of the unit is zero. Zero
    bytes that are part of a wider UTF-16/UTF-32 code unit never match on
    their own because the whole unit is compared at once.
    """
    return unit == NUL_SEQUENCES[bom]
