"""
Byte-order marks: the known sequences, detection, stripping and injection.
"""

from __future__ import annotations

import codecs
from typing import NamedTuple, Optional, Tuple

from .errors import InvalidArgument


class Bom(NamedTuple):
    sequence: bytes
    label: str
    encoding: str

    @property
    def text(self) -> str:
        """The BOM as it appears once decoded."""
        return "\ufeff"


UTF8 = Bom(codecs.BOM_UTF8, "UTF-8", "utf-8")
UTF16_BE = Bom(codecs.BOM_UTF16_BE, "UTF-16 BE", "utf-16-be")
UTF16_LE = Bom(codecs.BOM_UTF16_LE, "UTF-16 LE", "utf-16-le")
UTF32_BE = Bom(codecs.BOM_UTF32_BE, "UTF-32 BE", "utf-32-be")
UTF32_LE = Bom(codecs.BOM_UTF32_LE, "UTF-32 LE", "utf-32-le")

# Ordered longest-first so UTF-32 is checked before UTF-16
# (the UTF-32 LE BOM starts with the UTF-16 LE BOM)
BOM_TABLE: Tuple[Bom, ...] = (UTF32_BE, UTF32_LE, UTF8, UTF16_BE, UTF16_LE)

MAX_BOM_LENGTH = max(len(bom.sequence) for bom in BOM_TABLE)


def detect(data: bytes) -> Optional[Bom]:
    """Return the BOM data starts with, or None."""
    for bom in BOM_TABLE:
        if data.startswith(bom.sequence):
            return bom
    return None


def strip(data: bytes, bom: Optional[Bom]) -> bytes:
    if bom is None or not data.startswith(bom.sequence):
        return data
    return data[len(bom.sequence):]


def inject(data: bytes, bom: Optional[Bom]) -> bytes:
    if bom is None or data.startswith(bom.sequence):
        return data
    return bom.sequence + data


def from_label(label: str) -> Bom:
    """Look a BOM up by label ("UTF-16 LE") or encoding name ("utf-16-le", "utf_16_le")."""
    wanted = label.strip().lower().replace("_", "-").replace(" ", "-")
    if wanted in ("utf8", "utf-8-sig"):
        wanted = "utf-8"
    for bom in BOM_TABLE:
        if wanted in (bom.encoding, bom.label.lower().replace(" ", "-")):
            return bom
    raise InvalidArgument(f"Unknown BOM label: {label!r}")
