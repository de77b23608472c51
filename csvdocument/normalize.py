"""
CSV normalization built on Reader and Writer.

Responsibilities:
- input BOM detection, or encoding detection when there is none
- delimiter detection (unless the caller fixes the dialect)
- row length enforcement
- output as comma-separated UTF-8 with BOM, LF line endings
"""

from __future__ import annotations

import base64
import codecs
import hashlib
import io
import logging
from typing import Any, Dict, List, Optional, Tuple

from . import bom
from .dialect import Dialect
from .errors import InvalidArgument
from .filters import detect_encoding
from .reader import Reader
from .rules import FALLBACK_ENCODING, NORMALIZED_DELIMITER, TARGET_ENCODING
from .writer import Writer

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = [",", ";", "\t", "|"]
SNIFF_ROWS = 20


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _source_encoding(raw: bytes, requested: str) -> Tuple[Optional[str], str]:
    """Return (detected, used) for input without a BOM."""
    if requested.lower() != "auto":
        try:
            return None, codecs.lookup(requested).name
        except LookupError:
            raise InvalidArgument(f"Unknown source encoding: {requested!r}") from None
    detected = detect_encoding(raw)
    return detected, detected or FALLBACK_ENCODING


def normalize_to_utf8_bom(
    raw: bytes,
    dialect: Optional[Dialect] = None,
    source_encoding: str = "auto",
) -> Tuple[bytes, Dict[str, Any], List[dict], List[dict]]:
    """
    Re-emit ``raw`` as comma-separated UTF-8 with BOM.

    Rules:
    - A leading BOM decides the source encoding.
    - Without one, the source encoding is ``source_encoding`` or, for "auto",
      charset-normalizer's best guess; undecodable bytes are replaced.
    - Without an explicit dialect the delimiter is picked among
      CANDIDATE_DELIMITERS, defaulting to a comma.
    - Short rows are padded to the first row's width; long rows are reported.
    """
    warnings: List[dict] = []
    errors: List[dict] = []

    reader = Reader.from_string(raw)
    input_bom = reader.get_input_bom()
    detected = None
    if input_bom is not None:
        decode_used = input_bom.encoding
    else:
        detected, decode_used = _source_encoding(raw, source_encoding)
        reader.append_stream_filter(
            "convert.transcode",
            {"from_encoding": decode_used, "to_encoding": "utf-8", "errors": "replace"},
            applies_to="read",
        )

    sniffed = False
    if dialect is not None:
        reader.dialect = dialect
    else:
        found = reader.detect_delimiter_list(SNIFF_ROWS, CANDIDATE_DELIMITERS)
        if found:
            reader.set_delimiter(next(iter(found)))
            sniffed = True
    detected_delim = reader.delimiter

    rows = reader.fetch_all()
    width_expected = len(rows[0]) if rows else None
    width_short_rows = 0
    width_long_rows = 0
    total_cols_max = 0

    output = io.BytesIO()
    writer = Writer(output, "w")
    writer.set_output_bom(bom.UTF8)

    padded: List[List[str]] = []
    for i, row in enumerate(rows):
        total_cols_max = max(total_cols_max, len(row))

        if len(row) < width_expected:
            width_short_rows += 1
            warnings.append({
                "row": i + 1,
                "column": None,
                "issue": "row_too_short",
                "value": str(len(row)),
                "action": f"padded_to_{width_expected}",
            })
            row = row + [""] * (width_expected - len(row))
        elif len(row) > width_expected:
            width_long_rows += 1
            errors.append({
                "row": i + 1,
                "column": None,
                "issue": "row_too_long",
                "value": str(len(row)),
                "action": f"expected_{width_expected}",
            })
        padded.append(row)

    writer.insert_all(padded)
    writer.close()
    # the output always carries the BOM, even with no rows to write
    normalized = bom.inject(output.getvalue(), bom.UTF8)

    logger.info(
        "normalized %d rows (input BOM: %s, source encoding: %s, delimiter: %r)",
        len(rows),
        input_bom.label if input_bom else None,
        decode_used,
        detected_delim,
    )

    report = {
        "encoding": {
            "input_bom": input_bom.label if input_bom else None,
            "detected": detected,
            "decode_used": decode_used,
            "output": "utf-8-bom",
        },
        "delimiter": {
            "detected": detected_delim,
            "output": NORMALIZED_DELIMITER,
            "sniffed": sniffed,
            "changed": detected_delim != NORMALIZED_DELIMITER,
        },
        "row_width": {
            "expected_columns": width_expected,
            "short_rows_padded": width_short_rows,
            "long_rows_errors": width_long_rows,
            "total_rows": len(rows),
            "max_columns_seen": total_cols_max,
            "policy": {
                "short_rows": "pad",
                "long_rows": "error",
            },
        },
    }
    return normalized, report, warnings, errors


def normalize_csv_bytes(
    raw: bytes,
    dialect: Optional[Dialect] = None,
    source_encoding: str = "auto",
) -> Dict[str, Any]:
    """Return a dict matching the API's response envelope."""
    normalized_bytes, report, warnings, errors = normalize_to_utf8_bom(raw, dialect, source_encoding)

    b64 = base64.b64encode(normalized_bytes).decode("ascii")
    return {
        "normalized_csv": {
            "sha256": _sha256_hex(normalized_bytes),
            "encoding": TARGET_ENCODING,
            "content_b64": b64,
        },
        "report": {
            "summary": {
                "rows": report["row_width"]["total_rows"],
                "columns": report["row_width"]["expected_columns"],
                "input_bom": report["encoding"]["input_bom"],
                "warnings": len(warnings),
                "errors": len(errors),
                "deterministic": True,
            },
            "normalizations": report,
            "warnings": warnings,
            "errors": errors,
        },
    }
