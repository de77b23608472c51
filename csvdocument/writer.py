"""Writer view: insert records into a Document's resource."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, List, Optional

from . import bom as boms
from .bom import Bom
from .document import Document, is_stringable
from .errors import InvalidArgument
from .filters import FilteredStream
from .records import RecordIterator, is_text_stream
from .rules import DEFAULT_OPEN_MODE, FALLBACK_ENCODING

logger = logging.getLogger(__name__)


class NullHandling(Enum):
    EXCEPTION = "exception"
    SKIP_CELL = "skip_cell"
    AS_EMPTY = "as_empty"


class Writer(Document):
    """
    Append records to the resource.

    The output stream is opened on the first insert and reused until close().
    Records always go to the end of the stream. The output BOM is written
    only when the stream is empty at that first insert.
    """

    def __init__(self, resource: Any, open_mode: str = DEFAULT_OPEN_MODE):
        super().__init__(resource, open_mode)
        self.null_handling = NullHandling.EXCEPTION
        self._raw = None
        self._stream = None
        self._owned = False
        self._pending_bom: Optional[Bom] = None
        self._output_encoding = FALLBACK_ENCODING

    def set_null_handling_mode(self, mode: NullHandling) -> "Writer":
        try:
            self.null_handling = NullHandling(mode)
        except ValueError:
            raise InvalidArgument(f"Unknown null handling mode: {mode!r}") from None
        return self

    def _cells(self, row: Any) -> List[str]:
        if isinstance(row, str):
            return self.dialect.apply(row)
        if isinstance(row, Mapping):
            row = row.values()
        if isinstance(row, (bytes, bytearray)) or not isinstance(row, Iterable):
            raise InvalidArgument(f"A row must be a string or an iterable of cells, got {type(row).__name__}")

        cells: List[str] = []
        for cell in row:
            if cell is None:
                if self.null_handling is NullHandling.EXCEPTION:
                    raise InvalidArgument("row contains a None cell")
                if self.null_handling is NullHandling.AS_EMPTY:
                    cells.append("")
                continue
            if not is_stringable(cell):
                raise InvalidArgument(f"cell of type {type(cell).__name__} cannot be converted to text")
            if isinstance(cell, (bytes, bytearray)):
                cell = bytes(cell).decode(self.encoding or FALLBACK_ENCODING)
            cells.append(str(cell))
        return cells

    def _output_stream(self):
        if self._stream is not None:
            return self._stream
        raw, owned = self._open_raw("write")
        try:
            at_start = True
            if hasattr(raw, "seekable") and raw.seekable():
                raw.seek(0, io.SEEK_END)
                at_start = raw.tell() == 0
            if is_text_stream(raw):
                stream = raw
            else:
                stream = self.stream_filters.resolve(raw, "write", close_inner=owned)
        except BaseException:
            if owned:
                raw.close()
            raise
        output_bom = self.bom_policy.output_bom
        self._raw, self._stream, self._owned = raw, stream, owned
        self._pending_bom = output_bom if at_start else None
        self._output_encoding = self.encoding or (output_bom.encoding if output_bom else FALLBACK_ENCODING)
        return stream

    def _emit(self, text: str) -> None:
        stream = self._output_stream()
        if hasattr(self._raw, "seekable") and self._raw.seekable():
            self._raw.seek(0, io.SEEK_END)
        if is_text_stream(stream):
            if self._pending_bom is not None and not text.startswith(self._pending_bom.text):
                text = self._pending_bom.text + text
            data = text
        else:
            data = boms.inject(text.encode(self._output_encoding), self._pending_bom)
        self._pending_bom = None
        stream.write(data)
        stream.flush()

    def insert_one(self, row: Any) -> "Writer":
        self._emit(self.dialect.format(self._cells(row), self.newline))
        return self

    def insert_all(self, rows: Any) -> "Writer":
        if isinstance(rows, (str, bytes, bytearray)) or not isinstance(rows, Iterable):
            raise InvalidArgument(f"rows must be an iterable of rows, got {type(rows).__name__}")
        lines = [self.dialect.format(self._cells(row), self.newline) for row in rows]
        if lines:
            self._emit("".join(lines))
        return self

    def get_output_iterator(self) -> RecordIterator:
        if self._stream is not None:
            self._stream.flush()
        return super().get_output_iterator()

    def close(self) -> None:
        stream, self._stream = self._stream, None
        self._raw = None
        if stream is None:
            return
        if self._owned or isinstance(stream, FilteredStream):
            stream.close()
        else:
            stream.flush()
        logger.debug("closed writer on %r", self.resource)

    def __enter__(self) -> "Writer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
