"""
Record iteration.

LineSource turns an open stream into text lines: it strips a leading BOM
once, decodes bytes, and applies the line-ending policy it is given.
RecordIterator turns those lines into records with a Dialect.
"""

from __future__ import annotations

import io
import logging
from itertools import chain
from typing import Iterator, List, Optional

from . import bom as boms
from .bom import Bom
from .dialect import Dialect
from .filters import FilteredStream
from .rules import FALLBACK_ENCODING

logger = logging.getLogger(__name__)


def is_text_stream(stream) -> bool:
    return isinstance(stream, io.TextIOBase)


def drop_newline(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith(("\n", "\r")):
        return line[:-1]
    return line


class LineSource:
    """
    Text lines read from a binary or text stream.

    Borrowed streams (``owned=False``) are never closed: the wrappers built
    around them are detached on release instead.
    """

    def __init__(
        self,
        stream,
        owned: bool,
        encoding: Optional[str] = None,
        input_bom: Optional[Bom] = None,
        detect_bom: bool = True,
        auto_detect_line_endings: bool = True,
    ):
        self._stream = stream
        self._owned = owned
        self._text: Optional[io.TextIOWrapper] = None
        self._released = False
        self.bom: Optional[Bom] = None
        self.encoding: Optional[str] = None

        if is_text_stream(stream):
            first = stream.readline()
            if first.startswith(boms.UTF8.text) and (input_bom is not None or detect_bom):
                first = first[1:]
                self.bom = input_bom or boms.UTF8
            rest = iter(stream.readline, "")
            self._lines = chain([first], rest) if first else rest
            return

        buffered = stream if hasattr(stream, "peek") else io.BufferedReader(stream)
        try:
            prefix = buffered.peek(boms.MAX_BOM_LENGTH)[: boms.MAX_BOM_LENGTH]
            if input_bom is not None:
                found = input_bom if prefix.startswith(input_bom.sequence) else None
            else:
                found = boms.detect(prefix) if detect_bom else None
            if found is not None:
                buffered.read(len(found.sequence))
                logger.debug("stripped %s BOM", found.label)
            self.bom = found
            self.encoding = encoding or (found.encoding if found else FALLBACK_ENCODING)
            self._text = io.TextIOWrapper(
                buffered,
                encoding=self.encoding,
                newline=None if auto_detect_line_endings else "",
            )
        except BaseException:
            # a temporary wrapper must not close the stream when collected
            if buffered is not stream and not owned:
                buffered.detach()
            raise
        self._lines = iter(self._text.readline, "")

    def __iter__(self) -> Iterator[str]:
        return self._lines

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._text is None:
            return
        if self._owned:
            self._text.close()
            return
        buffered = self._text.detach()
        if buffered is not self._stream:
            buffered.detach()
        if isinstance(self._stream, FilteredStream):
            self._stream.close()


class RecordIterator:
    """
    Lazy records over a LineSource.

    Physical lines are joined while a record ends inside an enclosure; empty
    lines are skipped. The source is released on exhaustion, on close() and
    when the iterator is garbage collected.
    """

    def __init__(self, source: LineSource, dialect: Dialect):
        self._source: Optional[LineSource] = source
        self._lines = iter(source)
        self._dialect = dialect

    @property
    def bom(self) -> Optional[Bom]:
        return self._source.bom if self._source is not None else None

    def __iter__(self) -> "RecordIterator":
        return self

    def __next__(self) -> List[str]:
        if self._source is None:
            raise StopIteration
        for line in self._lines:
            buffer = line
            fields, complete = self._dialect.split(drop_newline(buffer))
            while not complete:
                more = next(self._lines, None)
                if more is None:
                    break
                buffer += more
                fields, complete = self._dialect.split(drop_newline(buffer))
            if not drop_newline(buffer):
                continue
            return fields
        self.close()
        raise StopIteration

    def close(self) -> None:
        source, self._source = self._source, None
        if source is not None:
            source.release()

    def __enter__(self) -> "RecordIterator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_source", None) is not None:
            self.close()
