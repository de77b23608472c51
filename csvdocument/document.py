"""
Document: a resource reference bound to a dialect, a BOM policy and a
filter chain.

A document bound to an open handle (HandleRef) reuses that handle for every
iterator and never closes it. A document bound to a path (PathRef) opens a
fresh handle per iterator and closes it when the iterator is released.

Two live iterators from the same handle-bound document share the handle's
cursor; keeping them apart is the caller's job.
"""

from __future__ import annotations

import codecs
import io
import logging
import os
from itertools import islice
from pathlib import PurePath
from typing import Any, Dict, NamedTuple, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel

from . import bom as boms
from .bom import Bom
from .dialect import Dialect
from .errors import InvalidArgument, InvalidPath
from .filters import AppliesTo, FilterChain, FilteredStream, Mode
from .records import LineSource, RecordIterator, is_text_stream
from .rules import DEFAULT_NEWLINE, DEFAULT_OPEN_MODE, FALLBACK_ENCODING, VIEW_OPEN_MODE

logger = logging.getLogger(__name__)

D = TypeVar("D", bound="Document")


class HandleRef(NamedTuple):
    handle: Any


class PathRef(NamedTuple):
    path: str


ResourceRef = Union[HandleRef, PathRef]


def normalize_resource(resource: Any) -> ResourceRef:
    if isinstance(resource, (HandleRef, PathRef)):
        return resource
    if hasattr(resource, "read") or hasattr(resource, "write"):
        return HandleRef(resource)
    if isinstance(resource, PurePath):
        return PathRef(str(resource.parent) + "/" + resource.name)
    if isinstance(resource, (os.PathLike, bytes)):
        return PathRef(os.fsdecode(resource).strip())
    return PathRef(str(resource).strip())


def is_stringable(value: Any) -> bool:
    """True for scalars and for objects whose class defines its own __str__."""
    if isinstance(value, (str, bytes, int, float, bool)):
        return True
    if value is None:
        return False
    return type(value).__str__ is not object.__str__


def _binary_mode(open_mode: str, access: str = "write") -> str:
    mode = open_mode.replace("t", "")
    # reading never truncates or creates the file
    if access == "read" and mode[:1] in ("w", "x", "a"):
        mode = "r" + mode[1:].replace("+", "")
    return mode if "b" in mode else mode + "b"


def as_bom(value: Union[Bom, str, bytes, None]) -> Optional[Bom]:
    if value is None or isinstance(value, Bom):
        return value
    if isinstance(value, (bytes, bytearray)):
        if not value:
            return None
        found = boms.detect(bytes(value))
        if found is None or found.sequence != bytes(value):
            raise InvalidArgument(f"Unknown BOM sequence: {bytes(value)!r}")
        return found
    if isinstance(value, str):
        return boms.from_label(value) if value else None
    raise InvalidArgument(f"Expected a Bom, a label or a byte sequence, got {type(value).__name__}")


class BomPolicy(BaseModel):
    # a forced BOM to strip on read; None lets detect_input decide
    input_bom: Optional[Bom] = None
    detect_input: bool = True
    output_bom: Optional[Bom] = None


class Document:
    def __init__(self, resource: Any, open_mode: str = DEFAULT_OPEN_MODE):
        if not isinstance(open_mode, str) or not open_mode.strip():
            raise InvalidArgument("open mode must be a non-empty string")
        self._resource = normalize_resource(resource)
        self.open_mode = open_mode.strip().lower()
        self.dialect = Dialect()
        self.bom_policy = BomPolicy()
        self.stream_filters = FilterChain()
        self.newline = DEFAULT_NEWLINE
        # None: use the detected BOM's encoding, else UTF-8
        self.encoding: Optional[str] = None
        self.auto_detect_line_endings = True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._resource!r}, open_mode={self.open_mode!r})"

    # --- factories ---

    @classmethod
    def from_path(cls: Type[D], path: Any, open_mode: str = DEFAULT_OPEN_MODE) -> D:
        if hasattr(path, "read") or hasattr(path, "write"):
            raise InvalidArgument("from_path expects a path, use from_file_object for open handles")
        return cls(path, open_mode)

    @classmethod
    def from_file_object(cls: Type[D], handle: Any) -> D:
        if not (hasattr(handle, "read") or hasattr(handle, "write")):
            raise InvalidArgument(f"Expected an open file object, got {type(handle).__name__}")
        return cls(handle)

    @classmethod
    def from_string(cls: Type[D], content: Union[str, bytes], encoding: str = FALLBACK_ENCODING) -> D:
        if isinstance(content, str):
            content = content.encode(encoding)
        return cls(io.BytesIO(content))

    # --- resource binding ---

    @property
    def resource(self) -> ResourceRef:
        return self._resource

    @property
    def is_handle_bound(self) -> bool:
        return isinstance(self._resource, HandleRef)

    @property
    def path(self) -> Optional[str]:
        return self._resource.path if isinstance(self._resource, PathRef) else None

    def _open_raw(self, mode: Mode):
        """Return the unfiltered stream for ``mode`` and whether this document owns it."""
        if isinstance(self._resource, HandleRef):
            handle = self._resource.handle
            if is_text_stream(handle) and self.stream_filters.applicable(mode):
                raise InvalidArgument("stream filters need a binary stream, got a text handle")
            if mode == "read" and hasattr(handle, "seekable") and handle.seekable():
                handle.seek(0)
            return handle, False

        self.stream_filters.validate(mode)
        path = self._resource.path
        if not path:
            raise InvalidPath("empty path")
        logger.debug("opening %s with mode %s for %s", path, self.open_mode, mode)
        try:
            return open(path, _binary_mode(self.open_mode, mode)), True
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise InvalidPath(f"Cannot open {path!r}: {exc.strerror}") from exc

    def _open_stream(self, mode: Mode):
        """Return the filtered stream for ``mode`` and whether this document owns it."""
        raw, owned = self._open_raw(mode)
        if is_text_stream(raw):
            return raw, owned
        try:
            return self.stream_filters.resolve(raw, mode, close_inner=owned), owned
        except BaseException:
            if owned:
                raw.close()
            raise

    def _line_source(self, detect_bom: Optional[bool] = None) -> LineSource:
        stream, owned = self._open_stream("read")
        try:
            return LineSource(
                stream,
                owned,
                encoding=self.encoding,
                input_bom=self.bom_policy.input_bom,
                detect_bom=self.bom_policy.detect_input if detect_bom is None else detect_bom,
                auto_detect_line_endings=self.auto_detect_line_endings,
            )
        except BaseException:
            _release_stream(stream, owned)
            raise

    def _iterate(self, dialect: Dialect) -> RecordIterator:
        return RecordIterator(self._line_source(), dialect)

    def get_iterator(self) -> RecordIterator:
        """
        Return a fresh record iterator starting at the beginning of the resource.

        Filters are resolved and the resource is opened here; records are
        read lazily.
        """
        return self._iterate(self.dialect)

    def get_output_iterator(self) -> RecordIterator:
        return self.get_iterator()

    def __iter__(self) -> RecordIterator:
        return self.get_iterator()

    # --- dialect ---

    @property
    def delimiter(self) -> str:
        return self.dialect.delimiter

    @property
    def enclosure(self) -> str:
        return self.dialect.enclosure

    @property
    def escape(self) -> str:
        return self.dialect.escape

    def set_delimiter(self: D, value: Any) -> D:
        self.dialect = self.dialect.set_delimiter(value)
        return self

    def set_enclosure(self: D, value: Any) -> D:
        self.dialect = self.dialect.set_enclosure(value)
        return self

    def set_escape(self: D, value: Any) -> D:
        self.dialect = self.dialect.set_escape(value)
        return self

    def set_newline(self: D, value: str) -> D:
        if not isinstance(value, str):
            raise InvalidArgument("newline must be a string")
        self.newline = value
        return self

    def set_encoding(self: D, value: Optional[str]) -> D:
        if value is not None:
            try:
                codecs.lookup(value)
            except (LookupError, TypeError):
                raise InvalidArgument(f"Unknown encoding: {value!r}") from None
        self.encoding = value
        return self

    def detect_delimiter_list(self, nb_rows: int = 1, delimiters: Sequence[str] = ()) -> Dict[str, int]:
        """
        Count, for each candidate delimiter, how many of the first ``nb_rows``
        records it splits into more than one field.

        The current delimiter is always a candidate. Candidates that cannot
        form a valid dialect with the current enclosure and escape are
        ignored, and so are candidates that never split a record. The result
        is ordered by count, highest first.
        """
        if nb_rows < 1:
            raise InvalidArgument("nb_rows must be a positive integer")
        candidates = list(dict.fromkeys([self.delimiter, *delimiters]))
        counts: Dict[str, int] = {}
        for candidate in candidates:
            try:
                dialect = self.dialect.set_delimiter(candidate)
            except InvalidArgument:
                continue
            with self._iterate(dialect) as records:
                count = sum(1 for record in islice(records, nb_rows) if len(record) > 1)
            if count:
                counts[dialect.delimiter] = count
        return dict(sorted(counts.items(), key=lambda item: item[1], reverse=True))

    # --- stream filters ---

    def append_stream_filter(
        self: D, name: str, params: Optional[Dict[str, Any]] = None, applies_to: AppliesTo = "both"
    ) -> D:
        self.stream_filters.append(name, params, applies_to)
        return self

    def prepend_stream_filter(
        self: D, name: str, params: Optional[Dict[str, Any]] = None, applies_to: AppliesTo = "both"
    ) -> D:
        self.stream_filters.prepend(name, params, applies_to)
        return self

    def remove_stream_filter(self, name: str) -> bool:
        return self.stream_filters.remove(name)

    def has_stream_filter(self, name: str) -> bool:
        return self.stream_filters.has(name)

    def clear_stream_filter(self: D) -> D:
        self.stream_filters.clear()
        return self

    # --- BOM ---

    def get_input_bom(self) -> Optional[Bom]:
        """The forced input BOM, or the one the resource starts with."""
        if self.bom_policy.input_bom is not None:
            return self.bom_policy.input_bom
        source = self._line_source(detect_bom=True)
        try:
            return source.bom
        finally:
            source.release()

    def set_input_bom(self: D, value: Union[Bom, str, bytes, None]) -> D:
        self.bom_policy.input_bom = as_bom(value)
        return self

    def get_output_bom(self) -> Optional[Bom]:
        return self.bom_policy.output_bom

    def set_output_bom(self: D, value: Union[Bom, str, bytes, None]) -> D:
        self.bom_policy.output_bom = as_bom(value)
        return self

    # --- output ---

    def to_bytes(self) -> bytes:
        """
        Return the resource content as read through the filter chain.

        When an output BOM is set, it replaces whatever BOM the content
        starts with.
        """
        stream, owned = self._open_stream("read")
        try:
            data = stream.read()
        finally:
            _release_stream(stream, owned)
        if isinstance(data, str):
            data = data.encode(self.encoding or FALLBACK_ENCODING)
        output_bom = self.bom_policy.output_bom
        if output_bom is not None:
            data = boms.inject(boms.strip(data, boms.detect(data)), output_bom)
        return data

    def output(self, target) -> int:
        data = self.to_bytes()
        target.write(data)
        return len(data)

    # --- derivation ---

    def derive_into(self, cls: Type[D], open_mode: str = VIEW_OPEN_MODE) -> D:
        """
        Build a ``cls`` document on the same resource reference with a copy
        of this document's configuration.
        """
        csv = cls(self._resource, open_mode)
        csv.dialect = self.dialect.model_copy()
        csv.bom_policy = self.bom_policy.model_copy()
        csv.stream_filters = self.stream_filters.copy()
        csv.newline = self.newline
        csv.encoding = self.encoding
        csv.auto_detect_line_endings = self.auto_detect_line_endings
        return csv

    def new_reader(self, open_mode: str = VIEW_OPEN_MODE):
        from .reader import Reader

        return self.derive_into(Reader, open_mode)

    def new_writer(self, open_mode: str = VIEW_OPEN_MODE):
        from .writer import Writer

        return self.derive_into(Writer, open_mode)

    is_stringable = staticmethod(is_stringable)


def _release_stream(stream, owned: bool) -> None:
    if owned:
        stream.close()
    elif isinstance(stream, FilteredStream):
        stream.close()
