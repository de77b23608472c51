"""
Stream filters: named byte transforms wrapped around the raw resource.

Order of application is fixed. ``FilterChain.resolve`` wraps the raw stream
with the last registered filter first, so the first registered filter is the
outermost wrapper:

- reading: raw -> last registered -> ... -> first registered -> caller
- writing: caller -> first registered -> ... -> last registered -> raw
"""

from __future__ import annotations

import codecs
import io
import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol, Tuple

from charset_normalizer import from_bytes
from pydantic import BaseModel, Field, ValidationError

from .errors import InvalidArgument, UnsupportedFilter
from .rules import CHUNK_SIZE, DETECTION_SAMPLE_SIZE, FALLBACK_ENCODING

logger = logging.getLogger(__name__)

AppliesTo = Literal["read", "write", "both"]
Mode = Literal["read", "write"]


class StreamFilter(Protocol):
    def transform(self, data: bytes, final: bool) -> bytes:
        ...


FilterFactory = Callable[..., StreamFilter]

_REGISTRY: Dict[str, FilterFactory] = {}


def register_filter(name: str, factory: FilterFactory) -> None:
    if not name:
        raise ValueError("filter name must not be empty")
    _REGISTRY[name] = factory


def unregister_filter(name: str) -> bool:
    return _REGISTRY.pop(name, None) is not None


def is_registered(name: str) -> bool:
    return name in _REGISTRY


def registered_filters() -> List[str]:
    return sorted(_REGISTRY)


def _factory_for(name: str) -> FilterFactory:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise UnsupportedFilter(f"Unknown stream filter: {name!r}") from None


# --- built-in filters ---


class _ByteMap:
    def __init__(self, func: Callable[[bytes], bytes]):
        self._func = func

    def transform(self, data: bytes, final: bool) -> bytes:
        return self._func(data)


_ROT13 = bytes.maketrans(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz",
    b"NOPQRSTUVWXYZABCDEFGHIJKLMnopqrstuvwxyzabcdefghijklm",
)


def detect_encoding(data: bytes) -> Optional[str]:
    """Best-effort encoding guess via charset-normalizer, None when undecidable."""
    match = from_bytes(data).best()
    return match.encoding if match is not None else None


class Transcoder:
    """
    Re-encode a byte stream from one encoding to another.

    ``from_encoding="auto"`` buffers up to DETECTION_SAMPLE_SIZE bytes and
    lets charset-normalizer pick the source encoding, falling back to UTF-8.
    """

    def __init__(self, from_encoding: str, to_encoding: str = "utf-8", errors: str = "strict"):
        self.from_encoding = from_encoding
        self.to_encoding = to_encoding
        self.errors = errors
        self._sample = bytearray()
        self._decoder = None
        self._encoder = codecs.getincrementalencoder(to_encoding)(errors)
        if from_encoding.lower() != "auto":
            self._decoder = codecs.getincrementaldecoder(from_encoding)(errors)

    def _start(self, sample: bytes) -> None:
        detected = detect_encoding(sample) if sample else None
        self.from_encoding = detected or FALLBACK_ENCODING
        logger.debug("transcode: detected source encoding %s", self.from_encoding)
        self._decoder = codecs.getincrementaldecoder(self.from_encoding)(self.errors)

    def transform(self, data: bytes, final: bool) -> bytes:
        if self._decoder is None:
            self._sample += data
            if len(self._sample) < DETECTION_SAMPLE_SIZE and not final:
                return b""
            data = bytes(self._sample)
            self._sample.clear()
            self._start(data)
        text = self._decoder.decode(data, final)
        return self._encoder.encode(text, final)


register_filter("string.toupper", lambda: _ByteMap(bytes.upper))
register_filter("string.tolower", lambda: _ByteMap(bytes.lower))
register_filter("string.rot13", lambda: _ByteMap(lambda data: data.translate(_ROT13)))
register_filter("convert.transcode", Transcoder)


# --- stream wrapper ---


class FilteredStream(io.RawIOBase):
    """Apply one StreamFilter to everything read from or written to ``inner``."""

    def __init__(self, inner, stream_filter: StreamFilter, mode: Mode, close_inner: bool = True):
        super().__init__()
        self._inner = inner
        self._filter = stream_filter
        self._mode = mode
        self._close_inner = close_inner
        self._pending = bytearray()
        self._eof = False

    def readable(self) -> bool:
        return self._mode == "read"

    def writable(self) -> bool:
        return self._mode == "write"

    def readinto(self, buffer) -> int:
        if self._mode != "read":
            raise io.UnsupportedOperation("stream was opened for writing")
        size = len(buffer)
        while not self._pending and not self._eof:
            chunk = self._inner.read(max(size, CHUNK_SIZE))
            if not chunk:
                self._eof = True
                self._pending += self._filter.transform(b"", True)
            else:
                self._pending += self._filter.transform(bytes(chunk), False)
        count = min(size, len(self._pending))
        buffer[:count] = self._pending[:count]
        del self._pending[:count]
        return count

    def write(self, data) -> int:
        if self._mode != "write":
            raise io.UnsupportedOperation("stream was opened for reading")
        out = self._filter.transform(bytes(data), False)
        if out:
            self._inner.write(out)
        return len(data)

    def flush(self) -> None:
        if self.closed or getattr(self._inner, "closed", False):
            return
        inner_flush = getattr(self._inner, "flush", None)
        if inner_flush is not None:
            inner_flush()

    def close(self) -> None:
        if self.closed:
            return
        try:
            if self._mode == "write":
                tail = self._filter.transform(b"", True)
                if tail:
                    self._inner.write(tail)
            self.flush()
        finally:
            if self._close_inner:
                self._inner.close()
            super().close()


# --- chain ---


class FilterEntry(BaseModel):
    name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    applies_to: AppliesTo = "both"

    def matches(self, mode: Mode) -> bool:
        return self.applies_to in ("both", mode)


class FilterChain:
    def __init__(self, entries: Optional[List[FilterEntry]] = None):
        self._entries: List[FilterEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"FilterChain({[entry.name for entry in self._entries]!r})"

    @property
    def entries(self) -> Tuple[FilterEntry, ...]:
        return tuple(self._entries)

    def _entry(self, name: str, params: Optional[Dict[str, Any]], applies_to: AppliesTo) -> FilterEntry:
        factory = _factory_for(name)
        try:
            entry = FilterEntry(name=name, params=dict(params or {}), applies_to=applies_to)
        except ValidationError as exc:
            raise InvalidArgument(f"Invalid filter entry for {name!r}: {exc.errors()[0]['msg']}") from exc
        # build once so bad params fail here rather than on first read or write
        try:
            factory(**entry.params)
        except (LookupError, TypeError, ValueError) as exc:
            raise InvalidArgument(f"Invalid params for filter {name!r}: {exc}") from exc
        return entry

    def append(self, name: str, params: Optional[Dict[str, Any]] = None, applies_to: AppliesTo = "both") -> None:
        self._entries.append(self._entry(name, params, applies_to))

    def prepend(self, name: str, params: Optional[Dict[str, Any]] = None, applies_to: AppliesTo = "both") -> None:
        self._entries.insert(0, self._entry(name, params, applies_to))

    def remove(self, name: str) -> bool:
        kept = [entry for entry in self._entries if entry.name != name]
        removed = len(kept) != len(self._entries)
        self._entries = kept
        return removed

    def has(self, name: str) -> bool:
        return any(entry.name == name for entry in self._entries)

    def clear(self) -> None:
        self._entries = []

    def copy(self) -> "FilterChain":
        return FilterChain([entry.model_copy(deep=True) for entry in self._entries])

    def applicable(self, mode: Mode) -> List[FilterEntry]:
        return [entry for entry in self._entries if entry.matches(mode)]

    def validate(self, mode: Mode) -> List[FilterFactory]:
        """Return the factories for ``mode``, failing on the first unknown name."""
        return [_factory_for(entry.name) for entry in self.applicable(mode)]

    def resolve(self, raw, mode: Mode, close_inner: bool = True):
        """
        Wrap ``raw`` with every filter registered for ``mode``.

        Every name is checked before anything is wrapped, so an unknown
        filter aborts resolution without a partial stack. Returns ``raw``
        itself when no filter applies.
        """
        entries = self.applicable(mode)
        factories = self.validate(mode)
        built = [factory(**entry.params) for entry, factory in zip(entries, factories)]
        stream = raw
        for stream_filter in reversed(built):
            stream = FilteredStream(
                stream,
                stream_filter,
                mode,
                close_inner=close_inner if stream is raw else True,
            )
        if entries:
            logger.debug("resolved %s filters: %s", mode, [entry.name for entry in entries])
        return stream
