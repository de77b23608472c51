"""
Error taxonomy.

Configuration mistakes (bad dialect characters, unknown filters) surface at
the call that introduced them. I/O failures from the underlying streams are
never wrapped, except for unresolvable paths which become InvalidPath.
"""

from __future__ import annotations


class CsvError(Exception):
    """Base class for every error raised by csvdocument."""


class InvalidArgument(CsvError, ValueError):
    """A dialect character, offset, open mode or cell value is not acceptable."""


class InvalidPath(CsvError, OSError):
    """The resource reference cannot be opened."""


class UnsupportedFilter(CsvError, LookupError):
    """A stream filter name is not registered, or cannot wrap the stream."""
