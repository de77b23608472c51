"""
csvdocument: CSV documents with a configurable dialect, BOM handling and
stream filters.
"""

from . import bom
from .bom import UTF8, UTF16_BE, UTF16_LE, UTF32_BE, UTF32_LE, Bom
from .dialect import Dialect
from .document import BomPolicy, Document, HandleRef, PathRef, is_stringable
from .errors import CsvError, InvalidArgument, InvalidPath, UnsupportedFilter
from .filters import FilterChain, FilterEntry, register_filter, registered_filters, unregister_filter
from .reader import Reader
from .records import RecordIterator
from .writer import NullHandling, Writer

__all__ = [
    "Bom",
    "BomPolicy",
    "CsvError",
    "Dialect",
    "Document",
    "FilterChain",
    "FilterEntry",
    "HandleRef",
    "InvalidArgument",
    "InvalidPath",
    "NullHandling",
    "PathRef",
    "Reader",
    "RecordIterator",
    "UTF8",
    "UTF16_BE",
    "UTF16_LE",
    "UTF32_BE",
    "UTF32_LE",
    "UnsupportedFilter",
    "Writer",
    "bom",
    "is_stringable",
    "register_filter",
    "registered_filters",
    "unregister_filter",
]
