"""Reader view: fetch helpers over a Document's records."""

from __future__ import annotations

from itertools import islice
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .document import Document
from .errors import InvalidArgument

Record = List[str]


def _check_offset(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise InvalidArgument(f"{name} must be a non-negative integer, got {value!r}")
    return value


class Reader(Document):
    def fetch_all(self, callback: Optional[Callable[[Record, int], Any]] = None) -> List[Any]:
        with self.get_iterator() as records:
            if callback is None:
                return list(records)
            return [callback(record, index) for index, record in enumerate(records)]

    def fetch_one(self, offset: int = 0) -> Record:
        """Return the record at ``offset``, or an empty list past the end."""
        _check_offset(offset, "offset")
        with self.get_iterator() as records:
            return next(islice(records, offset, None), [])

    def fetch_column(self, index: int = 0) -> List[str]:
        """Values of column ``index``; records too short to have it are skipped."""
        _check_offset(index, "column index")
        with self.get_iterator() as records:
            return [record[index] for record in records if len(record) > index]

    def fetch_assoc(
        self,
        keys: Union[int, Sequence[str]] = 0,
        callback: Optional[Callable[[Dict[str, Optional[str]], int], Any]] = None,
    ) -> List[Any]:
        """
        Return records as dicts.

        ``keys`` is either the offset of the header record (excluded from the
        result) or an explicit list of unique keys. Short records are padded
        with None, long ones are truncated.
        """
        header_offset: Optional[int] = None
        if isinstance(keys, int) and not isinstance(keys, bool):
            header_offset = _check_offset(keys, "header offset")
            keys = self.fetch_one(header_offset)
            if not keys:
                raise InvalidArgument(f"No header record at offset {header_offset}")
        keys = list(keys)
        if not keys or not all(isinstance(key, str) for key in keys):
            raise InvalidArgument("keys must be a non-empty list of strings")
        if len(set(keys)) != len(keys):
            raise InvalidArgument(f"keys must be unique, got {keys!r}")

        width = len(keys)
        rows: List[Any] = []
        with self.get_iterator() as records:
            for offset, record in enumerate(records):
                if offset == header_offset:
                    continue
                values: List[Optional[str]] = list(record[:width])
                values += [None] * (width - len(values))
                row = dict(zip(keys, values))
                rows.append(row if callback is None else callback(row, len(rows)))
        return rows

    def each(self, callback: Callable[[Record, int], Any]) -> int:
        """Call ``callback`` per record until it returns False; return how many were visited."""
        visited = 0
        with self.get_iterator() as records:
            for index, record in enumerate(records):
                visited += 1
                if callback(record, index) is False:
                    break
        return visited
