"""
Dialect: the (delimiter, enclosure, escape) triple and the record codec.

Parsing is permissive on purpose: malformed quoting never raises, it degrades
to a best-effort split so ragged input is still visible to the caller.
"""

from __future__ import annotations

from typing import Any, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .errors import InvalidArgument
from .rules import DEFAULT_DELIMITER, DEFAULT_ENCLOSURE, DEFAULT_ESCAPE, DEFAULT_NEWLINE, ENCLOSE_TRIGGERS

# parser states
OUTSIDE = "outside"
INSIDE = "inside_enclosure"
AFTER_ESCAPE = "after_escape_inside_enclosure"
AFTER_ENCLOSURE = "after_enclosure"


class Dialect(BaseModel):
    model_config = ConfigDict(frozen=True)

    delimiter: str = DEFAULT_DELIMITER
    enclosure: str = DEFAULT_ENCLOSURE
    escape: str = DEFAULT_ESCAPE

    @field_validator("delimiter", "enclosure", "escape", mode="before")
    @classmethod
    def _single_character(cls, value: Any, info) -> str:
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("latin-1")
        if not isinstance(value, str) or len(value) != 1:
            raise ValueError(f"{info.field_name} must be a single character, got {value!r}")
        return value

    @model_validator(mode="after")
    def _distinct(self) -> "Dialect":
        if len({self.delimiter, self.enclosure, self.escape}) != 3:
            raise ValueError(
                "delimiter, enclosure and escape must be distinct, got "
                f"{self.delimiter!r}, {self.enclosure!r}, {self.escape!r}"
            )
        return self

    @classmethod
    def create(cls, **values: Any) -> "Dialect":
        """Build a dialect, reporting validation problems as InvalidArgument."""
        try:
            return cls(**values)
        except ValidationError as exc:
            messages = "; ".join(err["msg"] for err in exc.errors())
            raise InvalidArgument(messages) from exc

    def replace(self, **changes: Any) -> "Dialect":
        return self.create(**{**self.model_dump(), **changes})

    def set_delimiter(self, value: Any) -> "Dialect":
        return self.replace(delimiter=value)

    def set_enclosure(self, value: Any) -> "Dialect":
        return self.replace(enclosure=value)

    def set_escape(self, value: Any) -> "Dialect":
        return self.replace(escape=value)

    def split(self, text: str) -> Tuple[List[str], bool]:
        """
        Split text into fields.

        Returns the fields and whether the text ended outside an enclosure.
        An unterminated enclosure keeps its remainder, opening enclosure
        included, as the last field.
        """
        fields: List[str] = []
        field: List[str] = []
        state = OUTSIDE
        # index of the opening enclosure of the current field, for unterminated input
        opened_at = -1

        for pos, char in enumerate(text):
            if state == OUTSIDE:
                if char == self.delimiter:
                    fields.append("".join(field))
                    field = []
                elif char == self.enclosure and not field:
                    state = INSIDE
                    opened_at = pos
                else:
                    field.append(char)
            elif state == INSIDE:
                if char == self.escape:
                    field.append(char)
                    state = AFTER_ESCAPE
                elif char == self.enclosure:
                    state = AFTER_ENCLOSURE
                else:
                    field.append(char)
            elif state == AFTER_ESCAPE:
                field.append(char)
                state = INSIDE
            else:  # AFTER_ENCLOSURE
                if char == self.enclosure:
                    field.append(char)
                    state = INSIDE
                elif char == self.delimiter:
                    fields.append("".join(field))
                    field = []
                    state = OUTSIDE
                else:
                    # text trailing a closing enclosure is kept as is
                    field.append(char)
                    state = OUTSIDE

        if state in (INSIDE, AFTER_ESCAPE):
            fields.append(text[opened_at:])
            return fields, False
        fields.append("".join(field))
        return fields, True

    def apply(self, line: str) -> List[str]:
        return self.split(line)[0]

    def needs_enclosure(self, value: str) -> bool:
        triggers = self.delimiter + self.enclosure + self.escape + ENCLOSE_TRIGGERS
        return any(char in triggers for char in value)

    def format_field(self, value: str) -> str:
        if not self.needs_enclosure(value):
            return value
        out: List[str] = [self.enclosure]
        escaped = False
        for char in value:
            if char == self.enclosure and not escaped:
                out.append(char)
            out.append(char)
            escaped = char == self.escape and not escaped
        out.append(self.enclosure)
        return "".join(out)

    def format(self, fields: Sequence[str], newline: str = DEFAULT_NEWLINE) -> str:
        return self.delimiter.join(self.format_field(value) for value in fields) + newline
