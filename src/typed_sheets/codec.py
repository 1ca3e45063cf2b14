"""Conversion between Python values and spreadsheet cell text.

Every kind has three functions: a serializer (value -> cell), a deserializer
(cell -> value) and a validator (caller input -> value). They are selected
through one dispatch table keyed by FieldKind.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from typed_sheets.errors import FieldValidationError, UnknownKindError
from typed_sheets.types import FieldKind, resolve_kind

TRUE_TOKEN = "TRUE"
FALSE_TOKEN = "FALSE"

DATETIME_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})\.(\d{3})$"
)

_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


# --- Datetime -----------------------------------------------------------------


def format_datetime(value: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DD HH:MM:SS.mmm`` in UTC.

    Naive datetimes are taken to already be in UTC.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
        f".{value.microsecond // 1000:03d}"
    )


def parse_datetime(text: Any) -> datetime | None:
    """Parse text in the ``format_datetime`` layout into an aware UTC datetime.

    Returns None when the text does not match the layout exactly or names an
    impossible date.
    """
    if not isinstance(text, str):
        return None
    match = DATETIME_PATTERN.fullmatch(text)
    if match is None:
        return None
    year, month, day, hour, minute, second, millis = (int(g) for g in match.groups())
    try:
        return datetime(
            year, month, day, hour, minute, second, millis * 1000, tzinfo=timezone.utc
        )
    except ValueError:
        return None


# --- Numbers --------------------------------------------------------------------


def parse_number(text: Any) -> int | float | None:
    """Convert numeric text to int (when integral) or float."""
    if isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        return text
    if not isinstance(text, str):
        return None
    candidate = text.strip()
    if not _NUMBER_PATTERN.match(candidate):
        return None
    if re.fullmatch(r"[+-]?\d+", candidate):
        return int(candidate)
    return float(candidate)


# --- Per-kind codecs --------------------------------------------------------------


def _serialize_string(value: Any) -> Any:
    return value


def _serialize_number(value: Any) -> Any:
    return value


def _serialize_boolean(value: Any) -> str:
    return TRUE_TOKEN if value is True else FALSE_TOKEN


def _serialize_datetime(value: Any) -> str:
    return format_datetime(value)


def force_text(cell: Any) -> Any:
    """Mark non-empty text so Sheets stores it verbatim under USER_ENTERED.

    Without the leading apostrophe Sheets would read ``"007"`` as a number,
    ``"TRUE"`` as a boolean and ``"=A1"`` as a formula. The apostrophe is not
    part of the stored value and never comes back in reads.
    """
    if isinstance(cell, str) and cell:
        return f"'{cell}"
    return cell


def _deserialize_string(cell: Any) -> str:
    return cell if isinstance(cell, str) else str(cell)


def _deserialize_number(cell: Any) -> int | float | None:
    return parse_number(cell)


def _deserialize_boolean(cell: Any) -> bool | None:
    if isinstance(cell, bool):
        return cell
    if cell == TRUE_TOKEN:
        return True
    if cell == FALSE_TOKEN:
        return False
    return None


def _deserialize_datetime(cell: Any) -> datetime | None:
    return parse_datetime(cell)


def _validate_string(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected string, received {type(value).__name__}")
    return value


def _validate_number(value: Any) -> int | float:
    if isinstance(value, bool):
        raise TypeError("expected number, received bool")
    if isinstance(value, str):
        number = parse_number(value)
        if number is None:
            raise TypeError(f"expected number, received non-numeric string {value!r}")
        value = number
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TypeError(f"expected finite number, received {value!r}")
        return value
    raise TypeError(f"expected number, received {type(value).__name__}")


def _validate_datetime(value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise TypeError(f"expected datetime, received {type(value).__name__}")
    return value


def _validate_boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, received {type(value).__name__}")
    return value


@dataclass(frozen=True)
class KindCodec:
    """Serializer, deserializer and validator for one field kind."""

    serialize: Callable[[Any], Any]
    deserialize: Callable[[Any], Any]
    validate: Callable[[Any], Any]


CODECS: dict[FieldKind, KindCodec] = {
    FieldKind.STRING: KindCodec(_serialize_string, _deserialize_string, _validate_string),
    FieldKind.NUMBER: KindCodec(_serialize_number, _deserialize_number, _validate_number),
    FieldKind.DATETIME: KindCodec(
        _serialize_datetime, _deserialize_datetime, _validate_datetime
    ),
    FieldKind.BOOLEAN: KindCodec(
        _serialize_boolean, _deserialize_boolean, _validate_boolean
    ),
}


def get_codec(kind: FieldKind | str) -> KindCodec:
    """Return the codec for a kind, raising UnknownKindError if there is none."""
    resolved = resolve_kind(kind)
    codec = CODECS.get(resolved) if resolved is not None else None
    if codec is None:
        raise UnknownKindError(kind)
    return codec


# --- Public API ---------------------------------------------------------------------


def serialize(value: Any, kind: FieldKind | str) -> Any:
    """Convert a validated value to the cell representation written to the sheet."""
    codec = get_codec(kind)
    if value is None:
        return None
    return codec.serialize(value)


def deserialize(cell: Any, kind: FieldKind | str, optional: bool = False) -> Any:
    """Convert a cell back to a Python value.

    Empty and missing cells decode to None for every kind. Cells that do not
    hold a recognizable value for the kind also decode to None rather than
    raising, so callers must expect None for malformed cells. ``optional`` is
    accepted for symmetry with ``validate``; absence is handled the same way
    either way.
    """
    codec = get_codec(kind)
    if cell is None or cell == "":
        return None
    return codec.deserialize(cell)


def validate(
    value: Any, kind: FieldKind | str, optional: bool = False, field_name: str = "<value>"
) -> Any:
    """Check a caller-supplied value against a kind and return the accepted value.

    Numeric strings are coerced for NUMBER fields. None is only accepted when
    ``optional`` is set.

    Raises:
        FieldValidationError: If the value is not acceptable.
        UnknownKindError: If the kind has no codec.
    """
    return make_validator(kind, optional, field_name)(value)


def make_validator(
    kind: FieldKind | str, optional: bool, field_name: str
) -> Callable[[Any], Any]:
    """Bind ``validate`` to a single field."""
    codec = get_codec(kind)

    def validator(value: Any) -> Any:
        if value is None:
            if optional:
                return None
            raise FieldValidationError(field_name, "required")
        try:
            return codec.validate(value)
        except TypeError as e:
            raise FieldValidationError(field_name, str(e)) from e

    return validator
