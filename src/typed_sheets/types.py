"""Field definitions for the typed_sheets library."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FieldKind(Enum):
    """Value kinds a spreadsheet column can hold."""

    STRING = "STRING"
    NUMBER = "NUMBER"
    DATETIME = "DATETIME"
    BOOLEAN = "BOOLEAN"


# Mapping from kind name strings to FieldKind enum values
FIELD_KIND_NAMES: dict[str, FieldKind] = {fk.value: fk for fk in FieldKind}


# Spreadsheet column letters, in physical order
COLUMNS: tuple[str, ...] = tuple("ABCDEFGHIJKLMNOPQRSTUVWXYZ")

MAX_COLUMNS = len(COLUMNS)


def column_at(position: int) -> str:
    """Return the column letter at a 0-based position (0 -> 'A')."""
    if not 0 <= position < MAX_COLUMNS:
        raise IndexError(f"Column position {position} is out of range")
    return COLUMNS[position]


def resolve_kind(kind: FieldKind | str) -> FieldKind | None:
    """Normalize a kind given as an enum member or its name."""
    if isinstance(kind, FieldKind):
        return kind
    if isinstance(kind, str):
        return FIELD_KIND_NAMES.get(kind.upper())
    return None


@dataclass(frozen=True)
class FieldDefinition:
    """A named, typed slot mapped to one spreadsheet column.

    ``deleted`` marks a retired field: its column stays in place so later
    columns keep their positions, but it is never read, written or queried.
    """

    name: str
    kind: FieldKind
    column: str
    optional: bool = False
    deleted: bool = False

    @classmethod
    def from_mapping(cls, spec: dict[str, Any]) -> FieldDefinition:
        """Build a field from a mapping such as ``{"name": "age", "kind": "NUMBER", "column": "D"}``."""
        return cls(
            name=spec["name"],
            kind=spec["kind"],
            column=spec["column"],
            optional=bool(spec.get("optional", False)),
            deleted=bool(spec.get("deleted", False)),
        )


# Fields every schema starts with, pinned to columns A, B and C
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"
DELETED_AT = "deleted_at"

SYSTEM_FIELDS: tuple[FieldDefinition, ...] = (
    FieldDefinition(name=CREATED_AT, kind=FieldKind.DATETIME, column="A"),
    FieldDefinition(name=UPDATED_AT, kind=FieldKind.DATETIME, column="B", optional=True),
    FieldDefinition(name=DELETED_AT, kind=FieldKind.DATETIME, column="C", optional=True),
)

SYSTEM_FIELD_NAMES: frozenset[str] = frozenset(f.name for f in SYSTEM_FIELDS)
