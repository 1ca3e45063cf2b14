"""Schema class for spreadsheet-backed tables."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from typed_sheets.codec import make_validator
from typed_sheets.errors import SchemaValidationError, UnknownFieldError
from typed_sheets.types import (
    MAX_COLUMNS,
    SYSTEM_FIELD_NAMES,
    SYSTEM_FIELDS,
    FieldDefinition,
    column_at,
    resolve_kind,
)

_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

FieldSpec = FieldDefinition | Mapping[str, Any]


class Schema:
    """Ordered, validated field list: the system fields followed by declared fields.

    The position of a field in the schema is the position of its column in
    the sheet. That invariant is checked once, in ``build``, and everything
    downstream relies on it.
    """

    def __init__(self, fields: tuple[FieldDefinition, ...]) -> None:
        """Initialize a schema from already validated fields.

        Use ``Schema.build`` to validate declared fields.
        """
        self._fields = fields
        self._by_name: dict[str, FieldDefinition] = {f.name: f for f in fields}
        self._positions: dict[str, int] = {f.name: i for i, f in enumerate(fields)}
        self._validators: dict[str, Callable[[Any], Any]] = {
            f.name: make_validator(f.kind, f.optional, f.name) for f in fields
        }

    @classmethod
    def build(cls, declared: Iterable[FieldSpec]) -> Schema:
        """Validate declared fields and prepend the system fields.

        Args:
            declared: Field definitions (or mappings with ``name``, ``kind``,
                ``column`` and optionally ``optional`` / ``deleted``), in
                left-to-right column order starting at column D.

        Returns:
            A new Schema instance.

        Raises:
            SchemaValidationError: On too many fields, a column out of
                position, a duplicate or reserved name, or an unknown kind.
        """
        declared_fields = [_coerce_field(spec) for spec in declared]
        fields = [*SYSTEM_FIELDS, *declared_fields]

        if len(fields) > MAX_COLUMNS:
            raise SchemaValidationError(
                f"Sheet columns should not exceed {MAX_COLUMNS - len(SYSTEM_FIELDS)} "
                f"declared fields (got {len(declared_fields)})"
            )

        seen: set[str] = set()
        for position, f in enumerate(fields):
            expected = column_at(position)
            if f.column != expected:
                raise SchemaValidationError(
                    f"Invalid mapping for '{f.name}': expected column {expected}, "
                    f"got {f.column}"
                )
            if f.name in seen:
                raise SchemaValidationError(
                    f"Name '{f.name}' can't be used for more than one field"
                )
            seen.add(f.name)

        return cls(tuple(fields))

    # --- Lookup ---------------------------------------------------------------

    @property
    def fields(self) -> tuple[FieldDefinition, ...]:
        """All fields, in column order."""
        return self._fields

    @property
    def system_fields(self) -> tuple[FieldDefinition, ...]:
        return self._fields[: len(SYSTEM_FIELDS)]

    @property
    def declared_fields(self) -> tuple[FieldDefinition, ...]:
        return self._fields[len(SYSTEM_FIELDS) :]

    @property
    def live_fields(self) -> tuple[FieldDefinition, ...]:
        """Fields that are not marked deleted."""
        return tuple(f for f in self._fields if not f.deleted)

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self._fields]

    def get(self, name: str) -> FieldDefinition | None:
        """Get a field by name."""
        return self._by_name.get(name)

    def get_or_raise(self, name: str) -> FieldDefinition:
        """Get a field by name, raising UnknownFieldError if not found."""
        f = self._by_name.get(name)
        if f is None:
            raise UnknownFieldError(name)
        return f

    def get_live(self, name: str) -> FieldDefinition:
        """Get a non-deleted field by name; deleted fields count as unknown."""
        f = self._by_name.get(name)
        if f is None or f.deleted:
            raise UnknownFieldError(name)
        return f

    def position_of(self, name: str) -> int:
        """Return the 0-based column position of a field."""
        if name not in self._positions:
            raise UnknownFieldError(name)
        return self._positions[name]

    def column_of(self, name: str) -> str:
        return self.get_or_raise(name).column

    def is_system_field(self, name: str) -> bool:
        return name in SYSTEM_FIELD_NAMES

    def validate(self, name: str, value: Any) -> Any:
        """Run the validator bound to a field and return the accepted value."""
        if name not in self._validators:
            raise UnknownFieldError(name)
        return self._validators[name](value)

    def list_fields(self) -> list[str]:
        """List all field names in column order."""
        return [f.name for f in self._fields]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Schema({', '.join(f'{f.column}:{f.name}' for f in self._fields)})"


def build_schema(declared: Iterable[FieldSpec]) -> Schema:
    """Validate declared fields and return the assembled schema."""
    return Schema.build(declared)


def _coerce_field(spec: FieldSpec) -> FieldDefinition:
    """Normalize a declared field and reject malformed names, kinds and columns."""
    if isinstance(spec, Mapping):
        missing = [k for k in ("name", "kind", "column") if k not in spec]
        if missing:
            raise SchemaValidationError(
                f"Field declaration {dict(spec)!r} is missing {', '.join(missing)}"
            )
        spec = FieldDefinition.from_mapping(dict(spec))
    elif not isinstance(spec, FieldDefinition):
        raise SchemaValidationError(
            f"Expected a FieldDefinition or mapping, got {type(spec).__name__}"
        )

    if not isinstance(spec.name, str) or not _NAME_PATTERN.match(spec.name):
        raise SchemaValidationError(f"Invalid field name {spec.name!r}")
    if spec.name in SYSTEM_FIELD_NAMES:
        raise SchemaValidationError(
            f"Name '{spec.name}' can't be used for more than one field"
        )

    kind = resolve_kind(spec.kind)
    if kind is None:
        raise SchemaValidationError(f"Unknown kind {spec.kind!r} for field '{spec.name}'")

    column = spec.column.upper() if isinstance(spec.column, str) else spec.column
    return dataclasses.replace(spec, kind=kind, column=column)
