"""Exceptions raised by typed_sheets."""

from __future__ import annotations

from typing import Any


class TypedSheetsError(Exception):
    """Base class for all typed_sheets errors."""


class SchemaValidationError(TypedSheetsError, ValueError):
    """A field declaration is invalid (column order, duplicate name, too many columns)."""


class UnknownFieldError(TypedSheetsError, LookupError):
    """A filter, selection or update references a field the schema does not have."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown field '{name}'")
        self.name = name


class UnknownKindError(TypedSheetsError, LookupError):
    """A field kind has no codec or renderer."""

    def __init__(self, kind: Any) -> None:
        super().__init__(f"Unknown field kind '{kind}'")
        self.kind = kind


class InvalidQueryError(TypedSheetsError, ValueError):
    """A filter expression or query argument is malformed."""


class FieldValidationError(TypedSheetsError, ValueError):
    """A value does not satisfy its field's validator."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"Invalid value for field '{field}': {message}")
        self.field = field


class InvalidRecordIdError(TypedSheetsError, ValueError):
    """A record id is not a positive row number."""


class NotFoundError(TypedSheetsError, LookupError):
    """The target row does not exist or has been soft-deleted."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record of id '{record_id}' not found")
        self.record_id = record_id


class RemoteError(TypedSheetsError):
    """The spreadsheet API or query endpoint returned a failure."""

    def __init__(
        self, message: str, status_code: int | None = None, url: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
