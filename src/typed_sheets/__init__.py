"""Typed Sheets - A typed, row-oriented data store on top of a spreadsheet."""

from typed_sheets.client import (
    ClientOptions,
    CredentialProvider,
    GoogleCredentialProvider,
    SheetsClient,
    StaticTokenProvider,
)
from typed_sheets.db import SheetDB
from typed_sheets.errors import (
    FieldValidationError,
    InvalidQueryError,
    InvalidRecordIdError,
    NotFoundError,
    RemoteError,
    SchemaValidationError,
    TypedSheetsError,
    UnknownFieldError,
    UnknownKindError,
)
from typed_sheets.model import Model
from typed_sheets.query import (
    AndGroup,
    FieldClause,
    FindManyQuery,
    OrGroup,
    build_query,
    compile_filters,
)
from typed_sheets.schema import Schema, build_schema
from typed_sheets.types import FieldDefinition, FieldKind

__all__ = [
    # Main API
    "SheetDB",
    "Model",
    "Schema",
    "build_schema",
    "FieldDefinition",
    "FieldKind",
    # Queries
    "FindManyQuery",
    "FieldClause",
    "AndGroup",
    "OrGroup",
    "compile_filters",
    "build_query",
    # Transport
    "SheetsClient",
    "ClientOptions",
    "CredentialProvider",
    "StaticTokenProvider",
    "GoogleCredentialProvider",
    # Errors
    "TypedSheetsError",
    "SchemaValidationError",
    "UnknownFieldError",
    "UnknownKindError",
    "InvalidQueryError",
    "FieldValidationError",
    "InvalidRecordIdError",
    "NotFoundError",
    "RemoteError",
]

__version__ = "0.1.0"
