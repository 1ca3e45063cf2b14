"""Compiler from structured filters to the spreadsheet query language.

Filters are written as nested mappings::

    {
        "AND": [
            {"birth_date": {"after": datetime(2000, 1, 1)}},
            {"is_married": {"eq": True}},
        ],
        "age": {"gte": 18, "lt": 65},
    }

Keys are field names (mapping to operator -> operand) or the logical keys
``AND`` / ``OR`` (mapping to a list of filters). Keys side by side combine
with ``and``. The mapping is parsed into FieldClause / AndGroup / OrGroup
nodes, which are compiled against a Schema into the text of a WHERE clause.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Union

from typed_sheets.codec import format_datetime
from typed_sheets.errors import InvalidQueryError, UnknownKindError
from typed_sheets.schema import Schema
from typed_sheets.types import DELETED_AT, FieldKind

logger = logging.getLogger(__name__)

AND = "AND"
OR = "OR"


@dataclass
class FieldClause:
    """Operators applied to a single field, combined with ``and``."""

    field: str
    operators: dict[str, Any] = field(default_factory=dict)


@dataclass
class AndGroup:
    """Children joined with ``and``."""

    children: list[FilterNode] = field(default_factory=list)


@dataclass
class OrGroup:
    """Children joined with ``or``."""

    children: list[FilterNode] = field(default_factory=list)


FilterNode = Union[FieldClause, AndGroup, OrGroup]
FilterInput = Union[FilterNode, Mapping[str, Any]]


@dataclass
class FindManyQuery:
    """Arguments of a bulk query."""

    filters: FilterInput | None = None
    selections: list[str] | None = None
    limit: int | None = None
    offset: int | None = None


# --- Parsing ---------------------------------------------------------------------


def parse_filters(filters: FilterInput) -> FilterNode:
    """Parse a filter mapping into a tree of filter nodes.

    Nodes passed in are returned unchanged. Field names are not checked here;
    that happens when the tree is compiled against a schema.

    Raises:
        InvalidQueryError: If the structure of the mapping is malformed.
    """
    if isinstance(filters, (FieldClause, AndGroup, OrGroup)):
        return filters
    if not isinstance(filters, Mapping):
        raise InvalidQueryError(
            f"Filters must be a mapping, got {type(filters).__name__}"
        )

    nodes: list[FilterNode] = []
    for key, value in filters.items():
        if key in (AND, OR):
            if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
                raise InvalidQueryError(f"'{key}' expects a list of filters")
            children = [parse_filters(child) for child in value]
            nodes.append(AndGroup(children) if key == AND else OrGroup(children))
        else:
            if not isinstance(value, Mapping):
                raise InvalidQueryError(
                    f"Operators for field '{key}' must be a mapping, "
                    f"got {type(value).__name__}"
                )
            nodes.append(FieldClause(field=key, operators=dict(value)))

    if len(nodes) == 1:
        return nodes[0]
    return AndGroup(nodes)


def _has_effect(operators: Mapping[str, Any]) -> bool:
    return any(
        value is True if op in _NULL_CHECKS else value is not None
        for op, value in operators.items()
    )


def references_field(filters: FilterInput | None, name: str) -> bool:
    """Check whether a field is filtered on anywhere in a filter tree.

    Clauses that render nothing (every operand None, null checks False) do
    not count.
    """
    if filters is None:
        return False
    node = parse_filters(filters)
    if isinstance(node, FieldClause):
        return node.field == name and _has_effect(node.operators)
    return any(references_field(child, name) for child in node.children)


def with_soft_delete_filter(filters: FilterInput | None) -> FilterNode:
    """Add ``deleted_at is null`` unless the filter already mentions deleted_at."""
    exclude_deleted = FieldClause(field=DELETED_AT, operators={"is_null": True})
    if filters is None:
        return exclude_deleted
    node = parse_filters(filters)
    if references_field(node, DELETED_AT):
        return node
    if isinstance(node, AndGroup):
        return AndGroup([*node.children, exclude_deleted])
    return AndGroup([node, exclude_deleted])


# --- Literals ----------------------------------------------------------------------


def _quote(value: Any, op: str) -> str:
    if not isinstance(value, str):
        raise InvalidQueryError(
            f"Operator '{op}' expects a string, got {type(value).__name__}"
        )
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    raise InvalidQueryError(
        f"String operand for '{op}' can't contain both single and double quotes"
    )


def _number(value: Any, op: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidQueryError(
            f"Operator '{op}' expects a number, got {type(value).__name__}"
        )
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise InvalidQueryError(f"Operator '{op}' expects a finite number, got {value!r}")
    # The query language has no exponent notation.
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _boolean(value: Any, op: str) -> str:
    if not isinstance(value, bool):
        raise InvalidQueryError(
            f"Operator '{op}' expects a bool, got {type(value).__name__}"
        )
    return "true" if value else "false"


def _datetime(value: Any, op: str) -> str:
    if not isinstance(value, datetime):
        raise InvalidQueryError(
            f"Operator '{op}' expects a datetime, got {type(value).__name__}"
        )
    return f'datetime "{format_datetime(value)}"'


# --- Operator renderers ----------------------------------------------------------------

# Each table maps an operator to (query-language operator, literal renderer),
# in the order clauses are emitted.
Literal = Callable[[Any, str], str]

_NULL_CHECKS = {"is_null": "is null", "is_not_null": "is not null"}

_BOOLEAN_OPERATORS: dict[str, tuple[str, Literal]] = {
    "eq": ("=", _boolean),
    "neq": ("!=", _boolean),
}

_NUMBER_OPERATORS: dict[str, tuple[str, Literal]] = {
    "eq": ("=", _number),
    "neq": ("!=", _number),
    "gt": (">", _number),
    "gte": (">=", _number),
    "lt": ("<", _number),
    "lte": ("<=", _number),
}

_STRING_OPERATORS: dict[str, tuple[str, Literal]] = {
    "eq": ("=", _quote),
    "neq": ("!=", _quote),
    "contains": ("contains", _quote),
    "ends_with": ("ends with", _quote),
    "starts_with": ("starts with", _quote),
    "like": ("like", _quote),
}

_DATETIME_OPERATORS: dict[str, tuple[str, Literal]] = {
    "eq": ("=", _datetime),
    "neq": ("!=", _datetime),
    "after": (">", _datetime),
    "before": ("<", _datetime),
}

OPERATORS: dict[FieldKind, dict[str, tuple[str, Literal]]] = {
    FieldKind.BOOLEAN: _BOOLEAN_OPERATORS,
    FieldKind.NUMBER: _NUMBER_OPERATORS,
    FieldKind.STRING: _STRING_OPERATORS,
    FieldKind.DATETIME: _DATETIME_OPERATORS,
}


def render_operators(column: str, kind: FieldKind, operators: Mapping[str, Any]) -> list[str]:
    """Render every operator of one field clause as a comparison on ``column``.

    Operators whose operand is None are skipped; ``is_null`` / ``is_not_null``
    only emit when set to True.

    Raises:
        UnknownKindError: If the kind has no operator table.
        InvalidQueryError: If an operator does not apply to the kind.
    """
    table = OPERATORS.get(kind)
    if table is None:
        raise UnknownKindError(kind)

    unknown = [op for op in operators if op not in table and op not in _NULL_CHECKS]
    if unknown:
        raise InvalidQueryError(
            f"Operator(s) {', '.join(sorted(unknown))} not supported for "
            f"{kind.value} column {column}"
        )

    clauses: list[str] = []
    for op, (symbol, literal) in table.items():
        value = operators.get(op)
        if value is None:
            continue
        clauses.append(f"{column} {symbol} {literal(value, op)}")
    for op, text in _NULL_CHECKS.items():
        if operators.get(op) is True:
            clauses.append(f"{column} {text}")
    return clauses


# --- Compilation ---------------------------------------------------------------------


def _join(fragments: list[str], conjunction: str) -> str:
    fragments = [f for f in fragments if f]
    if len(fragments) > 1:
        return f" {conjunction} ".join(f"({f})" for f in fragments)
    return fragments[0] if fragments else ""


def compile_filters(filters: FilterInput, schema: Schema) -> str:
    """Compile a filter tree into the text of a WHERE clause (without ``where``).

    Raises:
        UnknownFieldError: If a clause names a field that is not in the schema
            or is marked deleted.
        UnknownKindError: If a field's kind has no renderer.
        InvalidQueryError: If the filter is malformed.
    """
    node = parse_filters(filters)
    if isinstance(node, AndGroup):
        return _join([compile_filters(c, schema) for c in node.children], "and")
    if isinstance(node, OrGroup):
        return _join([compile_filters(c, schema) for c in node.children], "or")

    schema_field = schema.get_live(node.field)
    return _join(
        render_operators(schema_field.column, schema_field.kind, node.operators), "and"
    )


def _check_count(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidQueryError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def build_query(query: FindManyQuery, schema: Schema) -> str:
    """Assemble the full query text: select, where, limit and offset lines."""
    if query.selections:
        columns = [schema.get_live(name).column for name in query.selections]
        text = f"select {', '.join(columns)}\n"
    else:
        text = "select *\n"

    if query.filters is not None:
        where = compile_filters(query.filters, schema)
        if where:
            text += f"where {where}\n"

    if query.limit is not None:
        text += f"limit {_check_count('limit', query.limit)}\n"
    if query.offset is not None:
        text += f"offset {_check_count('offset', query.offset)}\n"

    logger.debug("Compiled query: %r", text)
    return text
