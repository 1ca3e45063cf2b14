"""Record model: typed CRUD operations on the rows of one sheet."""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from typed_sheets.codec import deserialize, force_text, format_datetime, serialize
from typed_sheets.errors import (
    FieldValidationError,
    InvalidRecordIdError,
    NotFoundError,
    RemoteError,
)
from typed_sheets.query import (
    FilterInput,
    FindManyQuery,
    build_query,
    with_soft_delete_filter,
)
from typed_sheets.schema import Schema
from typed_sheets.types import (
    CREATED_AT,
    DELETED_AT,
    UPDATED_AT,
    FieldDefinition,
    FieldKind,
)

if TYPE_CHECKING:
    from typed_sheets.client import SheetsClient

logger = logging.getLogger(__name__)

Record = dict[str, Any]

# Matches the last "!" segment; quoted sheet names may contain "!" too.
_ROW_NUMBER = re.compile(r"!\$?[A-Z]+\$?(\d+)(?::\$?[A-Z]+\$?\d+)?$")
_ROW_ID = re.compile(r"^[1-9]\d*$")


def extract_row_number(a1_notation: str) -> str:
    """Return the row number of the first cell in an A1 range like ``Sheet1!A5:D5``.

    Raises:
        RemoteError: If the range has no sheet-qualified cell reference.
    """
    match = _ROW_NUMBER.search(a1_notation)
    if match is None:
        raise RemoteError(f"Row number couldn't be parsed from range {a1_notation!r}")
    return match.group(1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _query_from(
    query: FindManyQuery | None,
    filters: FilterInput | None,
    selections: list[str] | None,
    limit: int | None,
    offset: int | None,
) -> FindManyQuery:
    if query is None:
        return FindManyQuery(
            filters=filters, selections=selections, limit=limit, offset=offset
        )
    if any(arg is not None for arg in (filters, selections, limit, offset)):
        raise TypeError(
            "Pass either a FindManyQuery or filters/selections/limit/offset, not both"
        )
    return query


class Model:
    """Typed access to the rows of one sheet.

    Row ``n`` of the sheet is the record with id ``"n"``. Records are never
    physically removed: ``delete_one`` stamps ``deleted_at`` and reads skip
    stamped rows unless asked otherwise.
    """

    def __init__(
        self,
        schema: Schema,
        client: SheetsClient,
        spreadsheet_id: str,
        sheet: str | None = None,
        header_rows: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize a model.

        Args:
            schema: Validated schema describing the sheet's columns.
            client: Client for the row API and query endpoint.
            spreadsheet_id: Id of the spreadsheet document.
            sheet: Name of the sheet (tab) holding the rows. Defaults to the
                first sheet.
            header_rows: Number of header rows, passed to the query endpoint.
                Left to the endpoint's guess when None.
            clock: Source of the timestamps written to system fields.
        """
        self.schema = schema
        self.client = client
        self.spreadsheet_id = spreadsheet_id
        self.sheet = sheet
        self.header_rows = header_rows
        self._clock = clock

    # --- Helpers --------------------------------------------------------------

    def _range(self, a1: str) -> str:
        if self.sheet is None:
            return a1
        escaped = self.sheet.replace("'", "''")
        return f"'{escaped}'!{a1}"

    @staticmethod
    def _row_id(record_id: str | int) -> str:
        if isinstance(record_id, int) and not isinstance(record_id, bool):
            record_id = str(record_id)
        if not isinstance(record_id, str) or not _ROW_ID.match(record_id):
            raise InvalidRecordIdError(f"Invalid record id {record_id!r}")
        return record_id

    def _writable_field(self, name: str) -> FieldDefinition:
        f = self.schema.get_or_raise(name)
        if f.deleted:
            raise FieldValidationError(name, "field was deleted, can't write it")
        return f

    def _cell(self, f: FieldDefinition, value: Any) -> Any:
        """Serialize a validated value into the cell written for field ``f``."""
        cell = serialize(value, f.kind)
        if f.kind is FieldKind.STRING and self.client.options.value_input_option != "RAW":
            return force_text(cell)
        return cell

    def _decode_row(
        self, cells: Sequence[Any], fields: Sequence[FieldDefinition]
    ) -> Record:
        """Decode cells positionally against fields, omitting deleted fields."""
        record: Record = {}
        for position, f in enumerate(fields):
            if f.deleted:
                continue
            cell = cells[position] if position < len(cells) else None
            record[f.name] = deserialize(cell, f.kind, f.optional)
        return record

    # --- Operations --------------------------------------------------------------

    async def insert_one(self, data: Mapping[str, Any]) -> str:
        """Append a record and return its id.

        Raises:
            UnknownFieldError: If ``data`` names a field the schema lacks.
            FieldValidationError: If a value fails its field's validator, or a
                deleted field is given.
            RemoteError: If the API fails or reports no written range.
        """
        for name in data:
            self._writable_field(name)

        values: Record = {
            CREATED_AT: self._clock(),
            UPDATED_AT: None,
            DELETED_AT: None,
            **data,
        }
        row: list[Any] = []
        for f in self.schema.fields:
            if f.deleted:
                row.append(None)
                continue
            accepted = self.schema.validate(f.name, values.get(f.name))
            row.append(self._cell(f, accepted))

        updated_range = await self.client.append(
            self.spreadsheet_id, self._range("A1"), row
        )
        if not updated_range:
            raise RemoteError("Failed to insert data: no updated range reported")
        record_id = extract_row_number(updated_range)
        logger.debug("Inserted record %s (%s)", record_id, updated_range)
        return record_id

    async def update_one(self, record_id: str | int, data: Mapping[str, Any]) -> bool:
        """Overwrite some fields of a live record and stamp ``updated_at``.

        Raises:
            UnknownFieldError: If ``data`` names a field the schema lacks.
            FieldValidationError: If a value fails its validator or targets a
                system or deleted field.
            NotFoundError: If the record does not exist or is soft-deleted.
        """
        row_id = self._row_id(record_id)

        writes: list[tuple[str, list[list[Any]]]] = []
        for name, value in data.items():
            f = self._writable_field(name)
            if self.schema.is_system_field(name):
                raise FieldValidationError(name, "system field, can't update it manually")
            accepted = self.schema.validate(name, value)
            cell = self._cell(f, accepted)
            # An empty string clears the cell; null would leave it untouched.
            writes.append((self._range(f"{f.column}{row_id}"), [["" if cell is None else cell]]))

        if await self.get_one(row_id) is None:
            raise NotFoundError(row_id)

        updated_at = self.schema.get_or_raise(UPDATED_AT)
        writes.append(
            (
                self._range(f"{updated_at.column}{row_id}"),
                [[format_datetime(self._clock())]],
            )
        )
        await self.client.batch_update(self.spreadsheet_id, writes)
        logger.debug("Updated record %s: %s", row_id, ", ".join(data) or "(touch)")
        return True

    async def get_one(
        self, record_id: str | int, return_soft_deleted: bool = False
    ) -> Record | None:
        """Read one record.

        Returns:
            The record, or None if the row has no ``created_at`` cell or is
            soft-deleted (unless ``return_soft_deleted`` is set).
        """
        row_id = self._row_id(record_id)
        rows = await self.client.get(self.spreadsheet_id, self._range(f"{row_id}:{row_id}"))
        if not rows or not rows[0]:
            return None
        cells = rows[0]

        created_at = self.schema.position_of(CREATED_AT)
        if created_at >= len(cells) or cells[created_at] in (None, ""):
            return None

        deleted_at = self.schema.position_of(DELETED_AT)
        is_deleted = deleted_at < len(cells) and cells[deleted_at] not in (None, "")
        if is_deleted and not return_soft_deleted:
            return None
        return self._decode_row(cells, self.schema.fields)

    async def delete_one(self, record_id: str | int) -> bool:
        """Soft-delete a record by stamping ``deleted_at``; the row is kept.

        Raises:
            NotFoundError: If the record does not exist or is already deleted.
        """
        row_id = self._row_id(record_id)
        if await self.get_one(row_id) is None:
            raise NotFoundError(row_id)

        deleted_at = self.schema.get_or_raise(DELETED_AT)
        await self.client.update(
            self.spreadsheet_id,
            self._range(f"{deleted_at.column}{row_id}"),
            [[format_datetime(self._clock())]],
        )
        logger.debug("Soft-deleted record %s", row_id)
        return True

    def compile_query(
        self,
        query: FindManyQuery | None = None,
        *,
        filters: FilterInput | None = None,
        selections: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        with_deleted: bool = False,
    ) -> str:
        """Return the query text ``find_many`` would send, without sending it."""
        query = _query_from(query, filters, selections, limit, offset)
        if not with_deleted:
            query = FindManyQuery(
                filters=with_soft_delete_filter(query.filters),
                selections=query.selections,
                limit=query.limit,
                offset=query.offset,
            )
        return build_query(query, self.schema)

    async def find_many(
        self,
        query: FindManyQuery | None = None,
        *,
        filters: FilterInput | None = None,
        selections: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        with_deleted: bool = False,
    ) -> list[Record]:
        """Query records through the query endpoint.

        Soft-deleted rows are excluded unless the filter mentions
        ``deleted_at`` or ``with_deleted`` is set.

        Raises:
            UnknownFieldError: If a filter or selection names an unknown field.
            TypeError: If both ``query`` and individual query arguments are given.
            InvalidQueryError: If the filter is malformed.
            RemoteError: If the query endpoint fails.
        """
        query = _query_from(query, filters, selections, limit, offset)
        text = self.compile_query(query, with_deleted=with_deleted)

        csv_text = await self.client.query(
            self.spreadsheet_id, text, sheet=self.sheet, headers=self.header_rows
        )

        if query.selections:
            fields = [self.schema.get_live(name) for name in query.selections]
        else:
            fields = list(self.schema.fields)

        rows = list(csv.reader(io.StringIO(csv_text)))
        # The first line holds the column labels.
        records = [
            self._decode_row(cells, fields)
            for cells in rows[1:]
            if any(cell != "" for cell in cells)
        ]
        logger.debug("Query returned %d record(s)", len(records))
        return records
