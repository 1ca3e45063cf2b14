"""Entry point binding a spreadsheet to typed models."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from typed_sheets.client import SheetsClient
from typed_sheets.model import Model
from typed_sheets.schema import FieldSpec, Schema


class SheetDB:
    """A spreadsheet document whose sheets are used as tables."""

    def __init__(self, client: SheetsClient, spreadsheet_id: str) -> None:
        """Initialize the database.

        Args:
            client: Client used by every model created from this database.
            spreadsheet_id: Id of the spreadsheet document.
        """
        self.client = client
        self.spreadsheet_id = spreadsheet_id

    def get_model(
        self,
        fields: Iterable[FieldSpec] | Schema,
        sheet: str | None = None,
        header_rows: int | None = None,
    ) -> Model:
        """Create a model for one sheet.

        Args:
            fields: Declared fields (validated here) or a prebuilt Schema.
            sheet: Name of the sheet holding the rows; the first sheet if None.
            header_rows: Number of header rows above the data.

        Raises:
            SchemaValidationError: If the declared fields are invalid.
        """
        schema = fields if isinstance(fields, Schema) else Schema.build(fields)
        return Model(
            schema,
            self.client,
            self.spreadsheet_id,
            sheet=sheet,
            header_rows=header_rows,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> SheetDB:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
