"""HTTP access to the Sheets values API and the visualization query endpoint.

SheetsClient covers the two remote surfaces a Model needs: cell-range reads
and writes through ``/v4/spreadsheets/{id}/values``, and query-language
requests through ``/spreadsheets/d/{id}/gviz/tq`` which answer in CSV.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote

import httpx
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from typed_sheets.errors import RemoteError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]

TOKEN_URI = "https://oauth2.googleapis.com/token"


class CredentialProvider(Protocol):
    """Anything that can hand out a bearer token for the Google APIs."""

    async def get_access_token(self) -> str: ...


class StaticTokenProvider:
    """Provider for an access token obtained elsewhere."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def get_access_token(self) -> str:
        return self._token


class GoogleCredentialProvider:
    """Provider backed by google-auth user credentials.

    The token is refreshed (in a worker thread, since google-auth's refresh
    is blocking) whenever it is missing or expired.
    """

    def __init__(self, credentials: Credentials) -> None:
        self.credentials = credentials

    @classmethod
    def from_refresh_token(
        cls,
        refresh_token: str,
        client_id: str,
        client_secret: str,
        scopes: Sequence[str] = SCOPES,
    ) -> GoogleCredentialProvider:
        """Build a provider from a long-lived refresh token and OAuth client."""
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            token_uri=TOKEN_URI,
            scopes=list(scopes),
        )
        return cls(credentials)

    @classmethod
    def from_authorized_user_info(
        cls, info: Mapping[str, Any], scopes: Sequence[str] = SCOPES
    ) -> GoogleCredentialProvider:
        """Build a provider from an authorized-user JSON mapping."""
        return cls(Credentials.from_authorized_user_info(dict(info), scopes=list(scopes)))

    async def get_access_token(self) -> str:
        if not self.credentials.valid:
            logger.debug("Refreshing Google access token")
            await asyncio.to_thread(self.credentials.refresh, Request())
        return self.credentials.token


@dataclass(frozen=True)
class ClientOptions:
    """Endpoints and write behaviour for SheetsClient."""

    sheets_base_url: str = "https://sheets.googleapis.com/v4/spreadsheets"
    query_base_url: str = "https://docs.google.com/spreadsheets/d"
    # USER_ENTERED lets Sheets parse dates, numbers and TRUE/FALSE the same
    # way for appends and updates, so query comparisons see typed cells.
    value_input_option: str = "USER_ENTERED"
    timeout: float = 30.0


class SheetsClient:
    """Async client for the spreadsheet row API and query endpoint."""

    def __init__(
        self,
        credentials: CredentialProvider,
        options: ClientOptions | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            credentials: Source of bearer tokens.
            options: Endpoint and write settings.
            http: Existing httpx client to use. When omitted the client owns
                one and closes it in ``aclose``.
        """
        self.credentials = credentials
        self.options = options or ClientOptions()
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=self.options.timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> SheetsClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # --- Transport ---------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        token = await self.credentials.get_access_token()
        logger.debug("%s %s params=%s", method, url, params)
        try:
            response = await self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("%s %s failed with HTTP %s", method, url, e.response.status_code)
            raise RemoteError(
                f"HTTP error! Status: {e.response.status_code}",
                status_code=e.response.status_code,
                url=url,
            ) from e
        except httpx.RequestError as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise RemoteError(f"Request to {url} failed: {e}", url=url) from e
        return response

    def _values_url(self, spreadsheet_id: str, suffix: str = "") -> str:
        return f"{self.options.sheets_base_url}/{spreadsheet_id}/values{suffix}"

    def _range_url(self, spreadsheet_id: str, range_: str, action: str = "") -> str:
        # Sheet names may hold characters like # or / that must not end the path.
        return self._values_url(spreadsheet_id, f"/{quote(range_, safe='')}{action}")

    # --- Row API -------------------------------------------------------------------

    async def append(
        self, spreadsheet_id: str, range_: str, row: Sequence[Any]
    ) -> str | None:
        """Append one row after the table found at ``range_``.

        Returns:
            The A1 range Sheets reports as written, or None if it reported none.
        """
        response = await self._request(
            "POST",
            self._range_url(spreadsheet_id, range_, ":append"),
            params={
                "valueInputOption": self.options.value_input_option,
                "insertDataOption": "INSERT_ROWS",
            },
            json={"values": [list(row)]},
        )
        updates = response.json().get("updates") or {}
        return updates.get("updatedRange")

    async def get(self, spreadsheet_id: str, range_: str) -> list[list[Any]]:
        """Read the cells of a range; empty ranges read as an empty list."""
        response = await self._request(
            "GET", self._range_url(spreadsheet_id, range_)
        )
        return response.json().get("values") or []

    async def update(
        self, spreadsheet_id: str, range_: str, values: Sequence[Sequence[Any]]
    ) -> None:
        """Overwrite the cells of one range."""
        await self._request(
            "PUT",
            self._range_url(spreadsheet_id, range_),
            params={"valueInputOption": self.options.value_input_option},
            json={"range": range_, "values": [list(r) for r in values]},
        )

    async def batch_update(
        self,
        spreadsheet_id: str,
        data: Sequence[tuple[str, Sequence[Sequence[Any]]]],
    ) -> None:
        """Overwrite several ranges in one request."""
        await self._request(
            "POST",
            self._values_url(spreadsheet_id, ":batchUpdate"),
            json={
                "valueInputOption": self.options.value_input_option,
                "data": [
                    {"range": range_, "values": [list(r) for r in values]}
                    for range_, values in data
                ],
            },
        )

    # --- Query endpoint ---------------------------------------------------------------

    async def query(
        self,
        spreadsheet_id: str,
        text: str,
        sheet: str | None = None,
        headers: int | None = None,
    ) -> str:
        """Run query-language text and return the result as CSV."""
        params: dict[str, Any] = {"tqx": "out:csv", "tq": text}
        if sheet is not None:
            params["sheet"] = sheet
        if headers is not None:
            params["headers"] = headers
        response = await self._request(
            "GET",
            f"{self.options.query_base_url}/{spreadsheet_id}/gviz/tq",
            params=params,
        )
        return response.text
