"""
Google Sheets v4 values client.

  read:  GET  /v4/spreadsheets/{id}/values/{range}
  write: PUT  /v4/spreadsheets/{id}/values/{range}?valueInputOption=USER_ENTERED

Auth is a service-account credential (google-auth) whose bearer token is
refreshed on demand in a worker thread; the HTTP calls go through a shared
httpx.AsyncClient.  Any transport, auth or HTTP failure raises SheetsError.
Writes never clear cells outside the target range.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from sheet_report.errors import SheetsError

logger = logging.getLogger(__name__)

SHEETS_SCOPES: list[str] = ["https://www.googleapis.com/auth/spreadsheets"]
SHEETS_BASE_URL: str = "https://sheets.googleapis.com/v4/spreadsheets"

_A1_RE = re.compile(
    r"^(?:(?P<sheet>.+)!)?(?P<start_col>[A-Z]+)(?P<start_row>\d+)"
    r":(?P<end_col>[A-Z]+)(?P<end_row>\d*)$"
)


# ---------------------------------------------------------------------------
# A1 range helpers
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class A1Range:
    sheet: str | None
    start_col: str
    start_row: int
    end_col: str
    end_row: int | None = None

    def prefix(self) -> str:
        return f"{self.sheet}!" if self.sheet else ""


def parse_a1_range(range_a1: str) -> A1Range:
    """
    Parse "Sheet1!E5:K9" or an open-ended anchor such as "Sheet1!E15:K".
    Only column-bounded rectangular ranges are supported.
    """
    m = _A1_RE.match((range_a1 or "").strip())
    if not m:
        raise ValueError(f"Unsupported A1 range: {range_a1!r}")
    return A1Range(
        sheet=m.group("sheet"),
        start_col=m.group("start_col"),
        start_row=int(m.group("start_row")),
        end_col=m.group("end_col"),
        end_row=int(m.group("end_row")) if m.group("end_row") else None,
    )


def build_output_range(anchor: str, count: int) -> str:
    """Anchor "Sheet1!E15:K" + 3 rows → "Sheet1!E15:K17"."""
    if count < 1:
        raise ValueError("count must be >= 1 to build an output range")
    a1 = parse_a1_range(anchor)
    end_row = a1.start_row + count - 1
    return f"{a1.prefix()}{a1.start_col}{a1.start_row}:{a1.end_col}{end_row}"


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
class SheetsClient:
    def __init__(self, credentials: Any, http_client: httpx.AsyncClient, base_url: str = SHEETS_BASE_URL):
        self._credentials = credentials
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    @classmethod
    def from_service_account_file(cls, path: str, http_client: httpx.AsyncClient) -> "SheetsClient":
        try:
            credentials = service_account.Credentials.from_service_account_file(path, scopes=SHEETS_SCOPES)
        except (OSError, ValueError) as exc:
            raise SheetsError(f"Could not load service account credentials from {path}: {exc}") from exc
        return cls(credentials, http_client)

    async def _auth_headers(self) -> dict[str, str]:
        if not self._credentials.valid:
            try:
                await asyncio.to_thread(self._credentials.refresh, Request())
            except GoogleAuthError as exc:
                raise SheetsError(f"Service account token refresh failed: {exc}") from exc
            logger.debug("[Sheets][Auth] access token refreshed")
        return {"Authorization": f"Bearer {self._credentials.token}"}

    def _values_url(self, spreadsheet_id: str, range_a1: str) -> str:
        return f"{self._base_url}/{quote(spreadsheet_id, safe='')}/values/{quote(range_a1, safe='')}"

    async def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        headers = await self._auth_headers()
        try:
            resp = await self._http.request(method, url, headers=headers, timeout=30, **kwargs)
        except httpx.HTTPError as exc:
            raise SheetsError(f"Sheets API request failed: {exc}") from exc

        if not resp.is_success:
            detail = resp.text[:200]
            try:
                payload = resp.json()
            except ValueError:
                payload = None
            error = payload.get("error") if isinstance(payload, dict) else None
            if isinstance(error, dict) and error.get("message"):
                detail = error["message"]
            elif isinstance(error, str) and error:
                detail = error
            raise SheetsError(f"Sheets API returned {resp.status_code}: {detail}")

        try:
            return resp.json()
        except ValueError as exc:
            raise SheetsError("Sheets API returned a non-JSON body") from exc

    async def read_range(self, spreadsheet_id: str, range_a1: str) -> list[list[Any]]:
        """Rows of cell values; trailing empty cells/rows are omitted by the API."""
        data = await self._send("GET", self._values_url(spreadsheet_id, range_a1))
        rows = data.get("values") or []
        logger.info("[Sheets][Read] %s → %d row(s)", range_a1, len(rows))
        return rows

    async def write_range(
        self,
        spreadsheet_id: str,
        range_a1: str,
        rows: list[list[Any]],
        value_input_option: str = "USER_ENTERED",
    ) -> dict[str, Any]:
        body = {"range": range_a1, "majorDimension": "ROWS", "values": rows}
        data = await self._send(
            "PUT",
            self._values_url(spreadsheet_id, range_a1),
            params={"valueInputOption": value_input_option},
            json=body,
        )
        logger.info("[Sheets][Write] %s ← %d row(s) (updatedCells=%s)",
                    range_a1, len(rows), data.get("updatedCells"))
        return data
