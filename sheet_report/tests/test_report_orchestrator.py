"""
Report orchestration

Rules:
  - Rows missing stock name or ticker never reach processing or output.
  - A failed quote falls back to the sheet price; it never fails the run.
  - Read failure aborts before any write.
  - Output height == retained row count; one bulk write.
"""

import asyncio

import httpx
import pytest
from sheet_report.api_clients import yahoo_client
from sheet_report.config import Settings
from sheet_report.errors import InvalidRowError, QuoteFetchError, SheetsError
from sheet_report.orchestrator.report_orchestrator import run_report


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_SETTINGS = Settings(spreadsheet_id="sheet-1")


class FakeSheets:
    def __init__(self, rows=None, read_error=None, write_error=None):
        self.rows = rows or []
        self.read_error = read_error
        self.write_error = write_error
        self.reads: list[tuple] = []
        self.writes: list[tuple] = []

    async def read_range(self, spreadsheet_id, range_a1):
        self.reads.append((spreadsheet_id, range_a1))
        if self.read_error:
            raise self.read_error
        return self.rows

    async def write_range(self, spreadsheet_id, range_a1, rows, value_input_option="USER_ENTERED"):
        if self.write_error:
            raise self.write_error
        self.writes.append((spreadsheet_id, range_a1, rows, value_input_option))
        return {"updatedRange": range_a1, "updatedRows": len(rows)}


def _prices(table: dict):
    """Fake live lookup: known tickers return a price, others fail."""
    calls: list[str] = []

    async def fetch(ticker, client):
        calls.append(ticker)
        if ticker not in table:
            raise QuoteFetchError(ticker, "not found")
        return float(table[ticker])

    fetch.calls = calls
    return fetch


def _run(sheets, fetch):
    async def go():
        async with httpx.AsyncClient() as client:
            return await run_report(sheets, client, _SETTINGS, fetch_price=fetch)
    return asyncio.run(go())


ACME = ["Acme", "ACM", "", "", "", "", "100"]
BETA = ["Beta", "BET", "", "75", "", "", "80"]


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

def test_live_price_and_fallback_scenario():
    sheets = FakeSheets(rows=[ACME, BETA])
    result = _run(sheets, _prices({"ACM": 110}))

    assert result.values == [
        ["Acme", 110.0, "Yes", "No", "10.00", "Positive", "Hold"],
        ["Beta", 75.0, "No", "Yes", "6.25", "Negative", "Sell"],
    ]
    assert result.fallbacks == ["BET"]
    assert result.status == "ok"

    assert len(sheets.writes) == 1
    _, write_range, rows, option = sheets.writes[0]
    assert write_range == "Sheet1!E15:K16"
    assert rows == result.values
    assert option == "USER_ENTERED"


def test_row_with_empty_ticker_is_dropped():
    no_ticker = ["Ghost", "", "", "50", "", "", "60"]
    fetch = _prices({"ACM": 110})
    sheets = FakeSheets(rows=[ACME, no_ticker, []])
    result = _run(sheets, fetch)

    assert [v[0] for v in result.values] == ["Acme"]
    assert fetch.calls == ["ACM"]
    assert result.rows_read == 3
    assert sheets.writes[0][1] == "Sheet1!E15:K15"


def test_output_order_matches_input_order():
    rows = [
        ["Zed", "ZZZ", "", "1", "", "", "2"],
        ["Acme", "ACM", "", "", "", "", "100"],
        ["Mid", "MID", "", "3", "", "", "3"],
    ]
    result = _run(FakeSheets(rows=rows), _prices({"ACM": 90}))
    assert [v[0] for v in result.values] == ["Zed", "Acme", "Mid"]
    assert len(result.output) == 3


def test_rerun_with_same_inputs_is_identical():
    fetch = _prices({"ACM": 110})
    first = _run(FakeSheets(rows=[ACME, BETA]), fetch)
    second = _run(FakeSheets(rows=[ACME, BETA]), fetch)
    assert first.values == second.values


def test_no_rows_skips_write():
    sheets = FakeSheets(rows=[])
    result = _run(sheets, _prices({}))
    assert result.values == []
    assert result.write_range is None
    assert sheets.writes == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

def test_read_failure_aborts_without_write():
    sheets = FakeSheets(read_error=SheetsError("Sheets API request failed: timeout"))
    with pytest.raises(SheetsError):
        _run(sheets, _prices({}))
    assert sheets.writes == []


def test_write_failure_propagates():
    sheets = FakeSheets(rows=[ACME], write_error=SheetsError("Sheets API returned 500"))
    with pytest.raises(SheetsError):
        _run(sheets, _prices({"ACM": 110}))


def test_short_row_fails_with_row_number():
    short = ["Acme", "ACM", "", "95"]
    with pytest.raises(InvalidRowError) as exc_info:
        _run(FakeSheets(rows=[BETA, short]), _prices({}))
    assert exc_info.value.row_number == 6


def test_non_numeric_average_flows_through_as_nan():
    rows = [["Odd", "ODD", "", "", "", "", "n/a"]]
    result = _run(FakeSheets(rows=rows), _prices({"ODD": 12}))
    assert result.values == [["Odd", 12.0, "No", "No", "NaN", "Negative", "Sell"]]


def test_malformed_live_quote_falls_back_to_sheet_price():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "fc.yahoo.com":
            return httpx.Response(404, headers={"set-cookie": "A3=cookie"})
        if request.url.path == "/v1/test/getcrumb":
            return httpx.Response(200, text="crumb-abc123")
        return httpx.Response(200, json={"quoteResponse": {"result": [None]}})

    async def go():
        yahoo_client.reset_session()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await run_report(FakeSheets(rows=[BETA]), client, _SETTINGS)

    try:
        result = asyncio.run(go())
    finally:
        yahoo_client.reset_session()
    assert result.values == [["Beta", 75.0, "No", "Yes", "6.25", "Negative", "Sell"]]
    assert result.fallbacks == ["BET"]
