"""
Stock report orchestrator.

Execution order (sequential, one request = one run):
  1: Read      → sheets.read_range(input range), keep rows with name + ticker
  2: Process   → per row, in order: live quote (fallback price on failure),
                 analyze_stock, build output row
  3: Write     → one bulk sheets.write_range(anchor .. start + count - 1)

Failure behavior:
  - Read / Write / row-shape errors propagate (the request fails)
  - QuoteFetchError is recovered per row with the sheet's fallback price
  - Trailing rows left over from a previous, longer run are not cleared
"""

import logging
from typing import Any, Awaitable, Callable, Protocol

import httpx

from sheet_report.api_clients import yahoo_client
from sheet_report.api_clients.sheets_client import build_output_range, parse_a1_range
from sheet_report.config import Settings
from sheet_report.errors import QuoteFetchError
from sheet_report.models import OutputRow, StockRow
from sheet_report.services.metrics_calculator import analyze_stock, to_number

logger = logging.getLogger(__name__)

PriceFetcher = Callable[[str, httpx.AsyncClient], Awaitable[float]]


class SheetsGateway(Protocol):
    async def read_range(self, spreadsheet_id: str, range_a1: str) -> list[list[Any]]: ...

    async def write_range(
        self,
        spreadsheet_id: str,
        range_a1: str,
        rows: list[list[Any]],
        value_input_option: str = "USER_ENTERED",
    ) -> dict[str, Any]: ...


class ReportResult:
    def __init__(self) -> None:
        self.status: str = "pending"     # "pending" | "ok"
        self.rows_read: int = 0
        self.rows_retained: int = 0
        self.output: list[OutputRow] = []
        self.fallbacks: list[str] = []
        self.write_range: str | None = None
        self.logs: list[str] = []

    def log(self, msg: str) -> None:
        logger.info(msg)
        self.logs.append(msg)

    @property
    def values(self) -> list[list[Any]]:
        return [row.to_values() for row in self.output]


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

async def read_stock_rows(sheets: SheetsGateway, settings: Settings, result: ReportResult) -> list[StockRow]:
    """Step 1: read the input range and keep rows with both name and ticker."""
    result.log(f"[Step 1] Reading {settings.input_range}")
    raw_rows = await sheets.read_range(settings.spreadsheet_id, settings.input_range)
    result.rows_read = len(raw_rows)

    first_row = parse_a1_range(settings.input_range).start_row
    stocks = [
        StockRow.from_cells(cells, first_row + offset)
        for offset, cells in enumerate(raw_rows)
        if StockRow.is_candidate(cells)
    ]
    result.rows_retained = len(stocks)
    result.log(f"[Step 1] {len(stocks)} of {len(raw_rows)} row(s) have a stock name and ticker")
    return stocks


async def resolve_price(
    row: StockRow,
    client: httpx.AsyncClient,
    result: ReportResult,
    fetch_price: PriceFetcher = yahoo_client.fetch_quote_price,
) -> float:
    """Live price for the row's ticker, or its fallback price if the lookup fails."""
    try:
        return await fetch_price(row.ticker, client)
    except QuoteFetchError as exc:
        logger.warning("[Report][Quote] %s: %s, using fallback %r", row.ticker, exc.reason, row.fallback_price)
        result.fallbacks.append(row.ticker)
        return to_number(row.fallback_price)


def build_output_row(row: StockRow, price: float) -> OutputRow:
    analysis = analyze_stock(price, to_number(row.avg10))
    return OutputRow.build(row.stock_name, price, analysis)


async def write_output(
    sheets: SheetsGateway,
    settings: Settings,
    rows: list[OutputRow],
    result: ReportResult,
) -> str | None:
    """Step 3: one bulk write; nothing is written when there are no rows."""
    if not rows:
        result.log("[Step 3] No rows to write, skipping update")
        return None
    write_range = build_output_range(settings.output_anchor, len(rows))
    result.log(f"[Step 3] Writing {len(rows)} row(s) to {write_range}")
    await sheets.write_range(
        settings.spreadsheet_id,
        write_range,
        [r.to_values() for r in rows],
        value_input_option=settings.value_input_option,
    )
    return write_range


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------

async def run_report(
    sheets: SheetsGateway,
    client: httpx.AsyncClient,
    settings: Settings,
    fetch_price: PriceFetcher = yahoo_client.fetch_quote_price,
) -> ReportResult:
    result = ReportResult()

    stocks = await read_stock_rows(sheets, settings, result)

    result.log(f"[Step 2] Analyzing {len(stocks)} stock(s)")
    for row in stocks:
        price = await resolve_price(row, client, result, fetch_price)
        out = build_output_row(row, price)
        result.output.append(out)
        logger.debug("[Report][Row %d] %s price=%s risk=%s %s/%s",
                     row.row_number, row.ticker, price, out.risk_percent,
                     out.sentiment.value, out.recommendation.value)

    result.write_range = await write_output(sheets, settings, result.output, result)

    result.status = "ok"
    result.log(
        f"[Report] Completed: {len(result.output)} row(s), "
        f"{len(result.fallbacks)} fallback price(s)"
    )
    return result
