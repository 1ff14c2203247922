"""
Exception types raised by the report pipeline.

Failure policy:
  - SheetsError / ConfigError / InvalidRowError abort the whole request.
  - QuoteFetchError is recovered per row by the orchestrator (fallback price).
"""


class ReportError(RuntimeError):
    """Base class for every error raised by sheet_report."""


class ConfigError(ReportError):
    pass


class SheetsError(ReportError):
    """Read or write against the Sheets API failed."""


class QuoteFetchError(ReportError):
    def __init__(self, ticker: str, reason: str):
        super().__init__(f"Quote fetch failed for {ticker!r}: {reason}")
        self.ticker = ticker
        self.reason = reason


class InvalidRowError(ReportError):
    def __init__(self, row_number: int, missing: str):
        super().__init__(f"Row {row_number} is missing the {missing} column")
        self.row_number = row_number
        self.missing = missing
