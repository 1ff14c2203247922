"""
Row records for the stock report.

Input layout (one sheet row, read range E..K):
  0 stock name | 1 ticker | 2 - | 3 fallback price | 4 - | 5 - | 6 avg10

Output layout (write range E..K):
  stock name | price | good | bad | risk % | sentiment | recommendation
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from sheet_report.errors import InvalidRowError

COL_STOCK_NAME: int = 0
COL_TICKER: int = 1
COL_FALLBACK_PRICE: int = 3
COL_AVG10: int = 6
INPUT_WIDTH: int = COL_AVG10 + 1


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"


class Recommendation(str, Enum):
    HOLD = "Hold"
    SELL = "Sell"


def _cell(cells: Sequence[Any], idx: int) -> Any:
    if idx >= len(cells) or cells[idx] is None:
        return ""
    return cells[idx]


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


@dataclass(frozen=True)
class StockRow:
    row_number: int
    stock_name: str
    ticker: str
    fallback_price: Any
    avg10: Any

    @staticmethod
    def is_candidate(cells: Sequence[Any]) -> bool:
        """A row is processed only when both stock name and ticker are filled in."""
        name = str(_cell(cells, COL_STOCK_NAME)).strip()
        ticker = str(_cell(cells, COL_TICKER)).strip()
        return bool(name) and bool(ticker)

    @classmethod
    def from_cells(cls, cells: Sequence[Any], row_number: int) -> "StockRow":
        # Sheets drops trailing blanks, so a short row means avg10 is empty
        if len(cells) < INPUT_WIDTH:
            raise InvalidRowError(row_number, "reference average (avg10)")
        return cls(
            row_number=row_number,
            stock_name=str(cells[COL_STOCK_NAME]).strip(),
            ticker=str(cells[COL_TICKER]).strip(),
            fallback_price=_cell(cells, COL_FALLBACK_PRICE),
            avg10=_cell(cells, COL_AVG10),
        )


@dataclass(frozen=True)
class AnalysisResult:
    matches_threshold: bool
    below_threshold: bool
    risk_percent: str
    sentiment: Sentiment
    recommendation: Recommendation


@dataclass(frozen=True)
class OutputRow:
    stock_name: str
    current_price: float
    matches_threshold: bool
    below_threshold: bool
    risk_percent: str
    sentiment: Sentiment
    recommendation: Recommendation

    @classmethod
    def build(cls, stock_name: str, current_price: float, analysis: AnalysisResult) -> "OutputRow":
        return cls(
            stock_name=stock_name,
            current_price=current_price,
            matches_threshold=analysis.matches_threshold,
            below_threshold=analysis.below_threshold,
            risk_percent=analysis.risk_percent,
            sentiment=analysis.sentiment,
            recommendation=analysis.recommendation,
        )

    def to_values(self) -> list[Any]:
        """Positional cell values, in output column order."""
        price = self.current_price if math.isfinite(self.current_price) else None
        return [
            self.stock_name,
            price,
            _yes_no(self.matches_threshold),
            _yes_no(self.below_threshold),
            self.risk_percent,
            self.sentiment.value,
            self.recommendation.value,
        ]
