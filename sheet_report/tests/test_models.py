import math

import pytest
from sheet_report.errors import InvalidRowError
from sheet_report.models import AnalysisResult, OutputRow, Recommendation, Sentiment, StockRow


# ---------------------------------------------------------------------------
# Row filter
# ---------------------------------------------------------------------------

def test_candidate_needs_name_and_ticker():
    assert StockRow.is_candidate(["Acme", "ACM", "", "", "", "", "100"])
    assert StockRow.is_candidate(["Acme", "ACM"])


@pytest.mark.parametrize("cells", [
    [],
    ["Acme"],
    ["Acme", ""],
    ["", "ACM", "", "90", "", "", "100"],
    ["Acme", "   ", "", "90", "", "", "100"],
    [None, "ACM", "", "90", "", "", "100"],
])
def test_row_without_name_or_ticker_is_not_a_candidate(cells):
    assert not StockRow.is_candidate(cells)


# ---------------------------------------------------------------------------
# Row shape
# ---------------------------------------------------------------------------

def test_from_cells_maps_positional_columns():
    row = StockRow.from_cells(["Acme", " ACM ", "x", "95.5", "y", "z", "100"], row_number=5)
    assert row.row_number == 5
    assert row.stock_name == "Acme"
    assert row.ticker == "ACM"
    assert row.fallback_price == "95.5"
    assert row.avg10 == "100"


def test_from_cells_short_row_fails_clearly():
    with pytest.raises(InvalidRowError) as exc_info:
        StockRow.from_cells(["Acme", "ACM", "", "95"], row_number=7)
    assert exc_info.value.row_number == 7
    assert "Row 7" in str(exc_info.value)
    assert "avg10" in str(exc_info.value)


def test_from_cells_sparse_cells_become_blank():
    row = StockRow.from_cells(["Beta", "BET", None, None, None, None, 80], row_number=6)
    assert row.fallback_price == ""
    assert row.avg10 == 80


# ---------------------------------------------------------------------------
# Output rendering
# ---------------------------------------------------------------------------

_GOOD = AnalysisResult(True, False, "10.00", Sentiment.POSITIVE, Recommendation.HOLD)


def test_output_row_values_in_column_order():
    out = OutputRow.build("Acme", 110.0, _GOOD)
    assert out.to_values() == ["Acme", 110.0, "Yes", "No", "10.00", "Positive", "Hold"]


def test_output_row_non_finite_price_renders_empty():
    bad = AnalysisResult(False, False, "NaN", Sentiment.NEGATIVE, Recommendation.SELL)
    out = OutputRow.build("Gamma", math.nan, bad)
    assert out.to_values() == ["Gamma", None, "No", "No", "NaN", "Negative", "Sell"]
