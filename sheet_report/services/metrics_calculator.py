"""
Per-ticker analysis metrics.

Key formulas:
  risk %         = |current - avg10| / avg10 * 100   (2 fraction digits, as text)
  good           = current > avg10
  bad            = current < avg10
  sentiment      = Positive if current > avg10 else Negative
  recommendation = Hold if good else Sell

current == avg10 is neither good nor bad, and still reads Negative / Sell.
Non-numeric inputs are not rejected: they flow through as NaN and surface in
the sheet as "NaN" risk with Negative / Sell.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sheet_report.models import AnalysisResult, Recommendation, Sentiment

_CENTS = Decimal("0.01")
_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------

def to_number(value: Any) -> float:
    """
    Coerce a sheet cell to float.

    Formatted reads come back as text ("1,234.50"), so thousands separators
    are stripped.  Blank cells are 0.0; anything unparseable is NaN.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    text = str(value).strip().replace(",", "")
    if not text:
        return 0.0
    if text.lstrip("+-") == "Infinity":
        return -math.inf if text.startswith("-") else math.inf
    if not _NUMERIC_RE.match(text):
        return math.nan
    return float(text)


def _format_pct(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if abs(value) >= 1e21:
        return repr(value)
    # Exact ties round away from zero (18.125 → "18.13"), not to even
    return str(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def compute_risk_percent(current: float, avg10: float) -> str:
    """Relative deviation of current from avg10, in percent, as fixed 2-dp text."""
    if math.isnan(current) or math.isnan(avg10):
        return "NaN"
    deviation = abs(current - avg10)
    if avg10 == 0:
        return _format_pct(math.nan if deviation == 0 else math.inf)
    return _format_pct(deviation / avg10 * 100)


def analyze_stock(current: float, avg10: float) -> AnalysisResult:
    good = current > avg10
    bad = current < avg10
    return AnalysisResult(
        matches_threshold=good,
        below_threshold=bad,
        risk_percent=compute_risk_percent(current, avg10),
        sentiment=Sentiment.POSITIVE if current > avg10 else Sentiment.NEGATIVE,
        recommendation=Recommendation.HOLD if good else Recommendation.SELL,
    )
