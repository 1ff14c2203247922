"""
Yahoo Finance quote client.

Session bootstrap:
  1. GET https://fc.yahoo.com/              → set-cookie header
  2. GET /v1/test/getcrumb (query1 then query2) → crumb text
  TTL = 60 minutes.  Single-flight protection via asyncio.Lock.

Quote lookup:
  GET https://query1.finance.yahoo.com/v7/finance/quote?symbols=<ticker>&crumb=<crumb>
  → quoteResponse.result[0].regularMarketPrice

One attempt per lookup, no backoff.  Every failure surfaces as
QuoteFetchError; choosing a fallback price is the caller's job.
On 401/403 the cached session is dropped so the next lookup re-bootstraps.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from sheet_report.errors import QuoteFetchError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SESSION_TTL_MS: int = 60 * 60 * 1000          # 60 minutes
YAHOO_USER_AGENT: str = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/114.0.0.0 Safari/537.36"
)
COOKIE_URL: str = "https://fc.yahoo.com/"
QUOTE_URL: str = "https://query1.finance.yahoo.com/v7/finance/quote"
PRICE_FIELD: str = "regularMarketPrice"


# ---------------------------------------------------------------------------
# Session state (module-level singleton, shared by every request)
# ---------------------------------------------------------------------------
@dataclass
class _YahooSession:
    cookie: str | None = None
    crumb: str | None = None
    acquired_at_ms: float = 0.0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def is_fresh(self) -> bool:
        return (
            self.cookie is not None
            and self.crumb is not None
            and (time.time() * 1000 - self.acquired_at_ms) < SESSION_TTL_MS
        )

    def invalidate(self) -> None:
        self.cookie = None
        self.crumb = None
        self.acquired_at_ms = 0.0


_session = _YahooSession()


def reset_session() -> None:
    """Drop the cached cookie + crumb."""
    _session.invalidate()


# ---------------------------------------------------------------------------
# Session bootstrap
# ---------------------------------------------------------------------------
async def _fetch_crumb(client: httpx.AsyncClient) -> None:
    cookie_resp = await client.get(
        COOKIE_URL,
        headers={"User-Agent": YAHOO_USER_AGENT},
        follow_redirects=True,
        timeout=15,
    )
    if cookie_resp.status_code in (429, 999) or cookie_resp.status_code >= 500:
        raise RuntimeError(f"Cookie fetch failed: status={cookie_resp.status_code}")

    cookie_header = cookie_resp.headers.get("set-cookie")
    if not cookie_header:
        raise RuntimeError("No session cookie received from fc.yahoo.com")

    crumb: str | None = None
    for host in ("query1", "query2"):
        try:
            crumb_resp = await client.get(
                f"https://{host}.finance.yahoo.com/v1/test/getcrumb",
                headers={"cookie": cookie_header, "User-Agent": YAHOO_USER_AGENT},
                timeout=15,
            )
        except httpx.HTTPError as e:
            logger.debug("[Yahoo][Session] crumb host=%s error: %s", host, e)
            continue
        if not crumb_resp.is_success:
            logger.debug("[Yahoo][Session] crumb host=%s status=%d", host, crumb_resp.status_code)
            continue
        body = crumb_resp.text.strip()
        if body and len(body) >= 5:
            crumb = body
            break

    if not crumb:
        raise RuntimeError("Invalid or empty crumb received")

    _session.cookie = cookie_header
    _session.crumb = crumb
    _session.acquired_at_ms = time.time() * 1000
    logger.info("[Yahoo][Session] cookie+crumb acquired OK")


async def ensure_session(client: httpx.AsyncClient) -> None:
    """Ensures a fresh Yahoo session exists.  Single-flight via asyncio.Lock."""
    if _session.is_fresh():
        return
    async with _session._lock:
        # Re-check after acquiring the lock
        if _session.is_fresh():
            return
        await _fetch_crumb(client)


# ---------------------------------------------------------------------------
# Quote lookup
# ---------------------------------------------------------------------------
async def fetch_quote(ticker: str, client: httpx.AsyncClient) -> dict[str, Any]:
    """
    Fetch the quote object for a single ticker.

    Returns quoteResponse.result[0].
    Raises QuoteFetchError on any failure.
    """
    symbol = (ticker or "").strip()
    if not symbol:
        raise QuoteFetchError(ticker, "ticker is required")

    try:
        await ensure_session(client)
        response = await client.get(
            QUOTE_URL,
            params={"symbols": symbol, "crumb": _session.crumb},
            headers={"cookie": _session.cookie or "", "User-Agent": YAHOO_USER_AGENT},
            timeout=30,
        )
    except httpx.HTTPError as exc:
        raise QuoteFetchError(symbol, f"network error: {exc}") from exc
    except RuntimeError as exc:
        raise QuoteFetchError(symbol, f"session bootstrap failed: {exc}") from exc

    logger.debug("[Yahoo][Quote] %s status=%d len=%d",
                 symbol, response.status_code, len(response.content))

    if response.status_code in (401, 403):
        _session.invalidate()
        raise QuoteFetchError(symbol, f"authentication failed: status={response.status_code}")
    if response.status_code >= 400:
        raise QuoteFetchError(symbol, f"HTTP {response.status_code}")

    body = response.text
    if body.lstrip().startswith("<"):
        raise QuoteFetchError(symbol, "received HTML instead of JSON")

    try:
        data = response.json()
    except ValueError as exc:
        raise QuoteFetchError(symbol, "malformed JSON response") from exc

    quote_response = data.get("quoteResponse") if isinstance(data, dict) else None
    if not isinstance(quote_response, dict):
        raise QuoteFetchError(symbol, "malformed quote response")
    results = quote_response.get("result") or []
    if not isinstance(results, list):
        raise QuoteFetchError(symbol, "malformed quote response")
    if not results:
        error = quote_response.get("error")
        raise QuoteFetchError(symbol, f"no quote returned{f' ({error})' if error else ''}")
    if not isinstance(results[0], dict):
        raise QuoteFetchError(symbol, "malformed quote response")
    return results[0]


async def fetch_quote_price(ticker: str, client: httpx.AsyncClient) -> float:
    """Current market price for ticker; raises QuoteFetchError if unavailable."""
    quote = await fetch_quote(ticker, client)
    price = quote.get(PRICE_FIELD)
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price):
        raise QuoteFetchError(ticker, f"missing or invalid {PRICE_FIELD}: {price!r}")
    return float(price)
