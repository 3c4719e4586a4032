"""
Market Data Tool: Path Builders

Pure string builders for the upstream API paths. They encode the ticker
or query and centralize parameter layout; no retry or host logic lives
here (see fetch_client).
"""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import quote

from folio.config.constants import DEFAULT_SEARCH_COUNT

# UI range keys -> (range, interval) accepted by the chart endpoint
HISTORY_RANGES: dict[str, tuple[str, str]] = {
    "1D": ("1d", "5m"),
    "1W": ("5d", "30m"),
    "1M": ("1mo", "1d"),
    "3M": ("3mo", "1d"),
    "YTD": ("ytd", "1wk"),
    "1Y": ("1y", "1wk"),
    "ALL": ("max", "1mo"),
}
DEFAULT_HISTORY_RANGE = "1M"


def _encode(value: str) -> str:
    return quote(value, safe="")


def resolve_history_range(range_key: Optional[str]) -> tuple[str, str]:
    """Map a UI range key to (range, interval); unknown keys fall back to 1M."""
    key = (range_key or "").strip().upper()
    return HISTORY_RANGES.get(key, HISTORY_RANGES[DEFAULT_HISTORY_RANGE])


def build_chart_path(ticker: str, range: str, interval: str) -> str:
    """Time-series/chart path for one ticker."""
    return (
        f"/v8/finance/chart/{_encode(ticker)}"
        f"?range={range}&interval={interval}&includePrePost=false"
    )


def build_quote_summary_path(ticker: str, modules: Iterable[str]) -> str:
    """Multi-module fundamentals path, e.g. modules=price,summaryDetail."""
    return f"/v10/finance/quoteSummary/{_encode(ticker)}?modules={','.join(modules)}"


def build_search_path(
    query: str,
    count: int = DEFAULT_SEARCH_COUNT,
    news_count: Optional[int] = None,
) -> str:
    """Free-text search path. news_count adds the news block to the response."""
    path = f"/v1/finance/search?q={_encode(query)}&quotesCount={count}"
    if news_count is not None:
        path += f"&newsCount={news_count}"
    return path


def build_quote_path(symbols: Iterable[str], fields: Optional[Iterable[str]] = None) -> str:
    """Batch quote path for several symbols at once."""
    path = f"/v7/finance/quote?symbols={_encode(','.join(symbols))}"
    if fields:
        path += f"&fields={','.join(fields)}"
    return path
