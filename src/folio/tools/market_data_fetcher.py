"""
Market Data Fetcher: quotes, stock detail, history, search, news and fund profiles.

Thin operations over ResilientFetchClient. Every function degrades
gracefully: a failed upstream call yields an empty result (or None), never
an exception. Per-ticker fan-out uses settle-all semantics: one ticker's
failure never blocks or invalidates the others.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Hashable, Iterable, Optional, TypeVar

import pandas as pd

try:
    from crewai.tools import BaseTool
except ImportError:
    from pydantic import BaseModel as BaseTool
from pydantic import BaseModel, Field

from folio.config.constants import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_NEWS_COUNT,
    DEFAULT_SEARCH_COUNT,
    FUND_PROFILE_CACHE_TTL_SECONDS,
    FUND_PROFILE_MODULES,
    MAX_CHART_FALLBACK_TICKERS,
    MAX_TICKERS_PER_REQUEST,
    NEWS_CACHE_TTL_SECONDS,
    SEARCH_CACHE_TTL_SECONDS,
    STOCK_DETAIL_CACHE_TTL_SECONDS,
    STOCK_DETAIL_FIELDS,
)
from folio.config.settings import FetchSettings
from folio.schemas.exposure_output import FundSectorBreakdown
from folio.schemas.market_output import (
    ChartSeries,
    FundProfile,
    HealthCheck,
    HealthReport,
    NewsArticle,
    Quote,
    SearchMatch,
    StockDetail,
    StockOverview,
)
from folio.tools.fetch_client import ResilientFetchClient
from folio.tools.market_parsers import (
    parse_chart,
    parse_fund_profile,
    parse_news,
    parse_quote_response,
    parse_search_results,
    parse_stock_detail,
    quote_from_chart_meta,
    stock_detail_from_chart_meta,
)
from folio.tools.yahoo_paths import (
    build_chart_path,
    build_quote_path,
    build_quote_summary_path,
    build_search_path,
    resolve_history_range,
)

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_DEFAULT_SETTINGS = FetchSettings()


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

def fetch_many(
    keys: Iterable[K],
    func: Callable[[K], Optional[V]],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[K, V]:
    """
    Run func for every key in parallel and wait for all to settle.

    Returns:
        {key: value} only for keys whose call returned a non-None value.
        Exceptions are logged per key and never propagate.
    """
    unique = list(dict.fromkeys(keys))
    if not unique:
        return {}

    workers = max(1, min(max_workers, len(unique)))
    results: dict[K, V] = {}

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_map = {executor.submit(func, key): key for key in unique}
        for future in as_completed(future_map):
            key = future_map[future]
            try:
                value = future.result()
            except Exception as e:
                logger.warning(f"[MarketData] {key} failed: {e}")
                continue
            if value is not None:
                results[key] = value

    # Preserve request order for callers that render the mapping directly
    return {key: results[key] for key in unique if key in results}


def normalize_tickers(tickers: Iterable[str], limit: int = MAX_TICKERS_PER_REQUEST) -> list[str]:
    """Trim, upper-case, de-duplicate and cap a ticker list."""
    cleaned = [t.strip().upper() for t in tickers if t and t.strip()]
    return list(dict.fromkeys(cleaned))[:limit]


# ---------------------------------------------------------------------------
# Quotes / history
# ---------------------------------------------------------------------------

def fetch_chart(
    ticker: str,
    client: ResilientFetchClient,
    range: str = "5d",
    interval: str = "1d",
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> Optional[ChartSeries]:
    result = client.fetch_json(build_chart_path(ticker, range, interval), settings.fetch_options())
    if not result.ok:
        return None
    return parse_chart(ticker, result.data)


def fetch_quotes(
    tickers: Iterable[str],
    client: ResilientFetchClient,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> dict[str, Quote]:
    """
    Live quotes keyed by ticker.

    Tries the batch quote endpoint first; if it fails or returns nothing,
    derives quotes from per-ticker chart meta for the first few tickers.
    """
    symbols = normalize_tickers(tickers)
    if not symbols:
        return {}

    result = client.fetch_json(build_quote_path(symbols), settings.fetch_options())
    if result.ok:
        quotes = parse_quote_response(result.data)
        if quotes:
            return quotes
        logger.info("[MarketData] Batch quote returned no prices; falling back to chart meta")
    else:
        logger.info(f"[MarketData] Batch quote failed ({result.error}); falling back to chart meta")

    def from_chart(ticker: str) -> Optional[Quote]:
        series = fetch_chart(ticker, client, "5d", "1d", settings)
        if series is None or series.meta.regular_market_price is None:
            return None
        return quote_from_chart_meta(ticker, series.meta)

    return fetch_many(symbols[:MAX_CHART_FALLBACK_TICKERS], from_chart, settings.max_workers)


def fetch_history(
    tickers: Iterable[str],
    range_key: Optional[str],
    client: ResilientFetchClient,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> dict[str, ChartSeries]:
    """Chart series per ticker for a UI range key (1D, 1W, 1M, 3M, YTD, 1Y, ALL)."""
    range_, interval = resolve_history_range(range_key)
    ttl = 60 if range_ == "1d" else 300
    options = settings.fetch_options(cache_ttl_seconds=ttl)

    def one(ticker: str) -> Optional[ChartSeries]:
        result = client.fetch_json(build_chart_path(ticker, range_, interval), options)
        return parse_chart(ticker, result.data) if result.ok else None

    return fetch_many(normalize_tickers(tickers), one, settings.max_workers)


def history_to_frame(series: ChartSeries) -> pd.DataFrame:
    """OHLCV frame indexed by UTC timestamp."""
    frame = pd.DataFrame(
        [p.model_dump() for p in series.points],
        columns=["timestamp", "open", "high", "low", "close", "volume"],
    )
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], unit="s", utc=True)
    return frame.set_index("timestamp")


# ---------------------------------------------------------------------------
# Search / news
# ---------------------------------------------------------------------------

def search_instruments(
    query: str,
    client: ResilientFetchClient,
    count: int = DEFAULT_SEARCH_COUNT,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> list[SearchMatch]:
    if not query or not query.strip():
        return []
    result = client.fetch_json(
        build_search_path(query.strip(), count, news_count=0),
        settings.fetch_options(cache_ttl_seconds=SEARCH_CACHE_TTL_SECONDS),
    )
    return parse_search_results(result.data) if result.ok else []


def fetch_ticker_news(
    ticker: str,
    client: ResilientFetchClient,
    count: int = DEFAULT_NEWS_COUNT,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> list[NewsArticle]:
    result = client.fetch_json(
        build_search_path(ticker.strip().upper(), 0, news_count=count),
        settings.fetch_options(cache_ttl_seconds=NEWS_CACHE_TTL_SECONDS),
    )
    return parse_news(result.data, limit=count) if result.ok else []


# ---------------------------------------------------------------------------
# Stock detail
# ---------------------------------------------------------------------------

def fetch_stock_detail(
    ticker: str,
    client: ResilientFetchClient,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> Optional[StockDetail]:
    """
    Rich quote for one ticker.

    Tries the quote endpoint with the detail field list first; when that
    fails or carries no price, falls back to chart meta for the basics.
    None when neither source prices the ticker.
    """
    symbol = ticker.strip().upper()
    if not symbol:
        return None

    result = client.fetch_json(
        build_quote_path([symbol], STOCK_DETAIL_FIELDS),
        settings.fetch_options(cache_ttl_seconds=STOCK_DETAIL_CACHE_TTL_SECONDS),
    )
    if result.ok:
        detail = parse_stock_detail(symbol, result.data)
        if detail is not None:
            return detail

    logger.info(f"[MarketData] No detail quote for {symbol}; falling back to chart meta")
    series = fetch_chart(symbol, client, "5d", "1d", settings)
    if series is None or series.meta.regular_market_price is None:
        return None
    return stock_detail_from_chart_meta(symbol, series.meta)


def fetch_stock_overview(
    ticker: str,
    client: ResilientFetchClient,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> StockOverview:
    """Detail quote and ticker news, fetched in parallel."""
    symbol = ticker.strip().upper()
    if not symbol:
        return StockOverview(ticker=symbol)

    with ThreadPoolExecutor(max_workers=2) as executor:
        detail = executor.submit(fetch_stock_detail, symbol, client, settings)
        news = executor.submit(fetch_ticker_news, symbol, client, DEFAULT_NEWS_COUNT, settings)
        return StockOverview(ticker=symbol, quote=detail.result(), news=news.result())


# ---------------------------------------------------------------------------
# Fund profiles
# ---------------------------------------------------------------------------

def fetch_fund_profile(
    ticker: str,
    client: ResilientFetchClient,
    requires_crumb: bool = False,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> Optional[FundProfile]:
    """Live fund info, sector weights and top holdings."""
    symbol = ticker.strip().upper()
    result = client.fetch_json(
        build_quote_summary_path(symbol, FUND_PROFILE_MODULES),
        settings.fetch_options(
            cache_ttl_seconds=FUND_PROFILE_CACHE_TTL_SECONDS,
            requires_crumb=requires_crumb,
        ),
    )
    if not result.ok:
        logger.info(f"[MarketData] No fund profile for {symbol}: {result.error}")
        return None
    return parse_fund_profile(symbol, result.data)


def profile_to_breakdown(profile: FundProfile) -> Optional[FundSectorBreakdown]:
    """Breakdown from a live profile; None when it carries no sector weights."""
    if not profile.sectors:
        return None
    return FundSectorBreakdown(
        sectors=profile.sectors,
        name=profile.fund.name,
        exchange=profile.fund.exchange or None,
        category=profile.fund.category or None,
    )


def fetch_fund_breakdowns(
    tickers: Iterable[str],
    client: ResilientFetchClient,
    requires_crumb: bool = False,
    settings: FetchSettings = _DEFAULT_SETTINGS,
) -> dict[str, FundSectorBreakdown]:
    """Live sector breakdowns for the funds that returned sector data."""

    def one(ticker: str) -> Optional[FundSectorBreakdown]:
        profile = fetch_fund_profile(ticker, client, requires_crumb, settings)
        return profile_to_breakdown(profile) if profile is not None else None

    return fetch_many(normalize_tickers(tickers), one, settings.max_workers)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

HEALTH_CHECKS: tuple[tuple[str, str], ...] = (
    ("v8 Chart", build_chart_path("AAPL", "1d", "5m")),
    ("v10 Summary", build_quote_summary_path("AAPL", ["price"])),
    ("v1 Search", build_search_path("AAPL", 1)),
)


def check_health(
    client: ResilientFetchClient,
    settings: FetchSettings = _DEFAULT_SETTINGS,
    clock: Callable[[], float] = time.monotonic,
) -> HealthReport:
    """Hit each endpoint family uncached and report connectivity."""
    options = settings.fetch_options(cache_ttl_seconds=0)

    def check(name: str, path: str) -> HealthCheck:
        start = clock()
        result = client.fetch_json(path, options)
        return HealthCheck(
            name=name,
            success=result.ok,
            status=result.status,
            error=result.error,
            duration_ms=max(int((clock() - start) * 1000), 0),
            has_data=isinstance(result.data, dict) and len(result.data) > 0,
        )

    with ThreadPoolExecutor(max_workers=len(HEALTH_CHECKS)) as executor:
        checks = list(executor.map(lambda p: check(*p), HEALTH_CHECKS))

    return HealthReport(
        healthy=all(c.success for c in checks),
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=checks,
    )


# ---------------------------------------------------------------------------
# CrewAI Tool Wrapper
# ---------------------------------------------------------------------------

class MarketQuoteInput(BaseModel):
    tickers: list[str] = Field(..., description="Ticker symbols, e.g. ['AAPL', 'VFV.TO']")


class MarketQuoteTool(BaseTool):
    """Fetch live quotes for a list of tickers."""

    name: str = "market_quotes"
    description: str = (
        "Fetch live prices and daily change for up to 30 tickers. "
        "Tickers that cannot be priced are omitted."
    )
    args_schema: type[BaseModel] = MarketQuoteInput

    def _run(self, tickers: list[str]) -> str:
        import json

        with ResilientFetchClient() as client:
            quotes = fetch_quotes(tickers, client)
        return json.dumps({
            sym: {"price": q.price, "change_percent": round(q.change_percent, 2), "currency": q.currency}
            for sym, q in quotes.items()
        })
