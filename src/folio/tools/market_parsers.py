"""
Market Data Tool: Payload Parsers

Typed views over the upstream JSON. Every level is accessed defensively:
a missing or mistyped field yields None / an empty collection instead of
an exception, so a partial payload still produces partial data.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from folio.config.constants import DEFAULT_NEWS_COUNT, MAX_TOP_HOLDINGS, SEARCHABLE_QUOTE_TYPES
from folio.schemas.market_output import (
    ChartSeries,
    FundInfo,
    FundProfile,
    NewsArticle,
    PriceMeta,
    PricePoint,
    Quote,
    SearchMatch,
    StockDetail,
    TopHolding,
)
from folio.tools.exposure_calculator import round_half_up
from folio.tools.sector_classifier import format_sector_name

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Safe accessors
# ---------------------------------------------------------------------------

def _dig(obj: Any, *path: Any) -> Any:
    """Walk dict keys / list indices, returning None at the first miss."""
    current = obj
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        if current is None:
            return None
    return current


def _num(value: Any) -> Optional[float]:
    """Numbers pass through; {"raw": x} wrappers are unwrapped; bools and strings are rejected."""
    if isinstance(value, dict):
        value = value.get("raw")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _pct(value: Any) -> Optional[float]:
    """Fraction -> percent, None when absent or zero."""
    number = _num(value)
    return number * 100 if number else None


def _iso_date(epoch_seconds: Any) -> Optional[str]:
    seconds = _num(epoch_seconds)
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _day(epoch_seconds: Any) -> Optional[str]:
    """Epoch seconds -> YYYY-MM-DD (UTC); None when absent or zero."""
    seconds = _num(epoch_seconds)
    if not seconds:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc).date().isoformat()


# ---------------------------------------------------------------------------
# Chart / quotes
# ---------------------------------------------------------------------------

def parse_price_meta(meta: Any) -> PriceMeta:
    if not isinstance(meta, dict):
        return PriceMeta()
    return PriceMeta(
        symbol=_str(meta.get("symbol")),
        currency=_str(meta.get("currency")),
        exchange_name=_str(meta.get("exchangeName")),
        instrument_type=_str(meta.get("instrumentType")),
        short_name=_str(meta.get("shortName")),
        long_name=_str(meta.get("longName")),
        regular_market_price=_num(meta.get("regularMarketPrice")),
        chart_previous_close=_num(meta.get("chartPreviousClose")),
        previous_close=_num(meta.get("previousClose")),
    )


def parse_chart(ticker: str, payload: Any) -> Optional[ChartSeries]:
    """
    Parse a chart response into a ChartSeries.

    Points whose timestamp or close is null are dropped. Returns None when
    the payload has no result block at all.
    """
    result = _dig(payload, "chart", "result", 0)
    if not isinstance(result, dict):
        logger.debug(f"No chart result for {ticker}")
        return None

    timestamps = result.get("timestamp") if isinstance(result.get("timestamp"), list) else []
    quote = _dig(result, "indicators", "quote", 0) or {}

    def column(name: str) -> list:
        values = quote.get(name) if isinstance(quote, dict) else None
        return values if isinstance(values, list) else []

    closes, opens, highs, lows, volumes = (
        column("close"), column("open"), column("high"), column("low"), column("volume")
    )

    def at(values: list, i: int) -> Optional[float]:
        return _num(values[i]) if i < len(values) else None

    points: list[PricePoint] = []
    for i, ts in enumerate(timestamps):
        close = at(closes, i)
        stamp = _num(ts)
        if stamp is None or close is None:
            continue
        points.append(PricePoint(
            timestamp=int(stamp),
            close=close,
            open=at(opens, i),
            high=at(highs, i),
            low=at(lows, i),
            volume=at(volumes, i),
        ))

    return ChartSeries(ticker=ticker, meta=parse_price_meta(result.get("meta")), points=points)


def quote_from_chart_meta(ticker: str, meta: PriceMeta) -> Quote:
    """Derive a quote from chart meta; change is measured against the previous close."""
    price = meta.regular_market_price or 0.0
    prev_close = meta.chart_previous_close or meta.previous_close or price
    change = price - prev_close
    change_percent = (change / prev_close) * 100 if prev_close > 0 else 0.0
    return Quote(
        ticker=ticker,
        price=price,
        change=change,
        change_percent=change_percent,
        previous_close=prev_close,
        name=meta.short_name or meta.long_name or ticker,
        currency=meta.currency or "USD",
        exchange=meta.exchange_name,
        quote_type=meta.instrument_type,
    )


def parse_quote_response(payload: Any) -> dict[str, Quote]:
    """Batch quote response -> {symbol: Quote}; entries without a price are skipped."""
    results = _dig(payload, "quoteResponse", "result")
    if not isinstance(results, list):
        return {}

    quotes: dict[str, Quote] = {}
    for item in results:
        if not isinstance(item, dict):
            continue
        symbol = _str(item.get("symbol"))
        price = _num(item.get("regularMarketPrice"))
        if not symbol or not price:
            continue
        quotes[symbol] = Quote(
            ticker=symbol,
            price=price,
            change=_num(item.get("regularMarketChange")) or 0.0,
            change_percent=_num(item.get("regularMarketChangePercent")) or 0.0,
            previous_close=_num(item.get("regularMarketPreviousClose")) or price,
            name=_str(item.get("shortName")) or _str(item.get("longName")) or symbol,
            currency=_str(item.get("currency")) or "USD",
            exchange=_str(item.get("fullExchangeName")),
            quote_type=_str(item.get("quoteType")),
        )
    return quotes


def parse_stock_detail(ticker: str, payload: Any) -> Optional[StockDetail]:
    """
    Detail view from a single-symbol quote response.

    Returns None when the first result is missing or has no price. Session
    figures of 0 are treated as missing; valuation and range figures keep 0.
    Earnings date prefers the window start over the single timestamp.
    """
    item = _dig(payload, "quoteResponse", "result", 0)
    if not isinstance(item, dict):
        return None
    price = _num(item.get("regularMarketPrice"))
    if not price:
        return None

    def positive(key: str) -> Optional[float]:
        return _num(item.get(key)) or None

    return StockDetail(
        ticker=ticker,
        price=price,
        change=_num(item.get("regularMarketChange")) or 0.0,
        change_percent=_num(item.get("regularMarketChangePercent")) or 0.0,
        previous_close=_num(item.get("regularMarketPreviousClose")) or 0.0,
        name=_str(item.get("shortName")) or _str(item.get("longName")) or ticker,
        currency=_str(item.get("currency")) or "USD",
        exchange=_str(item.get("fullExchangeName")) or "",
        quote_type=_str(item.get("quoteType")) or "EQUITY",
        open=positive("regularMarketOpen"),
        day_high=positive("regularMarketDayHigh"),
        day_low=positive("regularMarketDayLow"),
        volume=positive("regularMarketVolume"),
        avg_volume=positive("averageDailyVolume3Month"),
        market_cap=positive("marketCap"),
        pe_ratio=_num(item.get("trailingPE")),
        forward_pe=_num(item.get("forwardPE")),
        peg_ratio=_num(item.get("pegRatio")),
        price_to_book=_num(item.get("priceToBook")),
        price_to_sales=_num(item.get("priceToSales")),
        book_value=_num(item.get("bookValue")),
        dividend_yield=_pct(item.get("dividendYield")),
        dividend_rate=_num(item.get("trailingAnnualDividendRate")),
        ex_dividend_date=_day(item.get("exDividendDate")),
        payout_ratio=_pct(item.get("payoutRatio")),
        fifty_two_week_high=_num(item.get("fiftyTwoWeekHigh")),
        fifty_two_week_low=_num(item.get("fiftyTwoWeekLow")),
        fifty_day_average=_num(item.get("fiftyDayAverage")),
        two_hundred_day_average=_num(item.get("twoHundredDayAverage")),
        beta=_num(item.get("beta")),
        eps=_num(item.get("epsTrailingTwelveMonths")),
        forward_eps=_num(item.get("epsForward")),
        profit_margin=_pct(item.get("profitMargins")),
        earnings_date=_day(item.get("earningsTimestampStart")) or _day(item.get("earningsTimestamp")),
        earnings_date_end=_day(item.get("earningsTimestampEnd")),
    )


def stock_detail_from_chart_meta(ticker: str, meta: PriceMeta) -> StockDetail:
    """Basic detail from chart meta; extended fields stay None."""
    quote = quote_from_chart_meta(ticker, meta)
    return StockDetail(**quote.model_dump(exclude={"exchange", "quote_type"}),
                       exchange=meta.exchange_name or "",
                       quote_type=meta.instrument_type or "EQUITY")


# ---------------------------------------------------------------------------
# Search / news
# ---------------------------------------------------------------------------

def map_exchange(exchange: Optional[str], symbol: str) -> str:
    """Normalise an upstream exchange code to a short display name."""
    if not exchange:
        return "TSX" if symbol.upper().endswith(".TO") else "US"
    e = exchange.upper()
    if "TOR" in e or "TSX" in e or e == "TSE":
        return "TSX"
    if "NAS" in e or e in ("NMS", "NGM", "NCM"):
        return "NASDAQ"
    if "NYQ" in e or "NYSE" in e:
        return "NYSE"
    if "LSE" in e or e == "LON":
        return "LSE"
    if "HKG" in e:
        return "HKSE"
    if "TYO" in e or e == "JPX":
        return "TYO"
    if "ASX" in e:
        return "ASX"
    if "FRA" in e:
        return "FRA"
    return exchange


def parse_search_results(payload: Any) -> list[SearchMatch]:
    """Search response -> equities, ETFs and indices, in upstream order."""
    quotes = _dig(payload, "quotes")
    if not isinstance(quotes, list):
        return []

    matches: list[SearchMatch] = []
    for q in quotes:
        if not isinstance(q, dict):
            continue
        symbol = _str(q.get("symbol"))
        quote_type = _str(q.get("quoteType"))
        if not symbol or quote_type not in SEARCHABLE_QUOTE_TYPES:
            continue
        matches.append(SearchMatch(
            ticker=symbol,
            name=_str(q.get("shortname")) or _str(q.get("longname")) or symbol,
            type="etf" if quote_type == "ETF" else "stock",
            exchange=map_exchange(_str(q.get("exchange")), symbol),
        ))
    return matches


def parse_news(payload: Any, limit: int = DEFAULT_NEWS_COUNT) -> list[NewsArticle]:
    items = _dig(payload, "news")
    if not isinstance(items, list):
        return []

    articles: list[NewsArticle] = []
    for item in items[:limit]:
        if not isinstance(item, dict):
            continue
        articles.append(NewsArticle(
            title=_str(item.get("title")) or "",
            publisher=_str(item.get("publisher")) or "",
            link=_str(item.get("link")) or "",
            published_at=_iso_date(item.get("providerPublishTime")) or "",
            thumbnail=_str(_dig(item, "thumbnail", "resolutions", 0, "url")),
        ))
    return articles


# ---------------------------------------------------------------------------
# Fund profile
# ---------------------------------------------------------------------------

def parse_sector_weightings(weightings: Any) -> dict[str, float]:
    """
    [{"technology": {"raw": 0.31}}, ...] -> {"Technology": 31.0}.

    Fractions become percentages rounded to two decimals; zero, negative
    and missing weights are skipped.
    """
    sectors: dict[str, float] = {}
    if not isinstance(weightings, list):
        return sectors
    for entry in weightings:
        if not isinstance(entry, dict):
            continue
        for key, value in entry.items():
            fraction = _num(value)
            if fraction is not None and fraction > 0:
                sectors[format_sector_name(key)] = round_half_up(fraction * 100)
    return sectors


def parse_fund_profile(ticker: str, payload: Any) -> Optional[FundProfile]:
    """quoteSummary response (topHoldings, fundProfile, price, ...) -> FundProfile."""
    result = _dig(payload, "quoteSummary", "result", 0)
    if not isinstance(result, dict):
        logger.debug(f"No quoteSummary result for {ticker}")
        return None

    top = result.get("topHoldings") if isinstance(result.get("topHoldings"), dict) else {}
    profile = result.get("fundProfile") if isinstance(result.get("fundProfile"), dict) else {}
    price = result.get("price") if isinstance(result.get("price"), dict) else {}
    summary = result.get("summaryDetail") if isinstance(result.get("summaryDetail"), dict) else {}
    stats = result.get("defaultKeyStatistics") if isinstance(result.get("defaultKeyStatistics"), dict) else {}

    holdings: list[TopHolding] = []
    raw_holdings = top.get("holdings") if isinstance(top.get("holdings"), list) else []
    for h in raw_holdings[:MAX_TOP_HOLDINGS]:
        if not isinstance(h, dict):
            continue
        fraction = _num(h.get("holdingPercent"))
        holdings.append(TopHolding(
            symbol=_str(h.get("symbol")) or "",
            name=_str(h.get("holdingName")) or "",
            percent=round_half_up(fraction * 100) if fraction else 0.0,
        ))

    expense_ratio = _pct(stats.get("annualReportExpenseRatio"))
    if expense_ratio is None:
        expense_ratio = _pct(_dig(profile, "feesExpensesInvestment", "annualReportExpenseRatio"))

    fund = FundInfo(
        name=_str(price.get("shortName")) or _str(price.get("longName")) or ticker,
        category=_str(profile.get("categoryName")) or "",
        family=_str(profile.get("family")) or "",
        legal_type=_str(profile.get("legalType")) or "",
        exchange=_str(price.get("exchangeName")) or "",
        currency=_str(price.get("currency")) or "USD",
        price=_num(price.get("regularMarketPrice")) or 0.0,
        change=_num(price.get("regularMarketChange")) or 0.0,
        change_percent=_pct(price.get("regularMarketChangePercent")) or 0.0,
        expense_ratio=expense_ratio,
        total_assets=_num(summary.get("totalAssets")) or None,
        yield_percent=_pct(summary.get("yield")),
        ytd_return=_pct(stats.get("ytdReturn")),
        three_year_return=_pct(stats.get("threeYearAverageReturn")),
        five_year_return=_pct(stats.get("fiveYearAverageReturn")),
        beta=_num(stats.get("beta3Year")) or None,
    )

    return FundProfile(
        ticker=ticker,
        fund=fund,
        sectors=parse_sector_weightings(top.get("sectorWeightings")),
        top_holdings=holdings,
    )
