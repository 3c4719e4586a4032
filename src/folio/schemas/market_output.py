"""
Market Data — Fetch Contract and Typed Payloads

FetchOptions/FetchResult describe one call through the resilient fetch
client. The remaining models are typed views over the upstream JSON;
every upstream-derived field is optional because the provider omits
fields freely.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from folio.config.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
)


# ---------------------------------------------------------------------------
# Fetch contract
# ---------------------------------------------------------------------------

class FetchState(str, Enum):
    """Phases of the retry state machine."""

    TRYING = "trying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class FetchOptions(BaseModel):
    """Caller-tunable retry policy for a single fetch."""

    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0)
    retry_delay_ms: int = Field(DEFAULT_RETRY_DELAY_MS, ge=0)
    cache_ttl_seconds: int = Field(DEFAULT_CACHE_TTL_SECONDS, ge=0)
    requires_crumb: bool = False

    @property
    def attempts_per_host(self) -> int:
        return self.max_retries + 1


class FetchResult(BaseModel):
    """Outcome of one upstream call. Success carries data, failure an error."""

    data: Optional[Any] = None
    error: Optional[str] = None
    status: int = Field(0, ge=0, description="Last HTTP status on success, 0 on failure")
    attempts: int = Field(0, ge=0, description="HTTP attempts made across all hosts")

    @model_validator(mode="after")
    def validate_data_or_error(self) -> "FetchResult":
        if self.data is not None and self.error is not None:
            raise ValueError("FetchResult cannot carry both data and error")
        if self.data is None and self.error is None:
            raise ValueError("FetchResult needs either data or error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any, status: int, attempts: int) -> "FetchResult":
        return cls(data=data, error=None, status=status, attempts=attempts)

    @classmethod
    def failure(cls, error: str, attempts: int = 0, status: int = 0) -> "FetchResult":
        return cls(data=None, error=error, status=status, attempts=attempts)


# ---------------------------------------------------------------------------
# Chart / quotes
# ---------------------------------------------------------------------------

class PriceMeta(BaseModel):
    """The `meta` block of a chart response."""

    symbol: Optional[str] = None
    currency: Optional[str] = None
    exchange_name: Optional[str] = None
    instrument_type: Optional[str] = None
    short_name: Optional[str] = None
    long_name: Optional[str] = None
    regular_market_price: Optional[float] = None
    chart_previous_close: Optional[float] = None
    previous_close: Optional[float] = None


class PricePoint(BaseModel):
    """One OHLCV bar; only timestamp and close are guaranteed."""

    timestamp: int
    close: float
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None


class ChartSeries(BaseModel):
    ticker: str
    meta: PriceMeta = Field(default_factory=PriceMeta)
    points: List[PricePoint] = Field(default_factory=list)

    @property
    def timestamps(self) -> list[int]:
        return [p.timestamp for p in self.points]

    @property
    def closes(self) -> list[float]:
        return [p.close for p in self.points]


class Quote(BaseModel):
    """A live quote, from the batch quote API or derived from chart meta."""

    ticker: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    previous_close: float = 0.0
    name: str = ""
    currency: str = "USD"
    exchange: Optional[str] = None
    quote_type: Optional[str] = None


class StockDetail(Quote):
    """
    Single-ticker quote with session, valuation, dividend and earnings data.

    Ratios that the provider reports as fractions (dividend yield, payout
    ratio, profit margin) are stored as percents. Dates are YYYY-MM-DD in
    UTC. When only chart data was available every extended field is None.
    """

    # Session
    open: Optional[float] = None
    day_high: Optional[float] = None
    day_low: Optional[float] = None
    volume: Optional[float] = None
    avg_volume: Optional[float] = Field(None, description="3-month average daily volume")
    market_cap: Optional[float] = None

    # Valuation
    pe_ratio: Optional[float] = Field(None, description="Trailing P/E")
    forward_pe: Optional[float] = None
    peg_ratio: Optional[float] = None
    price_to_book: Optional[float] = None
    price_to_sales: Optional[float] = None
    book_value: Optional[float] = None

    # Dividends
    dividend_yield: Optional[float] = Field(None, description="Percent")
    dividend_rate: Optional[float] = None
    ex_dividend_date: Optional[str] = None
    payout_ratio: Optional[float] = Field(None, description="Percent")

    # Ranges
    fifty_two_week_high: Optional[float] = None
    fifty_two_week_low: Optional[float] = None
    fifty_day_average: Optional[float] = None
    two_hundred_day_average: Optional[float] = None

    # Key stats
    beta: Optional[float] = None
    eps: Optional[float] = Field(None, description="Trailing twelve months")
    forward_eps: Optional[float] = None
    profit_margin: Optional[float] = Field(None, description="Percent")

    # Earnings
    earnings_date: Optional[str] = None
    earnings_date_end: Optional[str] = None


# ---------------------------------------------------------------------------
# Search / news
# ---------------------------------------------------------------------------

class SearchMatch(BaseModel):
    ticker: str
    name: str
    type: Literal["stock", "etf"]
    exchange: str
    sector: Optional[str] = None


class NewsArticle(BaseModel):
    title: str = ""
    publisher: str = ""
    link: str = ""
    published_at: str = Field("", description="ISO-8601 UTC, empty when unknown")
    thumbnail: Optional[str] = None


class StockOverview(BaseModel):
    """Detail quote plus recent news for one ticker; quote is None when unpriced."""

    ticker: str
    quote: Optional[StockDetail] = None
    news: List[NewsArticle] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Fund profile
# ---------------------------------------------------------------------------

class FundInfo(BaseModel):
    name: str
    category: str = ""
    family: str = ""
    legal_type: str = ""
    exchange: str = ""
    currency: str = "USD"
    price: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    expense_ratio: Optional[float] = Field(None, description="Percent")
    total_assets: Optional[float] = None
    yield_percent: Optional[float] = None
    ytd_return: Optional[float] = None
    three_year_return: Optional[float] = None
    five_year_return: Optional[float] = None
    beta: Optional[float] = None


class TopHolding(BaseModel):
    symbol: str = ""
    name: str = ""
    percent: float = 0.0


class FundProfile(BaseModel):
    """Live fund data: info, sector weights (percent) and top holdings."""

    ticker: str
    fund: FundInfo
    sectors: dict[str, float] = Field(default_factory=dict)
    top_holdings: List[TopHolding] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthCheck(BaseModel):
    name: str
    success: bool
    status: int
    error: Optional[str] = None
    duration_ms: int = Field(0, ge=0)
    has_data: bool = False


class HealthReport(BaseModel):
    healthy: bool
    timestamp: str
    checks: List[HealthCheck] = Field(default_factory=list)
