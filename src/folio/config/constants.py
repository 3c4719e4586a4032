"""
Centralized configuration for the Folio core.

All hosts, header values, retry defaults and caps used by the market-data
layer and the exposure aggregator live here so they can be tuned in one
place.
"""

# ============================================================================
# UPSTREAM HOSTS
# ============================================================================
# Two mirrors of the same API, tried in order.
PRIMARY_HOST = "https://query1.finance.yahoo.com"
"""Primary market-data host"""

FALLBACK_HOST = "https://query2.finance.yahoo.com"
"""Fallback host used once the primary is exhausted"""

UPSTREAM_HOSTS: tuple[str, ...] = (PRIMARY_HOST, FALLBACK_HOST)

CRUMB_PAGE_URL = "https://finance.yahoo.com/quote/AAPL"
"""HTML page scraped for the crumb token required by the v10 API"""

CRUMB_TTL_SECONDS = 30 * 60
"""Lifetime of a cached crumb token"""

# ============================================================================
# REQUEST HEADERS
# ============================================================================
# Rotated by attempt index to avoid naive bot filters.
USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) Gecko/20100101 Firefox/123.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.3 Safari/605.1.15",
)

ACCEPT_HEADER = "application/json"
ACCEPT_LANGUAGE_HEADER = "en-US,en;q=0.9"

# ============================================================================
# RETRY POLICY
# ============================================================================
DEFAULT_MAX_RETRIES = 2
"""Retries per host after the first attempt (3 attempts per host)"""

DEFAULT_RETRY_DELAY_MS = 1000
"""Base delay; 429 responses back off linearly as delay * (attempt + 1)"""

DEFAULT_CACHE_TTL_SECONDS = 60
"""max-age requested from intermediate caches"""

REQUEST_TIMEOUT_SECONDS = 10.0
"""Per-request network timeout"""

RATE_LIMIT_STATUS = 429

ALL_ENDPOINTS_FAILED = "All endpoints failed"
CRUMB_FAILED = "Failed to obtain authentication token"

# ============================================================================
# MARKET DATA OPERATIONS
# ============================================================================
MAX_TICKERS_PER_REQUEST = 30
"""Quotes and history requests are capped at this many tickers"""

MAX_CHART_FALLBACK_TICKERS = 10
"""Per-ticker chart fallback when the batch quote endpoint fails"""

DEFAULT_SEARCH_COUNT = 12
DEFAULT_NEWS_COUNT = 10
MAX_TOP_HOLDINGS = 15

DEFAULT_MAX_WORKERS = 8
"""Thread pool size for parallel per-ticker fetches"""

FUND_PROFILE_MODULES: tuple[str, ...] = (
    "topHoldings",
    "fundProfile",
    "price",
    "summaryDetail",
    "defaultKeyStatistics",
)

FUND_PROFILE_CACHE_TTL_SECONDS = 3600
SEARCH_CACHE_TTL_SECONDS = 300
NEWS_CACHE_TTL_SECONDS = 600
STOCK_DETAIL_CACHE_TTL_SECONDS = 120

STOCK_DETAIL_FIELDS: tuple[str, ...] = (
    "regularMarketPrice", "regularMarketChange", "regularMarketChangePercent",
    "regularMarketPreviousClose", "regularMarketOpen", "regularMarketDayHigh",
    "regularMarketDayLow", "regularMarketVolume", "averageDailyVolume3Month",
    "marketCap", "shortName", "longName", "currency", "fullExchangeName", "quoteType",
    "trailingPE", "forwardPE", "pegRatio", "priceToBook", "dividendYield",
    "trailingAnnualDividendRate", "exDividendDate", "payoutRatio",
    "fiftyTwoWeekHigh", "fiftyTwoWeekLow", "fiftyDayAverage", "twoHundredDayAverage",
    "beta", "epsTrailingTwelveMonths", "epsForward", "profitMargins",
    "earningsTimestamp", "earningsTimestampStart", "earningsTimestampEnd",
    "bookValue", "priceToSales",
)
"""Fields requested from the batch quote endpoint for a single-ticker detail view"""

SEARCHABLE_QUOTE_TYPES = frozenset({"EQUITY", "ETF", "INDEX"})

# ============================================================================
# EXPOSURE AGGREGATION
# ============================================================================
EXPOSURE_DECIMALS = 2
"""Exposure values are rounded half-up to this many places"""

CONTEXT_TOP_SECTORS = 3
"""Fund sectors listed per ETF in the chat context string"""
