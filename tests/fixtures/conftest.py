"""
Shared test fixtures for the market-data and exposure tests.
Provides sample holdings, canned upstream payloads, and a scripted
httpx transport that records every request.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional, Union

import httpx

from folio.schemas.holding import Holding
from folio.tools.fetch_client import ResilientFetchClient

PRIMARY = "https://query1.test"
FALLBACK = "https://query2.test"
CRUMB_URL = "https://finance.test/quote/AAPL"
TEST_HOSTS = (PRIMARY, FALLBACK)
TEST_USER_AGENTS = ("UA-0", "UA-1", "UA-2", "UA-3")


# ---------------------------------------------------------------------------
# Holdings
# ---------------------------------------------------------------------------

SAMPLE_HOLDING_RECORDS = [
    {"ticker": "AAPL", "allocation_percent": 20, "holding_type": "stock", "sector": "Technology"},
    {"ticker": "spy", "allocationPercent": 30, "holdingType": "ETF"},
    {"ticker": "JPM", "allocation_percent": 10},
    {"ticker": "XYZ", "allocation_percent": 5, "holding_type": "stock"},
    {"ticker": "QQQ", "allocation_percent": None, "holding_type": "etf"},
]

INVALID_HOLDING_RECORDS = [
    {"allocation_percent": 10},
    {"ticker": "MSFT", "allocation_percent": 140},
    {"ticker": "VTI", "allocation_percent": 10, "holding_type": "bond"},
    "NVDA",
]


def make_holding(ticker: str, allocation: Optional[float], holding_type: str = "stock",
                 sector: Optional[str] = None) -> Holding:
    return Holding(
        ticker=ticker,
        allocation_percent=allocation,
        holding_type=holding_type,
        sector=sector,
    )


# ---------------------------------------------------------------------------
# Upstream payloads
# ---------------------------------------------------------------------------

CHART_PAYLOAD: dict[str, Any] = {
    "chart": {
        "result": [{
            "meta": {
                "symbol": "AAPL",
                "currency": "USD",
                "exchangeName": "NMS",
                "instrumentType": "EQUITY",
                "shortName": "Apple Inc.",
                "regularMarketPrice": 210.0,
                "chartPreviousClose": 200.0,
                "previousClose": 205.0,
            },
            "timestamp": [1700000000, 1700086400, 1700172800, None],
            "indicators": {
                "quote": [{
                    "close": [198.5, None, 210.0, 211.0],
                    "open": [197.0, 199.0, 205.5, 210.5],
                    "high": [199.0, 201.0, 211.0, 212.0],
                    "low": [196.5, 198.0, 204.0, 209.0],
                    "volume": [1000, 1100, 1200, 1300],
                }],
            },
        }],
        "error": None,
    },
}

QUOTE_PAYLOAD: dict[str, Any] = {
    "quoteResponse": {
        "result": [
            {
                "symbol": "AAPL",
                "regularMarketPrice": 210.0,
                "regularMarketChange": 2.5,
                "regularMarketChangePercent": 1.2,
                "regularMarketPreviousClose": 207.5,
                "shortName": "Apple Inc.",
                "currency": "USD",
                "fullExchangeName": "NasdaqGS",
                "quoteType": "EQUITY",
            },
            {"symbol": "DEAD", "regularMarketPrice": 0},
            {"symbol": "VFV.TO", "regularMarketPrice": {"raw": 140.25}, "longName": "Vanguard S&P 500"},
        ],
    },
}

STOCK_DETAIL_PAYLOAD: dict[str, Any] = {
    "quoteResponse": {
        "result": [{
            "symbol": "AAPL",
            "regularMarketPrice": 210.0,
            "regularMarketChange": 2.5,
            "regularMarketChangePercent": 1.2,
            "regularMarketPreviousClose": 207.5,
            "regularMarketOpen": 208.0,
            "regularMarketDayHigh": 211.0,
            "regularMarketDayLow": 0,
            "regularMarketVolume": 50000000,
            "averageDailyVolume3Month": 60000000,
            "marketCap": 3.2e12,
            "shortName": "Apple Inc.",
            "currency": "USD",
            "fullExchangeName": "NasdaqGS",
            "quoteType": "EQUITY",
            "trailingPE": 32.5,
            "forwardPE": 28.1,
            "priceToBook": 45.0,
            "priceToSales": 8.4,
            "bookValue": 4.8,
            "dividendYield": 0.0045,
            "trailingAnnualDividendRate": 0.96,
            "exDividendDate": 1704067200,
            "payoutRatio": 0.15,
            "fiftyTwoWeekHigh": 220.0,
            "fiftyTwoWeekLow": 165.0,
            "fiftyDayAverage": 205.3,
            "twoHundredDayAverage": 190.1,
            "beta": 1.25,
            "epsTrailingTwelveMonths": 6.5,
            "epsForward": 7.1,
            "profitMargins": 0.25,
            "earningsTimestamp": 1706745600,
            "earningsTimestampStart": 1709251200,
            "earningsTimestampEnd": 1709596800,
        }],
    },
}

SEARCH_PAYLOAD: dict[str, Any] = {
    "quotes": [
        {"symbol": "AAPL", "shortname": "Apple Inc.", "quoteType": "EQUITY", "exchange": "NMS"},
        {"symbol": "SPY", "longname": "SPDR S&P 500 ETF Trust", "quoteType": "ETF", "exchange": "PCX"},
        {"symbol": "AAPL240119C", "shortname": "AAPL Call", "quoteType": "OPTION", "exchange": "OPR"},
        {"symbol": "XIU.TO", "shortname": "iShares S&P/TSX 60", "quoteType": "ETF", "exchange": "TOR"},
        {"symbol": "^GSPC", "shortname": "S&P 500", "quoteType": "INDEX"},
    ],
    "news": [
        {
            "title": "Apple unveils new chips",
            "publisher": "Reuters",
            "link": "https://example.test/a",
            "providerPublishTime": 1700000000,
            "thumbnail": {"resolutions": [{"url": "https://example.test/a.jpg"}]},
        },
        {"title": "Markets close higher", "publisher": "AP", "link": "https://example.test/b"},
    ],
}

FUND_PROFILE_PAYLOAD: dict[str, Any] = {
    "quoteSummary": {
        "result": [{
            "topHoldings": {
                "sectorWeightings": [
                    {"technology": {"raw": 0.3125}},
                    {"financial_services": {"raw": 0.13}},
                    {"healthcare": {"raw": 0.12}},
                    {"realestate": {"raw": 0.0}},
                    {"consumer_cyclical": {"raw": 0.105}},
                ],
                "holdings": [
                    {"symbol": "AAPL", "holdingName": "Apple Inc", "holdingPercent": {"raw": 0.071}},
                    {"symbol": "MSFT", "holdingName": "Microsoft Corp", "holdingPercent": {"raw": 0.065}},
                ],
            },
            "fundProfile": {
                "categoryName": "Large Blend",
                "family": "SPDR State Street Global Advisors",
                "legalType": "Exchange Traded Fund",
                "feesExpensesInvestment": {"annualReportExpenseRatio": {"raw": 0.000945}},
            },
            "price": {
                "shortName": "SPDR S&P 500 ETF",
                "exchangeName": "NYSEArca",
                "currency": "USD",
                "regularMarketPrice": {"raw": 500.0},
                "regularMarketChange": {"raw": 5.0},
                "regularMarketChangePercent": {"raw": 0.01},
            },
            "summaryDetail": {"totalAssets": {"raw": 5.0e11}, "yield": {"raw": 0.0125}},
            "defaultKeyStatistics": {"ytdReturn": {"raw": 0.1}, "beta3Year": {"raw": 1.0}},
        }],
        "error": None,
    },
}

CRUMB_PAGE_HTML = '<html><script>root.App.main = {"CrumbStore":{"crumb":"abc/123"}};</script></html>'


# ---------------------------------------------------------------------------
# Scripted transport
# ---------------------------------------------------------------------------

Step = Union[int, httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class ScriptedTransport:
    """Serves responses per host from a queue and records every request.

    A step is a status code (2xx gets a JSON body), a prepared Response, an
    exception to raise, or a callable. routes maps a URL prefix to a fixed
    step and wins over the host queues. Hosts without a queue answer 500.
    """

    def __init__(self, script: Optional[dict[str, list[Step]]] = None,
                 body: Any = None, routes: Optional[dict[str, Step]] = None):
        self.script = {host: list(steps) for host, steps in (script or {}).items()}
        self.body = {"ok": True} if body is None else body
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        origin = f"{request.url.scheme}://{request.url.host}"
        for prefix, step in self.routes.items():
            if str(request.url).startswith(prefix):
                return self._play(step, request)
        queue = self.script.get(origin)
        if not queue:
            return httpx.Response(500, json={"error": "unscripted"})
        return self._play(queue.pop(0), request)

    def _play(self, step: Step, request: httpx.Request) -> httpx.Response:
        if isinstance(step, Exception):
            raise step
        if isinstance(step, httpx.Response):
            return step
        if callable(step):
            return step(request)
        if 200 <= step < 300:
            return httpx.Response(step, json=self.body)
        return httpx.Response(step, text="error")

    def hosts_contacted(self) -> list[str]:
        return [f"{r.url.scheme}://{r.url.host}" for r in self.requests]


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_client(transport: ScriptedTransport, sleep: Optional[SleepRecorder] = None,
                clock: Optional[Callable[[], float]] = None) -> ResilientFetchClient:
    """Client wired to the scripted transport with recorded sleeps."""
    kwargs: dict[str, Any] = {}
    if clock is not None:
        kwargs["clock"] = clock
    return ResilientFetchClient(
        hosts=TEST_HOSTS,
        user_agents=TEST_USER_AGENTS,
        http_client=httpx.Client(transport=httpx.MockTransport(transport)),
        sleep=sleep or SleepRecorder(),
        crumb_url=CRUMB_URL,
        **kwargs,
    )


def json_response(payload: Any, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status, content=json.dumps(payload).encode(),
                                          headers={"content-type": "application/json"})

