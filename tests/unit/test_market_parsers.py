"""
Market Data Parsers — Schema Tests
Pure parsing of canned upstream payloads, no I/O.
"""

import copy

import pytest

from folio.schemas.market_output import PriceMeta
from folio.tools.market_parsers import (
    map_exchange,
    parse_chart,
    parse_fund_profile,
    parse_news,
    parse_quote_response,
    parse_search_results,
    parse_sector_weightings,
    parse_stock_detail,
    quote_from_chart_meta,
    stock_detail_from_chart_meta,
)
from tests.fixtures.conftest import (
    CHART_PAYLOAD,
    FUND_PROFILE_PAYLOAD,
    QUOTE_PAYLOAD,
    SEARCH_PAYLOAD,
    STOCK_DETAIL_PAYLOAD,
)


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------

class TestParseChart:

    @pytest.mark.schema
    def test_drops_null_points(self):
        series = parse_chart("AAPL", CHART_PAYLOAD)
        assert series.timestamps == [1700000000, 1700172800]
        assert series.closes == [198.5, 210.0]

    @pytest.mark.schema
    def test_ohlcv_kept(self):
        first = parse_chart("AAPL", CHART_PAYLOAD).points[0]
        assert (first.open, first.high, first.low, first.volume) == (197.0, 199.0, 196.5, 1000)

    @pytest.mark.schema
    def test_meta(self):
        meta = parse_chart("AAPL", CHART_PAYLOAD).meta
        assert meta.regular_market_price == 210.0
        assert meta.chart_previous_close == 200.0
        assert meta.exchange_name == "NMS"

    @pytest.mark.schema
    @pytest.mark.parametrize("payload", [
        None, {}, {"chart": None}, {"chart": {"result": []}}, {"chart": {"result": "x"}},
    ])
    def test_missing_result(self, payload):
        assert parse_chart("AAPL", payload) is None

    @pytest.mark.schema
    def test_result_without_indicators(self):
        series = parse_chart("AAPL", {"chart": {"result": [{"meta": {}, "timestamp": [1, 2]}]}})
        assert series is not None
        assert series.points == []


class TestQuoteFromChartMeta:

    @pytest.mark.schema
    def test_change_against_chart_previous_close(self):
        quote = quote_from_chart_meta("AAPL", PriceMeta(
            regular_market_price=210.0, chart_previous_close=200.0, short_name="Apple",
        ))
        assert quote.change == pytest.approx(10.0)
        assert quote.change_percent == pytest.approx(5.0)
        assert quote.name == "Apple"
        assert quote.currency == "USD"

    @pytest.mark.schema
    def test_zero_previous_close_gives_zero_percent(self):
        quote = quote_from_chart_meta("NEW", PriceMeta(regular_market_price=10.0, chart_previous_close=0.0))
        assert quote.change_percent == 0.0

    @pytest.mark.schema
    def test_missing_previous_close_uses_price(self):
        quote = quote_from_chart_meta("X", PriceMeta(regular_market_price=10.0))
        assert quote.change == 0.0
        assert quote.name == "X"


class TestParseQuoteResponse:

    @pytest.mark.schema
    def test_keeps_priced_entries(self):
        quotes = parse_quote_response(QUOTE_PAYLOAD)
        assert set(quotes) == {"AAPL", "VFV.TO"}

    @pytest.mark.schema
    def test_fields(self):
        aapl = parse_quote_response(QUOTE_PAYLOAD)["AAPL"]
        assert aapl.price == 210.0
        assert aapl.change_percent == 1.2
        assert aapl.previous_close == 207.5
        assert aapl.exchange == "NasdaqGS"

    @pytest.mark.schema
    def test_raw_wrappers_and_fallback_name(self):
        vfv = parse_quote_response(QUOTE_PAYLOAD)["VFV.TO"]
        assert vfv.price == 140.25
        assert vfv.name == "Vanguard S&P 500"
        assert vfv.previous_close == 140.25

    @pytest.mark.schema
    def test_garbage(self):
        assert parse_quote_response({"quoteResponse": {"result": None}}) == {}
        assert parse_quote_response("nope") == {}


class TestParseStockDetail:

    @pytest.mark.schema
    def test_quote_fields(self):
        detail = parse_stock_detail("AAPL", STOCK_DETAIL_PAYLOAD)
        assert detail.ticker == "AAPL"
        assert detail.price == 210.0
        assert detail.previous_close == 207.5
        assert detail.exchange == "NasdaqGS"
        assert detail.market_cap == 3.2e12
        assert detail.avg_volume == 60000000

    @pytest.mark.schema
    def test_valuation_and_ranges(self):
        detail = parse_stock_detail("AAPL", STOCK_DETAIL_PAYLOAD)
        assert detail.pe_ratio == 32.5
        assert detail.forward_pe == 28.1
        assert detail.peg_ratio is None
        assert detail.price_to_book == 45.0
        assert detail.fifty_two_week_high == 220.0
        assert detail.two_hundred_day_average == 190.1
        assert detail.beta == 1.25
        assert detail.eps == 6.5

    @pytest.mark.schema
    def test_fractions_become_percent(self):
        detail = parse_stock_detail("AAPL", STOCK_DETAIL_PAYLOAD)
        assert detail.dividend_yield == pytest.approx(0.45)
        assert detail.payout_ratio == pytest.approx(15.0)
        assert detail.profit_margin == 25.0

    @pytest.mark.schema
    def test_dates(self):
        detail = parse_stock_detail("AAPL", STOCK_DETAIL_PAYLOAD)
        assert detail.ex_dividend_date == "2024-01-01"
        assert detail.earnings_date == "2024-03-01"
        assert detail.earnings_date_end == "2024-03-05"

    @pytest.mark.schema
    def test_earnings_date_falls_back_to_timestamp(self):
        payload = copy.deepcopy(STOCK_DETAIL_PAYLOAD)
        item = payload["quoteResponse"]["result"][0]
        del item["earningsTimestampStart"], item["earningsTimestampEnd"]
        detail = parse_stock_detail("AAPL", payload)
        assert detail.earnings_date == "2024-02-01"
        assert detail.earnings_date_end is None

    @pytest.mark.schema
    def test_zero_session_value_is_missing(self):
        assert parse_stock_detail("AAPL", STOCK_DETAIL_PAYLOAD).day_low is None

    @pytest.mark.schema
    @pytest.mark.parametrize("payload", [
        {"quoteResponse": {"result": []}},
        {"quoteResponse": {"result": [{"symbol": "X", "regularMarketPrice": 0}]}},
        None,
    ])
    def test_unpriced_is_none(self, payload):
        assert parse_stock_detail("X", payload) is None

    @pytest.mark.schema
    def test_from_chart_meta(self):
        series = parse_chart("AAPL", CHART_PAYLOAD)
        detail = stock_detail_from_chart_meta("AAPL", series.meta)
        assert detail.price == 210.0
        assert detail.change == 10.0
        assert detail.change_percent == 5.0
        assert detail.exchange == "NMS"
        assert detail.quote_type == "EQUITY"
        assert detail.pe_ratio is None
        assert detail.earnings_date is None

    @pytest.mark.schema
    def test_from_bare_chart_meta_defaults(self):
        detail = stock_detail_from_chart_meta("X", PriceMeta(regular_market_price=5.0))
        assert detail.exchange == ""
        assert detail.quote_type == "EQUITY"
        assert detail.currency == "USD"


# ---------------------------------------------------------------------------
# Search / news
# ---------------------------------------------------------------------------

class TestParseSearch:

    @pytest.mark.schema
    def test_filters_quote_types(self):
        tickers = [m.ticker for m in parse_search_results(SEARCH_PAYLOAD)]
        assert tickers == ["AAPL", "SPY", "XIU.TO", "^GSPC"]

    @pytest.mark.schema
    def test_types_and_exchanges(self):
        matches = {m.ticker: m for m in parse_search_results(SEARCH_PAYLOAD)}
        assert matches["AAPL"].type == "stock"
        assert matches["AAPL"].exchange == "NASDAQ"
        assert matches["SPY"].type == "etf"
        assert matches["SPY"].name == "SPDR S&P 500 ETF Trust"
        assert matches["XIU.TO"].exchange == "TSX"
        assert matches["^GSPC"].type == "stock"
        assert matches["^GSPC"].exchange == "US"

    @pytest.mark.schema
    def test_missing_quotes(self):
        assert parse_search_results({}) == []


class TestMapExchange:

    @pytest.mark.schema
    @pytest.mark.parametrize("code,symbol,expected", [
        ("TOR", "XIU.TO", "TSX"),
        ("NMS", "AAPL", "NASDAQ"),
        ("NYQ", "JPM", "NYSE"),
        ("LSE", "VOD.L", "LSE"),
        ("HKG", "0700.HK", "HKSE"),
        ("JPX", "7203.T", "TYO"),
        ("ASX", "BHP.AX", "ASX"),
        ("FRA", "SAP.F", "FRA"),
        ("PCX", "SPY", "PCX"),
        (None, "SHOP.TO", "TSX"),
        (None, "SHOP", "US"),
    ])
    def test_codes(self, code, symbol, expected):
        assert map_exchange(code, symbol) == expected


class TestParseNews:

    @pytest.mark.schema
    def test_articles(self):
        articles = parse_news(SEARCH_PAYLOAD)
        assert len(articles) == 2
        assert articles[0].title == "Apple unveils new chips"
        assert articles[0].published_at == "2023-11-14T22:13:20Z"
        assert articles[0].thumbnail == "https://example.test/a.jpg"
        assert articles[1].published_at == ""
        assert articles[1].thumbnail is None

    @pytest.mark.schema
    def test_limit(self):
        assert len(parse_news(SEARCH_PAYLOAD, limit=1)) == 1

    @pytest.mark.schema
    def test_missing(self):
        assert parse_news(None) == []


# ---------------------------------------------------------------------------
# Fund profile
# ---------------------------------------------------------------------------

class TestSectorWeightings:

    @pytest.mark.schema
    def test_fractions_become_percent(self):
        sectors = parse_sector_weightings([
            {"technology": {"raw": 0.3125}},
            {"financial_services": 0.13},
            {"realestate": {"raw": 0}},
            {"basic_materials": None},
            {"new_sector": {"raw": 0.01}},
        ])
        assert sectors == {"Technology": 31.25, "Financials": 13.0, "New sector": 1.0}

    @pytest.mark.schema
    def test_not_a_list(self):
        assert parse_sector_weightings({"technology": 0.5}) == {}


class TestParseFundProfile:

    @pytest.mark.schema
    def test_sectors(self):
        profile = parse_fund_profile("SPY", FUND_PROFILE_PAYLOAD)
        assert profile.sectors == {
            "Technology": 31.25,
            "Financials": 13.0,
            "Healthcare": 12.0,
            "Consumer Discretionary": 10.5,
        }

    @pytest.mark.schema
    def test_fund_info(self):
        fund = parse_fund_profile("SPY", FUND_PROFILE_PAYLOAD).fund
        assert fund.name == "SPDR S&P 500 ETF"
        assert fund.category == "Large Blend"
        assert fund.legal_type == "Exchange Traded Fund"
        assert fund.price == 500.0
        assert fund.change_percent == pytest.approx(1.0)
        assert fund.yield_percent == pytest.approx(1.25)
        assert fund.ytd_return == pytest.approx(10.0)
        assert fund.beta == 1.0
        assert fund.total_assets == 5.0e11

    @pytest.mark.schema
    def test_expense_ratio_falls_back_to_fund_profile(self):
        fund = parse_fund_profile("SPY", FUND_PROFILE_PAYLOAD).fund
        assert fund.expense_ratio == pytest.approx(0.0945)

    @pytest.mark.schema
    def test_top_holdings(self):
        holdings = parse_fund_profile("SPY", FUND_PROFILE_PAYLOAD).top_holdings
        assert [(h.symbol, h.percent) for h in holdings] == [("AAPL", 7.1), ("MSFT", 6.5)]

    @pytest.mark.schema
    def test_partial_payload(self):
        profile = parse_fund_profile("ABC", {"quoteSummary": {"result": [{"price": {}}]}})
        assert profile.fund.name == "ABC"
        assert profile.sectors == {}
        assert profile.top_holdings == []
        assert profile.fund.expense_ratio is None

    @pytest.mark.schema
    def test_missing_result(self):
        assert parse_fund_profile("SPY", {"quoteSummary": {"result": None}}) is None
