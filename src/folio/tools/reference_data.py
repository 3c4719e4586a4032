"""
Exposure Tool: Static Reference Data

Approximate sector breakdowns for popular ETFs and a sector map for
common stocks. Used when live fund data is unavailable. The tables are
read-only and wrapped in ReferenceData so callers (and tests) can inject
their own without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from folio.schemas.exposure_output import FundSectorBreakdown

# ---------------------------------------------------------------------------
# Raw tables: ticker -> (name, description, {sector: percent})
# ---------------------------------------------------------------------------

_SP500_SECTORS: dict[str, float] = {
    "Technology": 31, "Healthcare": 12, "Financials": 13,
    "Consumer Discretionary": 10, "Communication": 9, "Industrials": 8,
    "Consumer Staples": 6, "Energy": 4, "Utilities": 2,
    "Real Estate": 2, "Materials": 3,
}

_ETF_TABLE: dict[str, tuple[str, str, dict[str, float]]] = {
    "SPY": ("SPDR S&P 500 ETF", "Tracks the S&P 500 Index", _SP500_SECTORS),
    "QQQ": ("Invesco QQQ Trust", "Tracks the Nasdaq-100 Index", {
        "Technology": 58, "Communication": 16, "Consumer Discretionary": 13,
        "Healthcare": 7, "Consumer Staples": 3, "Industrials": 2, "Utilities": 1,
    }),
    "VOO": ("Vanguard S&P 500 ETF", "Tracks the S&P 500 Index", _SP500_SECTORS),
    "VTI": ("Vanguard Total Stock Market ETF", "Tracks the CRSP US Total Market Index", {
        "Technology": 30, "Healthcare": 13, "Financials": 13,
        "Consumer Discretionary": 10, "Industrials": 9, "Communication": 8,
        "Consumer Staples": 5, "Energy": 4, "Utilities": 3,
        "Real Estate": 3, "Materials": 2,
    }),
    "IWM": ("iShares Russell 2000 ETF", "Tracks the Russell 2000 small-cap index", {
        "Healthcare": 17, "Financials": 16, "Industrials": 16, "Technology": 14,
        "Consumer Discretionary": 10, "Energy": 7, "Real Estate": 6,
        "Communication": 4, "Materials": 4, "Consumer Staples": 3, "Utilities": 3,
    }),
    "DIA": ("SPDR Dow Jones Industrial Average ETF", "Tracks the Dow Jones Industrial Average", {
        "Financials": 18, "Technology": 17, "Healthcare": 16, "Industrials": 14,
        "Consumer Discretionary": 13, "Consumer Staples": 7, "Communication": 5,
        "Energy": 4, "Materials": 3, "Utilities": 3,
    }),
    "ARKK": ("ARK Innovation ETF", "Actively managed innovation-focused ETF", {
        "Technology": 42, "Healthcare": 28, "Communication": 14,
        "Consumer Discretionary": 10, "Industrials": 4, "Financials": 2,
    }),
    "XLK": ("Technology Select Sector SPDR", "Tracks the Technology Select Sector Index",
            {"Technology": 100}),
    "XLF": ("Financial Select Sector SPDR", "Tracks the Financial Select Sector Index",
            {"Financials": 100}),
    "XLE": ("Energy Select Sector SPDR", "Tracks the Energy Select Sector Index",
            {"Energy": 100}),
    "XLV": ("Health Care Select Sector SPDR", "Tracks the Health Care Select Sector Index",
            {"Healthcare": 100}),
    "XLI": ("Industrial Select Sector SPDR", "Tracks the Industrial Select Sector Index",
            {"Industrials": 100}),
    "XLP": ("Consumer Staples Select Sector SPDR", "Tracks the Consumer Staples Select Sector Index",
            {"Consumer Staples": 100}),
    "XLY": ("Consumer Discretionary Select Sector SPDR",
            "Tracks the Consumer Discretionary Select Sector Index",
            {"Consumer Discretionary": 100}),
    "VGT": ("Vanguard Information Technology ETF", "Tracks the MSCI US Investable Market IT Index",
            {"Technology": 100}),
    "SCHD": ("Schwab U.S. Dividend Equity ETF", "High-dividend yielding US stocks", {
        "Financials": 18, "Healthcare": 16, "Consumer Staples": 14, "Industrials": 14,
        "Technology": 12, "Energy": 10, "Communication": 6,
        "Consumer Discretionary": 5, "Materials": 3, "Utilities": 2,
    }),
    "VUG": ("Vanguard Growth ETF", "Tracks the CRSP US Large Cap Growth Index", {
        "Technology": 45, "Consumer Discretionary": 16, "Communication": 12,
        "Healthcare": 10, "Industrials": 8, "Financials": 5,
        "Consumer Staples": 2, "Real Estate": 1, "Materials": 1,
    }),
    "VTV": ("Vanguard Value ETF", "Tracks the CRSP US Large Cap Value Index", {
        "Financials": 21, "Healthcare": 17, "Industrials": 13, "Consumer Staples": 10,
        "Energy": 8, "Technology": 8, "Utilities": 7, "Communication": 6,
        "Consumer Discretionary": 5, "Real Estate": 3, "Materials": 2,
    }),
    "EEM": ("iShares MSCI Emerging Markets ETF", "Tracks emerging markets equities", {
        "Technology": 22, "Financials": 21, "Consumer Discretionary": 13,
        "Communication": 10, "Materials": 8, "Energy": 6, "Industrials": 6,
        "Consumer Staples": 5, "Healthcare": 4, "Utilities": 3, "Real Estate": 2,
    }),
    "VXUS": ("Vanguard Total International Stock ETF", "Tracks the FTSE Global All Cap ex US Index", {
        "Financials": 20, "Technology": 14, "Industrials": 14, "Healthcare": 10,
        "Consumer Discretionary": 11, "Consumer Staples": 7, "Communication": 6,
        "Materials": 7, "Energy": 5, "Utilities": 3, "Real Estate": 3,
    }),
}

ETF_DATA: Mapping[str, FundSectorBreakdown] = MappingProxyType({
    ticker: FundSectorBreakdown(name=name, description=description, sectors=dict(sectors))
    for ticker, (name, description, sectors) in _ETF_TABLE.items()
})

STOCK_SECTORS: Mapping[str, str] = MappingProxyType({
    # Technology
    "AAPL": "Technology", "MSFT": "Technology", "GOOGL": "Technology",
    "GOOG": "Technology", "NVDA": "Technology", "AVGO": "Technology",
    "CSCO": "Technology", "CRM": "Technology", "ACN": "Technology",
    "AMD": "Technology", "INTC": "Technology", "ADBE": "Technology",
    "PLTR": "Technology", "SHOP": "Technology", "SNOW": "Technology",
    "U": "Technology", "NET": "Technology", "CRWD": "Technology",
    "ZS": "Technology", "DDOG": "Technology", "MDB": "Technology",
    "PANW": "Technology",
    # Consumer Discretionary
    "AMZN": "Consumer Discretionary", "TSLA": "Consumer Discretionary",
    "HD": "Consumer Discretionary", "MCD": "Consumer Discretionary",
    "NKE": "Consumer Discretionary", "ABNB": "Consumer Discretionary",
    "RIVN": "Consumer Discretionary", "LCID": "Consumer Discretionary",
    "F": "Consumer Discretionary", "GM": "Consumer Discretionary",
    # Communication
    "META": "Communication", "NFLX": "Communication", "DIS": "Communication",
    "T": "Communication", "VZ": "Communication", "TMUS": "Communication",
    "CMCSA": "Communication", "SPOT": "Communication", "RBLX": "Communication",
    # Financials
    "BRK": "Financials", "BRK.B": "Financials", "BRK.A": "Financials",
    "JPM": "Financials", "V": "Financials", "MA": "Financials",
    "PYPL": "Financials", "GS": "Financials", "MS": "Financials",
    "BLK": "Financials", "C": "Financials", "BAC": "Financials",
    "WFC": "Financials", "SCHW": "Financials", "SQ": "Financials",
    "BLOCK": "Financials", "COIN": "Financials", "SOFI": "Financials",
    # Healthcare
    "UNH": "Healthcare", "JNJ": "Healthcare", "LLY": "Healthcare",
    "ABBV": "Healthcare", "MRK": "Healthcare", "PFE": "Healthcare",
    "TMO": "Healthcare", "ABT": "Healthcare",
    # Consumer Staples
    "PG": "Consumer Staples", "KO": "Consumer Staples", "PEP": "Consumer Staples",
    "COST": "Consumer Staples", "WMT": "Consumer Staples",
    # Energy
    "XOM": "Energy", "CVX": "Energy", "COP": "Energy", "SLB": "Energy", "EOG": "Energy",
    # Industrials
    "BA": "Industrials", "CAT": "Industrials", "GE": "Industrials",
    "RTX": "Industrials", "UNP": "Industrials", "HON": "Industrials",
    "UBER": "Industrials",
    # Utilities
    "NEE": "Utilities", "DUK": "Utilities", "SO": "Utilities",
    # Materials
    "LIN": "Materials", "APD": "Materials", "SHW": "Materials", "FCX": "Materials",
    # Real Estate
    "AMT": "Real Estate", "PLD": "Real Estate", "CCI": "Real Estate", "SPG": "Real Estate",
})

# Ticker suffix -> exchange
_EXCHANGE_SUFFIXES: dict[str, str] = {
    ".TO": "TSX", ".V": "TSXV", ".NE": "NEO", ".L": "LSE", ".HK": "HKSE",
    ".T": "TYO", ".AX": "ASX", ".F": "FRA", ".DE": "XETRA", ".PA": "EPA",
}


def get_exchange(ticker: str) -> str:
    """Exchange implied by the ticker suffix; bare tickers are US listings."""
    upper = ticker.strip().upper()
    for suffix, exchange in _EXCHANGE_SUFFIXES.items():
        if upper.endswith(suffix):
            return exchange
    return "US"


@dataclass(frozen=True)
class ReferenceData:
    """Read-only fund breakdown and stock sector tables, injectable."""

    etf_data: Mapping[str, FundSectorBreakdown] = field(default_factory=lambda: ETF_DATA)
    stock_sectors: Mapping[str, str] = field(default_factory=lambda: STOCK_SECTORS)

    def __post_init__(self) -> None:
        object.__setattr__(self, "etf_data", MappingProxyType(
            {k.strip().upper(): v for k, v in self.etf_data.items()}
        ))
        object.__setattr__(self, "stock_sectors", MappingProxyType(
            {k.strip().upper(): v for k, v in self.stock_sectors.items()}
        ))

    def is_known_etf(self, ticker: str) -> bool:
        return ticker.strip().upper() in self.etf_data

    def get_etf_data(self, ticker: str) -> Optional[FundSectorBreakdown]:
        return self.etf_data.get(ticker.strip().upper())

    def get_stock_sector(self, ticker: str) -> Optional[str]:
        return self.stock_sectors.get(ticker.strip().upper())

    def with_overrides(
        self,
        etf_data: Optional[Mapping[str, FundSectorBreakdown]] = None,
        stock_sectors: Optional[Mapping[str, str]] = None,
    ) -> "ReferenceData":
        """New ReferenceData with entries added or replaced."""
        return ReferenceData(
            etf_data={**self.etf_data, **(etf_data or {})},
            stock_sectors={**self.stock_sectors, **(stock_sectors or {})},
        )


DEFAULT_REFERENCE = ReferenceData()
