"""
Portfolio Holding — Input Schema

A position the user has recorded: ticker, caller-declared allocation, and
whether it is a direct security or a fund. Holdings are immutable; every
recomputation starts from the current holding set.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SECTORS: list[str] = [
    "Technology", "Healthcare", "Financials", "Consumer Discretionary",
    "Communication", "Industrials", "Consumer Staples", "Energy",
    "Utilities", "Real Estate", "Materials",
]

OTHER_SECTOR = "Other"
"""Catch-all for unknown funds and unclassified stocks"""

HoldingType = Literal["stock", "etf"]


class Holding(BaseModel):
    """A single user-recorded position."""

    model_config = ConfigDict(frozen=True)

    ticker: str = Field(..., min_length=1, max_length=20, description="Ticker, may carry an exchange suffix")
    allocation_percent: Optional[float] = Field(
        None, ge=0.0, le=100.0, description="Share of portfolio, 0-100; None when not recorded"
    )
    holding_type: HoldingType = Field(..., description="stock or etf")
    sector: Optional[str] = Field(None, description="Only meaningful for stocks")

    # --- Validators ---

    @field_validator("ticker")
    @classmethod
    def ticker_uppercase(cls, v: str) -> str:
        normalized = v.strip().upper()
        if not normalized:
            raise ValueError("Ticker must not be empty")
        return normalized

    @field_validator("holding_type", mode="before")
    @classmethod
    def holding_type_lowercase(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("sector")
    @classmethod
    def sector_blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @property
    def is_fund(self) -> bool:
        return self.holding_type == "etf"

    @property
    def effective_allocation(self) -> float:
        """Allocation with a missing value treated as zero."""
        return self.allocation_percent or 0.0
