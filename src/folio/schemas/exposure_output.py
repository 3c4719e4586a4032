"""
Sector Exposure — Output Schema

Fund sector breakdowns (reference or live) and the aggregated exposure
report built from a holding set.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FundSectorBreakdown(BaseModel):
    """How a fund's value is distributed across sectors.

    Weights are percentages and need not sum to exactly 100. Zero weights
    are dropped; negative weights are rejected.
    """

    model_config = ConfigDict(frozen=True)

    sectors: Dict[str, float] = Field(default_factory=dict, description="sector -> percent weight")
    name: Optional[str] = None
    description: Optional[str] = None
    exchange: Optional[str] = None
    category: Optional[str] = None

    @field_validator("sectors")
    @classmethod
    def drop_zero_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        cleaned: Dict[str, float] = {}
        for sector, weight in v.items():
            if weight < 0:
                raise ValueError(f"Sector '{sector}' has negative weight {weight}")
            if weight > 0:
                cleaned[sector] = float(weight)
        return cleaned

    @property
    def total_weight(self) -> float:
        return sum(self.sectors.values())

    def top_sectors(self, n: int) -> list[tuple[str, float]]:
        """Largest n sectors, heaviest first."""
        return sorted(self.sectors.items(), key=lambda kv: kv[1], reverse=True)[:n]


class SectorWeight(BaseModel):
    """One row of the exposure report."""

    sector: str
    percent: float = Field(..., ge=0.0)


class ExposureReport(BaseModel):
    """Effective (look-through) sector exposure of a holding set."""

    exposures: List[SectorWeight] = Field(default_factory=list, description="Heaviest first")
    total_allocation: float = Field(0.0, ge=0.0, description="Sum of counted holding allocations")
    total_exposure: float = Field(0.0, ge=0.0, description="Sum of exposure values")
    unresolved_funds: List[str] = Field(
        default_factory=list, description="Fund tickers attributed to 'Other' for lack of a breakdown"
    )
    stock_count: int = Field(0, ge=0)
    etf_count: int = Field(0, ge=0)

    def as_dict(self) -> dict[str, float]:
        return {row.sector: row.percent for row in self.exposures}

    @property
    def coverage_gap(self) -> float:
        """Allocation not reflected in exposure (incomplete fund breakdowns)."""
        return round(max(self.total_allocation - self.total_exposure, 0.0), 2)
