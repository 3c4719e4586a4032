"""
Exposure Tool: Effective Sector Exposure (ETF look-through)

Pure functions for:
- Distributing each fund's allocation across its sector weights
- Attributing direct stock holdings to their sector
- Normalising and merging live/reference fund breakdowns

No I/O and no hidden state: identical inputs give identical output.
Overlapping funds deliberately double-count shared sectors; that is how
overlap becomes visible.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Mapping, Optional, Union

try:
    from crewai.tools import BaseTool
except ImportError:
    from pydantic import BaseModel as BaseTool
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from folio.config.constants import EXPOSURE_DECIMALS
from folio.exceptions import BreakdownValidationError
from folio.schemas.exposure_output import ExposureReport, FundSectorBreakdown, SectorWeight
from folio.schemas.holding import OTHER_SECTOR, Holding
from folio.tools.reference_data import DEFAULT_REFERENCE, ReferenceData
from folio.tools.sector_classifier import load_holdings, normalize_sector_table, resolve_stock_sector

logger = logging.getLogger(__name__)

BreakdownLike = Union[FundSectorBreakdown, Mapping[str, float]]
BreakdownLookup = Union[
    Callable[[str], Optional[BreakdownLike]],
    Mapping[str, BreakdownLike],
]


# ---------------------------------------------------------------------------
# Pure Functions
# ---------------------------------------------------------------------------

def round_half_up(value: float, places: int = EXPOSURE_DECIMALS) -> float:
    """Round like a spreadsheet: 0.125 -> 0.13, not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _sector_weights(breakdown: BreakdownLike) -> Mapping[str, float]:
    if isinstance(breakdown, FundSectorBreakdown):
        return breakdown.sectors
    return breakdown


def applicable_weights(breakdown: BreakdownLike, ticker: str = "") -> dict[str, float]:
    """
    Sector weights that can contribute exposure: positive ones only.

    Plain mappings skip the FundSectorBreakdown checks, so zero weights are
    dropped here and negative weights are dropped with a warning.
    """
    weights: dict[str, float] = {}
    for sector, weight in _sector_weights(breakdown).items():
        if weight > 0:
            weights[sector] = float(weight)
        elif weight < 0:
            logger.warning(f"Ignoring negative weight {weight} for {sector} in {ticker or 'fund'} breakdown")
    return weights


def as_breakdown(breakdown: BreakdownLike, ticker: str = "") -> FundSectorBreakdown:
    """Coerce a plain {sector: weight} mapping into a validated breakdown."""
    if isinstance(breakdown, FundSectorBreakdown):
        return breakdown
    try:
        return FundSectorBreakdown(sectors=dict(breakdown))
    except PydanticValidationError as e:
        label = f" for '{ticker}'" if ticker else ""
        raise BreakdownValidationError(
            f"Invalid sector breakdown{label}: {e.errors()[0]['msg']}"
        ) from e


def resolve_breakdown_lookup(lookup: Optional[BreakdownLookup]) -> Callable[[str], Optional[BreakdownLike]]:
    if lookup is None:
        return DEFAULT_REFERENCE.get_etf_data
    if callable(lookup):
        return lookup
    table = {k.strip().upper(): v for k, v in lookup.items()}
    return lambda ticker: table.get(ticker.strip().upper())


def compute_effective_exposure(
    holdings: Iterable[Holding],
    breakdown_lookup: Optional[BreakdownLookup] = None,
    stock_sectors: Optional[Mapping[str, str]] = None,
) -> dict[str, float]:
    """
    Compute look-through sector exposure for a set of holdings.

    Args:
        holdings: stocks and funds; order does not matter.
        breakdown_lookup: fund ticker -> breakdown, as a callable returning
            None when unknown or as a mapping. Defaults to the reference ETF
            table.
        stock_sectors: ticker -> sector for stocks without their own sector.
            Keys are matched case-insensitively.
            Defaults to the reference stock table.

    Returns:
        {sector: percent} rounded half-up to two decimals. Holdings with no
        or zero allocation contribute nothing. Unknown funds and
        unclassified stocks land in "Other". Positive fund weights are
        applied as given, so a breakdown summing below 100 yields less
        exposure than the fund's allocation. Zero and negative weights are
        skipped.
    """
    lookup = resolve_breakdown_lookup(breakdown_lookup)
    if stock_sectors is None:
        sectors_table = DEFAULT_REFERENCE.stock_sectors
    else:
        sectors_table = normalize_sector_table(stock_sectors)

    exposure: dict[str, float] = {}

    for holding in holdings:
        allocation = holding.allocation_percent
        if not allocation or allocation <= 0:
            continue

        if holding.is_fund:
            breakdown = lookup(holding.ticker)
            if breakdown is not None:
                for sector, weight in applicable_weights(breakdown, holding.ticker).items():
                    exposure[sector] = exposure.get(sector, 0.0) + allocation * weight / 100
            else:
                logger.debug(f"No sector breakdown for fund {holding.ticker}; counting as {OTHER_SECTOR}")
                exposure[OTHER_SECTOR] = exposure.get(OTHER_SECTOR, 0.0) + allocation
        else:
            sector = resolve_stock_sector(holding, sectors_table)
            exposure[sector] = exposure.get(sector, 0.0) + allocation

    return {sector: round_half_up(value) for sector, value in exposure.items()}


def normalize_breakdown(breakdown: BreakdownLike) -> FundSectorBreakdown:
    """
    Rescale sector weights so they sum to 100.

    Used when live data (often summing to 97-99% after rounding gaps) is
    mixed with reference data. A breakdown with no weights is returned
    unchanged.
    """
    base = as_breakdown(breakdown)
    total = base.total_weight
    if total <= 0:
        return base
    scaled = {sector: weight * 100 / total for sector, weight in base.sectors.items()}
    return base.model_copy(update={"sectors": scaled})


def build_breakdown_lookup(
    reference: ReferenceData = DEFAULT_REFERENCE,
    live: Optional[Mapping[str, BreakdownLike]] = None,
    normalize_live: bool = True,
) -> Callable[[str], Optional[FundSectorBreakdown]]:
    """
    Lookup preferring live breakdowns over reference data.

    Live breakdowns are normalised to 100% unless normalize_live is False.
    Raises BreakdownValidationError for a live mapping with negative weights.
    """
    live_table: dict[str, FundSectorBreakdown] = {}
    for ticker, breakdown in (live or {}).items():
        if not _sector_weights(breakdown):
            continue
        resolved = as_breakdown(breakdown, ticker)
        if normalize_live:
            resolved = normalize_breakdown(resolved)
        live_table[ticker.strip().upper()] = resolved

    def lookup(ticker: str) -> Optional[FundSectorBreakdown]:
        key = ticker.strip().upper()
        if key in live_table:
            return live_table[key]
        return reference.get_etf_data(key)

    return lookup


def build_exposure_report(
    holdings: Iterable[Holding],
    breakdown_lookup: Optional[BreakdownLookup] = None,
    stock_sectors: Optional[Mapping[str, str]] = None,
) -> ExposureReport:
    """Exposure plus totals and the funds that fell back to 'Other'."""
    holdings = list(holdings)
    lookup = resolve_breakdown_lookup(breakdown_lookup)
    exposure = compute_effective_exposure(holdings, lookup, stock_sectors)

    counted = [h for h in holdings if h.allocation_percent and h.allocation_percent > 0]
    unresolved = [h.ticker for h in counted if h.is_fund and lookup(h.ticker) is None]
    rows = [
        SectorWeight(sector=sector, percent=percent)
        for sector, percent in sorted(exposure.items(), key=lambda kv: (-kv[1], kv[0]))
    ]

    return ExposureReport(
        exposures=rows,
        total_allocation=round_half_up(sum(h.effective_allocation for h in counted)),
        total_exposure=round_half_up(sum(exposure.values())),
        unresolved_funds=unresolved,
        stock_count=sum(1 for h in counted if not h.is_fund),
        etf_count=sum(1 for h in counted if h.is_fund),
    )


# ---------------------------------------------------------------------------
# CrewAI Tool Wrapper
# ---------------------------------------------------------------------------

class SectorExposureInput(BaseModel):
    holdings: list[dict] = Field(
        ...,
        description=(
            "Holdings as objects with ticker, allocation_percent, "
            "optional holding_type (stock/etf) and optional sector"
        ),
    )


class SectorExposureTool(BaseTool):
    """Compute effective sector exposure with ETF look-through."""

    name: str = "sector_exposure"
    description: str = (
        "Compute a portfolio's true sector exposure by looking through ETFs "
        "to their sector weights. Returns sector percentages, heaviest first."
    )
    args_schema: type[BaseModel] = SectorExposureInput

    def _run(self, holdings: list[dict]) -> str:
        import json

        parsed, errors = load_holdings(holdings)
        report = build_exposure_report(parsed)
        return json.dumps({
            "exposure": report.as_dict(),
            "total_allocation": report.total_allocation,
            "unresolved_funds": report.unresolved_funds,
            "skipped": [e.message for e in errors],
        })
