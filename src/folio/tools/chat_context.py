"""
Exposure Tool: Chat Context

Renders a holding set and its look-through exposure as the bracketed
summary line prepended to a portfolio chat question.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from folio.config.constants import CONTEXT_TOP_SECTORS
from folio.schemas.exposure_output import FundSectorBreakdown
from folio.schemas.holding import Holding
from folio.tools.exposure_calculator import (
    BreakdownLookup,
    applicable_weights,
    compute_effective_exposure,
    resolve_breakdown_lookup,
)
from folio.tools.reference_data import DEFAULT_REFERENCE, ReferenceData

logger = logging.getLogger(__name__)

EMPTY_PORTFOLIO_CONTEXT = "[No holdings in portfolio]"


def _fmt_number(value: float) -> str:
    """20.0 -> '20', 12.5 -> '12.5'."""
    return f"{value:g}"


def describe_holding(
    holding: Holding,
    breakdown: Optional[FundSectorBreakdown] = None,
) -> str:
    """One 'AAPL STOCK 20% in Technology' style entry."""
    allocation = (
        f"{_fmt_number(holding.allocation_percent)}%"
        if holding.allocation_percent is not None else "n/a"
    )
    text = f"{holding.ticker} {holding.holding_type.upper()} {allocation}"
    if holding.sector:
        text += f" in {holding.sector}"

    if holding.is_fund and breakdown is not None and breakdown.sectors:
        top = ", ".join(
            f"{sector} {_fmt_number(weight)}%"
            for sector, weight in breakdown.top_sectors(CONTEXT_TOP_SECTORS)
        )
        text += f" ({breakdown.name or holding.ticker}, sectors: {top})"
    return text


def build_portfolio_context(
    holdings: Iterable[Holding],
    reference: ReferenceData = DEFAULT_REFERENCE,
    breakdown_lookup: Optional[BreakdownLookup] = None,
) -> str:
    """
    Summarise holdings and effective sector exposure for the chat model.

    Fund details and exposure come from breakdown_lookup when given,
    otherwise from the reference tables. Exposure is listed heaviest first
    with one decimal.
    """
    holdings = list(holdings)
    if not holdings:
        return EMPTY_PORTFOLIO_CONTEXT

    lookup = resolve_breakdown_lookup(
        breakdown_lookup if breakdown_lookup is not None else reference.get_etf_data
    )

    def fund_breakdown(holding: Holding) -> Optional[FundSectorBreakdown]:
        if not holding.is_fund:
            return None
        found = lookup(holding.ticker)
        if found is None or isinstance(found, FundSectorBreakdown):
            return found
        return FundSectorBreakdown(sectors=applicable_weights(found, holding.ticker))

    holdings_list = "; ".join(describe_holding(h, fund_breakdown(h)) for h in holdings)

    exposure = compute_effective_exposure(holdings, lookup, reference.stock_sectors)
    sector_summary = ", ".join(
        f"{sector}: {percent:.1f}%"
        for sector, percent in sorted(exposure.items(), key=lambda kv: (-kv[1], kv[0]))
    )

    logger.debug(f"Built chat context for {len(holdings)} holdings")
    return (
        f"[Portfolio: {holdings_list}. "
        f"Effective sector exposure (including ETF look-through): {sector_summary}]"
    )


def compose_chat_message(context: str, question: str) -> str:
    return f"{context}\n\nUser question: {question}"
