"""
Exposure Tool: Sector Classifier
Resolves holding types and stock sectors from reference data, formats
upstream sector keys, and validates raw holding records.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

try:
    from crewai.tools import BaseTool
except ImportError:
    from pydantic import BaseModel as BaseTool
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from folio.exceptions import (
    ErrorSeverity,
    HoldingValidationError,
    ProcessingError,
    wrap_exception_as_processing_error,
)
from folio.schemas.holding import OTHER_SECTOR, Holding
from folio.tools.reference_data import DEFAULT_REFERENCE, ReferenceData

logger = logging.getLogger(__name__)

# Upstream snake_case sector keys -> display names used in reference data
UPSTREAM_SECTOR_NAMES: dict[str, str] = {
    "realestate": "Real Estate",
    "consumer_cyclical": "Consumer Discretionary",
    "basic_materials": "Materials",
    "consumer_defensive": "Consumer Staples",
    "technology": "Technology",
    "communication_services": "Communication",
    "financial_services": "Financials",
    "utilities": "Utilities",
    "industrials": "Industrials",
    "healthcare": "Healthcare",
    "energy": "Energy",
}


def format_sector_name(key: str) -> str:
    """Map an upstream sector key to its display name.

    Unknown keys are capitalised with underscores turned into spaces.
    """
    if key in UPSTREAM_SECTOR_NAMES:
        return UPSTREAM_SECTOR_NAMES[key]
    if not key:
        return key
    return key[0].upper() + key[1:].replace("_", " ")


def infer_holding_type(ticker: str, reference: ReferenceData = DEFAULT_REFERENCE) -> str:
    """'etf' for funds in the reference table, 'stock' otherwise."""
    return "etf" if reference.is_known_etf(ticker) else "stock"


def normalize_sector_table(stock_sectors: Mapping[str, str]) -> dict[str, str]:
    """Upper-case ticker keys so they match normalised holding tickers."""
    return {k.strip().upper(): v for k, v in stock_sectors.items()}


def resolve_stock_sector(
    holding: Holding,
    stock_sectors: Mapping[str, str],
) -> str:
    """
    Own sector, else reference table, else 'Other'.

    Table keys must be upper-case (see normalize_sector_table).
    """
    if holding.sector:
        return holding.sector
    return stock_sectors.get(holding.ticker) or OTHER_SECTOR


def classify_sectors_static(
    symbols: list[str],
    reference: ReferenceData = DEFAULT_REFERENCE,
) -> dict[str, str]:
    """Classify stock sectors using the static table only (no I/O)."""
    result = {}
    for sym in symbols:
        sector = reference.get_stock_sector(sym)
        if sector:
            result[sym] = sector
    return result


def load_holdings(
    records: Iterable[Mapping[str, Any]],
    reference: ReferenceData = DEFAULT_REFERENCE,
) -> tuple[list[Holding], list[ProcessingError]]:
    """
    Validate raw holding records into Holding objects.

    Accepts snake_case or camelCase keys (allocation_percent /
    allocationPercent, holding_type / holdingType). A missing holding type
    is inferred from the reference table. Invalid records are skipped and
    reported.

    Returns:
        (holdings, errors) with errors as WARNING-severity ProcessingError.
    """
    holdings: list[Holding] = []
    errors: list[ProcessingError] = []

    for index, record in enumerate(records):
        try:
            holdings.append(_record_to_holding(record, reference))
        except HoldingValidationError as e:
            logger.warning(f"Skipping holding #{index}: {e.message}")
            ticker = _first(record, "ticker", "symbol") if isinstance(record, Mapping) else None
            errors.append(wrap_exception_as_processing_error(
                e,
                source=f"holding[{index}]",
                error_type="HOLDING_VALIDATION_ERROR",
                severity=ErrorSeverity.WARNING,
                context={"index": index, "ticker": ticker},
            ))

    return holdings, errors


def _first(record: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return None


def _record_to_holding(record: Mapping[str, Any], reference: ReferenceData) -> Holding:
    if not isinstance(record, Mapping):
        raise HoldingValidationError(f"Holding record must be an object, got {type(record).__name__}")

    ticker = _first(record, "ticker", "symbol")
    if not isinstance(ticker, str) or not ticker.strip():
        raise HoldingValidationError("Holding record is missing a ticker")

    holding_type = _first(record, "holding_type", "holdingType", "type")
    if holding_type is None or (isinstance(holding_type, str) and not holding_type.strip()):
        holding_type = infer_holding_type(ticker, reference)

    try:
        return Holding(
            ticker=ticker,
            allocation_percent=_first(record, "allocation_percent", "allocationPercent"),
            holding_type=holding_type,
            sector=_first(record, "sector"),
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(p) for p in first["loc"])
        raise HoldingValidationError(
            f"{ticker.strip().upper()}: invalid {field_name} ({first['msg']})"
        ) from e


# --- CrewAI Tool wrapper ---

class ClassifySectorInput(BaseModel):
    symbols: list[str] = Field(..., description="List of stock symbols to classify")


class ClassifySectorTool(BaseTool):
    """Classify stocks into reference sectors."""
    name: str = "classify_sectors"
    description: str = (
        "Look up the sector of common stock symbols (Technology, Financials, ...) "
        "in the static reference table. Unknown symbols are reported as unclassified."
    )
    args_schema: type[BaseModel] = ClassifySectorInput

    def _run(self, symbols: list[str]) -> str:
        result = classify_sectors_static(symbols)
        lines = [f"Classified {len(result)}/{len(symbols)} symbols:"]
        for sym, sector in sorted(result.items()):
            lines.append(f"  {sym} -> {sector}")
        unclassified = [s for s in symbols if s not in result]
        if unclassified:
            lines.append(f"  Unclassified: {', '.join(unclassified[:20])}")
        return "\n".join(lines)
