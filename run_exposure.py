"""Compute look-through sector exposure for a holdings file and optionally export to Excel.

Usage:
    python run_exposure.py holdings.json                     # reference ETF data only
    python run_exposure.py holdings.json --live              # prefer live fund breakdowns
    python run_exposure.py holdings.json --output output     # also write an Excel workbook
    python run_exposure.py --health                          # upstream connectivity check

holdings.json is a list of objects:
    [{"ticker": "AAPL", "allocation_percent": 20, "holding_type": "stock", "sector": "Technology"},
     {"ticker": "SPY", "allocation_percent": 30}]
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv
load_dotenv()

import pandas as pd
from openpyxl.styles import Font, PatternFill

from folio.config.settings import FetchSettings
from folio.exceptions import FolioException, OutputWriteError
from folio.schemas.exposure_output import ExposureReport, FundSectorBreakdown
from folio.schemas.holding import Holding
from folio.tools.chat_context import build_portfolio_context
from folio.tools.exposure_calculator import (
    BreakdownLookup,
    build_breakdown_lookup,
    build_exposure_report,
    resolve_breakdown_lookup,
)
from folio.tools.fetch_client import ResilientFetchClient
from folio.tools.market_data_fetcher import check_health, fetch_fund_breakdowns
from folio.tools.reference_data import DEFAULT_REFERENCE, get_exchange
from folio.tools.sector_classifier import load_holdings

logger = logging.getLogger("run_exposure")

_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Folio: effective sector exposure with ETF look-through",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  python run_exposure.py holdings.json                  reference data only
  python run_exposure.py holdings.json --live           live fund breakdowns where available
  python run_exposure.py holdings.json --output out     write out/exposure_<date>.xlsx
  python run_exposure.py --health                       check upstream endpoints
""",
    )
    parser.add_argument(
        "holdings", nargs="?", default=None,
        help="JSON file with a list of holdings",
    )
    parser.add_argument(
        "--live", action="store_true", default=False,
        help="Fetch live sector weights for funds (falls back to reference data)",
    )
    parser.add_argument(
        "--output", default=None,
        help="Directory for the Excel workbook (default: no export)",
    )
    parser.add_argument(
        "--health", action="store_true", default=False,
        help="Check the upstream endpoints and exit",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", default=False,
        help="Debug logging",
    )

    args = parser.parse_args()
    if not args.health and args.holdings is None:
        parser.error("a holdings file is required unless --health is given")
    return args


def _read_holdings_file(path: Path) -> list[Holding]:
    """Read and validate holdings; invalid records are reported and skipped."""
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"\nERROR: Could not read holdings from {path}: {e}")
        sys.exit(1)

    if isinstance(records, dict):
        records = records.get("holdings", [])
    if not isinstance(records, list):
        print(f"\nERROR: {path} must contain a list of holdings")
        sys.exit(1)

    holdings, errors = load_holdings(records)
    for err in errors:
        print(f"  [skip] {err.source}: {err.message}")
    return holdings


def _write_exposure_excel(
    holdings: list[Holding],
    report: ExposureReport,
    out_path: Path,
    lookup: Optional[BreakdownLookup] = None,
) -> Path:
    """Write holdings and exposure to one workbook.

    Fund names come from the same breakdown lookup the report was built with.
    """
    fund_lookup = resolve_breakdown_lookup(lookup)
    today = date.today().isoformat()
    filepath = out_path / f"exposure_{today}.xlsx"

    # --- Exposure ---
    df_exposure = pd.DataFrame(
        [{"Sector": row.sector, "Exposure %": row.percent} for row in report.exposures]
    )

    # --- Holdings ---
    holding_rows = []
    for h in holdings:
        breakdown = fund_lookup(h.ticker) if h.is_fund else None
        holding_rows.append({
            "Ticker": h.ticker,
            "Type": h.holding_type.upper(),
            "Allocation %": h.allocation_percent,
            "Sector": h.sector or (None if h.is_fund else DEFAULT_REFERENCE.get_stock_sector(h.ticker)),
            "Fund Name": breakdown.name if isinstance(breakdown, FundSectorBreakdown) else None,
            "Exchange": get_exchange(h.ticker),
        })
    df_holdings = pd.DataFrame(holding_rows)

    # --- Summary ---
    df_summary = pd.DataFrame([
        {"Field": "Analysis Date", "Value": today},
        {"Field": "Stocks", "Value": report.stock_count},
        {"Field": "ETFs", "Value": report.etf_count},
        {"Field": "Total Allocation %", "Value": report.total_allocation},
        {"Field": "Total Exposure %", "Value": report.total_exposure},
        {"Field": "Coverage Gap %", "Value": report.coverage_gap},
        {"Field": "Funds Without Breakdown", "Value": ", ".join(report.unresolved_funds) or "None"},
    ])

    # --- Write ---
    try:
        with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
            df_summary.to_excel(writer, sheet_name="Summary", index=False)
            df_exposure.to_excel(writer, sheet_name="Exposure", index=False)
            df_holdings.to_excel(writer, sheet_name="Holdings", index=False)
            for ws in writer.sheets.values():
                for cell in ws[1]:
                    cell.font = _HEADER_FONT
                    cell.fill = _HEADER_FILL
    except OSError as e:
        raise OutputWriteError(f"Could not write {filepath}: {e}") from e

    return filepath


def run_health(settings: FetchSettings) -> int:
    print("[Health] Probing upstream endpoints ...")
    with ResilientFetchClient(timeout=settings.request_timeout_seconds) as client:
        report = check_health(client, settings)
    for check in report.checks:
        mark = "OK  " if check.success else "FAIL"
        detail = f"HTTP {check.status}" if check.success else (check.error or "unknown error")
        print(f"  {mark} {check.name:<12} {check.duration_ms:>6} ms  {detail}")
    print(f"[Health] {'Healthy' if report.healthy else 'Degraded'} at {report.timestamp}")
    return 0 if report.healthy else 1


def main(holdings_file: str, live: bool = False, output_dir: str = None) -> int:
    settings = FetchSettings.from_env()
    holdings = _read_holdings_file(Path(holdings_file))
    if not holdings:
        print("No valid holdings found.")
        return 1
    print(f"[Exposure] Loaded {len(holdings)} holdings from '{holdings_file}'")

    live_breakdowns = {}
    if live:
        funds = [h.ticker for h in holdings if h.is_fund]
        print(f"[Exposure] Fetching live breakdowns for {len(funds)} funds ...")
        with ResilientFetchClient(timeout=settings.request_timeout_seconds) as client:
            live_breakdowns = fetch_fund_breakdowns(funds, client, settings=settings)
        print(f"[Exposure] Live data for {len(live_breakdowns)}/{len(funds)} funds")

    lookup = build_breakdown_lookup(DEFAULT_REFERENCE, live=live_breakdowns)
    report = build_exposure_report(holdings, lookup)

    print("\nEffective sector exposure (ETF look-through):")
    for row in report.exposures:
        print(f"  {row.sector:<24} {row.percent:>7.2f}%")
    print(f"  {'Total':<24} {report.total_exposure:>7.2f}%  "
          f"(allocated {report.total_allocation:.2f}%)")
    if report.unresolved_funds:
        print(f"  No breakdown (counted as Other): {', '.join(report.unresolved_funds)}")

    print("\nChat context:")
    print(build_portfolio_context(holdings, DEFAULT_REFERENCE, lookup))

    if output_dir:
        out_path = Path(output_dir)
        out_path.mkdir(parents=True, exist_ok=True)
        filepath = _write_exposure_excel(holdings, report, out_path, lookup)
        print(f"\n[Excel] Saved: {filepath}")

    return 0


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.health:
            sys.exit(run_health(FetchSettings.from_env()))
        sys.exit(main(args.holdings, live=args.live, output_dir=args.output))
    except FolioException as e:
        print(f"\nERROR [{e.error_code}]: {e.message}")
        sys.exit(2)
