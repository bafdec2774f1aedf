"""CLI to build the dashboard payload from CSV exports.

Reads a holdings CSV (plus optional performance CSV and stored summary JSON)
and writes the `DashboardPayload` as JSON.
"""
# Example:
#
# portfolio-insights --holdings-file data/sample_holdings.csv \
#   --performance-file data/sample_performance.csv --window 6M \
#   --search tech --sort-field gainLossPercent --sort-direction desc \
#   --output out/dashboard.json
from __future__ import annotations

from pathlib import Path
from typing import List, Optional
import argparse
import logging
import sys
from datetime import datetime

from portfolio_insights.data_models.holdings_view import SortDirection, SortField, SortState
from portfolio_insights.data_models.performance import PerformanceWindow
from portfolio_insights.errors import PortfolioInsightsError
from portfolio_insights.services.allocation_service import allocation_to_frame
from portfolio_insights.services.dashboard_service import build_dashboard
from portfolio_insights.services.repository_service import CsvPortfolioRepository

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate portfolio dashboard JSON from CSV exports.")
    parser.add_argument("--holdings-file", dest="holdings_file", type=str, required=True,
                        help="CSV with one row per holding (symbol, name, sector, market_cap, quantity, ...).")
    parser.add_argument("--performance-file", dest="performance_file", type=str, default=None,
                        help="CSV of dated portfolio and benchmark values.")
    parser.add_argument("--summary-file", dest="summary_file", type=str, default=None,
                        help="Stored summary JSON, used with --use-stored-summary.")
    parser.add_argument("--use-stored-summary", dest="use_stored_summary", action="store_true",
                        help="Report the stored summary instead of computing it from holdings.")
    parser.add_argument("--window", dest="window", type=str, default=None,
                        choices=[w.value for w in PerformanceWindow],
                        help="Performance chart window (default 6M).")
    parser.add_argument("--as-of", dest="as_of", type=str, default=None,
                        help="Reference date (YYYY-MM-DD) for the window; defaults to today.")
    parser.add_argument("--search", dest="search", type=str, default="",
                        help="Holdings search term (symbol, name or sector).")
    parser.add_argument("--sort-field", dest="sort_field", type=str, default=SortField.SYMBOL.value,
                        help="Holdings sort column, e.g. symbol, value, gainLossPercent.")
    parser.add_argument("--sort-direction", dest="sort_direction",
                        choices=[d.value for d in SortDirection], default=SortDirection.ASC.value)
    parser.add_argument("--strict", dest="strict", action="store_true",
                        help="Fail on the first section error instead of reporting it in the payload.")
    parser.add_argument("--print-allocation", dest="print_allocation", action="store_true",
                        help="Also print the sector allocation table to stderr.")
    parser.add_argument("--output", dest="output", type=str, default=None,
                        help="Write the JSON payload to this path instead of stdout.")
    parser.add_argument("--log-level", dest="log_level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    as_of = None
    if args.as_of:
        try:
            as_of = datetime.strptime(args.as_of, "%Y-%m-%d").date()
        except ValueError:
            logger.error("Could not parse --as-of=%s. Use YYYY-MM-DD.", args.as_of)
            return 2

    try:
        sort = SortState(field=SortField(args.sort_field), direction=SortDirection(args.sort_direction))
    except ValueError:
        logger.error("Unknown sort field %r; expected one of %s",
                     args.sort_field, ", ".join(f.value for f in SortField))
        return 2

    repository = CsvPortfolioRepository(
        holdings_path=args.holdings_file,
        performance_path=args.performance_file,
        summary_path=args.summary_file,
    )

    try:
        payload = build_dashboard(
            repository,
            window=args.window,
            search_term=args.search,
            sort=sort,
            as_of=as_of,
            prefer_stored_summary=args.use_stored_summary,
            strict=args.strict,
        )
    except (PortfolioInsightsError, FileNotFoundError, ValueError) as exc:
        logger.error("Could not build dashboard: %s", exc)
        return 1

    if args.print_allocation and payload.allocation is not None:
        print(allocation_to_frame(payload.allocation.by_sector).to_string(index=False), file=sys.stderr)

    payload_json = payload.model_dump_json(indent=2)
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(payload_json, encoding="utf-8")
        logger.info("Wrote dashboard payload to %s", out)
    else:
        print(payload_json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
