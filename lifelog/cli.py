"""Command-line reports over a local activity export."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from lifelog import config
from lifelog.services.dashboard import DashboardAggregator
from lifelog.services.loader import load_file
from lifelog.services.ranking import DIMENSIONS
from lifelog.services.records import PROJECTIONS

REPORTS = ("top", "timeline", "heatmap", "kpis", "all")

DEFAULT_DIMENSION = {"music": "artist", "podcast": "podcast", "reading": None}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Summarize a personal activity export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Top 10 artists of a listening export
  python -m lifelog.cli music spotify.csv --report top --dimension artist

  # Monthly listening minutes for 2024
  python -m lifelog.cli music spotify.csv --report timeline --field minutes \\
      --start 2024-01-01 --end 2024-12-31

  # Podcast heatmap and KPIs
  python -m lifelog.cli podcast pocket_casts.csv --report all
        """,
    )
    parser.add_argument("domain", help=f"Data domain ({', '.join(PROJECTIONS)})")
    parser.add_argument("path", type=Path, help="Delimited export file")
    parser.add_argument(
        "--delimiter",
        default=config.CSV_DELIMITER,
        help=f"Column delimiter (default: {config.CSV_DELIMITER!r})",
    )
    parser.add_argument("--start", help="First day to include (YYYY-MM-DD)")
    parser.add_argument("--end", help="Last day to include (YYYY-MM-DD)")
    parser.add_argument("--report", choices=REPORTS, default="all", help="Report to print")
    parser.add_argument(
        "--dimension",
        choices=sorted(DIMENSIONS),
        help="Ranking dimension for the top report",
    )
    parser.add_argument("--limit", type=int, help="Number of ranked entities")
    parser.add_argument("--granularity", default="monthly", help="yearly, monthly or daily")
    parser.add_argument("--field", default="count", help="Quantity summed by the timeline")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    return parser


def build_report(dashboard: DashboardAggregator, args: argparse.Namespace) -> dict[str, Any]:
    window = {"start_date": args.start, "end_date": args.end}
    report: dict[str, Any] = {"bounds": dashboard.get_date_bounds(args.domain)}

    if args.report in ("top", "all"):
        dimension = args.dimension or DEFAULT_DIMENSION.get(args.domain)
        if dimension:
            report["top"] = dashboard.get_top(args.domain, dimension, args.limit, **window)
    if args.report in ("timeline", "all"):
        report["timeline"] = dashboard.get_timeline(
            args.domain, args.granularity, args.field, **window
        )
    if args.report in ("heatmap", "all"):
        report["heatmap"] = dashboard.get_heatmap(args.domain, **window)
    if args.report in ("kpis", "all"):
        report["kpis"] = dashboard.get_kpis(args.domain, **window)
    return report


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    if args.domain not in PROJECTIONS:
        print(f"Error: Unknown domain: {args.domain}", file=sys.stderr)
        print(f"Available: {', '.join(PROJECTIONS)}", file=sys.stderr)
        return 2

    try:
        rows = load_file(args.path, args.delimiter)
    except OSError as e:
        print(f"Error: Could not read {args.path}: {e}", file=sys.stderr)
        return 2

    dashboard = DashboardAggregator()
    count = dashboard.load(args.domain, rows)
    logger.info(f"Normalized {count} {args.domain} record(s)")

    print(json.dumps(build_report(dashboard, args), indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
