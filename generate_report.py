"""
Generate AdMob Report

Loads the AdMob network report for a date range, then writes the rows as CSV,
the rows and summaries as an Excel workbook, and a static HTML dashboard.
"""

import argparse
import asyncio
import logging
import os
import sys

from admob_client import AdMobClient, setup_logging
from config import DashboardConfig
from credentials import get_credential_provider
from error_handling import PipelinePhaseError
from export_report import export_records_csv, export_summary_workbook
from html_dashboard import generate_html_dashboard
from mock_data import MockAdMobClient
from pipeline import DashboardSession
from validators import resolve_date_range
from view_state import ViewState, derive_view

logger = logging.getLogger(__name__)


def build_client(config: DashboardConfig):
    if config.use_mock_data:
        logger.info("Using generated demo data")
        return MockAdMobClient()
    return AdMobClient(config, get_credential_provider(config))


def write_outputs(result, output_dir: str) -> dict:
    """
    Write CSV, XLSX and HTML outputs for a loaded report.

    Returns:
        Mapping of output kind to the written path
    """
    os.makedirs(output_dir, exist_ok=True)
    stem = f"admob_report_{result.start_date:%Y%m%d}_{result.end_date:%Y%m%d}"
    paths = {
        'csv': os.path.join(output_dir, f"{stem}.csv"),
        'xlsx': os.path.join(output_dir, f"{stem}.xlsx"),
        'html': os.path.join(output_dir, f"{stem}.html"),
    }

    # The static page has no pager, so every row goes on one page.
    state = ViewState(page_size=max(1, len(result.records)))
    view = derive_view(result.records, state)

    export_records_csv(view.page_rows, output_filename=paths['csv'])
    export_summary_workbook(view.page_rows, result.aggregates, output_filename=paths['xlsx'])
    generate_html_dashboard(result, view, output_file=paths['html'])
    return paths


def main(argv=None) -> int:
    """Main execution function for report generation."""
    parser = argparse.ArgumentParser(description='Generate AdMob network report')
    parser.add_argument(
        '--start',
        type=str,
        default=None,
        help='Start date for reporting period (YYYY-MM-DD)'
    )
    parser.add_argument(
        '--end',
        type=str,
        default=None,
        help='End date for reporting period (YYYY-MM-DD), defaults to today'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default='.',
        help='Directory for the generated files'
    )
    args = parser.parse_args(argv)

    config = DashboardConfig.from_env()
    setup_logging(config.log_file)

    logger.info("=" * 60)
    logger.info("AdMob Report Generator")
    logger.info("=" * 60)

    try:
        date_range = resolve_date_range(args.start, args.end, config.default_range_days)
    except ValueError as e:
        logger.error("Invalid date range: %s", e)
        print(f"Invalid date range: {e}", file=sys.stderr)
        return 2

    logger.info("Date range: %s to %s", date_range.start_date, date_range.end_date)
    session = DashboardSession(build_client(config), locale=config.locale)
    result = asyncio.run(session.load(date_range.start_date, date_range.end_date))

    if result.error is not None:
        logger.error("Report load failed: %s", result.error)
        print(f"Report load failed: {result.error}", file=sys.stderr)
        return 1
    if result.skipped_items:
        logger.warning("Skipped %d malformed report items", result.skipped_items)

    try:
        paths = write_outputs(result, args.output_dir)
    except PipelinePhaseError as e:
        logger.error("Export failed: %s", e)
        print(f"Export failed: {e}", file=sys.stderr)
        return 1

    logger.info("Wrote %d records", len(result.records))
    for kind, path in paths.items():
        print(f"{kind.upper()}: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
