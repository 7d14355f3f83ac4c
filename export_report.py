"""
Export module for AdMob report data.
Writes the current table rows to CSV and the rows plus summaries to an Excel workbook.
"""

import io
import logging
from typing import Dict, List, Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from error_handling import DataValidationError, ExportError, handle_pipeline_phase
from models import AggregateResult, MetricTotals, NormalizedRecord

logger = logging.getLogger(__name__)

RECORD_COLUMNS = [
    'Date', 'Country', 'Country Code', 'App', 'App ID', 'Revenue (USD)', 'Impressions', 'Clicks'
]
SUMMARY_COLUMNS = ['Revenue (USD)', 'Impressions', 'Clicks']

HEADER_FONT = Font(bold=True, size=12, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
TOTAL_FONT = Font(bold=True)
TOTAL_FILL = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")


def records_to_dataframe(records: Sequence[NormalizedRecord]) -> pd.DataFrame:
    rows = [
        {
            'Date': record.date_key,
            'Country': record.country,
            'Country Code': record.country_code,
            'App': record.app,
            'App ID': record.app_id,
            'Revenue (USD)': round(record.revenue_usd, 6),
            'Impressions': record.impressions,
            'Clicks': record.clicks,
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def _check_records(records) -> None:
    if records is None:
        raise DataValidationError("records are required for export")
    if not isinstance(records, (list, tuple)):
        raise DataValidationError(
            "records must be a list",
            details={"received_type": type(records).__name__},
        )


@handle_pipeline_phase(phase_name="EXPORT_CSV", error_cls=ExportError)
def export_records_csv(records: Sequence[NormalizedRecord], output_filename: Optional[str] = None) -> str:
    """
    Export records to CSV.

    Args:
        records: Rows in display order
        output_filename: Also write the CSV to this path when given

    Returns:
        The CSV text
    """
    _check_records(records)
    df = records_to_dataframe(records)
    csv_text = df.to_csv(index=False)

    if output_filename:
        with open(output_filename, 'w', newline='', encoding='utf-8') as f:
            f.write(csv_text)
        logger.info("[EXPORT_CSV] Exported %d records to %s", len(df), output_filename)
    return csv_text


def _write_header(ws, headers: List[str]) -> None:
    ws.append(headers)
    for cell in ws[ws.max_row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT


def _write_total_row(ws, label: str, totals: MetricTotals, leading_blanks: int = 0) -> None:
    ws.append([label] + [None] * leading_blanks + [round(totals.revenue_usd, 2), totals.impressions, totals.clicks])
    for cell in ws[ws.max_row]:
        cell.font = TOTAL_FONT
        cell.fill = TOTAL_FILL


def _write_summary_sheet(wb: Workbook, title: str, key_label: str, summary: Dict[str, MetricTotals],
                         totals: MetricTotals) -> None:
    ws = wb.create_sheet(title)
    ws.column_dimensions['A'].width = 35
    for column in ('B', 'C', 'D'):
        ws.column_dimensions[column].width = 18
    _write_header(ws, [key_label] + SUMMARY_COLUMNS)
    ordered = sorted(summary.items(), key=lambda item: item[1].revenue_usd, reverse=True)
    for key, stats in ordered:
        ws.append([key, round(stats.revenue_usd, 2), stats.impressions, stats.clicks])
    _write_total_row(ws, "Total", totals)


@handle_pipeline_phase(phase_name="EXPORT_XLSX", error_cls=ExportError)
def export_summary_workbook(
    records: Sequence[NormalizedRecord],
    aggregates: AggregateResult,
    output_filename: Optional[str] = None
) -> bytes:
    """
    Export records, the country and app summaries and totals to an Excel workbook.

    Args:
        records: Rows in display order
        aggregates: Totals and summaries of the full report
        output_filename: Also write the workbook to this path when given

    Returns:
        The workbook as XLSX bytes
    """
    _check_records(records)
    if aggregates is None:
        raise DataValidationError("aggregates are required for the workbook export")

    wb = Workbook()
    ws = wb.active
    ws.title = "Report"
    for column, width in zip('ABCDEFGH', (14, 24, 12, 30, 44, 16, 14, 10)):
        ws.column_dimensions[column].width = width

    _write_header(ws, RECORD_COLUMNS)
    for record in records:
        ws.append([
            record.date_key,
            record.country,
            record.country_code,
            record.app,
            record.app_id,
            round(record.revenue_usd, 6),
            record.impressions,
            record.clicks,
        ])
    _write_total_row(ws, "Total", aggregates.totals, leading_blanks=4)

    _write_summary_sheet(wb, "By Country", "Country", aggregates.summary_by_country, aggregates.totals)
    _write_summary_sheet(wb, "By App", "App", aggregates.summary_by_app, aggregates.totals)

    buffer = io.BytesIO()
    wb.save(buffer)
    content = buffer.getvalue()

    if output_filename:
        with open(output_filename, 'wb') as f:
            f.write(content)
        logger.info("[EXPORT_XLSX] Exported workbook to %s", output_filename)
    return content
