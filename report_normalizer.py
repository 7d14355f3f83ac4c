"""
Report Normalizer Module for AdMob network reports.
Turns the heterogeneous report payload (data rows mixed with header and footer
markers) into flat NormalizedRecord objects.

Malformed items never abort a report: they are logged and skipped.
"""

import datetime
import logging
import math
from typing import Any, List, Optional, Tuple

from error_handling import MalformedDateError, MalformedRecordError
from formatting import country_display_name
from models import DimensionValue, MetricValue, NormalizedRecord, RawRow, ReportRow
from validators import validate_report_items

logger = logging.getLogger(__name__)

MICROS_PER_UNIT = 1_000_000
UNKNOWN_LABEL = "Unknown"


def parse_report_date(value: Any) -> datetime.date:
    """
    Parse a DATE dimension value in YYYYMMDD form.

    Raises:
        MalformedDateError: If the value is not eight ASCII digits or not a calendar date.
    """
    if not isinstance(value, str) or len(value) != 8 or not (value.isascii() and value.isdigit()):
        raise MalformedDateError(
            f"Invalid report date {value!r}: expected YYYYMMDD",
            details={"value": value},
        )
    year, month, day = value[0:4], value[4:6], value[6:8]
    try:
        return datetime.date(int(year), int(month), int(day))
    except ValueError as exc:
        raise MalformedDateError(
            f"Invalid report date {value!r}: {exc}",
            details={"value": value},
        ) from exc


def micros_to_usd(metric: Optional[MetricValue]) -> float:
    """Convert a micros metric to currency units; absent or non-numeric values count as zero."""
    raw = metric.micros_value if metric is not None else None
    if raw is None or not raw.strip():
        return 0.0
    try:
        micros = float(raw)
    except ValueError:
        logger.debug("[NORMALIZE] Non-numeric microsValue %r coerced to 0", raw)
        return 0.0
    if not math.isfinite(micros):
        logger.debug("[NORMALIZE] Non-finite microsValue %r coerced to 0", raw)
        return 0.0
    return micros / MICROS_PER_UNIT


def parse_count(metric: Optional[MetricValue]) -> int:
    """Parse an integer metric; absent, non-numeric or negative values count as zero."""
    raw = metric.integer_value if metric is not None else None
    if raw is None or not raw.strip():
        return 0
    text = raw.strip()
    try:
        count = int(text)
    except ValueError:
        try:
            number = float(text)
        except ValueError:
            logger.debug("[NORMALIZE] Non-numeric integerValue %r coerced to 0", raw)
            return 0
        if not math.isfinite(number):
            logger.debug("[NORMALIZE] Non-finite integerValue %r coerced to 0", raw)
            return 0
        count = int(number)
    if count < 0:
        logger.debug("[NORMALIZE] Negative integerValue %r coerced to 0", raw)
        return 0
    return count


def resolve_country(dimension: Optional[DimensionValue], locale: str = "en") -> Tuple[str, str]:
    """Return (display_name, raw_code) for the COUNTRY dimension."""
    code = dimension.value if dimension is not None else ""
    if not code:
        return UNKNOWN_LABEL, ""
    return country_display_name(code, locale), code


def resolve_app(dimension: Optional[DimensionValue]) -> Tuple[str, str]:
    """Return (display_name, app_id), preferring the display label over the raw id."""
    if dimension is None:
        return UNKNOWN_LABEL, ""
    app_id = dimension.value
    label = dimension.display_label or app_id
    return (label or UNKNOWN_LABEL), app_id


def normalize_row(row: RawRow, locale: str = "en") -> NormalizedRecord:
    """
    Build one NormalizedRecord from a data row.

    Raises:
        MalformedRecordError: If the DATE dimension is missing or malformed.
    """
    dimensions = row.dimension_values
    metrics = row.metric_values

    date_dimension = dimensions.get("DATE")
    if date_dimension is None:
        raise MalformedRecordError("Report row has no DATE dimension")
    report_date = parse_report_date(date_dimension.value)

    country, country_code = resolve_country(dimensions.get("COUNTRY"), locale)
    app, app_id = resolve_app(dimensions.get("APP"))

    return NormalizedRecord(
        date=report_date,
        country=country,
        country_code=country_code,
        app=app,
        app_id=app_id,
        revenue_usd=micros_to_usd(metrics.get("ESTIMATED_EARNINGS")),
        impressions=parse_count(metrics.get("IMPRESSIONS")),
        clicks=parse_count(metrics.get("CLICKS")),
        locale=locale,
    )


def normalize_report(raw_report: Any, locale: str = "en") -> Tuple[List[NormalizedRecord], int]:
    """
    Normalize a raw report and count the items that had to be skipped.

    Args:
        raw_report: Decoded JSON of a network report; anything but a list yields no records.
        locale: Locale for country display names.

    Returns:
        Tuple of (records, skipped_count).
    """
    items, invalid = validate_report_items(raw_report)
    records = []
    skipped = len(invalid)

    for position, item in enumerate(items):
        if not isinstance(item, ReportRow):
            continue
        try:
            records.append(normalize_row(item.row, locale))
        except MalformedRecordError as exc:
            skipped += 1
            logger.warning("[NORMALIZE] Skipping report item %d: %s", position, exc)

    if skipped:
        logger.warning("[NORMALIZE] Skipped %d malformed report items", skipped)
    logger.info("[NORMALIZE] Normalized %d records", len(records))
    return records, skipped


def normalize(raw_report: Any, locale: str = "en") -> List[NormalizedRecord]:
    """Normalize a raw report into flat records, dropping header, footer and malformed items."""
    records, _ = normalize_report(raw_report, locale)
    return records
