"""
Aggregator Module for normalized AdMob records.
Computes global totals, per-country and per-app summaries, and the daily
series behind the revenue chart.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from models import AggregateResult, DailyPoint, MetricTotals, NormalizedRecord

logger = logging.getLogger(__name__)


def _accumulate(bucket: Dict[str, float], record: NormalizedRecord) -> None:
    bucket['revenue_usd'] += record.revenue_usd
    bucket['impressions'] += record.impressions
    bucket['clicks'] += record.clicks


def _new_bucket() -> Dict[str, float]:
    return {'revenue_usd': 0.0, 'impressions': 0, 'clicks': 0}


def _to_totals(bucket: Dict[str, float]) -> MetricTotals:
    return MetricTotals(
        revenue_usd=bucket['revenue_usd'],
        impressions=bucket['impressions'],
        clicks=bucket['clicks'],
    )


def aggregate(records: Iterable[NormalizedRecord]) -> AggregateResult:
    """
    Sum revenue, impressions and clicks overall, by country and by app.

    Groups are keyed by resolved display names, so two app ids sharing a
    label end up in the same app group.

    Args:
        records: Normalized records in report order.

    Returns:
        AggregateResult with totals, summary_by_country and summary_by_app.
    """
    totals = _new_bucket()
    by_country: Dict[str, Dict[str, float]] = defaultdict(_new_bucket)
    by_app: Dict[str, Dict[str, float]] = defaultdict(_new_bucket)
    count = 0

    for record in records:
        _accumulate(by_country[record.country], record)
        _accumulate(by_app[record.app], record)
        _accumulate(totals, record)
        count += 1

    logger.info(
        "[AGGREGATE] %d records -> %d countries, %d apps",
        count,
        len(by_country),
        len(by_app),
    )

    return AggregateResult(
        totals=_to_totals(totals),
        summary_by_country={key: _to_totals(value) for key, value in by_country.items()},
        summary_by_app={key: _to_totals(value) for key, value in by_app.items()},
    )


def daily_series(records: Iterable[NormalizedRecord]) -> List[DailyPoint]:
    """Sum metrics per report date, oldest first, for the time-series chart."""
    by_date = defaultdict(_new_bucket)
    for record in records:
        _accumulate(by_date[record.date], record)

    return [
        DailyPoint(
            date=day,
            revenue_usd=bucket['revenue_usd'],
            impressions=bucket['impressions'],
            clicks=bucket['clicks'],
        )
        for day, bucket in sorted(by_date.items())
    ]
