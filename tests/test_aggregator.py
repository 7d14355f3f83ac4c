"""
Unit tests for the Aggregator module.
"""

import datetime
import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aggregator import aggregate, daily_series
from mock_data import generate_mock_report
from models import NormalizedRecord
from report_normalizer import normalize


def record(day, country, app, revenue, impressions=0, clicks=0, app_id=None):
    return NormalizedRecord(
        date=day,
        country=country,
        country_code=country[:2].upper(),
        app=app,
        app_id=app_id or app,
        revenue_usd=revenue,
        impressions=impressions,
        clicks=clicks,
    )


D1 = datetime.date(2024, 1, 1)
D2 = datetime.date(2024, 1, 2)


class TestAggregate(unittest.TestCase):
    """Tests for totals and grouped summaries."""

    def setUp(self):
        self.records = [
            record(D1, "United States", "Puzzle", 1.25, 100, 4),
            record(D1, "Canada", "Puzzle", 0.5, 40, 1),
            record(D2, "United States", "Weather", 2.0, 60, 2),
        ]

    def test_totals(self):
        result = aggregate(self.records)
        self.assertAlmostEqual(result.totals.revenue_usd, 3.75)
        self.assertEqual(result.totals.impressions, 200)
        self.assertEqual(result.totals.clicks, 7)

    def test_summary_by_country(self):
        result = aggregate(self.records)
        self.assertEqual(set(result.summary_by_country), {"United States", "Canada"})
        self.assertAlmostEqual(result.summary_by_country["United States"].revenue_usd, 3.25)
        self.assertEqual(result.summary_by_country["Canada"].impressions, 40)

    def test_summary_by_app(self):
        result = aggregate(self.records)
        self.assertAlmostEqual(result.summary_by_app["Puzzle"].revenue_usd, 1.75)
        self.assertEqual(result.summary_by_app["Weather"].clicks, 2)

    def test_apps_sharing_a_label_share_a_group(self):
        records = [
            record(D1, "Canada", "Same", 1.0, app_id="id-1"),
            record(D1, "Canada", "Same", 2.0, app_id="id-2"),
        ]
        result = aggregate(records)
        self.assertEqual(list(result.summary_by_app), ["Same"])
        self.assertAlmostEqual(result.summary_by_app["Same"].revenue_usd, 3.0)

    def test_empty_input(self):
        result = aggregate([])
        self.assertEqual(result.totals.revenue_usd, 0.0)
        self.assertEqual(result.totals.impressions, 0)
        self.assertEqual(result.summary_by_country, {})
        self.assertEqual(result.summary_by_app, {})

    def test_sum_invariant_on_generated_report(self):
        records = normalize(generate_mock_report(D1, datetime.date(2024, 1, 10)))
        result = aggregate(records)
        by_country = sum(s.revenue_usd for s in result.summary_by_country.values())
        by_app = sum(s.revenue_usd for s in result.summary_by_app.values())
        self.assertAlmostEqual(result.totals.revenue_usd, by_country, delta=1e-6)
        self.assertAlmostEqual(result.totals.revenue_usd, by_app, delta=1e-6)
        self.assertEqual(
            result.totals.impressions,
            sum(s.impressions for s in result.summary_by_country.values()),
        )


class TestDailySeries(unittest.TestCase):
    """Tests for the per-day chart series."""

    def test_series_is_sorted_and_summed(self):
        records = [
            record(D2, "Canada", "Puzzle", 1.0, 10, 1),
            record(D1, "Canada", "Puzzle", 2.0, 20, 2),
            record(D2, "Canada", "Weather", 3.0, 30, 3),
        ]
        series = daily_series(records)
        self.assertEqual([point.date for point in series], [D1, D2])
        self.assertAlmostEqual(series[1].revenue_usd, 4.0)
        self.assertEqual(series[1].impressions, 40)
        self.assertEqual(series[1].clicks, 4)

    def test_empty_series(self):
        self.assertEqual(daily_series([]), [])


if __name__ == '__main__':
    unittest.main()
