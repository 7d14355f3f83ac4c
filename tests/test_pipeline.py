"""
Unit tests for the report pipeline and the dashboard session.
"""

import asyncio
import datetime
import os
import sys
import threading
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from admob_client import AdMobClient
from config import DashboardConfig
from error_handling import AuthenticationError, NoAccountFoundError
from mock_data import MockAdMobClient, generate_mock_report
from models import PublisherAccount
from pipeline import DashboardSession, build_result

D1 = datetime.date(2024, 1, 1)
D2 = datetime.date(2024, 1, 2)


def make_client(report=None):
    client = MagicMock()
    client.fetch_account.return_value = PublisherAccount(name="accounts/pub-1")
    client.generate_report.return_value = report if report is not None else []
    return client


class TestBuildResult(unittest.TestCase):
    """Tests for the pure pipeline stages."""

    def test_result_from_generated_report(self):
        raw = generate_mock_report(D1, D2)
        result = build_result(raw, D1, D2, generation=3)
        self.assertEqual(result.generation, 3)
        self.assertEqual(len(result.records), 2 * 7 * 3)
        self.assertEqual([point.date for point in result.daily], [D1, D2])
        self.assertEqual(result.skipped_items, 0)
        self.assertFalse(result.is_empty)
        self.assertIsNone(result.error)

    def test_empty_report(self):
        result = build_result([{"header": {}}, {"footer": {}}], D1, D1)
        self.assertTrue(result.is_empty)
        self.assertEqual(result.aggregates.totals.revenue_usd, 0.0)

    def test_unexpected_payload_is_empty(self):
        self.assertTrue(build_result({"error": "x"}, D1, D1).is_empty)


class TestDashboardSession(unittest.TestCase):
    """Tests for loading, error capture and stale-load protection."""

    def test_load_commits_result(self):
        session = DashboardSession(MockAdMobClient())
        result = asyncio.run(session.load(D1, D1))
        self.assertIs(session.current, result)
        self.assertEqual(session.generation, 1)
        self.assertEqual(len(result.records), 21)

    def test_fetch_failure_becomes_error_result(self):
        client = make_client()
        client.fetch_account.side_effect = NoAccountFoundError("No AdMob account found")
        session = DashboardSession(client)
        result = asyncio.run(session.load(D1, D1))
        self.assertEqual(result.error, "No AdMob account found")
        self.assertEqual(result.records, [])
        self.assertFalse(result.is_empty)

    def test_auth_failure_becomes_error_result(self):
        client = make_client()
        client.generate_report.side_effect = AuthenticationError("Authentication failed: HTTP 401", status_code=401)
        result = asyncio.run(DashboardSession(client).load(D1, D1))
        self.assertIn("401", result.error)

    def test_report_request_uses_account_name(self):
        client = make_client()
        asyncio.run(DashboardSession(client).load(D1, D2))
        client.generate_report.assert_called_once_with("accounts/pub-1", D1, D2)

    def test_superseded_load_is_not_committed(self):
        gate = threading.Event()
        slow_report = generate_mock_report(D1, D1)
        fast_report = generate_mock_report(D2, D2)

        def generate_report(account_name, start_date, end_date):
            if start_date == D1:
                gate.wait(timeout=5)
                return slow_report
            return fast_report

        client = make_client()
        client.generate_report.side_effect = generate_report
        session = DashboardSession(client)

        async def scenario():
            slow = asyncio.create_task(session.load(D1, D1))
            await asyncio.sleep(0)
            fast = await session.load(D2, D2)
            gate.set()
            stale = await slow
            return stale, fast

        stale, fast = asyncio.run(scenario())
        self.assertEqual(stale.generation, 1)
        self.assertEqual(fast.generation, 2)
        self.assertIs(session.current, fast)
        self.assertEqual(session.current.start_date, D2)

    def test_ensure_loaded_reuses_result_for_same_range(self):
        client = make_client(generate_mock_report(D1, D1))
        session = DashboardSession(client)

        async def scenario():
            first = await session.ensure_loaded(D1, D1)
            second = await session.ensure_loaded(D1, D1)
            third = await session.ensure_loaded(D1, D2)
            return first, second, third

        first, second, third = asyncio.run(scenario())
        self.assertIs(first, second)
        self.assertIsNot(first, third)
        self.assertEqual(client.generate_report.call_count, 2)

    def test_ensure_loaded_retries_after_error(self):
        client = make_client()
        client.fetch_account.side_effect = [NoAccountFoundError("No AdMob account found"),
                                            PublisherAccount(name="accounts/pub-1")]
        session = DashboardSession(client)

        async def scenario():
            failed = await session.ensure_loaded(D1, D1)
            retried = await session.ensure_loaded(D1, D1)
            return failed, retried

        failed, retried = asyncio.run(scenario())
        self.assertIsNotNone(failed.error)
        self.assertIsNone(retried.error)

    def test_ensure_loaded_refresh_refetches(self):
        client = make_client(generate_mock_report(D1, D1))
        session = DashboardSession(client)

        async def scenario():
            first = await session.ensure_loaded(D1, D1)
            refreshed = await session.ensure_loaded(D1, D1, refresh=True)
            return first, refreshed

        first, refreshed = asyncio.run(scenario())
        self.assertIsNot(first, refreshed)
        self.assertEqual(refreshed.generation, 2)
        self.assertEqual(client.generate_report.call_count, 2)

    @patch('admob_client.requests.get')
    def test_account_listing_with_object_becomes_error_result(self, mock_get):
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = {"account": {"name": "accounts/pub-1"}}
        response.raise_for_status.return_value = None
        mock_get.return_value = response
        credentials = MagicMock()
        credentials.get_access_token.return_value = "token-123"
        session = DashboardSession(AdMobClient(DashboardConfig(), credentials))

        result = asyncio.run(session.load(D1, D1))
        self.assertIsNotNone(result.error)
        self.assertIn("No AdMob account found", result.error)
        self.assertEqual(result.records, [])

    def test_result_carries_locale(self):
        result = build_result(generate_mock_report(D1, D1), D1, D1, locale="de")
        self.assertEqual(result.locale, "de")
        self.assertTrue(all(record.locale == "de" for record in result.records))


if __name__ == '__main__':
    unittest.main()
