"""
Unit tests for the AdMob client and the API error handling decorator.
Uses mocked HTTP responses to simulate the AdMob API.
"""

import datetime
import os
import sys
import unittest
from unittest.mock import patch, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import requests
from admob_client import AdMobClient, build_report_request
from config import DashboardConfig
from error_handling import (
    AuthenticationError,
    FetchFailure,
    NoAccountFoundError,
    RateLimitError,
    ServerError,
)


def http_error_response(status_code, text="error"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.url = "https://admob.googleapis.com/v1/accounts"
    response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    return response


def ok_response(payload):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class ClientTestCase(unittest.TestCase):

    def setUp(self):
        self.credentials = MagicMock()
        self.credentials.get_access_token.return_value = "token-123"
        self.config = DashboardConfig(cloud_project="my-project", request_timeout=5)
        self.client = AdMobClient(self.config, self.credentials)


class TestBuildReportRequest(unittest.TestCase):
    """Tests for the networkReport:generate body."""

    def test_request_shape(self):
        body = build_report_request(datetime.date(2024, 1, 1), datetime.date(2024, 1, 31), "UTC")
        report_spec = body['reportSpec']
        self.assertEqual(report_spec['dateRange']['startDate'], {'year': 2024, 'month': 1, 'day': 1})
        self.assertEqual(report_spec['dateRange']['endDate'], {'year': 2024, 'month': 1, 'day': 31})
        self.assertEqual(report_spec['metrics'], ['ESTIMATED_EARNINGS', 'IMPRESSIONS', 'CLICKS'])
        self.assertEqual(report_spec['dimensions'], ['COUNTRY', 'APP', 'DATE'])
        self.assertEqual(report_spec['timeZone'], 'UTC')


class TestFetchAccount(ClientTestCase):
    """Tests for account lookup."""

    @patch('admob_client.requests.get')
    def test_first_account_is_used(self, mock_get):
        mock_get.return_value = ok_response({"account": [
            {"name": "accounts/pub-1", "publisherId": "pub-1", "currencyCode": "USD"},
            {"name": "accounts/pub-2"},
        ]})
        account = self.client.fetch_account()
        self.assertEqual(account.name, "accounts/pub-1")
        self.assertEqual(account.publisher_id, "pub-1")

        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], "https://admob.googleapis.com/v1/accounts")
        self.assertEqual(kwargs['headers']['Authorization'], "Bearer token-123")
        self.assertEqual(kwargs['headers']['x-goog-user-project'], "my-project")
        self.assertEqual(kwargs['timeout'], 5)

    @patch('admob_client.requests.get')
    def test_no_account_raises(self, mock_get):
        for payload in ({}, {"account": []}, {"account": [{"publisherId": "x"}]}):
            with self.subTest(payload=payload):
                mock_get.return_value = ok_response(payload)
                with self.assertRaises(NoAccountFoundError) as ctx:
                    self.client.fetch_account()
                self.assertIn("No AdMob account found", str(ctx.exception))

    @patch('admob_client.requests.get')
    def test_account_field_not_a_list(self, mock_get):
        for payload in ({"account": {"name": "accounts/pub-1"}}, {"account": "accounts/pub-1"}):
            with self.subTest(payload=payload):
                mock_get.return_value = ok_response(payload)
                with self.assertRaises(NoAccountFoundError):
                    self.client.fetch_account()

    @patch('admob_client.requests.get')
    def test_malformed_account_entry(self, mock_get):
        mock_get.return_value = ok_response({"account": [{"name": 5}]})
        with self.assertRaises(FetchFailure) as ctx:
            self.client.fetch_account()
        self.assertIsInstance(ctx.exception, NoAccountFoundError)
        self.assertIn("Malformed AdMob account entry", str(ctx.exception))

    @patch('admob_client.requests.get')
    def test_401_raises_authentication_error(self, mock_get):
        mock_get.return_value = http_error_response(401)
        with self.assertRaises(AuthenticationError) as ctx:
            self.client.fetch_account()
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(mock_get.call_count, 1)

    @patch('error_handling.time.sleep')
    @patch('admob_client.requests.get')
    def test_429_retries_then_raises(self, mock_get, mock_sleep):
        mock_get.return_value = http_error_response(429)
        with self.assertRaises(RateLimitError):
            self.client.list_accounts()
        self.assertEqual(mock_get.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)

    @patch('error_handling.time.sleep')
    @patch('admob_client.requests.get')
    def test_server_error_recovers_on_retry(self, mock_get, mock_sleep):
        mock_get.side_effect = [
            http_error_response(503),
            ok_response({"account": [{"name": "accounts/pub-1"}]}),
        ]
        self.assertEqual(self.client.fetch_account().name, "accounts/pub-1")
        mock_sleep.assert_called_once_with(1.0)

    @patch('error_handling.time.sleep')
    @patch('admob_client.requests.get')
    def test_persistent_server_error(self, mock_get, mock_sleep):
        mock_get.return_value = http_error_response(500)
        with self.assertRaises(ServerError):
            self.client.list_accounts()

    @patch('error_handling.time.sleep')
    @patch('admob_client.requests.get')
    def test_timeout_becomes_fetch_failure(self, mock_get, mock_sleep):
        mock_get.side_effect = requests.exceptions.Timeout("slow")
        with self.assertRaises(FetchFailure) as ctx:
            self.client.list_accounts()
        self.assertEqual(ctx.exception.status_code, "TIMEOUT")

    @patch('admob_client.requests.get')
    def test_bad_request_is_not_retried(self, mock_get):
        mock_get.return_value = http_error_response(400, text="invalid dimension")
        with self.assertRaises(FetchFailure) as ctx:
            self.client.list_accounts()
        self.assertIn("invalid dimension", str(ctx.exception))
        self.assertEqual(mock_get.call_count, 1)


class TestGenerateReport(ClientTestCase):
    """Tests for report generation."""

    @patch('admob_client.requests.post')
    def test_posts_report_spec(self, mock_post):
        items = [{"header": {}}, {"footer": {}}]
        mock_post.return_value = ok_response(items)

        result = self.client.generate_report(
            "accounts/pub-1", datetime.date(2024, 1, 1), datetime.date(2024, 1, 2)
        )

        self.assertEqual(result, items)
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://admob.googleapis.com/v1/accounts/pub-1/networkReport:generate")
        self.assertEqual(kwargs['json']['reportSpec']['timeZone'], "America/Los_Angeles")
        self.assertEqual(kwargs['json']['reportSpec']['dateRange']['endDate']['day'], 2)

    @patch('admob_client.requests.post')
    def test_403_raises_authentication_error(self, mock_post):
        mock_post.return_value = http_error_response(403)
        with self.assertRaises(AuthenticationError):
            self.client.generate_report("accounts/pub-1", datetime.date(2024, 1, 1), datetime.date(2024, 1, 1))


if __name__ == '__main__':
    unittest.main()
