"""
AdMob Metrics Client.
Looks up the publisher account and generates network reports through the
AdMob REST API, returning the raw JSON payloads.
"""

import json
import logging
import datetime
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from config import DashboardConfig, REPORT_DIMENSIONS, REPORT_METRICS
from credentials import get_credential_provider
from error_handling import NoAccountFoundError, handle_api_errors
from models import PublisherAccount

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = 'admob_dashboard.log'):
    """Configure centralized logging for the dashboard."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    root_logger.handlers.clear()

    file_handler = logging.FileHandler(log_file, mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    file_handler.setFormatter(file_formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.ERROR)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def _api_date(value: datetime.date) -> Dict[str, int]:
    return {'year': value.year, 'month': value.month, 'day': value.day}


def build_report_request(
    start_date: datetime.date,
    end_date: datetime.date,
    time_zone: str = "America/Los_Angeles"
) -> Dict[str, Any]:
    """
    Build the networkReport:generate request body.

    Args:
        start_date: First day of the report range
        end_date: Last day of the report range
        time_zone: Reporting time zone

    Returns:
        Request body with the fixed metric and dimension sets
    """
    return {
        'reportSpec': {
            'dateRange': {
                'startDate': _api_date(start_date),
                'endDate': _api_date(end_date),
            },
            'metrics': list(REPORT_METRICS),
            'dimensions': list(REPORT_DIMENSIONS),
            'timeZone': time_zone,
        }
    }


class AdMobClient:
    """Thin client for the two AdMob calls the dashboard needs."""

    def __init__(self, config: Optional[DashboardConfig] = None, credential_provider=None):
        self.config = config or DashboardConfig()
        self.credentials = credential_provider or get_credential_provider(self.config)

    def _headers(self) -> Dict[str, str]:
        access_token = self.credentials.get_access_token()
        return {
            'Authorization': f'Bearer {access_token}',
            'x-goog-user-project': self.config.cloud_project or '',
            'Content-Type': 'application/json'
        }

    def _url(self, path: str) -> str:
        return f"{self.config.api_base_url.rstrip('/')}/{path.lstrip('/')}"

    @handle_api_errors(max_retries=3, base_delay=1.0)
    def _get_json(self, url: str, headers: Dict[str, str]) -> Any:
        response = requests.get(url, headers=headers, timeout=self.config.request_timeout)
        response.raise_for_status()
        return response.json()

    @handle_api_errors(max_retries=3, base_delay=1.0)
    def _post_json(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Any:
        response = requests.post(url, headers=headers, json=body, timeout=self.config.request_timeout)
        response.raise_for_status()
        return response.json()

    def list_accounts(self) -> Dict[str, Any]:
        """Return the raw account listing."""
        url = self._url('accounts')
        logger.info(f"Fetching AdMob accounts: {url}")
        return self._get_json(url, self._headers())

    def fetch_account(self) -> PublisherAccount:
        """
        Return the first publisher account.

        Raises:
            NoAccountFoundError: If the listing holds no named account
        """
        data = self.list_accounts()
        accounts = data.get('account') if isinstance(data, dict) else None
        if (not isinstance(accounts, list) or not accounts
                or not isinstance(accounts[0], dict) or not accounts[0].get('name')):
            logger.error("No AdMob account found in account listing")
            raise NoAccountFoundError("No AdMob account found", endpoint=self._url('accounts'))

        try:
            account = PublisherAccount.model_validate(accounts[0])
        except ValidationError as e:
            logger.error("Malformed AdMob account entry: %s", e)
            raise NoAccountFoundError(
                f"Malformed AdMob account entry: {e.error_count()} invalid field(s)",
                endpoint=self._url('accounts')
            ) from e
        logger.info(f"Using account: {account.name}")
        return account

    def generate_report(
        self,
        account_name: str,
        start_date: datetime.date,
        end_date: datetime.date
    ) -> List[Dict[str, Any]]:
        """
        Generate a network report for a date range.

        Args:
            account_name: Account resource name, e.g. accounts/pub-123
            start_date: First day of the range
            end_date: Last day of the range

        Returns:
            Raw report items (header, rows, footer) as decoded JSON
        """
        body = build_report_request(start_date, end_date, self.config.time_zone)
        logger.info(f"Report request: {json.dumps(body)}")

        url = self._url(f"{account_name}/networkReport:generate")
        data = self._post_json(url, self._headers(), body)

        item_count = len(data) if isinstance(data, list) else 0
        logger.info(f"Network report received: {item_count} items")
        return data
