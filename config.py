"""
Configuration module for the AdMob dashboard.
Holds API endpoints, report settings and view defaults, loaded from the environment.
"""

import os
from typing import Optional

REPORT_METRICS = ("ESTIMATED_EARNINGS", "IMPRESSIONS", "CLICKS")
REPORT_DIMENSIONS = ("COUNTRY", "APP", "DATE")
PAGE_SIZE_CHOICES = (10, 25, 50, 100)
ADMOB_READONLY_SCOPE = "https://www.googleapis.com/auth/admob.readonly"

_TRUTHY = ("1", "true", "yes", "on")


class DashboardConfig:
    """Configuration class for the metrics client and the dashboard views."""

    def __init__(
        self,
        api_base_url: str = "https://admob.googleapis.com/v1",
        cloud_project: str = "",
        service_account_file: Optional[str] = None,
        service_account_json: Optional[str] = None,
        time_zone: str = "America/Los_Angeles",
        request_timeout: int = 30,
        default_page_size: int = 10,
        default_range_days: int = 30,
        locale: str = "en",
        use_mock_data: bool = False,
        log_file: str = "admob_dashboard.log"
    ):
        """
        Initialize dashboard configuration.

        Args:
            api_base_url: Base URL of the AdMob API
            cloud_project: Google Cloud project billed for API quota
            service_account_file: Path to a service account key file
            service_account_json: Service account key as a JSON string
            time_zone: Reporting time zone sent with every report request
            request_timeout: HTTP timeout in seconds
            default_page_size: Rows per page for a fresh view
            default_range_days: Length of the default date range, ending today
            locale: Locale used for country names and number formatting
            use_mock_data: Serve a generated report instead of calling the API
            log_file: File receiving the DEBUG log
        """
        self.api_base_url = api_base_url
        self.cloud_project = cloud_project
        self.service_account_file = service_account_file
        self.service_account_json = service_account_json
        self.time_zone = time_zone
        self.request_timeout = request_timeout
        self.default_page_size = default_page_size
        self.default_range_days = default_range_days
        self.locale = locale
        self.use_mock_data = use_mock_data
        self.log_file = log_file

    @classmethod
    def from_env(cls) -> "DashboardConfig":
        """Build a configuration from environment variables, validating the values."""
        from validators import DashboardConfigInput

        raw = {
            'api_base_url': os.getenv('ADMOB_API_BASE_URL', 'https://admob.googleapis.com/v1'),
            'cloud_project': os.getenv('GOOGLE_CLOUD_PROJECT', ''),
            'service_account_file': os.getenv('GOOGLE_APPLICATION_CREDENTIALS') or None,
            'service_account_json': os.getenv('ADMOB_SERVICE_ACCOUNT_JSON') or None,
            'time_zone': os.getenv('ADMOB_REPORT_TIMEZONE', 'America/Los_Angeles'),
            'request_timeout': os.getenv('ADMOB_REQUEST_TIMEOUT', '30'),
            'default_page_size': os.getenv('ADMOB_PAGE_SIZE', '10'),
            'default_range_days': os.getenv('ADMOB_DEFAULT_RANGE_DAYS', '30'),
            'locale': os.getenv('ADMOB_LOCALE', 'en'),
            'use_mock_data': os.getenv('ADMOB_USE_MOCK_DATA', '').strip().lower() in _TRUTHY,
            'log_file': os.getenv('ADMOB_LOG_FILE', 'admob_dashboard.log'),
        }
        validated = DashboardConfigInput.model_validate(raw)
        return cls(**validated.model_dump())

    @property
    def uses_service_account(self) -> bool:
        return bool(self.service_account_file or self.service_account_json)

    def to_dict(self):
        """Convert configuration to dictionary, leaving out key material."""
        return {
            'api_base_url': self.api_base_url,
            'cloud_project': self.cloud_project,
            'uses_service_account': self.uses_service_account,
            'time_zone': self.time_zone,
            'request_timeout': self.request_timeout,
            'default_page_size': self.default_page_size,
            'default_range_days': self.default_range_days,
            'locale': self.locale,
            'use_mock_data': self.use_mock_data,
            'log_file': self.log_file
        }
