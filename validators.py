"""
Pydantic Validation Models for the AdMob dashboard.
Provides input validation for configuration, API parameters and raw report items.
"""

import datetime
import logging
from typing import Any, List, Optional

from babel import Locale, UnknownLocaleError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator

from config import PAGE_SIZE_CHOICES
from error_handling import MalformedRecordError
from models import RawRow, ReportFooter, ReportHeader, ReportItem, ReportRow, SortDirection, SortKey

logger = logging.getLogger(__name__)


class DashboardConfigInput(BaseModel):
    """Validation model for dashboard configuration values."""

    api_base_url: str = Field(
        default="https://admob.googleapis.com/v1",
        pattern=r"^https?://",
        description="Base URL for the AdMob API",
    )
    cloud_project: str = Field(default="", description="Google Cloud project id")
    service_account_file: Optional[str] = Field(default=None, description="Service account key file")
    service_account_json: Optional[str] = Field(default=None, description="Service account key JSON")
    time_zone: str = Field(default="America/Los_Angeles", min_length=1, description="Reporting time zone")
    request_timeout: int = Field(default=30, ge=1, le=600, description="HTTP timeout in seconds")
    default_page_size: int = Field(default=10, ge=1, le=1000, description="Rows per page")
    default_range_days: int = Field(default=30, ge=1, le=3650, description="Default date range length")
    locale: str = Field(default="en", min_length=2, description="Display locale")
    use_mock_data: bool = Field(default=False, description="Serve generated data")
    log_file: str = Field(default="admob_dashboard.log", min_length=1, description="Log file path")

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, v: str) -> str:
        try:
            Locale.parse(v)
        except (ValueError, UnknownLocaleError) as e:
            raise ValueError(f"unsupported locale '{v}': {e}") from e
        return v


class ReportRequestParams(BaseModel):
    """Validation model for a report request date range."""

    model_config = ConfigDict(populate_by_name=True)

    start_date: datetime.date = Field(alias="startDate", description="First day of the range")
    end_date: datetime.date = Field(alias="endDate", description="Last day of the range")

    @model_validator(mode="after")
    def validate_date_range(self) -> "ReportRequestParams":
        if self.start_date > self.end_date:
            raise ValueError(
                f"startDate ({self.start_date}) must not be after endDate ({self.end_date})"
            )
        return self


class AuthCodeInput(BaseModel):
    """Validation model for the interactive login step."""

    code: Optional[str] = Field(default=None, description="Verification code from the login page")

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if any(ch.isspace() for ch in v):
            raise ValueError("code must not contain whitespace")
        return v


class ViewQueryParams(BaseModel):
    """Validation model for dashboard view parameters carried in the query string."""

    sort: SortKey = Field(default=SortKey.REVENUE)
    direction: SortDirection = Field(default=SortDirection.DESCENDING)
    page: int = Field(default=1)
    page_size: Optional[int] = Field(default=None, description="Rows per page, None for the configured default")
    country: str = Field(default="")
    app: str = Field(default="")
    date: str = Field(default="")
    hidden: List[SortKey] = Field(default_factory=list)

    @field_validator("page")
    @classmethod
    def clamp_page(cls, v: int) -> int:
        # The upper bound depends on the data and is clamped by derive_view.
        return max(1, v)

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: Optional[int], info: ValidationInfo) -> Optional[int]:
        """Accept the offered choices plus the configured default passed in the validation context."""
        if v is None:
            return None
        allowed = set(PAGE_SIZE_CHOICES)
        if info.context and info.context.get("default_page_size"):
            allowed.add(info.context["default_page_size"])
        if v not in allowed:
            raise ValueError(f"page_size must be one of {sorted(allowed)}")
        return v


def parse_report_item(item: Any, index: int = 0) -> ReportItem:
    """
    Discriminate one raw report element into its header, row or footer variant.

    Raises:
        MalformedRecordError: If the element is not an object, carries no known
            tag, or its row payload does not match the row schema.
    """
    if not isinstance(item, dict):
        raise MalformedRecordError(
            f"Report item {index} is not an object",
            index=index,
            details={"received_type": type(item).__name__},
        )
    if "row" in item:
        try:
            return ReportRow(row=RawRow.model_validate(item["row"]))
        except ValidationError as exc:
            raise MalformedRecordError(
                f"Report item {index} has an invalid row: {exc}",
                index=index,
                details={"error": str(exc)},
            ) from exc
    if "header" in item:
        return ReportHeader(payload=item["header"])
    if "footer" in item:
        return ReportFooter(payload=item["footer"])
    raise MalformedRecordError(
        f"Report item {index} has no row, header or footer",
        index=index,
        details={"keys": sorted(item)},
    )


def validate_report_items(raw_items: Any) -> tuple[List[ReportItem], List[dict]]:
    """
    Validate a raw report payload, returning parsed items and invalid records.

    Args:
        raw_items: Decoded JSON body of a network report.

    Returns:
        Tuple of (parsed_items, invalid_items). A payload that is not a list
        yields two empty lists.
    """
    if not isinstance(raw_items, list):
        if raw_items is not None:
            logger.warning(
                "[VALIDATION] Expected a list of report items, got %s",
                type(raw_items).__name__,
            )
        return [], []

    parsed = []
    invalid = []

    for idx, item in enumerate(raw_items):
        try:
            parsed.append(parse_report_item(item, idx))
        except MalformedRecordError as exc:
            logger.warning("[VALIDATION] Skipping report item at index %d: %s", idx, exc)
            invalid.append({"index": idx, "data": item, "error": str(exc)})

    if invalid:
        logger.warning(
            "[VALIDATION] %d of %d report items failed validation",
            len(invalid),
            len(raw_items),
        )

    return parsed, invalid


def resolve_date_range(
    start: Optional[str],
    end: Optional[str],
    range_days: int = 30,
    today: Optional[datetime.date] = None
) -> ReportRequestParams:
    """Fill a missing bound from the default range ending today, then validate the range."""
    today = today or datetime.date.today()
    end_value = end or (today.isoformat() if not start else None)
    if end_value is None:
        start_day = datetime.date.fromisoformat(start)
        end_value = (start_day + datetime.timedelta(days=range_days)).isoformat()
    if not start:
        end_day = datetime.date.fromisoformat(end_value)
        start = (end_day - datetime.timedelta(days=range_days)).isoformat()
    return ReportRequestParams(start_date=start, end_date=end_value)
