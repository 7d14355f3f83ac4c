import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SortKey(str, Enum):
    DATE = "date"
    COUNTRY = "country"
    APP = "app"
    REVENUE = "revenue"
    IMPRESSIONS = "impressions"
    CLICKS = "clicks"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class FilterKind(str, Enum):
    COUNTRY = "country"
    APP = "app"
    DATE = "date"


class DimensionValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    value: str = Field("", description="Raw dimension value, e.g. region code or app id")
    display_label: Optional[str] = Field(None, alias="displayLabel", description="Human readable label")


class MetricValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    micros_value: Optional[str] = Field(None, alias="microsValue", description="Currency in millionths")
    integer_value: Optional[str] = Field(None, alias="integerValue", description="Decimal integer string")


class RawRow(BaseModel):
    dimension_values: dict[str, DimensionValue] = Field(default_factory=dict, alias="dimensionValues")
    metric_values: dict[str, MetricValue] = Field(default_factory=dict, alias="metricValues")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "dimensionValues": {
                    "COUNTRY": {"value": "US"},
                    "APP": {"value": "ca-app-pub-123~456", "displayLabel": "My App"},
                    "DATE": {"value": "20240115"}
                },
                "metricValues": {
                    "ESTIMATED_EARNINGS": {"microsValue": "2000000"},
                    "IMPRESSIONS": {"integerValue": "100"},
                    "CLICKS": {"integerValue": "5"}
                }
            }
        },
    )


class ReportHeader(BaseModel):
    kind: Literal["header"] = "header"
    payload: Any = None


class ReportFooter(BaseModel):
    kind: Literal["footer"] = "footer"
    payload: Any = None


class ReportRow(BaseModel):
    kind: Literal["row"] = "row"
    row: RawRow


ReportItem = Union[ReportHeader, ReportRow, ReportFooter]


class PublisherAccount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Resource name, e.g. accounts/pub-123")
    publisher_id: Optional[str] = Field(None, alias="publisherId")
    reporting_time_zone: Optional[str] = Field(None, alias="reportingTimeZone")
    currency_code: Optional[str] = Field(None, alias="currencyCode")


class NormalizedRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime.date = Field(..., description="Report date")
    country: str = Field(..., description="Resolved country display name")
    country_code: str = Field(..., description="Raw region code")
    app: str = Field(..., description="App display label, or the app id when unlabeled")
    app_id: str = Field(..., description="Raw app identifier")
    revenue_usd: float = Field(0.0, description="Estimated earnings in USD")
    impressions: int = Field(0, ge=0)
    clicks: int = Field(0, ge=0)
    locale: str = Field("en", description="Locale of the display labels")

    @property
    def date_key(self) -> str:
        return self.date.isoformat()

    @property
    def date_label(self) -> str:
        from formatting import format_date_label
        return format_date_label(self.date, self.locale)


class MetricTotals(BaseModel):
    revenue_usd: float = 0.0
    impressions: int = 0
    clicks: int = 0


class AggregateResult(BaseModel):
    totals: MetricTotals = Field(default_factory=MetricTotals)
    summary_by_country: dict[str, MetricTotals] = Field(default_factory=dict)
    summary_by_app: dict[str, MetricTotals] = Field(default_factory=dict)


class DailyPoint(BaseModel):
    date: datetime.date
    revenue_usd: float = 0.0
    impressions: int = 0
    clicks: int = 0


class DashboardResult(BaseModel):
    """Renderable outcome of one fetch: records and aggregates, or a user-visible error."""

    start_date: datetime.date
    end_date: datetime.date
    generation: int = 0
    records: list[NormalizedRecord] = Field(default_factory=list)
    aggregates: AggregateResult = Field(default_factory=AggregateResult)
    daily: list[DailyPoint] = Field(default_factory=list)
    skipped_items: int = 0
    error: Optional[str] = None
    locale: str = "en"

    @property
    def is_empty(self) -> bool:
        return self.error is None and not self.records


class AuthStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_authenticated: bool = Field(..., alias="isAuthenticated")
    account: Optional[str] = None
    error: Optional[str] = None


class AuthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["need_code", "success", "error"]
    message: str
    auth_url: Optional[str] = Field(None, alias="authUrl")
    details: Optional[str] = None
