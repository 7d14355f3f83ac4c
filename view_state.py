"""
View State Controller for the report table.

ViewState is immutable: every transition returns a new state. derive_view is a
pure function that applies filter -> sort -> paginate to the normalized records.
"""

import logging
import math
from typing import Callable, Dict, List, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field

from models import FilterKind, NormalizedRecord, SortDirection, SortKey

logger = logging.getLogger(__name__)


class Column(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: SortKey
    label: str
    align: Literal["left", "right"] = "left"


COLUMNS = (
    Column(key=SortKey.DATE, label="Date"),
    Column(key=SortKey.COUNTRY, label="Country"),
    Column(key=SortKey.APP, label="App"),
    Column(key=SortKey.REVENUE, label="Revenue", align="right"),
    Column(key=SortKey.IMPRESSIONS, label="Impressions", align="right"),
    Column(key=SortKey.CLICKS, label="Clicks", align="right"),
)

_SORT_VALUES: Dict[SortKey, Callable[[NormalizedRecord], object]] = {
    SortKey.DATE: lambda r: r.date_key,
    SortKey.COUNTRY: lambda r: (r.country.casefold(), r.country),
    SortKey.APP: lambda r: (r.app.casefold(), r.app),
    SortKey.REVENUE: lambda r: r.revenue_usd,
    SortKey.IMPRESSIONS: lambda r: r.impressions,
    SortKey.CLICKS: lambda r: r.clicks,
}


def page_count_for(filtered_count: int, page_size: int) -> int:
    return max(1, math.ceil(filtered_count / page_size))


class ViewState(BaseModel):
    model_config = ConfigDict(frozen=True)

    sort_key: SortKey = SortKey.REVENUE
    sort_direction: SortDirection = SortDirection.DESCENDING
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1)
    country_filter: str = ""
    app_filter: str = ""
    date_filter: str = ""
    hidden_columns: frozenset[SortKey] = frozenset()

    @property
    def is_filtered(self) -> bool:
        return bool(self.country_filter or self.app_filter or self.date_filter)

    @property
    def visible_columns(self) -> List[Column]:
        return [column for column in COLUMNS if column.key not in self.hidden_columns]

    def request_sort(self, key: SortKey | str) -> "ViewState":
        """Toggle direction when re-sorting the current column, else sort the new column ascending."""
        key = SortKey(key)
        if key == self.sort_key:
            direction = (
                SortDirection.ASCENDING
                if self.sort_direction == SortDirection.DESCENDING
                else SortDirection.DESCENDING
            )
            return self.model_copy(update={"sort_direction": direction})
        return self.model_copy(update={"sort_key": key, "sort_direction": SortDirection.ASCENDING})

    def set_filter(self, kind: FilterKind | str, value: str) -> "ViewState":
        kind = FilterKind(kind)
        return self.model_copy(update={f"{kind.value}_filter": (value or "").strip(), "page": 1})

    def clear_filters(self) -> "ViewState":
        return self.model_copy(update={"country_filter": "", "app_filter": "", "date_filter": "", "page": 1})

    def set_page_size(self, page_size: int) -> "ViewState":
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        return self.model_copy(update={"page_size": page_size, "page": 1})

    def go_to_page(self, page: int, page_count: int) -> "ViewState":
        clamped = min(max(1, page), max(1, page_count))
        return self.model_copy(update={"page": clamped})

    def next_page(self, page_count: int) -> "ViewState":
        return self.go_to_page(self.page + 1, page_count)

    def prev_page(self, page_count: int) -> "ViewState":
        return self.go_to_page(self.page - 1, page_count)

    def toggle_column(self, key: SortKey | str) -> "ViewState":
        key = SortKey(key)
        hidden = set(self.hidden_columns)
        if key in hidden:
            hidden.discard(key)
        else:
            hidden.add(key)
        return self.model_copy(update={"hidden_columns": frozenset(hidden)})


class ViewResult(BaseModel):
    state: ViewState
    page_rows: List[NormalizedRecord] = Field(default_factory=list)
    page_count: int = 1
    filtered_count: int = 0
    total_count: int = 0
    first_index: int = 0
    last_index: int = 0
    unique_countries: List[str] = Field(default_factory=list)
    unique_apps: List[str] = Field(default_factory=list)
    unique_dates: List[str] = Field(default_factory=list)

    @property
    def page(self) -> int:
        return self.state.page

    @property
    def is_filtered(self) -> bool:
        return self.state.is_filtered


def matches_filters(record: NormalizedRecord, state: ViewState) -> bool:
    """Case-insensitive substring match, AND-combined; empty filters match everything."""
    if state.country_filter:
        needle = state.country_filter.casefold()
        if needle not in record.country.casefold():
            return False
    if state.app_filter:
        needle = state.app_filter.casefold()
        if needle not in record.app.casefold() and needle not in record.app_id.casefold():
            return False
    if state.date_filter:
        needle = state.date_filter.casefold()
        if needle not in record.date_label.casefold() and needle not in record.date_key:
            return False
    return True


def sort_records(records: Sequence[NormalizedRecord], key: SortKey, direction: SortDirection) -> List[NormalizedRecord]:
    """Stable sort; ties keep their original relative order in both directions."""
    return sorted(
        records,
        key=_SORT_VALUES[key],
        reverse=direction == SortDirection.DESCENDING,
    )


def derive_view(records: Sequence[NormalizedRecord], state: ViewState) -> ViewResult:
    """
    Derive the visible slice for a view state.

    The page is clamped into [1, page_count], so a filter change can never
    leave the table on an empty page while earlier pages have rows.
    """
    filtered = [record for record in records if matches_filters(record, state)]
    ordered = sort_records(filtered, state.sort_key, state.sort_direction)

    page_count = page_count_for(len(ordered), state.page_size)
    clamped = state.go_to_page(state.page, page_count)
    start = (clamped.page - 1) * clamped.page_size
    page_rows = ordered[start:start + clamped.page_size]

    if clamped.page != state.page:
        logger.debug("[VIEW] Page %d clamped to %d of %d", state.page, clamped.page, page_count)

    unique_dates = sorted({record.date for record in records}, reverse=True)
    labels = {}
    for record in records:
        labels.setdefault(record.date, record.date_label)

    return ViewResult(
        state=clamped,
        page_rows=page_rows,
        page_count=page_count,
        filtered_count=len(ordered),
        total_count=len(records),
        first_index=start + 1 if page_rows else 0,
        last_index=start + len(page_rows),
        unique_countries=sorted({record.country for record in records}),
        unique_apps=sorted({record.app for record in records}),
        unique_dates=[labels[day] for day in unique_dates],
    )


def page_window(page: int, page_count: int, width: int = 5) -> List[int]:
    """Page numbers shown as pagination buttons, a window of `width` around the current page."""
    if page_count <= width:
        return list(range(1, page_count + 1))
    half = width // 2
    if page <= half + 1:
        first = 1
    elif page >= page_count - half:
        first = page_count - width + 1
    else:
        first = page - half
    return list(range(first, first + width))
