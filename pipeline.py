"""
Report pipeline: fetch -> validate -> normalize -> aggregate.

A DashboardSession owns the data of one dashboard view. Every load bumps a
generation counter; a load that finishes after a newer one has started is not
committed, so a slow response can never overwrite fresher data.
"""

import asyncio
import datetime
import logging
from typing import Any, Optional

from aggregator import aggregate, daily_series
from error_handling import FetchFailure
from models import DashboardResult
from report_normalizer import normalize_report

logger = logging.getLogger(__name__)


def build_result(
    raw_report: Any,
    start_date: datetime.date,
    end_date: datetime.date,
    generation: int = 0,
    locale: str = "en",
) -> DashboardResult:
    """Run the pure stages of the pipeline over a raw report."""
    records, skipped = normalize_report(raw_report, locale)
    if not records:
        logger.info("[PIPELINE] No records for %s to %s", start_date, end_date)
    return DashboardResult(
        start_date=start_date,
        end_date=end_date,
        generation=generation,
        records=records,
        aggregates=aggregate(records),
        daily=daily_series(records),
        skipped_items=skipped,
        locale=locale,
    )


class DashboardSession:
    """Holds the latest committed report of one dashboard view."""

    def __init__(self, client, locale: str = "en"):
        self.client = client
        self.locale = locale
        self._generation = 0
        self._result: Optional[DashboardResult] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current(self) -> Optional[DashboardResult]:
        return self._result

    def fetch_raw(self, start_date: datetime.date, end_date: datetime.date) -> Any:
        account = self.client.fetch_account()
        return self.client.generate_report(account.name, start_date, end_date)

    async def load(self, start_date: datetime.date, end_date: datetime.date) -> DashboardResult:
        """
        Fetch and process a date range.

        Collaborator failures become a result carrying the error message, so the
        caller always receives something renderable. The result is committed to
        the session only if no newer load started in the meantime.
        """
        self._generation += 1
        generation = self._generation
        logger.info("[PIPELINE] Load %d started for %s to %s", generation, start_date, end_date)

        try:
            raw_report = await asyncio.to_thread(self.fetch_raw, start_date, end_date)
        except FetchFailure as exc:
            logger.error("[PIPELINE] Load %d failed: %s", generation, exc)
            result = DashboardResult(
                start_date=start_date,
                end_date=end_date,
                generation=generation,
                error=str(exc),
                locale=self.locale,
            )
        else:
            result = build_result(raw_report, start_date, end_date, generation, self.locale)

        if generation != self._generation:
            logger.info(
                "[PIPELINE] Load %d superseded by load %d, result not committed",
                generation,
                self._generation,
            )
            return result

        self._result = result
        return result

    async def ensure_loaded(
        self,
        start_date: datetime.date,
        end_date: datetime.date,
        refresh: bool = False,
    ) -> DashboardResult:
        """Reuse the committed result for the same range unless it holds an error or a refresh is requested."""
        current = self._result
        if (
            not refresh
            and current is not None
            and current.error is None
            and current.start_date == start_date
            and current.end_date == end_date
        ):
            return current
        return await self.load(start_date, end_date)
