"""Walk the search result pages for one date range."""

from __future__ import annotations

from threading import Event
from typing import Any, Mapping

import structlog

from ..config.models import RetryPolicy
from .client import ListingClient
from .dedup import DedupCache
from .errors import FirstPageError, ListingApiError
from .models import RunReport, SearchPage
from .retry_engine import FetchRetryEngine


class PaginationDriver:
    """Sequentially request pages and hand unseen keys to the retry engine.

    A failing page after the first is logged and skipped. Page 0 is retried up
    to ``policy.first_page_attempts`` times because without it the page count
    is unknown; when it never succeeds the run aborts with ``FirstPageError``.
    """

    def __init__(
        self,
        client: ListingClient,
        cache: DedupCache,
        engine: FetchRetryEngine,
        policy: RetryPolicy,
        logger: structlog.BoundLogger | None = None,
        cancel_event: Event | None = None,
        page_size: int | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.engine = engine
        self.policy = policy
        self.logger = logger or structlog.get_logger("vacancy_harvester.pagination")
        self.cancel_event = cancel_event or Event()
        self.page_size = page_size
        self.filters = dict(filters) if filters else None

    def run(self, date_from: str, date_to: str) -> RunReport:
        report = RunReport(date_from=date_from, date_to=date_to)
        page_index = 0
        total_pages: int | None = None
        while True:
            if self.cancel_event.is_set():
                report.cancelled = True
                self.logger.info("pagination_cancelled", next_page=page_index)
                break
            page: SearchPage | None
            if total_pages is None:
                page = self._first_page(date_from, date_to)
                if page is None:
                    report.cancelled = True
                    break
                total_pages = page.total_pages
                report.pages_total = total_pages
                self.logger.info("total_pages", total_pages=total_pages, found=page.found)
            else:
                page = self._fetch_page(date_from, date_to, page_index)
                if page is None:
                    report.pages_failed += 1
            if page is not None:
                self._process_page(page, report)
            if self.cancel_event.is_set():
                # keys queued behind the cancel were dropped without an outcome
                report.cancelled = True
                self.logger.info("pagination_cancelled", next_page=page_index + 1)
                break
            if page_index >= total_pages - 1:
                break
            page_index += 1
        return report

    # ------------------------------------------------------------------
    def _search(self, date_from: str, date_to: str, page_index: int) -> SearchPage:
        return self.client.search_page(
            date_from, date_to, page_index, page_size=self.page_size, filters=self.filters
        )

    def _first_page(self, date_from: str, date_to: str) -> SearchPage | None:
        last_error: Exception | None = None
        for attempt in range(1, self.policy.first_page_attempts + 1):
            try:
                return self._search(date_from, date_to, 0)
            except ListingApiError as exc:
                last_error = exc
                self.logger.error("first_page_failed", attempt=attempt, error=str(exc))
            if attempt < self.policy.first_page_attempts and self.cancel_event.wait(
                self.policy.retry_delay
            ):
                return None
        raise FirstPageError(self.policy.first_page_attempts, last_error)

    def _fetch_page(self, date_from: str, date_to: str, page_index: int) -> SearchPage | None:
        try:
            return self._search(date_from, date_to, page_index)
        except ListingApiError as exc:
            self.logger.error("page_failed", page=page_index, error=str(exc))
            return None

    def _process_page(self, page: SearchPage, report: RunReport) -> None:
        unique = list(dict.fromkeys(page.keys))
        fresh = [key for key in unique if not self.cache.contains_key(key)]
        report.skipped_known += len(unique) - len(fresh)
        self.logger.info("page_fetched", page=page.page_index, keys=len(unique), new=len(fresh))
        outcomes = self.engine.process_all(fresh)
        report.merge(outcomes)
        report.pages_processed += 1


__all__ = ["PaginationDriver"]
