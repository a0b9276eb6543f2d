"""Run orchestrator wiring client, cache, engine, driver and store."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, timedelta
from threading import Event
from typing import Callable

import structlog

from .config import ApiConfig, HarvestConfig
from .engine import (
    DedupCache,
    FetchRetryEngine,
    HarvesterError,
    ListingClient,
    PaginationDriver,
    RunReport,
    StoreUnavailableError,
    WorkerPool,
)
from .engine.store import ListingStore, MongoListingStore
from .logging_conf import component_logger

StoreFactory = Callable[[HarvestConfig], ListingStore]
ClientFactory = Callable[[ApiConfig], ListingClient]


def _mongo_store(config: HarvestConfig) -> ListingStore:
    return MongoListingStore(
        uri=config.store.mongo_uri,
        database=config.store.database,
        collection=config.store.collection,
        server_selection_timeout_ms=config.store.server_selection_timeout_ms,
        logger=component_logger("store"),
    )


def _listing_client(api: ApiConfig) -> ListingClient:
    return ListingClient(api, logger=component_logger("client"))


@dataclass(slots=True)
class BackfillResult:
    """One day of a backfill: either a report or the fatal error it hit."""

    date_from: date
    date_to: date
    report: RunReport | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Orchestrator:
    """Central coordinator executing one ingestion run per date range."""

    def __init__(
        self,
        config: HarvestConfig,
        store_factory: StoreFactory | None = None,
        client_factory: ClientFactory | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.store_factory = store_factory or _mongo_store
        self.client_factory = client_factory or _listing_client
        self.logger = logger or component_logger("orchestrator")

    # ------------------------------------------------------------------
    def run(self, date_from: date, date_to: date, cancel_event: Event | None = None) -> RunReport:
        if date_to < date_from:
            raise ValueError("date_to must not be earlier than date_from")
        cancel_event = cancel_event or Event()
        started = time.monotonic()
        run_log = self.logger.bind(date_from=date_from.isoformat(), date_to=date_to.isoformat())
        run_log.info("run_started", concurrency=self.config.concurrency)

        store = self._open_store()
        client: ListingClient | None = None
        pool: WorkerPool | None = None
        try:
            client = self.client_factory(self.config.api)
            pool = WorkerPool(self.config.concurrency)
            cache = DedupCache()
            cache.seed(store.load_key_fingerprint_projection())
            run_log.info("dedup_cache_loaded", **cache.stats())
            engine = FetchRetryEngine(
                client,
                cache,
                store,
                self.config.retry,
                pool,
                logger=component_logger("engine", date_from=date_from.isoformat()),
                cancel_event=cancel_event,
            )
            driver = PaginationDriver(
                client,
                cache,
                engine,
                self.config.retry,
                logger=component_logger("pagination", date_from=date_from.isoformat()),
                cancel_event=cancel_event,
            )
            report = driver.run(date_from.isoformat(), date_to.isoformat())
        finally:
            if pool is not None:
                pool.shutdown()
            if client is not None:
                client.close()
            store.close()
        report.elapsed = time.monotonic() - started
        run_log.info("run_finished", **report.as_dict())
        return report

    def backfill(
        self,
        days: int,
        today: date | None = None,
        cancel_event: Event | None = None,
    ) -> list[BackfillResult]:
        """Run one-day windows for the last ``days`` days, newest first."""

        cancel_event = cancel_event or Event()
        today = today or date.today()
        results: list[BackfillResult] = []
        for offset in range(1, days + 1):
            if cancel_event.is_set():
                self.logger.info("backfill_cancelled", remaining=days - offset + 1)
                break
            window_from = today - timedelta(days=offset)
            window_to = today - timedelta(days=offset - 1)
            result = BackfillResult(date_from=window_from, date_to=window_to)
            try:
                result.report = self.run(window_from, window_to, cancel_event)
            except HarvesterError as exc:
                self.logger.error(
                    "backfill_day_failed",
                    date_from=window_from.isoformat(),
                    date_to=window_to.isoformat(),
                    error=str(exc),
                )
                result.error = str(exc)
            results.append(result)
        return results

    def run_daily(self, cancel_event: Event | None = None, today: date | None = None) -> RunReport | None:
        """Scheduled entrypoint covering ``[yesterday, today]``."""

        window_from, window_to = daily_window(today)
        try:
            return self.run(window_from, window_to, cancel_event)
        except HarvesterError as exc:
            self.logger.error("daily_run_failed", error=str(exc))
            return None

    # ------------------------------------------------------------------
    def _open_store(self) -> ListingStore:
        store = self.store_factory(self.config)
        try:
            store.ping()
            store.ensure_indexes()
        except HarvesterError:
            store.close()
            raise
        except Exception as exc:  # noqa: BLE001
            store.close()
            raise StoreUnavailableError(str(exc)) from exc
        return store


def daily_window(today: date | None = None) -> tuple[date, date]:
    today = today or date.today()
    return today - timedelta(days=1), today


__all__ = ["BackfillResult", "Orchestrator", "daily_window"]
