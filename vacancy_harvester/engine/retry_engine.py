"""Bounded-concurrency detail fetching with fixed-delay retries."""

from __future__ import annotations

from threading import Event
from typing import Iterable

import structlog

from ..config.models import RetryPolicy
from .client import ListingClient
from .dedup import DedupCache
from .errors import DuplicateFingerprintError, StoreError
from .hashing import fingerprint
from .models import (
    DetailFetch,
    DetailPayload,
    DetailRecord,
    FetchOutcome,
    InvalidPayload,
    ListingKey,
    NotFound,
    RateLimited,
    Transient,
)
from .store.base import ListingStore
from .thread_pool import WorkerPool

DESCRIPTION_FIELD = "description"


class FetchRetryEngine:
    """Fetch, dedup and store each key, retrying throttled or transient failures.

    Store failures consume the same attempt budget as fetch failures, so a key
    is attempted at most ``1 + policy.max_retries`` times in total.
    """

    def __init__(
        self,
        client: ListingClient,
        cache: DedupCache,
        store: ListingStore,
        policy: RetryPolicy,
        pool: WorkerPool,
        logger: structlog.BoundLogger | None = None,
        cancel_event: Event | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.store = store
        self.policy = policy
        self.pool = pool
        self.logger = logger or structlog.get_logger("vacancy_harvester.engine")
        self.cancel_event = cancel_event or Event()

    def process_all(self, keys: Iterable[ListingKey]) -> dict[ListingKey, FetchOutcome]:
        unique = list(dict.fromkeys(keys))
        if not unique:
            return {}
        return self.pool.run(self.process_one, unique, self.cancel_event)

    def process_one(self, key: ListingKey) -> FetchOutcome:
        try:
            outcome, attempts = self._process(key)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("listing_error", key=key, error=str(exc), exc_info=True)
            return FetchOutcome.FAILED
        log = self.logger.warning if outcome is FetchOutcome.FAILED else self.logger.info
        log("listing_outcome", key=key, outcome=outcome.value, attempts=attempts)
        return outcome

    # ------------------------------------------------------------------
    def _process(self, key: ListingKey) -> tuple[FetchOutcome, int]:
        attempts = 0
        while True:
            attempts += 1
            outcome, reason = self._handle(key, self.client.fetch_detail(key))
            if outcome is not None:
                return outcome, attempts
            if attempts > self.policy.max_retries:
                self.logger.warning("max_retries_reached", key=key, attempts=attempts, reason=reason)
                return FetchOutcome.FAILED, attempts
            self.logger.info(
                "listing_retry", key=key, attempt=attempts, reason=reason, delay=self.policy.retry_delay
            )
            if self.cancel_event.wait(self.policy.retry_delay):
                self.logger.info("listing_retry_cancelled", key=key, attempts=attempts)
                return FetchOutcome.FAILED, attempts

    def _handle(self, key: ListingKey, result: DetailFetch) -> tuple[FetchOutcome | None, str | None]:
        """Map a fetch result to a terminal outcome, or ``None`` plus a retry reason."""

        if isinstance(result, NotFound):
            return FetchOutcome.SKIPPED_NOT_FOUND, None
        if isinstance(result, RateLimited):
            return None, f"rate limited ({result.status_code})"
        if isinstance(result, Transient):
            return None, result.reason
        if isinstance(result, InvalidPayload):
            self.logger.warning("listing_invalid_payload", key=key, reason=result.reason)
            return FetchOutcome.SKIPPED_INVALID, None
        if isinstance(result, DetailPayload):
            return self._store(key, result.payload)
        raise TypeError(f"Unhandled detail result: {result!r}")

    def _store(self, key: ListingKey, payload: dict) -> tuple[FetchOutcome | None, str | None]:
        description = payload.get(DESCRIPTION_FIELD)
        if not isinstance(description, str) or not description:
            self.logger.warning("listing_missing_description", key=key)
            return FetchOutcome.SKIPPED_INVALID, None
        digest = fingerprint(description)
        if self.cache.contains_fingerprint(digest):
            return FetchOutcome.SKIPPED_DUPLICATE, None
        record = DetailRecord(
            key=key, attributes=payload, description_text=description, content_fingerprint=digest
        )
        try:
            self.store.upsert(key, record.to_document())
        except DuplicateFingerprintError:
            self.cache.remember_fingerprint(digest)
            return FetchOutcome.SKIPPED_DUPLICATE, None
        except StoreError as exc:
            return None, f"store: {exc}"
        self.cache.record_accepted(key, digest)
        return FetchOutcome.STORED, None


__all__ = ["DESCRIPTION_FIELD", "FetchRetryEngine"]
