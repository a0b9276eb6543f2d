"""Value objects passed between the listing client, engine and driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Union

ListingKey = str


@dataclass(slots=True)
class SearchPage:
    """Keys extracted from one search response."""

    keys: list[ListingKey]
    page_index: int
    total_pages: int
    found: int = 0


@dataclass(slots=True)
class DetailRecord:
    """A fetched listing ready to be stored."""

    key: ListingKey
    attributes: dict[str, Any]
    description_text: str
    content_fingerprint: str

    def to_document(self) -> dict[str, Any]:
        document = dict(self.attributes)
        document.setdefault("id", self.key)
        document["description_hash"] = self.content_fingerprint
        return document


# ----------------------------------------------------------------------
# Detail fetch results
# ----------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class DetailPayload:
    payload: dict[str, Any]


@dataclass(slots=True, frozen=True)
class NotFound:
    pass


@dataclass(slots=True, frozen=True)
class RateLimited:
    status_code: int


@dataclass(slots=True, frozen=True)
class Transient:
    reason: str


@dataclass(slots=True, frozen=True)
class InvalidPayload:
    reason: str


DetailFetch = Union[DetailPayload, NotFound, RateLimited, Transient, InvalidPayload]


class FetchOutcome(str, Enum):
    """Terminal state of one listing key within a run."""

    STORED = "stored"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_NOT_FOUND = "skipped_not_found"
    SKIPPED_INVALID = "skipped_invalid"
    FAILED = "failed"


def _empty_counts() -> dict[FetchOutcome, int]:
    return {outcome: 0 for outcome in FetchOutcome}


@dataclass
class RunReport:
    """Outcome counters for one date range."""

    date_from: str
    date_to: str
    counts: dict[FetchOutcome, int] = field(default_factory=_empty_counts)
    pages_total: int = 0
    pages_processed: int = 0
    pages_failed: int = 0
    skipped_known: int = 0
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def stored(self) -> int:
        return self.counts[FetchOutcome.STORED]

    @property
    def failed(self) -> int:
        return self.counts[FetchOutcome.FAILED]

    def record(self, outcome: FetchOutcome, amount: int = 1) -> None:
        self.counts[outcome] += amount

    def merge(self, outcomes: Mapping[ListingKey, FetchOutcome] | Iterable[FetchOutcome]) -> None:
        values = outcomes.values() if isinstance(outcomes, Mapping) else outcomes
        for outcome in values:
            self.record(outcome)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {outcome.value: count for outcome, count in self.counts.items()}
        payload.update(
            {
                "date_from": self.date_from,
                "date_to": self.date_to,
                "pages_total": self.pages_total,
                "pages_processed": self.pages_processed,
                "pages_failed": self.pages_failed,
                "skipped_known": self.skipped_known,
                "elapsed": round(self.elapsed, 3),
                "cancelled": self.cancelled,
            }
        )
        return payload


__all__ = [
    "DetailFetch",
    "DetailPayload",
    "DetailRecord",
    "FetchOutcome",
    "InvalidPayload",
    "ListingKey",
    "NotFound",
    "RateLimited",
    "RunReport",
    "SearchPage",
    "Transient",
]
