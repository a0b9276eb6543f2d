"""Engine components orchestrating search → fetch → dedup → store."""

from .errors import (
    ConfigurationError,
    DuplicateFingerprintError,
    FirstPageError,
    HarvesterError,
    HttpStatusError,
    ListingApiError,
    ParseError,
    StoreError,
    StoreUnavailableError,
    TransportError,
)
from .client import ListingClient
from .dedup import DedupCache
from .hashing import fingerprint
from .models import FetchOutcome, RunReport, SearchPage
from .pagination import PaginationDriver
from .retry_engine import FetchRetryEngine
from .thread_pool import WorkerPool

__all__ = [
    "ConfigurationError",
    "DedupCache",
    "DuplicateFingerprintError",
    "FetchOutcome",
    "FetchRetryEngine",
    "FirstPageError",
    "HarvesterError",
    "HttpStatusError",
    "ListingApiError",
    "ListingClient",
    "PaginationDriver",
    "ParseError",
    "RunReport",
    "SearchPage",
    "StoreError",
    "StoreUnavailableError",
    "TransportError",
    "WorkerPool",
    "fingerprint",
]
