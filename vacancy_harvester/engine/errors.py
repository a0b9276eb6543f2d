"""Exception hierarchy shared by the ingestion engine and its adapters."""

from __future__ import annotations


class HarvesterError(Exception):
    """Base class for every error raised by vacancy-harvester."""


class ConfigurationError(HarvesterError):
    """Required settings are missing or invalid; fatal at startup."""


class ListingApiError(HarvesterError):
    """Base class for search-page failures reported by the listing client."""


class TransportError(ListingApiError):
    """Network or connection failure before a response was received."""


class ParseError(ListingApiError):
    """The response body could not be decoded into the expected shape."""


class HttpStatusError(ListingApiError):
    """The API answered with a non-200 status."""

    def __init__(self, status_code: int, url: str | None = None) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"Unexpected HTTP status {status_code}" + (f" for {url}" if url else ""))


class StoreError(HarvesterError):
    """A write or read against the document store failed."""


class StoreUnavailableError(StoreError):
    """The store could not be reached while starting a run."""


class DuplicateFingerprintError(StoreError):
    """Another listing already owns this description fingerprint."""

    def __init__(self, key: str, fingerprint: str) -> None:
        self.key = key
        self.fingerprint = fingerprint
        super().__init__(f"description_hash {fingerprint} already stored under another id (key {key})")


class FirstPageError(HarvesterError):
    """Page 0 kept failing, so the total page count is unknown."""

    def __init__(self, attempts: int, cause: Exception | None = None) -> None:
        self.attempts = attempts
        super().__init__(f"First search page failed after {attempts} attempts: {cause}")


__all__ = [
    "ConfigurationError",
    "DuplicateFingerprintError",
    "FirstPageError",
    "HarvesterError",
    "HttpStatusError",
    "ListingApiError",
    "ParseError",
    "StoreError",
    "StoreUnavailableError",
    "TransportError",
]
