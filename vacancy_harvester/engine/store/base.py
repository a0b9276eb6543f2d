"""Store contract the ingestion engine writes through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable


class ListingStore(ABC):
    """Keyed document store with unique ``id`` and ``description_hash``.

    ``upsert`` must raise ``DuplicateFingerprintError`` when the fingerprint
    belongs to a different id and ``StoreError`` for any other failure.
    """

    @abstractmethod
    def load_key_fingerprint_projection(self) -> Iterable[tuple[str, str | None]]:
        """Return ``(id, description_hash)`` for every stored listing."""

    @abstractmethod
    def upsert(self, key: str, record: dict[str, Any]) -> None:
        """Insert or replace the document whose ``id`` equals ``key``."""

    def ensure_indexes(self) -> None:
        """Create uniqueness constraints when the backend needs them."""

    def ping(self) -> None:
        """Raise ``StoreUnavailableError`` if the backend cannot be reached."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["ListingStore"]
