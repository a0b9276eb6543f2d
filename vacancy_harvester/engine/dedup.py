"""In-memory key/fingerprint cache seeded from the document store."""

from __future__ import annotations

from threading import Lock
from typing import Iterable


class DedupCache:
    """Known listing ids and description fingerprints for the current process.

    Advisory only: the store's unique indexes remain the real guarantee. Every
    public method is atomic, so concurrent workers observe an accepted
    fingerprint as soon as ``record_accepted`` returns.
    """

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._fingerprints: set[str] = set()
        self._lock = Lock()

    def seed(self, pairs: Iterable[tuple[str, str | None]]) -> None:
        with self._lock:
            for key, fingerprint in pairs:
                if key:
                    self._keys.add(key)
                if fingerprint:
                    self._fingerprints.add(fingerprint)

    def contains_key(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    def contains_fingerprint(self, fingerprint: str) -> bool:
        with self._lock:
            return fingerprint in self._fingerprints

    def record_accepted(self, key: str, fingerprint: str) -> None:
        with self._lock:
            self._keys.add(key)
            self._fingerprints.add(fingerprint)

    def remember_fingerprint(self, fingerprint: str) -> None:
        with self._lock:
            self._fingerprints.add(fingerprint)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"keys": len(self._keys), "fingerprints": len(self._fingerprints)}


__all__ = ["DedupCache"]
