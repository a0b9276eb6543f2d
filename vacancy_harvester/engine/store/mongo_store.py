"""MongoDB implementation of the listing store."""

from __future__ import annotations

from typing import Any

import structlog
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..errors import DuplicateFingerprintError, StoreError, StoreUnavailableError
from .base import ListingStore

KEY_FIELD = "id"
FINGERPRINT_FIELD = "description_hash"


class MongoListingStore(ListingStore):
    """Upsert listings into one collection keyed by the API id."""

    def __init__(
        self,
        uri: str,
        database: str,
        collection: str,
        server_selection_timeout_ms: int = 5000,
        client: MongoClient | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.client = client or MongoClient(uri, serverSelectionTimeoutMS=server_selection_timeout_ms)
        self.collection: Collection = self.client[database][collection]
        self.logger = logger or structlog.get_logger("vacancy_harvester.store")

    def ping(self) -> None:
        try:
            self.client.admin.command("ping")
        except PyMongoError as exc:
            raise StoreUnavailableError(f"MongoDB connection error: {exc}") from exc

    def ensure_indexes(self) -> None:
        try:
            self.collection.create_index([(KEY_FIELD, ASCENDING)], unique=True, name="id_unique")
            self.collection.create_index(
                [(FINGERPRINT_FIELD, ASCENDING)],
                unique=True,
                sparse=True,
                name="description_hash_unique",
            )
        except PyMongoError as exc:
            raise StoreError(f"Failed to create indexes: {exc}") from exc

    def load_key_fingerprint_projection(self) -> list[tuple[str, str | None]]:
        pairs: list[tuple[str, str | None]] = []
        try:
            cursor = self.collection.find({}, projection={KEY_FIELD: 1, FINGERPRINT_FIELD: 1, "_id": 0})
            for doc in cursor:
                key = doc.get(KEY_FIELD)
                if key in (None, ""):
                    continue
                digest = doc.get(FINGERPRINT_FIELD)
                pairs.append((str(key), digest if isinstance(digest, str) and digest else None))
        except PyMongoError as exc:
            raise StoreError(f"Failed to fetch existing vacancies: {exc}") from exc
        return pairs

    def upsert(self, key: str, record: dict[str, Any]) -> None:
        document = dict(record)
        document[KEY_FIELD] = key
        document.pop("_id", None)
        try:
            self.collection.update_one({KEY_FIELD: key}, {"$set": document}, upsert=True)
        except DuplicateKeyError as exc:
            if self._is_fingerprint_conflict(exc):
                raise DuplicateFingerprintError(key, str(document.get(FINGERPRINT_FIELD))) from exc
            raise StoreError(f"Duplicate id on upsert for {key}: {exc}") from exc
        except PyMongoError as exc:
            raise StoreError(f"MongoDB upsert failed for {key}: {exc}") from exc

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def _is_fingerprint_conflict(exc: DuplicateKeyError) -> bool:
        details = exc.details or {}
        pattern = details.get("keyPattern") or {}
        if FINGERPRINT_FIELD in pattern:
            return True
        return FINGERPRINT_FIELD in str(exc)


__all__ = ["FINGERPRINT_FIELD", "KEY_FIELD", "MongoListingStore"]
