"""Shared fixtures: in-memory store, scripted API client and configs."""

from __future__ import annotations

import json
from collections import defaultdict, deque
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable

import httpx
import pytest

from vacancy_harvester.config import (
    ApiConfig,
    ConfigLocator,
    ConfigRepository,
    HarvestConfig,
    RetryPolicy,
    StoreConfig,
)
from vacancy_harvester.engine import ListingClient, SearchPage
from vacancy_harvester.engine.errors import DuplicateFingerprintError, StoreError
from vacancy_harvester.engine.models import DetailFetch, DetailPayload
from vacancy_harvester.engine.store import ListingStore


class MemoryStore(ListingStore):
    """ListingStore keeping documents in a dict with both unique constraints."""

    def __init__(self, seed: Iterable[dict[str, Any]] = ()) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.upsert_calls: list[str] = []
        self.failures: dict[str, int] = defaultdict(int)
        self.closed = False
        self.indexes_ensured = False
        self._lock = Lock()
        for doc in seed:
            self.documents[str(doc["id"])] = dict(doc)

    def fail_next(self, key: str, times: int = 1) -> None:
        self.failures[key] += times

    def load_key_fingerprint_projection(self) -> list[tuple[str, str | None]]:
        return [(key, doc.get("description_hash")) for key, doc in self.documents.items()]

    def upsert(self, key: str, record: dict[str, Any]) -> None:
        with self._lock:
            self.upsert_calls.append(key)
            if self.failures[key] > 0:
                self.failures[key] -= 1
                raise StoreError(f"write failed for {key}")
            digest = record.get("description_hash")
            for other_key, doc in self.documents.items():
                if other_key != key and digest and doc.get("description_hash") == digest:
                    raise DuplicateFingerprintError(key, digest)
            self.documents[key] = dict(record)

    def ensure_indexes(self) -> None:
        self.indexes_ensured = True

    def close(self) -> None:
        self.closed = True


class ScriptedClient:
    """Stand-in for ListingClient returning queued results per key."""

    def __init__(
        self,
        details: dict[str, list[DetailFetch]] | None = None,
        pages: list[SearchPage | Exception] | None = None,
    ) -> None:
        self._details = {key: deque(results) for key, results in (details or {}).items()}
        self._pages = list(pages or [])
        self.detail_calls: list[str] = []
        self.search_calls: list[int] = []
        self.closed = False
        self._lock = Lock()

    def fetch_detail(self, key: str) -> DetailFetch:
        with self._lock:
            self.detail_calls.append(key)
            queue = self._details[key]
            return queue.popleft() if len(queue) > 1 else queue[0]

    def search_page(self, date_from, date_to, page_index, page_size=None, filters=None) -> SearchPage:
        self.search_calls.append(page_index)
        result = self._pages[min(len(self.search_calls), len(self._pages)) - 1]
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        self.closed = True

    def attempts(self, key: str) -> int:
        return self.detail_calls.count(key)


def payload(key: str, description: str | None = "Python developer", **extra: Any) -> DetailPayload:
    body: dict[str, Any] = {"id": key, "name": f"Vacancy {key}", **extra}
    if description is not None:
        body["description"] = description
    return DetailPayload(payload=body)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, retry_delay=0, first_page_attempts=3)


@pytest.fixture
def harvest_config() -> HarvestConfig:
    config = HarvestConfig(
        api=ApiConfig(base_url="https://api.test", per_page=1),
        retry=RetryPolicy(max_retries=3, retry_delay=0, first_page_attempts=2),
        store=StoreConfig(mongo_uri="mongodb://localhost:27017"),
        concurrency=4,
    )
    config.api.bearer_token = "secret-token"
    return config


@pytest.fixture
def mock_api_client(harvest_config: HarvestConfig) -> Callable[[Callable[[httpx.Request], httpx.Response]], ListingClient]:
    """Build a ListingClient whose transport is the given handler."""

    def _builder(handler: Callable[[httpx.Request], httpx.Response]) -> ListingClient:
        transport = httpx.MockTransport(handler)
        return ListingClient(harvest_config.api, client=httpx.Client(transport=transport))

    return _builder


def json_response(status: int, body: Any) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(body).encode("utf-8"), headers={"Content-Type": "application/json"})


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("VACANCY_HARVESTER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    return ConfigRepository(locator, environ={})


@pytest.fixture
def make_store() -> type[MemoryStore]:
    return MemoryStore


@pytest.fixture
def make_client() -> type[ScriptedClient]:
    return ScriptedClient


@pytest.fixture
def detail_payload() -> Callable[..., DetailPayload]:
    return payload


@pytest.fixture
def respond() -> Callable[[int, Any], httpx.Response]:
    return json_response
