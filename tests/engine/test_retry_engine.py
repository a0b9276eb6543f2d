from __future__ import annotations

import time
from threading import Event, Lock

import pytest

from vacancy_harvester.config import RetryPolicy
from vacancy_harvester.engine import DedupCache, FetchOutcome, FetchRetryEngine, WorkerPool, fingerprint
from vacancy_harvester.engine.models import InvalidPayload, NotFound, RateLimited, Transient

_pools: list[WorkerPool] = []


@pytest.fixture(autouse=True)
def _shutdown_pools():
    yield
    while _pools:
        _pools.pop().shutdown()


def build_engine(client, store, policy, cache=None, width=4, cancel_event=None):
    pool = WorkerPool(width)
    _pools.append(pool)
    return FetchRetryEngine(
        client,
        cache or DedupCache(),
        store,
        policy,
        pool,
        cancel_event=cancel_event,
    )


def test_not_found_is_attempted_once(make_client, memory_store, retry_policy) -> None:
    client = make_client({"1": [NotFound()]})
    outcomes = build_engine(client, memory_store, retry_policy).process_all(["1"])
    assert outcomes == {"1": FetchOutcome.SKIPPED_NOT_FOUND}
    assert client.attempts("1") == 1
    assert memory_store.upsert_calls == []


def test_transient_twice_then_success_is_stored(make_client, memory_store, retry_policy, detail_payload) -> None:
    client = make_client({"1": [Transient("http 502"), RateLimited(429), detail_payload("1")]})
    outcomes = build_engine(client, memory_store, retry_policy).process_all(["1"])
    assert outcomes == {"1": FetchOutcome.STORED}
    assert client.attempts("1") == 3
    assert memory_store.documents["1"]["description_hash"] == fingerprint("Python developer")


def test_retries_exhausted_marks_failed(make_client, memory_store, detail_payload) -> None:
    policy = RetryPolicy(max_retries=2, retry_delay=0)
    client = make_client({"1": [Transient("http 500")]})
    outcomes = build_engine(client, memory_store, policy).process_all(["1"])
    assert outcomes == {"1": FetchOutcome.FAILED}
    assert client.attempts("1") == 3


def test_missing_or_empty_description_is_invalid(make_client, memory_store, retry_policy, detail_payload) -> None:
    client = make_client(
        {
            "1": [detail_payload("1", description=None)],
            "2": [detail_payload("2", description="")],
            "3": [detail_payload("3", description=12345)],
            "4": [InvalidPayload("detail body is not a JSON object")],
        }
    )
    outcomes = build_engine(client, memory_store, retry_policy).process_all(["1", "2", "3", "4"])
    assert set(outcomes.values()) == {FetchOutcome.SKIPPED_INVALID}
    assert all(client.attempts(key) == 1 for key in "1234")
    assert memory_store.documents == {}


def test_identical_descriptions_store_only_once(make_client, memory_store, retry_policy, detail_payload) -> None:
    client = make_client(
        {
            "a": [detail_payload("a", description="Same text")],
            "b": [detail_payload("b", description="Same text")],
        }
    )
    outcomes = build_engine(client, memory_store, retry_policy, width=2).process_all(["a", "b"])
    assert sorted(outcome.value for outcome in outcomes.values()) == ["skipped_duplicate", "stored"]
    assert len(memory_store.documents) == 1


def test_identical_descriptions_regardless_of_order(make_client, make_store, retry_policy, detail_payload) -> None:
    for order in (["a", "b"], ["b", "a"]):
        store = make_store()
        client = make_client(
            {
                "a": [detail_payload("a", description="Same text")],
                "b": [detail_payload("b", description="Same text")],
            }
        )
        outcomes = build_engine(client, store, retry_policy, width=1).process_all(order)
        assert outcomes[order[0]] is FetchOutcome.STORED
        assert outcomes[order[1]] is FetchOutcome.SKIPPED_DUPLICATE


def test_known_fingerprint_skips_store_write(make_client, memory_store, retry_policy, detail_payload) -> None:
    cache = DedupCache()
    cache.seed([("old", fingerprint("Python developer"))])
    client = make_client({"new": [detail_payload("new")]})
    outcomes = build_engine(client, memory_store, retry_policy, cache=cache).process_all(["new"])
    assert outcomes == {"new": FetchOutcome.SKIPPED_DUPLICATE}
    assert memory_store.upsert_calls == []


def test_store_conflict_from_race_is_duplicate(make_client, make_store, retry_policy, detail_payload) -> None:
    # The cache has not seen this fingerprint yet, but the store has.
    store = make_store([{"id": "old", "description": "Python developer", "description_hash": fingerprint("Python developer")}])
    cache = DedupCache()
    client = make_client({"new": [detail_payload("new")]})
    outcomes = build_engine(client, store, retry_policy, cache=cache).process_all(["new"])
    assert outcomes == {"new": FetchOutcome.SKIPPED_DUPLICATE}
    assert cache.contains_fingerprint(fingerprint("Python developer"))
    assert not cache.contains_key("new")


def test_store_failures_share_attempt_budget(make_client, memory_store, detail_payload) -> None:
    policy = RetryPolicy(max_retries=3, retry_delay=0)
    client = make_client({"1": [Transient("http 503"), detail_payload("1")]})
    memory_store.fail_next("1", times=2)
    outcomes = build_engine(client, memory_store, policy).process_all(["1"])
    assert outcomes == {"1": FetchOutcome.STORED}
    assert client.attempts("1") == 4

    client = make_client({"2": [Transient("http 503"), detail_payload("2")]})
    memory_store.fail_next("2", times=3)
    outcomes = build_engine(client, memory_store, policy).process_all(["2"])
    assert outcomes == {"2": FetchOutcome.FAILED}
    assert client.attempts("2") == 4


def test_accepted_record_updates_cache(make_client, memory_store, retry_policy, detail_payload) -> None:
    cache = DedupCache()
    client = make_client({"1": [detail_payload("1", description="Unique")]})
    build_engine(client, memory_store, retry_policy, cache=cache).process_all(["1"])
    assert cache.contains_key("1")
    assert cache.contains_fingerprint(fingerprint("Unique"))


def test_unexpected_worker_error_is_contained(make_client, memory_store, retry_policy, detail_payload) -> None:
    client = make_client({"ok": [detail_payload("ok")]})
    # "boom" has no scripted result so the client raises KeyError
    outcomes = build_engine(client, memory_store, retry_policy).process_all(["boom", "ok"])
    assert outcomes == {"boom": FetchOutcome.FAILED, "ok": FetchOutcome.STORED}


def test_duplicate_keys_are_processed_once(make_client, memory_store, retry_policy, detail_payload) -> None:
    client = make_client({"1": [detail_payload("1")]})
    outcomes = build_engine(client, memory_store, retry_policy).process_all(["1", "1", "1"])
    assert outcomes == {"1": FetchOutcome.STORED}
    assert client.attempts("1") == 1


def test_in_flight_detail_calls_bounded_by_width(memory_store, retry_policy, detail_payload) -> None:
    lock = Lock()
    state = {"active": 0, "peak": 0}

    class SlowClient:
        def fetch_detail(self, key: str):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.005)
            with lock:
                state["active"] -= 1
            return detail_payload(key, description=f"text {key}")

    keys = [str(i) for i in range(60)]
    outcomes = build_engine(SlowClient(), memory_store, retry_policy, width=5).process_all(keys)
    assert state["peak"] <= 5
    assert list(outcomes.values()).count(FetchOutcome.STORED) == 60


def test_cancel_during_retry_wait_fails_key(memory_store) -> None:
    cancel = Event()
    policy = RetryPolicy(max_retries=3, retry_delay=30)

    class CancellingClient:
        calls = 0

        def fetch_detail(self, key: str):
            CancellingClient.calls += 1
            cancel.set()
            return Transient("http 503")

    started = time.monotonic()
    outcomes = build_engine(CancellingClient(), memory_store, policy, cancel_event=cancel).process_all(["1"])
    assert outcomes == {"1": FetchOutcome.FAILED}
    assert CancellingClient.calls == 1
    assert time.monotonic() - started < 5
