"""Fixed-width worker pool used for detail fetching."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from threading import Event, Lock
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

_NOT_STARTED = object()


class WorkerPool:
    """Run one task per key on at most ``width`` threads.

    The executor is created lazily and reused across pages. Tasks queued
    behind a set ``cancel_event`` are dropped without running; tasks already
    running are left to finish.
    """

    def __init__(self, width: int = 10, name: str = "harvester") -> None:
        if width < 1:
            raise ValueError("worker pool width must be >= 1")
        self.width = width
        self.name = name
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.width, thread_name_prefix=self.name
                )
            return self._executor

    def run(
        self,
        task: Callable[[str], T],
        keys: Iterable[str],
        cancel_event: Event | None = None,
    ) -> dict[str, T]:
        executor = self._get_executor()

        def _guarded(key: str):
            if cancel_event is not None and cancel_event.is_set():
                return _NOT_STARTED
            return task(key)

        futures: dict[Future, str] = {executor.submit(_guarded, key): key for key in keys}
        results: dict[str, T] = {}
        for future in as_completed(futures):
            value = future.result()
            if value is not _NOT_STARTED:
                results[futures[future]] = value
        return results

    def shutdown(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


__all__ = ["WorkerPool"]
