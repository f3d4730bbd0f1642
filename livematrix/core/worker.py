from __future__ import annotations
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable

from livematrix.core.snapshot import DataSnapshot
from livematrix.core.store import FetchResult, SharedStore
from livematrix.errors import FetchError, ParseError

log = logging.getLogger(__name__)


class FetchWorker:
    """One fetch+parse cycle for one source. Never touches render state."""

    def __init__(self, source_id: str, fetch: Callable[[], DataSnapshot]):
        self.source_id = source_id
        self.fetch = fetch

    def run(self) -> FetchResult:
        log.debug("Fetching %s", self.source_id)
        try:
            snapshot = self.fetch()
        except FetchError as e:
            return e
        except Exception as e:
            log.exception("Unexpected error while fetching %s", self.source_id)
            return FetchError(f"{self.source_id}: {type(e).__name__}: {e}")
        if not isinstance(snapshot, DataSnapshot):
            return ParseError(f"{self.source_id}: fetch returned {type(snapshot).__name__}, not a snapshot")
        if snapshot.source_id != self.source_id:
            return ParseError(f"{self.source_id}: fetch returned a snapshot for {snapshot.source_id!r}")
        return snapshot


class FetchSupervisor:
    """Spawns workers off the render path and enforces single-flight per source."""

    def __init__(self, store: SharedStore, executor: Executor | None = None, max_workers: int = 4):
        self.store = store
        self._own_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=max(1, int(max_workers)), thread_name_prefix="fetch")

    def submit(self, source_id: str, fetch: Callable[[], DataSnapshot], now: float | None = None) -> bool:
        """Start a fetch unless one is already outstanding for ``source_id``. Never blocks."""
        token = self.store.begin(source_id, now)
        if token is None:
            return False
        worker = FetchWorker(source_id, fetch)
        try:
            future = self.executor.submit(worker.run)
        except RuntimeError as e:
            # Executor already shut down; close the flight we just opened.
            self.store.publish(source_id, FetchError(f"{source_id}: {e}"), token=token)
            return False
        future.add_done_callback(lambda f: self._complete(source_id, token, f))
        log.debug("Spawned fetch for %s (flight %d)", source_id, token)
        return True

    def _complete(self, source_id: str, token: int, future: Future) -> None:
        if future.cancelled():
            result: FetchResult = FetchError(f"{source_id}: fetch cancelled")
        else:
            exc = future.exception()
            result = future.result() if exc is None else FetchError(f"{source_id}: {exc!r}")
        self.store.publish(source_id, result, token=token)

    def reap(self, source_id: str, now: float, timeout: float) -> bool:
        """Fail a flight stuck past ``timeout`` so refreshes can resume."""
        expired = self.store.expire(source_id, now, timeout)
        if expired:
            log.warning("Fetch for %s exceeded %.0fs; marked failed", source_id, timeout)
        return expired

    def shutdown(self, wait: bool = False) -> None:
        if self._own_executor:
            self.executor.shutdown(wait=wait, cancel_futures=True)
