"""Per-source snapshot store shared by fetch workers and the render loop.

The only mutable state both concurrency domains touch. Workers publish
whole snapshots; the render loop reads them. Each source entry carries its
own lock so one source's publish never blocks reads of another.
"""
from __future__ import annotations
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from livematrix.core.snapshot import DataSnapshot
from livematrix.errors import FetchError, FetchTimeout

log = logging.getLogger(__name__)

FetchResult = Union[DataSnapshot, FetchError]


class FetchState(Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceStatus:
    """Point-in-time copy of one store entry."""

    source_id: str
    snapshot: Optional[DataSnapshot]
    state: FetchState
    outcome: Optional[FetchState]  # SUCCEEDED / FAILED of the last completed flight
    error: Optional[FetchError]
    attempts: int
    failures: int  # consecutive
    started_at: Optional[float]
    completed_at: Optional[float]
    generation: int  # bumps on every completed flight


class _Entry:
    __slots__ = (
        "lock", "snapshot", "state", "outcome", "error", "attempts",
        "failures", "started_at", "completed_at", "generation", "token",
    )

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.snapshot: DataSnapshot | None = None
        self.state = FetchState.IDLE
        self.outcome: FetchState | None = None
        self.error: FetchError | None = None
        self.attempts = 0
        self.failures = 0
        self.started_at: float | None = None
        self.completed_at: float | None = None
        self.generation = 0
        self.token: int | None = None


class SharedStore:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._map_lock = threading.Lock()
        self._tokens = itertools.count(1)

    def _entry(self, source_id: str) -> _Entry:
        entry = self._entries.get(source_id)
        if entry is None:
            with self._map_lock:
                entry = self._entries.setdefault(source_id, _Entry())
        return entry

    # Flight bookkeeping ---------------------------------------------------
    def begin(self, source_id: str, now: float | None = None) -> int | None:
        """Atomically flip IDLE -> IN_FLIGHT. Returns a flight token, or None if one is outstanding."""
        entry = self._entry(source_id)
        with entry.lock:
            if entry.state is FetchState.IN_FLIGHT:
                return None
            entry.state = FetchState.IN_FLIGHT
            entry.started_at = self._clock() if now is None else now
            entry.attempts += 1
            entry.token = next(self._tokens)
            return entry.token

    def publish(self, source_id: str, result: FetchResult, token: int | None = None) -> bool:
        """Complete the current flight with a snapshot or an error.

        A result carrying a token that no longer matches the entry (because
        the flight was expired meanwhile) is dropped.
        """
        if not isinstance(result, (DataSnapshot, FetchError)):
            raise TypeError(f"publish() takes a DataSnapshot or FetchError, not {type(result).__name__}")
        if isinstance(result, DataSnapshot) and result.source_id != source_id:
            raise ValueError(f"snapshot for {result.source_id!r} published under {source_id!r}")

        entry = self._entry(source_id)
        with entry.lock:
            if token is not None and token != entry.token:
                log.info("Dropping late result for %s (flight %s already closed)", source_id, token)
                return False
            entry.completed_at = self._clock()
            if isinstance(result, DataSnapshot):
                entry.state = FetchState.SUCCEEDED
                entry.snapshot = result
                entry.error = None
                entry.failures = 0
            else:
                entry.state = FetchState.FAILED
                entry.error = result
                entry.failures += 1
            entry.outcome = entry.state
            entry.generation += 1
            entry.token = None
            entry.state = FetchState.IDLE
            failures = entry.failures
        if isinstance(result, FetchError):
            log.warning("Fetch for %s failed (%d in a row): %s", source_id, failures, result)
        else:
            log.debug("Published snapshot for %s", source_id)
        return True

    def expire(self, source_id: str, now: float, timeout: float) -> bool:
        """Force a flight older than ``timeout`` seconds to FAILED."""
        entry = self._entries.get(source_id)
        if entry is None:
            return False
        with entry.lock:
            if entry.state is not FetchState.IN_FLIGHT or entry.started_at is None:
                return False
            if now - entry.started_at < timeout:
                return False
            token = entry.token
        return self.publish(
            source_id,
            FetchTimeout(f"{source_id}: no result after {timeout:.0f}s"),
            token=token,
        )

    # Reads ------------------------------------------------------------------
    def read(self, source_id: str) -> Tuple[Optional[DataSnapshot], FetchState]:
        entry = self._entries.get(source_id)
        if entry is None:
            return None, FetchState.IDLE
        with entry.lock:
            return entry.snapshot, entry.state

    def status(self, source_id: str) -> SourceStatus:
        entry = self._entries.get(source_id)
        if entry is None:
            return SourceStatus(source_id, None, FetchState.IDLE, None, None, 0, 0, None, None, 0)
        with entry.lock:
            return SourceStatus(
                source_id=source_id,
                snapshot=entry.snapshot,
                state=entry.state,
                outcome=entry.outcome,
                error=entry.error,
                attempts=entry.attempts,
                failures=entry.failures,
                started_at=entry.started_at,
                completed_at=entry.completed_at,
                generation=entry.generation,
            )

    def read_all(self, prefix: str | None = None) -> Dict[str, DataSnapshot]:
        """Every published snapshot (optionally under ``prefix``), ordered by source id."""
        with self._map_lock:
            items = sorted(self._entries.items())
        out: Dict[str, DataSnapshot] = {}
        for source_id, entry in items:
            if prefix is not None and not source_id.startswith(prefix):
                continue
            with entry.lock:
                snap = entry.snapshot
            if snap is not None:
                out[source_id] = snap
        return out

    def in_flight(self) -> List[str]:
        with self._map_lock:
            items = list(self._entries.items())
        busy = []
        for source_id, entry in items:
            with entry.lock:
                if entry.state is FetchState.IN_FLIGHT:
                    busy.append(source_id)
        return sorted(busy)
