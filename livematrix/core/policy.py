from __future__ import annotations
from typing import Hashable, Optional

from livematrix.core.store import FetchState

_UNSET = object()


class RefreshPolicy:
    """Decides when a source is due for another fetch.

    Owned by the render loop. ``should_refresh`` is a pure query; the
    compositor calls ``record_attempt`` only after a worker was actually
    spawned, and ``observe`` folds completed flights back in.
    """

    def __init__(
        self,
        min_interval: float,
        error_backoff: float | None = None,
        *,
        min_spacing: float = 0.0,
        flight_timeout: float | None = None,
    ):
        self.min_interval = max(0.0, float(min_interval))
        self.error_backoff = self.min_interval if error_backoff is None else max(0.0, float(error_backoff))
        self.min_spacing = max(0.0, float(min_spacing))
        self._flight_timeout = flight_timeout

        self.last_attempt: Optional[float] = None
        self.last_success: Optional[float] = None
        self.last_failed: bool = False
        self.success_fingerprint: Hashable = _UNSET
        self.attempt_fingerprint: Hashable = _UNSET
        self._seen_generation = 0

    @property
    def flight_timeout(self) -> float:
        if self._flight_timeout is not None:
            return float(self._flight_timeout)
        return max(2.0 * self.min_interval, 1.0)

    def should_refresh(self, now: float, fingerprint: Hashable = None) -> bool:
        if self.last_attempt is None:
            return True
        elapsed = now - self.last_attempt
        if elapsed < self.min_spacing:
            return False
        # A configuration nobody has tried yet forces one out-of-band attempt.
        if fingerprint != self.success_fingerprint and fingerprint != self.attempt_fingerprint:
            return True
        wait = self.error_backoff if self.last_failed else self.min_interval
        return elapsed >= wait

    def record_attempt(self, now: float, fingerprint: Hashable = None) -> None:
        self.last_attempt = now
        self.attempt_fingerprint = fingerprint

    def record_success(self, now: float) -> None:
        self.last_success = now
        self.last_failed = False
        self.success_fingerprint = self.attempt_fingerprint

    def record_failure(self) -> None:
        self.last_failed = True

    def observe(self, status) -> bool:
        """Apply a store status if it reports a flight this policy has not seen yet."""
        if status.generation <= self._seen_generation:
            return False
        self._seen_generation = status.generation
        if status.outcome is FetchState.SUCCEEDED:
            self.record_success(status.completed_at if status.completed_at is not None else self.last_attempt or 0.0)
        else:
            self.record_failure()
        return True

    def __repr__(self) -> str:
        return (
            f"RefreshPolicy(min_interval={self.min_interval}, error_backoff={self.error_backoff}, "
            f"last_attempt={self.last_attempt}, last_failed={self.last_failed})"
        )
