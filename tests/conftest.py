from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import Any, Callable

import pytest

from livematrix.core.snapshot import DataSnapshot, HistoryPoint
from livematrix.core.store import SharedStore
from livematrix.core.worker import FetchSupervisor
from livematrix.errors import FetchError
from livematrix.net import Document
from livematrix.settings import DeviceSettings


class ImmediateExecutor(Executor):
    """Runs submitted work inline; completion callbacks fire before submit() returns."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # pragma: no cover
            future.set_exception(exc)
        return future


class ManualExecutor(Executor):
    """Holds submitted work until the test runs it, to keep flights open."""

    def __init__(self) -> None:
        self.pending: list[tuple[Future, Callable[[], Any]]] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.pending.append((future, lambda: fn(*args, **kwargs)))
        return future

    def run_next(self) -> None:
        future, call = self.pending.pop(0)
        future.set_result(call())

    def run_all(self) -> None:
        while self.pending:
            self.run_next()


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeClient:
    """Stands in for JsonClient: answers by URL from a routing table."""

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, dict | None]] = []

    def fetch_json(self, url: str, params: dict | None = None) -> Document:
        self.calls.append((url, params))
        answer = self.routes.get(url)
        if answer is None:
            raise FetchError(f"no route for {url}")
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            answer = answer(params)
        return Document(answer, origin=url)


def make_quote(symbol: str = "AAPL", close: float = 190.5, open_: float = 188.0, points=(191.0, 190.0, 189.0),
               fetched_at: float = 1_000.0) -> DataSnapshot:
    return DataSnapshot.build(
        f"stock:{symbol}",
        fetched_at,
        {"symbol": symbol, "timestamp": 1715000000, "open": open_, "high": 192.0, "low": 187.0,
         "close": close, "volume": 1234567.0},
        [HistoryPoint(at=1715000000 - i * 60, value=v) for i, v in enumerate(points)],
        required=("symbol", "close"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SharedStore:
    return SharedStore(clock=clock)


@pytest.fixture
def manual_executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def supervisor(store: SharedStore) -> FetchSupervisor:
    return FetchSupervisor(store, executor=ImmediateExecutor())


@pytest.fixture
def settings() -> DeviceSettings:
    return DeviceSettings(
        location="98072",
        country_code="US",
        openweather_api_key="k3y",
        quote_server="quotes.local",
        stock_symbols=("AAPL", "MSFT", "NVDA"),
    )
