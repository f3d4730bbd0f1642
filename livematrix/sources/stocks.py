from __future__ import annotations
import logging
import time
from typing import Callable

from livematrix.core.snapshot import HISTORY_LIMIT, DataSnapshot, HistoryPoint
from livematrix.errors import ConfigurationError, ParseError
from livematrix.net import JsonClient
from livematrix.settings import DeviceSettings

log = logging.getLogger(__name__)

SOURCE_PREFIX = "stock:"
QUOTE_FIELDS = ("open", "high", "low", "close", "volume")


def stock_source_id(symbol: str) -> str:
    return SOURCE_PREFIX + symbol.strip().upper()


def symbol_of(source_id: str) -> str:
    return source_id[len(SOURCE_PREFIX):] if source_id.startswith(SOURCE_PREFIX) else source_id


def quote_url(server: str, port: int) -> str:
    server = server.strip().rstrip("/")
    if not server:
        raise ConfigurationError("no quote server configured")
    if "://" not in server:
        server = "http://" + server
    return f"{server}:{int(port)}/"


class QuoteSource:
    """Quotes from the private quote server: GET <server>:<port>/?ticker=SYM."""

    def __init__(self, client: JsonClient, settings: Callable[[], DeviceSettings],
                 max_history: int = HISTORY_LIMIT, clock: Callable[[], float] = time.time):
        self.client = client
        self.settings = settings
        self.max_history = max_history
        self._clock = clock

    def fingerprint(self) -> tuple:
        s = self.settings()
        return (s.quote_server, s.quote_port)

    def fetch(self, symbol: str) -> DataSnapshot:
        symbol = symbol.strip().upper()
        s = self.settings()
        doc = self.client.fetch_json(quote_url(s.quote_server, s.quote_port), params={"ticker": symbol})

        returned = doc.text("symbol").upper()
        if returned != symbol:
            raise ParseError(f"asked for {symbol}, quote server answered for {returned}")

        values = {"symbol": returned, "timestamp": doc.number("timestamp")}
        for name in QUOTE_FIELDS:
            values[name] = float(doc.number(name))

        history = [HistoryPoint(at=p.number("dt"), value=float(p.number("val"))) for p in doc.items("points")]
        snapshot = DataSnapshot.build(
            stock_source_id(symbol),
            self._clock(),
            values,
            history,
            required=("symbol", "timestamp") + QUOTE_FIELDS,
            max_history=self.max_history,
        )
        log.info("Received stock data for %s (%d history points)", symbol, len(snapshot.history))
        return snapshot
