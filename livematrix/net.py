from __future__ import annotations
import logging
import socket
import threading
from typing import Any, Callable, List, Optional, Union

import requests

from livematrix.errors import ParseError, StatusError, TransportError

log = logging.getLogger(__name__)

Scalar = Union[int, float, str]

_MISSING = object()


class Document:
    """Read-only view over a decoded JSON body.

    Paths are dotted; integer segments index into arrays, so
    ``weather.0.icon`` reads ``body["weather"][0]["icon"]``.
    """

    def __init__(self, data: Any, origin: str = ""):
        self._data = data
        self.origin = origin

    def _lookup(self, path: str) -> Any:
        node = self._data
        if not path:
            return node
        for part in path.split("."):
            if isinstance(node, dict):
                if part not in node:
                    return _MISSING
                node = node[part]
            elif isinstance(node, list):
                try:
                    node = node[int(part)]
                except (ValueError, IndexError):
                    return _MISSING
            else:
                return _MISSING
        return node

    def get(self, path: str) -> Optional[Scalar]:
        """Scalar at ``path``; None when absent, null, boolean or a container."""
        value = self._lookup(path)
        if value is _MISSING or value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float, str)):
            return value
        return None

    def number(self, path: str) -> float:
        value = self.get(path)
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                raise ParseError(f"{self.origin or 'document'}: {path!r} is not numeric: {value!r}") from None
        if value is None:
            raise ParseError(f"{self.origin or 'document'}: missing numeric field {path!r}")
        if value != value:  # NaN
            raise ParseError(f"{self.origin or 'document'}: {path!r} is NaN")
        return value

    def text(self, path: str) -> str:
        value = self.get(path)
        if value is None:
            raise ParseError(f"{self.origin or 'document'}: missing text field {path!r}")
        text = str(value).strip()
        if not text:
            raise ParseError(f"{self.origin or 'document'}: empty text field {path!r}")
        return text

    def items(self, path: str) -> List["Document"]:
        value = self._lookup(path)
        if value is _MISSING or value is None:
            return []
        if not isinstance(value, list):
            raise ParseError(f"{self.origin or 'document'}: {path!r} is not an array")
        return [Document(item, self.origin) for item in value]


class JsonClient:
    """Blocking JSON-over-HTTP client. Only ever called from fetch workers.

    Each worker thread gets its own ``requests.Session`` from
    ``session_factory``; a session passed explicitly is used as-is.
    """

    def __init__(
        self,
        user_agent: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.ua = user_agent
        self.timeout = float(timeout)
        self._shared_session = session
        self._session_factory = session_factory
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = self._session_factory()
        return session

    def fetch_json(self, url: str, params: dict[str, Any] | None = None) -> Document:
        try:
            r = self.session.get(
                url,
                params=params,
                headers={"User-Agent": self.ua, "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        if not 200 <= r.status_code < 300:
            raise StatusError(f"GET {url} returned HTTP {r.status_code}", status_code=r.status_code, url=url)
        try:
            data = r.json()
        except ValueError as e:
            raise ParseError(f"GET {url} returned a body that is not JSON") from e
        log.debug("GET %s -> %d", url, r.status_code)
        return Document(data, origin=url)


class ConnectivityMonitor:
    """Background TCP connectivity check; is_connected() never blocks."""

    def __init__(self, host: str | None = "1.1.1.1", port: int = 53, interval_sec: float = 30.0, timeout: float = 3.0):
        self.host = host
        self.port = int(port)
        self.interval = max(1.0, float(interval_sec))
        self.timeout = float(timeout)
        # Assume online until the first check says otherwise.
        self._connected = True
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def check(self) -> bool:
        if not self.host:
            return True
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError:
            return False

    def _loop(self) -> None:
        while True:
            connected = self.check()
            if connected != self._connected:
                if connected:
                    log.info("Network reachable again via %s:%d", self.host, self.port)
                else:
                    log.warning("Network unreachable (%s:%d); pausing refreshes", self.host, self.port)
            self._connected = connected
            if self._stop_event.wait(self.interval):
                return

    def start(self) -> None:
        if not self.host:
            return
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="connectivity", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

    def is_connected(self) -> bool:
        return self._connected
