"""Persisted device settings (location, channel, API keys, units).

Effects read these through ``SettingsWatcher.current()``. Any change to a
value a source depends on shows up in that source's fingerprint and forces
a refresh.
"""
from __future__ import annotations
import dataclasses
import logging
import os
import threading
from pathlib import Path
from typing import Any, Mapping, Tuple

import yaml

from livematrix.errors import SettingsError

log = logging.getLogger(__name__)

DEFAULT_CHANNEL_GUID = "9558daa1-eae8-482f-8066-17fa787bc0e4"
DEFAULT_CHANNEL_NAME = "Daves Garage"
DEFAULT_SUBSCRIBER_URL = "http://youtubesight.com/api/channel/{guid}"


def _to_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _to_symbols(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = [str(v) for v in value]
    out: list[str] = []
    for p in parts:
        sym = p.strip().upper()
        if sym and sym not in out:
            out.append(sym)
    return tuple(out)


@dataclasses.dataclass(frozen=True)
class DeviceSettings:
    location: str = ""
    country_code: str = "US"
    location_is_zip: bool = True
    openweather_api_key: str = ""
    use_celsius: bool = False

    youtube_channel_guid: str = DEFAULT_CHANNEL_GUID
    youtube_channel_name: str = DEFAULT_CHANNEL_NAME
    subscriber_url: str = DEFAULT_SUBSCRIBER_URL

    quote_server: str = ""
    quote_port: int = 8888
    stock_symbols: Tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "DeviceSettings":
        data = dict(data or {})
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            log.warning("Ignoring unknown settings: %s", ", ".join(unknown))
        try:
            port = int(data.get("quote_port", 8888))
        except (TypeError, ValueError):
            raise SettingsError(f"quote_port must be an integer, got {data.get('quote_port')!r}") from None
        return cls(
            location=str(data.get("location") or "").strip(),
            country_code=str(data.get("country_code") or "US").strip(),
            location_is_zip=_to_bool(data.get("location_is_zip"), True),
            openweather_api_key=str(data.get("openweather_api_key") or "").strip(),
            use_celsius=_to_bool(data.get("use_celsius"), False),
            # Empty channel settings fall back to the defaults
            youtube_channel_guid=str(data.get("youtube_channel_guid") or DEFAULT_CHANNEL_GUID).strip(),
            youtube_channel_name=str(data.get("youtube_channel_name") or DEFAULT_CHANNEL_NAME).strip(),
            subscriber_url=str(data.get("subscriber_url") or DEFAULT_SUBSCRIBER_URL).strip(),
            quote_server=str(data.get("quote_server") or "").strip(),
            quote_port=port,
            stock_symbols=_to_symbols(data.get("stock_symbols")),
        )

    def weather_fingerprint(self) -> tuple:
        return (self.location, self.country_code, self.location_is_zip, self.openweather_api_key, self.use_celsius)


def load_settings(path: str | os.PathLike | None) -> DeviceSettings:
    if not path:
        return DeviceSettings()
    p = Path(path).expanduser()
    try:
        with p.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as e:
        raise SettingsError(f"cannot read settings file {p}: {e}") from e
    except yaml.YAMLError as e:
        raise SettingsError(f"settings file {p} is not valid YAML: {e}") from e
    if data is not None and not isinstance(data, dict):
        raise SettingsError(f"settings file {p} must contain a mapping")
    return DeviceSettings.from_mapping(data)


class SettingsWatcher:
    """Re-reads the settings file when it changes; current() is a lock-free reference read."""

    def __init__(self, path: str | os.PathLike | None, interval_sec: float = 5.0):
        self.path = Path(path).expanduser() if path else None
        self.interval = max(0.5, float(interval_sec))
        self._settings = load_settings(self.path)
        self._mtime = self._stat()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def _stat(self) -> float | None:
        if self.path is None:
            return None
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    def current(self) -> DeviceSettings:
        return self._settings

    def poll(self) -> bool:
        """Reload if the file changed. Returns True when new settings took effect."""
        mtime = self._stat()
        if mtime is None or mtime == self._mtime:
            return False
        self._mtime = mtime
        try:
            settings = load_settings(self.path)
        except SettingsError as e:
            log.error("Keeping previous settings: %s", e)
            return False
        if settings == self._settings:
            return False
        self._settings = settings
        log.info("Reloaded settings from %s", self.path)
        return True

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.poll()

    def start(self) -> None:
        if self.path is None:
            return
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="settings-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
