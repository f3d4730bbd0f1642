"""Current conditions plus tomorrow's forecast from OpenWeather."""
from __future__ import annotations
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from livematrix.core.snapshot import DataSnapshot
from livematrix.errors import ConfigurationError, FetchError, ParseError
from livematrix.icons import find_icon_path, parse_icon_code
from livematrix.net import Document, JsonClient
from livematrix.settings import DeviceSettings
from livematrix.utils import kelvin_to_local

log = logging.getLogger(__name__)

SOURCE_ID = "weather"

GEO_ZIP_URL = "http://api.openweathermap.org/geo/1.0/zip"
GEO_DIRECT_URL = "http://api.openweathermap.org/geo/1.0/direct"
WEATHER_URL = "http://api.openweathermap.org/data/2.5/weather"
FORECAST_URL = "http://api.openweathermap.org/data/2.5/forecast"

REQUIRED = ("location_name", "temperature", "high_today", "low_today")


class WeatherSource:
    def __init__(
        self,
        client: JsonClient,
        settings: Callable[[], DeviceSettings],
        clock: Callable[[], float] = time.time,
        local_now: Callable[[], datetime] = datetime.now,
        icon_dir: str | None = None,
    ):
        self.client = client
        self.settings = settings
        self._clock = clock
        self._local_now = local_now
        self.icon_dir = icon_dir
        # Geocode cache; only touched from the (single-flight) worker.
        self._coords: Optional[Tuple[float, float]] = None
        self._coords_key: Optional[tuple] = None

    def _coordinates(self, s: DeviceSettings) -> Tuple[float, float]:
        key = (s.location, s.country_code, s.location_is_zip)
        if self._coords is not None and key == self._coords_key:
            return self._coords
        if not s.location:
            raise ConfigurationError("no weather location configured")

        query = f"{s.location},{s.country_code}"
        if s.location_is_zip:
            doc = self.client.fetch_json(GEO_ZIP_URL, params={"zip": query, "appid": s.openweather_api_key})
            lat, lon = doc.number("lat"), doc.number("lon")
        else:
            doc = self.client.fetch_json(GEO_DIRECT_URL, params={"q": query, "limit": 1, "appid": s.openweather_api_key})
            lat, lon = doc.number("0.lat"), doc.number("0.lon")
        log.info("Resolved %s to %.4f,%.4f", query, lat, lon)
        self._coords = (lat, lon)
        self._coords_key = key
        return self._coords

    def fetch(self) -> DataSnapshot:
        s = self.settings()
        if not s.openweather_api_key:
            raise ConfigurationError("no OpenWeather API key configured")
        lat, lon = self._coordinates(s)
        params = {"lat": lat, "lon": lon, "appid": s.openweather_api_key}

        doc = self.client.fetch_json(WEATHER_URL, params=params)
        kelvin = doc.number("main.temp")
        if kelvin <= 0:
            raise ParseError(f"implausible temperature {kelvin}K")
        icon_today = parse_icon_code(doc.get("weather.0.icon"))
        values = {
            "location_name": doc.get("name") or s.location.upper(),
            "temperature": kelvin_to_local(kelvin, s.use_celsius),
            "high_today": kelvin_to_local(doc.number("main.temp_max"), s.use_celsius),
            "low_today": kelvin_to_local(doc.number("main.temp_min"), s.use_celsius),
            "icon_today": icon_today,
            "icon_today_path": self._icon_path(icon_today),
            "units": "C" if s.use_celsius else "F",
            "high_tomorrow": None,
            "low_tomorrow": None,
            "icon_tomorrow": None,
            "icon_tomorrow_path": None,
        }
        log.info("Got today's weather for %s: %.0f", values["location_name"], values["temperature"])

        try:
            values.update(self._tomorrow(params, s))
        except FetchError as e:
            log.warning("Failed to get tomorrow's weather: %s", e)

        return DataSnapshot.build(SOURCE_ID, self._clock(), values, required=REQUIRED)

    def _tomorrow(self, params: dict, s: DeviceSettings) -> dict:
        doc = self.client.fetch_json(FORECAST_URL, params=params)
        entry = find_tomorrow(doc, self._local_now())
        if entry is None:
            log.info("Forecast has no entries for tomorrow")
            return {}
        out: dict = {}
        hi = entry.get("main.temp_max")
        lo = entry.get("main.temp_min")
        if isinstance(hi, (int, float)) and hi > 0:
            out["high_tomorrow"] = kelvin_to_local(hi, s.use_celsius)
        if isinstance(lo, (int, float)) and lo > 0:
            out["low_tomorrow"] = kelvin_to_local(lo, s.use_celsius)
        out["icon_tomorrow"] = parse_icon_code(entry.get("weather.0.icon"))
        out["icon_tomorrow_path"] = self._icon_path(out["icon_tomorrow"])
        return out

    def _icon_path(self, code: int | None) -> str | None:
        path = find_icon_path(code, self.icon_dir)
        return str(path) if path else None


def find_tomorrow(doc: Document, today: datetime) -> Optional[Document]:
    """First 3-hour forecast entry whose dt_txt falls on tomorrow's date."""
    prefix = (today + timedelta(days=1)).strftime("%Y-%m-%d")
    for entry in doc.items("list"):
        dt_txt = entry.get("dt_txt")
        if isinstance(dt_txt, str) and dt_txt.startswith(prefix):
            return entry
    return None
