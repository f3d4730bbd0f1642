from __future__ import annotations

import dataclasses
from datetime import datetime

import pytest

from conftest import FakeClient
from livematrix.errors import ConfigurationError, ParseError, StatusError
from livematrix.icons import find_icon_path
from livematrix.net import Document
from livematrix.settings import DeviceSettings
from livematrix.sources.stocks import QuoteSource, quote_url, stock_source_id, symbol_of
from livematrix.sources.subscribers import SubscriberSource
from livematrix.sources.weather import (
    FORECAST_URL,
    GEO_DIRECT_URL,
    GEO_ZIP_URL,
    WEATHER_URL,
    WeatherSource,
    find_tomorrow,
)

QUOTE_URL = "http://quotes.local:8888/"


def _quote_body(symbol: str = "AAPL", **overrides):
    body = {
        "symbol": symbol,
        "timestamp": 1715000000,
        "open": 188.0,
        "high": 192.0,
        "low": 187.0,
        "close": 190.5,
        "volume": 51234567,
        "points": [{"dt": 1715000000 - i * 60, "val": 190.0 - i} for i in range(5)],
    }
    body.update(overrides)
    return body


def _weather_routes():
    return {
        GEO_ZIP_URL: {"zip": "98072", "name": "Woodinville", "lat": 47.75, "lon": -122.16},
        WEATHER_URL: {
            "name": "Woodinville",
            "main": {"temp": 293.15, "temp_max": 298.15, "temp_min": 283.15},
            "weather": [{"icon": "04d"}],
        },
        FORECAST_URL: {
            "list": [
                {"dt_txt": "2026-10-19 21:00:00", "main": {"temp_max": 290.0, "temp_min": 289.0}},
                {"dt_txt": "2026-10-20 00:00:00", "main": {"temp_max": 288.15, "temp_min": 278.15},
                 "weather": [{"icon": "10n"}]},
                {"dt_txt": "2026-10-20 03:00:00", "main": {"temp_max": 1.0, "temp_min": 1.0}},
            ]
        },
    }


def _today() -> datetime:
    return datetime(2026, 10, 19, 14, 30)


# Stocks -------------------------------------------------------------------

def test_quote_url_adds_scheme_and_port() -> None:
    assert quote_url("quotes.local", 8888) == QUOTE_URL
    assert quote_url("https://q.example/", 443) == "https://q.example:443/"
    with pytest.raises(ConfigurationError):
        quote_url("  ", 8888)


def test_source_ids_round_trip_symbols() -> None:
    assert stock_source_id(" msft ") == "stock:MSFT"
    assert symbol_of("stock:MSFT") == "MSFT"


def test_quote_source_parses_quote_and_history(settings: DeviceSettings) -> None:
    client = FakeClient({QUOTE_URL: _quote_body()})
    snap = QuoteSource(client, lambda: settings, clock=lambda: 42.0).fetch("aapl")

    assert client.calls == [(QUOTE_URL, {"ticker": "AAPL"})]
    assert snap.source_id == "stock:AAPL"
    assert snap.fetched_at == 42.0
    assert snap["close"] == 190.5
    assert snap["volume"] == 51234567.0
    assert snap.history_values() == [190.0, 189.0, 188.0, 187.0, 186.0]


def test_quote_source_bounds_history(settings: DeviceSettings) -> None:
    client = FakeClient({QUOTE_URL: _quote_body()})
    snap = QuoteSource(client, lambda: settings, max_history=2).fetch("AAPL")
    assert len(snap.history) == 2


def test_quote_missing_close_is_a_parse_error(settings: DeviceSettings) -> None:
    body = _quote_body()
    del body["close"]
    client = FakeClient({QUOTE_URL: body})
    with pytest.raises(ParseError):
        QuoteSource(client, lambda: settings).fetch("AAPL")


def test_quote_for_wrong_symbol_is_a_parse_error(settings: DeviceSettings) -> None:
    client = FakeClient({QUOTE_URL: _quote_body("MSFT")})
    with pytest.raises(ParseError):
        QuoteSource(client, lambda: settings).fetch("AAPL")


def test_quote_fingerprint_tracks_server(settings: DeviceSettings) -> None:
    current = {"s": settings}
    source = QuoteSource(FakeClient(), lambda: current["s"])
    before = source.fingerprint()
    current["s"] = dataclasses.replace(settings, quote_port=9999)
    assert source.fingerprint() != before


# Weather ------------------------------------------------------------------

def test_weather_source_builds_today_and_tomorrow(settings: DeviceSettings) -> None:
    client = FakeClient(_weather_routes())
    snap = WeatherSource(client, lambda: settings, clock=lambda: 7.0, local_now=_today).fetch()

    assert snap.source_id == "weather"
    assert snap["location_name"] == "Woodinville"
    assert snap["units"] == "F"
    assert snap["temperature"] == pytest.approx(68.0)
    assert snap["high_today"] == pytest.approx(77.0)
    assert snap["low_today"] == pytest.approx(50.0)
    assert snap["icon_today"] == 4
    assert snap["high_tomorrow"] == pytest.approx(59.0)
    assert snap["low_tomorrow"] == pytest.approx(41.0)
    assert snap["icon_tomorrow"] == 10


def test_weather_in_celsius(settings: DeviceSettings) -> None:
    client = FakeClient(_weather_routes())
    celsius = dataclasses.replace(settings, use_celsius=True)
    snap = WeatherSource(client, lambda: celsius, local_now=_today).fetch()
    assert snap["units"] == "C"
    assert snap["temperature"] == pytest.approx(20.0)


def test_weather_geocode_is_cached_until_location_changes(settings: DeviceSettings) -> None:
    client = FakeClient(_weather_routes())
    client.routes[GEO_DIRECT_URL] = [{"name": "Seattle", "lat": 47.6, "lon": -122.3}]
    current = {"s": settings}
    source = WeatherSource(client, lambda: current["s"], local_now=_today)

    source.fetch()
    source.fetch()
    assert [url for url, _ in client.calls].count(GEO_ZIP_URL) == 1

    current["s"] = dataclasses.replace(settings, location="Seattle", location_is_zip=False)
    source.fetch()
    direct = [params for url, params in client.calls if url == GEO_DIRECT_URL]
    assert direct and direct[0]["q"] == "Seattle,US"
    assert client.calls[-2][1]["lat"] == 47.6


def test_weather_without_key_is_a_configuration_error(settings: DeviceSettings) -> None:
    client = FakeClient(_weather_routes())
    keyless = dataclasses.replace(settings, openweather_api_key="")
    with pytest.raises(ConfigurationError):
        WeatherSource(client, lambda: keyless).fetch()
    assert client.calls == []


def test_weather_forecast_failure_still_publishes_today(settings: DeviceSettings) -> None:
    routes = _weather_routes()
    routes[FORECAST_URL] = StatusError("busy", status_code=429)
    snap = WeatherSource(FakeClient(routes), lambda: settings, local_now=_today).fetch()
    assert snap["temperature"] == pytest.approx(68.0)
    assert snap.get("high_tomorrow") is None


def test_weather_missing_temperature_is_a_parse_error(settings: DeviceSettings) -> None:
    routes = _weather_routes()
    routes[WEATHER_URL] = {"name": "Woodinville", "main": {}}
    with pytest.raises(ParseError):
        WeatherSource(FakeClient(routes), lambda: settings, local_now=_today).fetch()


def test_find_tomorrow_matches_on_date() -> None:
    doc = Document(_weather_routes()[FORECAST_URL])
    entry = find_tomorrow(doc, _today())
    assert entry is not None
    assert entry.get("dt_txt") == "2026-10-20 00:00:00"
    assert find_tomorrow(doc, datetime(2026, 10, 25)) is None


# Subscribers --------------------------------------------------------------

def test_subscriber_source_reads_counts(settings: DeviceSettings) -> None:
    url = settings.subscriber_url.format(guid=settings.youtube_channel_guid)
    client = FakeClient({url: {"channelStats": {"subscribers_count": 1021000, "views": "164000000"}}})
    snap = SubscriberSource(client, lambda: settings).fetch()

    assert snap.source_id == "subscribers"
    assert snap["subscribers"] == 1021000
    assert snap["views"] == 164000000
    assert snap["channel_guid"] == settings.youtube_channel_guid


def test_subscriber_negative_count_is_rejected(settings: DeviceSettings) -> None:
    url = settings.subscriber_url.format(guid=settings.youtube_channel_guid)
    client = FakeClient({url: {"channelStats": {"subscribers_count": -1, "views": 5}}})
    with pytest.raises(ParseError):
        SubscriberSource(client, lambda: settings).fetch()


def test_weather_resolves_icons_from_configured_directory(tmp_path, settings: DeviceSettings) -> None:
    for name in ("brokenclouds", "rain"):
        (tmp_path / f"{name}.png").write_bytes(b"")
    source = WeatherSource(FakeClient(_weather_routes()), lambda: settings, local_now=_today, icon_dir=str(tmp_path))

    snap = source.fetch()

    assert snap["icon_today_path"] == str(tmp_path / "brokenclouds.png")
    assert snap["icon_tomorrow_path"] == str(tmp_path / "rain.png")


def test_find_icon_path_in_directory(tmp_path) -> None:
    (tmp_path / "mist.png").write_bytes(b"")
    assert find_icon_path(50, tmp_path) == tmp_path / "mist.png"
    assert find_icon_path(13, tmp_path) is None
    assert find_icon_path(None, tmp_path) is None
