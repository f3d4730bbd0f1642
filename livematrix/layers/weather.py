from __future__ import annotations
from datetime import datetime
from typing import Callable, List

from livematrix.core.layer import Feed, Layer
from livematrix.core.policy import RefreshPolicy
from livematrix.core.store import SharedStore
from livematrix.settings import DeviceSettings
from livematrix.sources.weather import SOURCE_ID, WeatherSource
from livematrix.utils import day_abbrev, format_temp

FONT_W = 5
FONT_H = 7
HEADER_BG = (0, 0, 128)
RULE = (0, 0, 128)
WHITE = (255, 255, 255)
SILVER = (192, 192, 192)

WEATHER_INTERVAL = 10 * 60.0


class WeatherLayer(Layer):
    """Today and tomorrow side by side, with the location name on top."""

    name = "weather"
    z = 50

    def __init__(
        self,
        x: int,
        y: int,
        w: int,
        h: int,
        *,
        store: SharedStore,
        source: WeatherSource,
        settings: Callable[[], DeviceSettings],
        fetch_interval: float = WEATHER_INTERVAL,
        error_backoff: float = 60.0,
        min_spacing: float = 30.0,
        local_now: Callable[[], datetime] = datetime.now,
        font_path: str | None = None,
    ):
        super().__init__(x, y, w, h, font_path=font_path)
        self.store = store
        self.settings = settings
        self.local_now = local_now
        self.feed = Feed(
            source_id=SOURCE_ID,
            fetch=source.fetch,
            policy=RefreshPolicy(fetch_interval, error_backoff, min_spacing=min_spacing),
            fingerprint=lambda: self.settings().weather_fingerprint(),
        )

    def feeds(self) -> List[Feed]:
        return [self.feed]

    def _right(self, c, text: str, right: int, y: int, color) -> None:
        c.draw_text((right - c.text_width(text), y), text, color)

    def tick(self, now: float):
        c = self.canvas
        w, h = self.bounds[2], self.bounds[3]
        x_half = w // 2 - 1
        s = self.settings()
        snap, _ = self.store.read(SOURCE_ID)

        c.clear((0, 0, 0))
        c.fill_rect(0, 0, w, FONT_H + 2, HEADER_BG)

        if snap is not None:
            if snap.get("icon_today_path"):
                c.draw_image(snap["icon_today_path"], (0, 10))
            if snap.get("icon_tomorrow_path"):
                c.draw_image(snap["icon_tomorrow_path"], (x_half + 1, 10))

        # Location name, trimmed so the temperature still fits on the right
        max_chars = (w - 2 * FONT_W) // FONT_W
        if not s.openweather_api_key:
            title = "No API Key"
        elif snap is not None:
            title = str(snap.get("location_name", ""))
        else:
            title = s.location.upper()
        c.draw_text((0, 1), title[:max_chars], WHITE)

        if snap is not None:
            self._right(c, format_temp(snap["temperature"]), w, 1, SILVER)

        y = FONT_H + 2
        c.draw_line(0, y, w - 1, y, RULE)
        c.draw_line(x_half, y, x_half, h - 1, RULE)

        today = self.local_now()
        c.draw_text((0, h - FONT_H), day_abbrev(today), WHITE)
        c.draw_text((x_half + 2, h - FONT_H), day_abbrev(today, 1), WHITE)

        if snap is not None:
            hi_y, lo_y = h - 2 * FONT_H, h - FONT_H
            self._right(c, format_temp(snap["high_today"]), x_half, hi_y, SILVER)
            self._right(c, format_temp(snap["low_today"]), x_half, lo_y, SILVER)
            self._right(c, format_temp(snap.get("high_tomorrow")), w, hi_y, SILVER)
            self._right(c, format_temp(snap.get("low_tomorrow")), w, lo_y, SILVER)

        return self._mark_all_dirty_if_changed()
