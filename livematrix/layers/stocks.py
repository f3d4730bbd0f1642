from __future__ import annotations
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from livematrix.core.layer import Feed, Layer
from livematrix.core.policy import RefreshPolicy
from livematrix.core.snapshot import DataSnapshot
from livematrix.core.store import SharedStore
from livematrix.core.transition import AnimatedText
from livematrix.settings import DeviceSettings
from livematrix.sources.stocks import SOURCE_PREFIX, QuoteSource, stock_source_id
from livematrix.utils import format_change, format_price, format_volume, min_max

CHAR_W = 5
HEADER_H = 9
HEADER_BG = (0, 0, 128)
WHITE = (255, 255, 255)
LIGHT_GREY = (211, 211, 211)
GREEN = (0, 128, 0)
LIGHT_GREEN = (144, 238, 144)
RED = (255, 0, 0)

Segment = Tuple[int, int, int, int, Tuple[int, int, int]]


def sparkline(values: Sequence[float], breakeven: float, x_right: int, top: int, height: int) -> List[Segment]:
    """Vertical bars from the breakeven line to each point, newest at ``x_right``.

    Scaling uses the extremes of ``values`` themselves. A flat series has no
    range to scale against and draws nothing.
    """
    extremes = min_max(values)
    if extremes is None:
        return []
    lo, hi = extremes
    span = hi - lo
    if span <= 0:
        return []
    scale = height / span
    bottom = top + height
    base_y = bottom - (breakeven - lo) * scale
    base_y = max(top, min(bottom, base_y))
    segments: List[Segment] = []
    for i, v in enumerate(values):
        x = x_right - i
        y = bottom - (v - lo) * scale
        color = RED if v < breakeven else GREEN
        segments.append((x, int(round(base_y)), x, int(round(y)), color))
    return segments


class StocksLayer(Layer):
    """Rotates through quotes: four text flyers plus a history graph."""

    name = "stocks"
    z = 50

    def __init__(
        self,
        x: int,
        y: int,
        w: int,
        h: int,
        *,
        store: SharedStore,
        source: QuoteSource,
        settings: Callable[[], DeviceSettings],
        rotate_interval: float = 10.0,
        fetch_interval: float = 60.0,
        error_backoff: float = 30.0,
        font_path: str | None = None,
    ):
        super().__init__(x, y, w, h, font_path=font_path)
        self.store = store
        self.source = source
        self.settings = settings
        self.rotate_interval = float(rotate_interval)
        self.fetch_interval = float(fetch_interval)
        self.error_backoff = float(error_backoff)

        self._feeds: Dict[str, Feed] = {}
        self.index = 0
        self.current: Optional[str] = None
        self._last_rotate: Optional[float] = None
        self._last_count = 0

        font = self.canvas.font
        self.text_symbol = AnimatedText("", WHITE, (0, 1), font=font)
        self.text_price = AnimatedText("", WHITE, (0, 1), font=font)
        self.text_change = AnimatedText("", WHITE, (0, 8), font=font)
        self.text_volume = AnimatedText("", LIGHT_GREY, (0, 15), font=font)

    # Data -----------------------------------------------------------------
    def symbols(self) -> Tuple[str, ...]:
        return self.settings().stock_symbols

    def feeds(self) -> List[Feed]:
        symbols = self.symbols()
        for sym in symbols:
            if sym not in self._feeds:
                self._feeds[sym] = Feed(
                    source_id=stock_source_id(sym),
                    fetch=lambda sym=sym: self.source.fetch(sym),
                    policy=RefreshPolicy(self.fetch_interval, self.error_backoff),
                    fingerprint=self.source.fingerprint,
                )
        return [self._feeds[sym] for sym in symbols]

    def quotes(self) -> Dict[str, DataSnapshot]:
        """Published quotes for the configured symbols, in source-id order."""
        wanted = {stock_source_id(s) for s in self.symbols()}
        return {sid: snap for sid, snap in self.store.read_all(SOURCE_PREFIX).items() if sid in wanted}

    # Rotation -------------------------------------------------------------
    def rotate(self, now: float, quotes: Dict[str, DataSnapshot]) -> bool:
        """Advance to the next quote on the rotation timer or when the set of quotes changes size."""
        count = len(quotes)
        if count == 0:
            self.current = None
            self._last_count = 0
            return False
        due = self._last_rotate is None or now - self._last_rotate >= self.rotate_interval
        if not due and count == self._last_count:
            return False
        if self.current is not None:
            self.index = (self.index + 1) % count
        else:
            self.index %= count
        self._last_rotate = now
        self._last_count = count
        self.current = list(quotes)[self.index]
        self.start_display(quotes[self.current], now)
        return True

    def start_display(self, quote: DataSnapshot, now: float) -> None:
        w = self.bounds[2]
        close, open_ = quote["close"], quote["open"]
        price = format_price(close)
        change = format_change(close, open_)
        volume = format_volume(quote["volume"])

        self.text_symbol.retarget(quote["symbol"], WHITE, (0, 1), start=(-w, 1), duration=0.5, now=now)
        self.text_price.retarget(price, WHITE, (w - len(price) * CHAR_W, 1), start=(-w, 1), duration=0.75, now=now)
        self.text_change.retarget(change, LIGHT_GREEN if close >= open_ else RED,
                                  (w - len(change) * CHAR_W, 8), start=(-w, 8), duration=1.0, now=now)
        self.text_volume.retarget(volume, LIGHT_GREY, (w - len(volume) * CHAR_W, 15), start=(-w * 2, 15),
                                  duration=1.0, now=now)

    # Drawing --------------------------------------------------------------
    def _placeholder(self) -> str:
        for feed in self._feeds.values():
            if self.store.status(feed.source_id).failures:
                return "NO DATA"
        return "LOADING" if self.symbols() else "NO SYMBOLS"

    def tick(self, now: float):
        c = self.canvas
        w, h = self.bounds[2], self.bounds[3]
        c.clear((0, 0, 0))
        c.fill_rect(0, 0, w, HEADER_H, HEADER_BG)

        quotes = self.quotes()
        self.rotate(now, quotes)
        if self.current is None:
            c.draw_text((1, 1), "STOCKS", WHITE)
            c.draw_text((1, 12), self._placeholder(), LIGHT_GREY)
            return self._mark_all_dirty_if_changed()

        for text in (self.text_symbol, self.text_price, self.text_change, self.text_volume):
            text.draw(c, now)

        # Re-read so a fresh quote for the shown symbol updates the graph right away.
        quote = quotes.get(self.current)
        if quote is not None:
            graph_top = 24
            values = quote.history_values(limit=w)
            for x0, y0, x1, y1, color in sparkline(values, quote["open"], w - 1, graph_top, h - 1 - graph_top):
                c.draw_line(x0, y0, x1, y1, color)
        return self._mark_all_dirty_if_changed()
