from __future__ import annotations
from typing import Callable, List

from livematrix.core.layer import Feed, Layer
from livematrix.core.policy import RefreshPolicy
from livematrix.core.store import SharedStore
from livematrix.settings import DeviceSettings
from livematrix.sources.subscribers import SOURCE_ID, SubscriberSource

CHAR_W = 6
CHAR_H = 7
BACKGROUND = (0, 16, 64)
BORDER = (160, 160, 255)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


def centered_x(count_text: str, width: int) -> int:
    """Start at the middle and back up half a char for every extra digit."""
    x = width // 2 - CHAR_W // 2
    return x - (len(count_text) - 1) * (CHAR_W // 2)


class SubscribersLayer(Layer):
    name = "subscribers"
    z = 50

    def __init__(
        self,
        x: int,
        y: int,
        w: int,
        h: int,
        *,
        store: SharedStore,
        source: SubscriberSource,
        settings: Callable[[], DeviceSettings],
        fetch_interval: float = 60.0,
        error_backoff: float = 20.0,
        font_path: str | None = None,
    ):
        super().__init__(x, y, w, h, font_path=font_path)
        self.store = store
        self.settings = settings
        self.feed = Feed(
            source_id=SOURCE_ID,
            fetch=source.fetch,
            policy=RefreshPolicy(fetch_interval, error_backoff),
            fingerprint=lambda: self.settings().youtube_channel_guid,
        )

    def feeds(self) -> List[Feed]:
        return [self.feed]

    def tick(self, now: float):
        c = self.canvas
        w, h = self.bounds[2], self.bounds[3]
        c.clear(BACKGROUND)
        c.draw_rect(0, 1, w, h - 2, BORDER)
        c.draw_text((2, 3), self.settings().youtube_channel_name, WHITE)

        snap, _ = self.store.read(SOURCE_ID)
        # A snapshot for a channel we are no longer configured for is not shown.
        if snap is not None and snap.get("channel_guid") == self.settings().youtube_channel_guid:
            text = str(snap["subscribers"])
        else:
            text = "--"

        x = centered_x(text, w)
        y = h // 2 - CHAR_H // 2
        for dx, dy in ((-1, 0), (1, 0), (0, -1), (0, 1)):
            c.draw_text((x + dx, y + dy), text, BLACK)
        c.draw_text((x, y), text, WHITE)
        return self._mark_all_dirty_if_changed()
