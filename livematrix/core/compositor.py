from __future__ import annotations
import logging
from typing import Callable, List, Sequence

from PIL import Image

from livematrix.core.layer import Feed, Layer
from livematrix.core.store import SharedStore
from livematrix.core.worker import FetchSupervisor

log = logging.getLogger(__name__)


class Compositor:
    """Per-frame entry point: schedules refreshes, ticks layers, builds the frame.

    Never performs network I/O itself. Fetches are handed to the supervisor
    and their results picked up from the store on later ticks.
    """

    def __init__(
        self,
        w: int,
        h: int,
        store: SharedStore,
        supervisor: FetchSupervisor,
        *,
        is_connected: Callable[[], bool] | None = None,
        refresh_hidden: bool = False,
    ):
        self.w, self.h = w, h
        self.store = store
        self.supervisor = supervisor
        self.is_connected = is_connected or (lambda: True)
        self.refresh_hidden = refresh_hidden
        self.front = Image.new("RGBA", (w, h), (0, 0, 0, 255))
        self.back = Image.new("RGBA", (w, h), (0, 0, 0, 255))
        self._shown: tuple[int, ...] | None = None

    # Refresh --------------------------------------------------------------
    def refresh(self, layers: Sequence[Layer], now: float) -> List[str]:
        """Spawn fetches that are due. Returns the source ids started this tick."""
        connected = self.is_connected()
        started: list[str] = []
        for layer in layers:
            if not (layer.visible or self.refresh_hidden):
                continue
            for feed in layer.feeds():
                if self._service(feed, now, connected):
                    started.append(feed.source_id)
        return started

    def _service(self, feed: Feed, now: float, connected: bool) -> bool:
        policy = feed.policy
        policy.observe(self.store.status(feed.source_id))
        if self.supervisor.reap(feed.source_id, now, policy.flight_timeout):
            policy.observe(self.store.status(feed.source_id))
        if not connected:
            return False
        fingerprint = feed.fingerprint()
        if not policy.should_refresh(now, fingerprint):
            return False
        if not self.supervisor.submit(feed.source_id, feed.fetch, now):
            return False
        policy.record_attempt(now, fingerprint)
        return True

    # Frame ----------------------------------------------------------------
    def compose(self, layers: List[Layer]) -> None:
        """Rebuild the entire frame back-to-front from the visible layers."""
        self.back.paste((0, 0, 0, 255), (0, 0, self.w, self.h))
        for layer in sorted(layers, key=lambda L: getattr(L, "z", 0)):
            if not getattr(layer, "visible", True):
                continue
            x, y, w, h = layer.bounds
            if w <= 0 or h <= 0:
                continue
            self.back.paste(layer.surface, (x, y), layer.surface)

    def present(self) -> Image.Image:
        self.front, self.back = self.back, self.front
        return self.front

    def tick(self, layers: List[Layer], now: float) -> Image.Image:
        self.refresh(layers, now)
        shown = tuple(id(layer) for layer in layers if layer.visible)
        dirty = shown != self._shown
        self._shown = shown
        for layer in layers:
            if not layer.visible:
                continue
            if layer.tick(now):
                dirty = True
        if not dirty:
            return self.front
        self.compose(layers)
        return self.present()
