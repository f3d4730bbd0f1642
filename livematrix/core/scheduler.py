from __future__ import annotations
import logging
import time
from typing import Callable, List, Optional

from PIL import Image

from .compositor import Compositor
from .layer import Layer

log = logging.getLogger(__name__)


class Scheduler:
    """Fixed-rate render loop; the only thing it ever waits on is the next frame deadline."""

    def __init__(self, layers: List[Layer], fps: int = 25, clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep):
        self.layers = sorted(layers, key=lambda L: getattr(L, "z", 0))
        self.fps = max(1, int(fps or 25))
        self.period = 1.0 / self.fps
        self._clock = clock
        self._sleep = sleep
        self.frames = 0

    def run_forever(
        self,
        compositor: Compositor,
        on_present: Callable[[Image.Image], None],
        should_stop: Optional[Callable[[], bool]] = None,
        before_tick: Optional[Callable[[float], None]] = None,
    ) -> int:
        next_frame = self._clock()
        while True:
            if should_stop and should_stop():
                log.info("Render loop stopping after %d frames", self.frames)
                return self.frames
            now = self._clock()
            if now < next_frame:
                self._sleep(next_frame - now)
                now = self._clock()

            if before_tick:
                before_tick(now)
            frame = compositor.tick(self.layers, now)
            on_present(frame)
            self.frames += 1

            next_frame += self.period
            if now - next_frame > self.period * 5:
                # Fell far behind (suspend, slow output); resync instead of bursting.
                log.debug("Render loop %.2fs behind; resyncing", now - next_frame)
                next_frame = now + self.period
