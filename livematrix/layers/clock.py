# livematrix/layers/clock.py
from __future__ import annotations

import math
from datetime import datetime
from typing import Callable, Tuple

from livematrix.core.layer import Layer

BLUE = (0, 0, 255)
GREEN = (0, 128, 0)
YELLOW = (255, 255, 0)
WHITE = (255, 255, 255)
RED = (255, 0, 0)


def hand_end(cx: float, cy: float, length: float, fraction: float) -> Tuple[float, float]:
    """Endpoint of a hand ``fraction`` of the way round the dial, clockwise from 12."""
    angle = fraction * 2 * math.pi
    return cx + length * math.sin(angle), cy - length * math.cos(angle)


class ClockLayer(Layer):
    """Analog clock face."""

    name = "clock"
    z = 50

    def __init__(self, x: int, y: int, w: int, h: int, *, local_now: Callable[[], datetime] = datetime.now,
                 font_path: str | None = None):
        super().__init__(x, y, w, h, font_path=font_path)
        self.local_now = local_now
        self._state: tuple[int, int, int] | None = None

    def tick(self, now: float):
        t = self.local_now()
        state = (t.hour, t.minute, t.second)
        if state == self._state:
            return []
        self._state = state

        c = self.canvas
        w, h = self.bounds[2], self.bounds[3]
        cx, cy = w / 2, h / 2
        radius = min(w, h) / 2 - 0.5

        c.clear((0, 0, 0))
        c.draw_circle(cx, cy, 1, BLUE)

        hour_frac = ((t.hour % 12) + t.minute / 60) / 12
        c.draw_line(cx, cy, *hand_end(cx, cy, (radius - 3) * 0.75, hour_frac), YELLOW)
        c.draw_line(cx, cy, *hand_end(cx, cy, radius, t.minute / 60), YELLOW)
        c.draw_line(cx, cy, *hand_end(cx, cy, radius, t.second / 60), WHITE)

        c.draw_circle(cx, cy, radius, BLUE)
        c.draw_circle(cx, cy, radius + 1, GREEN)

        for hour in range(12):
            x0, y0 = hand_end(cx, cy, radius - 4, hour / 12)
            x1, y1 = hand_end(cx, cy, radius - 1, hour / 12)
            c.draw_line(x0, y0, x1, y1, RED)

        return self._mark_all_dirty_if_changed()
