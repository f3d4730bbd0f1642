"""Wall-clock driven interpolation for on-screen elements.

Positions are a pure function of the time elapsed since the last
retarget, so a slow or uneven frame rate never changes animation speed.
"""
from __future__ import annotations
import time
from typing import Sequence, Tuple, Union

Value = Union[float, Tuple[float, ...]]
Color = Tuple[int, int, int]


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def lerp(a: Value, b: Value, t: float) -> Value:
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a + (b - a) * t
    if len(a) != len(b):
        raise ValueError(f"cannot interpolate {a!r} -> {b!r}: dimension mismatch")
    return tuple(x + (y - x) * t for x, y in zip(a, b))


class AnimatedElement:
    def __init__(self, value: Value, now: float | None = None):
        now = time.time() if now is None else now
        self.start_value: Value = value
        self.end_value: Value = value
        self.start_time = now
        self.duration = 0.0
        self.current_value: Value = value

    def progress(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return clamp((now - self.start_time) / self.duration)

    def settled(self, now: float) -> bool:
        return self.progress(now) >= 1.0

    def sample(self, now: float) -> Value:
        t = self.progress(now)
        if t >= 1.0:
            self.current_value = self.end_value
        else:
            self.current_value = lerp(self.start_value, self.end_value, t)
        return self.current_value

    def retarget(self, new_end: Value, start: Value | None = None, duration: float = 1.0, now: float | None = None) -> None:
        """Animate toward ``new_end`` over ``duration`` seconds.

        An element still in motion continues from where it currently is;
        ``start`` only applies to an element at rest.
        """
        now = time.time() if now is None else now
        if not self.settled(now) or start is None:
            start = self.sample(now)
        self.start_value = start
        self.end_value = new_end
        self.start_time = now
        self.duration = max(0.0, float(duration))
        self.current_value = start

    def jump(self, value: Value, now: float | None = None) -> None:
        self.retarget(value, start=value, duration=0.0, now=now)


class AnimatedText:
    """A text flyer: content and color swap instantly, position animates."""

    def __init__(self, text: str, color: Color, xy: Sequence[float] = (0, 0), font=None, now: float | None = None):
        self.text = text
        self.color = color
        self.font = font
        self.element = AnimatedElement((float(xy[0]), float(xy[1])), now=now)

    def retarget(self, text: str, color: Color, end: Sequence[float], start: Sequence[float] | None = None,
                 duration: float = 1.0, now: float | None = None) -> None:
        self.text = text
        self.color = color
        self.element.retarget(
            (float(end[0]), float(end[1])),
            None if start is None else (float(start[0]), float(start[1])),
            duration,
            now,
        )

    def position(self, now: float) -> Tuple[int, int]:
        x, y = self.element.sample(now)
        return int(round(x)), int(round(y))

    def draw(self, canvas, now: float) -> None:
        canvas.draw_text(self.position(now), self.text, self.color, font=self.font)
