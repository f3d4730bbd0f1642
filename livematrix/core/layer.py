from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Hashable, List, Tuple

from livematrix.core.policy import RefreshPolicy
from livematrix.core.snapshot import DataSnapshot
from livematrix.renderer.pillow_renderer import Canvas

DirtyRect = Tuple[int, int, int, int]  # x, y, w, h


def _no_fingerprint() -> Hashable:
    return None


@dataclass
class Feed:
    """One data source a layer wants kept fresh."""

    source_id: str
    fetch: Callable[[], DataSnapshot]
    policy: RefreshPolicy
    fingerprint: Callable[[], Hashable] = field(default=_no_fingerprint)


class Layer:
    """Base class for an on-screen element that owns an offscreen RGBA canvas."""
    z: int = 0
    name: str = "layer"

    def __init__(self, x: int, y: int, w: int, h: int, font_path: str | None = None):
        self.bounds = (x, y, w, h)
        self.canvas = Canvas(w, h, font_path=font_path)
        self._last_hash: int | None = None
        self.visible: bool = True

    @property
    def surface(self):
        return self.canvas.img

    def feeds(self) -> List[Feed]:
        """Sources the compositor should keep refreshed while this layer is shown."""
        return []

    def tick(self, now: float) -> List[DirtyRect]:
        """Subclasses: redraw self.canvas for ``now`` and return dirty rects (layer-local)."""
        return []

    # Helpers
    def _mark_all_dirty_if_changed(self) -> List[DirtyRect]:
        h = hash(self.surface.tobytes())
        if h != self._last_hash:
            self._last_hash = h
            w, hgt = self.surface.size
            return [(0, 0, w, hgt)]
        return []

    # Visibility helpers ---------------------------------------------------
    def set_visible(self, visible: bool) -> None:
        flag = bool(visible)
        if flag == self.visible:
            return
        self.visible = flag
        if self.visible:
            # Force next tick to mark content dirty so compositor refreshes.
            self._last_hash = None
