from __future__ import annotations
import logging
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

log = logging.getLogger(__name__)

Color = tuple

# ---------- font helpers ----------
_FONT_NAMES = ("Apple5x7.pil", "5x7.pil", "5x7.pcf")


def _load_font(preferred: str | None = None, size: int = 8):
    candidates: list[Path] = []
    if preferred:
        candidates.append(Path(preferred))

    here = Path(__file__).resolve()
    # Try repo assets
    for up in range(1, 5):
        for name in _FONT_NAMES:
            candidates.append(here.parents[up - 1] / "assets" / "fonts" / name)

    for p in candidates:
        try:
            if not p.exists():
                continue
            if p.suffix in (".ttf", ".otf"):
                return ImageFont.truetype(str(p), size=size)
            return ImageFont.load(str(p))
        except OSError:
            continue

    log.debug("No bitmap font found; using ImageFont.load_default()")
    return ImageFont.load_default()


# ---------- icon helpers ----------
@lru_cache(maxsize=32)
def _open_icon(path_str: str) -> Image.Image:
    return Image.open(path_str).convert("RGBA")


# ---------- canvas ----------
class Canvas:
    """Pixel surface with the handful of primitives the effects draw with."""

    def __init__(self, width: int, height: int, font_path: str | None = None, clear_color: Color = (0, 0, 0, 0)):
        self.width = int(width)
        self.height = int(height)
        self._clear_color = clear_color
        self.font = _load_font(font_path)
        self.img = Image.new("RGBA", (self.width, self.height), clear_color)
        self.draw: ImageDraw.ImageDraw = ImageDraw.Draw(self.img, "RGBA")

    def clear(self, color: Color | None = None) -> None:
        """Fill WITHOUT reallocating."""
        self.img.paste(self._rgba(color or self._clear_color), (0, 0, self.width, self.height))

    @staticmethod
    def _rgba(color: Color) -> Color:
        if len(color) == 3:
            return (*color, 255)
        return tuple(color)

    def fill_rect(self, x: int, y: int, w: int, h: int, color: Color) -> None:
        if w <= 0 or h <= 0:
            return
        self.draw.rectangle((x, y, x + w - 1, y + h - 1), fill=self._rgba(color))

    def draw_rect(self, x: int, y: int, w: int, h: int, color: Color) -> None:
        if w <= 0 or h <= 0:
            return
        self.draw.rectangle((x, y, x + w - 1, y + h - 1), outline=self._rgba(color))

    def draw_line(self, x0: float, y0: float, x1: float, y1: float, color: Color) -> None:
        self.draw.line((int(round(x0)), int(round(y0)), int(round(x1)), int(round(y1))), fill=self._rgba(color))

    def draw_circle(self, cx: float, cy: float, r: float, color: Color) -> None:
        if r <= 0:
            self.draw.point((int(cx), int(cy)), fill=self._rgba(color))
            return
        self.draw.ellipse((cx - r, cy - r, cx + r, cy + r), outline=self._rgba(color))

    def draw_text(self, xy, text: str, color: Color = (255, 255, 255), font=None) -> None:
        self.draw.text((int(xy[0]), int(xy[1])), text, font=font or self.font, fill=self._rgba(color))

    def text_width(self, text: str, font=None) -> int:
        if not text:
            return 0
        box = self.draw.textbbox((0, 0), text, font=font or self.font)
        return box[2] - box[0]

    def draw_image(self, path: str | Path, xy: tuple[int, int]) -> bool:
        try:
            im = _open_icon(str(path))
        except OSError as e:
            log.warning("Could not display %s: %s", path, e)
            return False
        x, y = int(xy[0]), int(xy[1])
        # alpha_composite rejects destinations that spill off the surface
        w = min(im.width, self.width - x)
        h = min(im.height, self.height - y)
        if w <= 0 or h <= 0 or x < 0 or y < 0:
            return False
        self.img.alpha_composite(im.crop((0, 0, w, h)), dest=(x, y))
        return True
