# livematrix/output/sinks.py
from __future__ import annotations

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable

import numpy as np
from PIL import Image

log = logging.getLogger(__name__)


def to_rgb565(image: Image.Image) -> bytes:
    """Pack an image into little-endian RGB565, the usual 16bpp framebuffer layout."""
    arr = np.asarray(image.convert("RGB"), dtype=np.uint8)
    r = (arr[:, :, 0] >> 3).astype(np.uint16)
    g = (arr[:, :, 1] >> 2).astype(np.uint16)
    b = (arr[:, :, 2] >> 3).astype(np.uint16)
    return ((r << 11) | (g << 5) | b).astype("<u2").tobytes()


def upscale(image: Image.Image, scale: int) -> Image.Image:
    if scale <= 1:
        return image
    return image.resize((image.width * scale, image.height * scale), Image.NEAREST)


class FramebufferSink:
    """Writes every presented frame to a 16bpp framebuffer device (or any file)."""

    def __init__(self, device: str, scale: int = 1):
        self.device = device
        self.scale = max(1, int(scale))
        self._fh = None

    def open(self) -> None:
        if self._fh is None:
            self._fh = open(self.device, "r+b" if os.path.exists(self.device) else "w+b", buffering=0)
            log.info("Writing frames to %s", self.device)

    def send(self, frame: Image.Image) -> None:
        if self._fh is None:
            self.open()
        self._fh.seek(0)
        self._fh.write(to_rgb565(upscale(frame, self.scale)))

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class PngSink:
    """Saves the current frame as a PNG at most every ``interval_sec`` seconds.

    send() only copies the frame and hands it to a writer thread; encoding
    and disk I/O stay off the render loop. If the writer falls behind, the
    newest frame replaces the one still waiting.
    """

    def __init__(self, path: str, interval_sec: float = 1.0, scale: int = 1, clock: Callable[[], float] = time.monotonic):
        self.path = Path(path)
        self.interval = max(0.0, float(interval_sec))
        self.scale = max(1, int(scale))
        self._clock = clock
        self._last: float | None = None
        self.q: "queue.Queue[Image.Image | None]" = queue.Queue(maxsize=1)
        self._writer: threading.Thread | None = None

    def start(self) -> None:
        if self._writer and self._writer.is_alive():
            return
        self._writer = threading.Thread(target=self._writer_loop, name="png-writer", daemon=True)
        self._writer.start()

    def send(self, frame: Image.Image) -> bool:
        now = self._clock()
        if self._last is not None and now - self._last < self.interval:
            return False
        self._last = now
        if self._writer is None:
            self.start()
        # The compositor reuses its buffers, so queue a private copy.
        pending = frame.copy()
        try:
            self.q.put_nowait(pending)
        except queue.Full:
            try:
                self.q.get_nowait()
            except queue.Empty:
                pass
            try:
                self.q.put_nowait(pending)
            except queue.Full:
                log.debug("PNG writer busy; dropped a frame")
        return True

    def _write(self, frame: Image.Image) -> None:
        tmp = self.path.with_suffix(".tmp.png")
        upscale(frame, self.scale).convert("RGB").save(tmp, "PNG")
        # Readers never see a half-written image.
        tmp.replace(self.path)

    def _writer_loop(self) -> None:
        while True:
            frame = self.q.get()
            if frame is None:
                return
            try:
                self._write(frame)
            except OSError as e:
                log.error("PNG write to %s failed: %r", self.path, e)

    def close(self) -> None:
        """Flush the frame still waiting, then stop the writer."""
        if self._writer is None:
            return
        try:
            self.q.put(None, timeout=5.0)
        except queue.Full:
            log.warning("PNG writer did not drain; abandoning %s", self.path)
        self._writer.join(timeout=5.0)
        self._writer = None
