from __future__ import annotations
import logging
import sys
import time
from typing import Callable, List, Optional

from livematrix.config import Config, parse_args
from livematrix.core.compositor import Compositor
from livematrix.core.layer import Layer
from livematrix.core.scheduler import Scheduler
from livematrix.core.store import SharedStore
from livematrix.core.worker import FetchSupervisor
from livematrix.errors import SettingsError
from livematrix.layers import ClockLayer, StocksLayer, SubscribersLayer, WeatherLayer
from livematrix.net import ConnectivityMonitor, JsonClient
from livematrix.output.sinks import FramebufferSink, PngSink
from livematrix.settings import SettingsWatcher
from livematrix.sources import QuoteSource, SubscriberSource, WeatherSource

log = logging.getLogger("livematrix")


class EffectCycler:
    """Shows one effect at a time, advancing on a fixed cadence. Driven from the render loop."""

    def __init__(self, effects: List[Layer], interval_sec: float):
        self.effects = effects
        self.interval = max(1.0, float(interval_sec or 1.0))
        self._index = 0
        self._switched_at: float | None = None

    @property
    def current(self) -> Layer | None:
        return self.effects[self._index] if self.effects else None

    def activate(self, index: int, now: float | None = None) -> None:
        if not self.effects:
            return
        self._index = index % len(self.effects)
        self._switched_at = now
        for idx, layer in enumerate(self.effects):
            layer.set_visible(idx == self._index)
        log.info("Showing %s", self.effects[self._index].name)

    def tick(self, now: float) -> None:
        if not self.effects:
            return
        if self._switched_at is None:
            self.activate(self._index, now)
        elif now - self._switched_at >= self.interval:
            self.activate(self._index + 1, now)


def build_effects(cfg: Config, store: SharedStore, client: JsonClient, settings: Callable) -> List[Layer]:
    w, h = cfg.width, cfg.height
    builders = {
        "stocks": lambda: StocksLayer(0, 0, w, h, store=store, source=QuoteSource(client, settings),
                                      settings=settings, font_path=cfg.font_path),
        "weather": lambda: WeatherLayer(0, 0, w, h, store=store,
                                        source=WeatherSource(client, settings, icon_dir=cfg.icon_dir),
                                        settings=settings, font_path=cfg.font_path),
        "subscribers": lambda: SubscribersLayer(0, 0, w, h, store=store, source=SubscriberSource(client, settings),
                                                settings=settings, font_path=cfg.font_path),
        "clock": lambda: ClockLayer(0, 0, w, h, font_path=cfg.font_path),
    }
    effects = [builders[name]() for name in cfg.effects]
    for layer in effects:
        layer.set_visible(False)
    return effects


def main(argv: Optional[list[str]] = None) -> int:
    cfg = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )

    try:
        watcher = SettingsWatcher(cfg.settings_path, interval_sec=cfg.settings_poll_sec)
    except SettingsError as e:
        log.error("%s", e)
        return 2

    store = SharedStore()
    supervisor = FetchSupervisor(store, max_workers=cfg.fetch_workers)
    client = JsonClient(user_agent=cfg.user_agent, timeout=cfg.http_timeout_sec)
    network = ConnectivityMonitor(cfg.net_check_host, cfg.net_check_port, interval_sec=cfg.net_check_interval_sec)

    effects = build_effects(cfg, store, client, watcher.current)
    cycler = EffectCycler(effects, cfg.effect_duration_sec)
    comp = Compositor(cfg.width, cfg.height, store, supervisor,
                      is_connected=network.is_connected, refresh_hidden=cfg.refresh_hidden)
    sched = Scheduler(layers=effects, fps=cfg.fps)

    sinks = []
    if cfg.framebuffer:
        sinks.append(FramebufferSink(cfg.framebuffer, scale=cfg.output_scale))
    if cfg.png_path:
        sinks.append(PngSink(cfg.png_path, interval_sec=cfg.png_interval_sec, scale=cfg.output_scale))
    if not sinks:
        log.warning("No output configured (--fb / --png); rendering without a display")

    def on_present(frame):
        for sink in sinks:
            try:
                sink.send(frame)
            except OSError as e:
                log.error("Frame write to %s failed: %r", type(sink).__name__, e)

    deadline = time.time() + cfg.run_seconds if cfg.run_seconds else None

    def should_stop() -> bool:
        return deadline is not None and time.time() >= deadline

    watcher.start()
    network.start()
    log.info("Rendering %dx%d at %d fps: %s", cfg.width, cfg.height, cfg.fps, ", ".join(cfg.effects))

    # Run until Ctrl+C
    try:
        sched.run_forever(compositor=comp, on_present=on_present, should_stop=should_stop, before_tick=cycler.tick)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()
        network.stop()
        supervisor.shutdown(wait=False)
        for sink in sinks:
            sink.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
