from __future__ import annotations

from datetime import datetime

import pytest
from PIL import Image

from livematrix.config import EFFECTS, parse_args
from livematrix.core.layer import Layer
from livematrix.core.store import SharedStore
from livematrix.icons import parse_icon_code
from livematrix.main import EffectCycler, build_effects, main
from livematrix.net import JsonClient
from livematrix.output.sinks import PngSink, to_rgb565, upscale
from livematrix.settings import DeviceSettings
from livematrix.utils import day_abbrev, format_price, format_temp, kelvin_to_fahrenheit


def test_parse_args_defaults() -> None:
    cfg = parse_args([])
    assert (cfg.width, cfg.height, cfg.fps) == (64, 32, 25)
    assert cfg.effects == list(EFFECTS)
    assert cfg.effect_duration_sec == 30.0
    assert cfg.net_check_host == "1.1.1.1"


def test_parse_args_effects_and_net_check() -> None:
    cfg = parse_args(["--effects", "Weather, clock", "--net-check-host", "", "--log-level", "debug"])
    assert cfg.effects == ["weather", "clock"]
    assert cfg.net_check_host is None
    assert cfg.log_level == "DEBUG"


def test_parse_args_rejects_unknown_effect() -> None:
    with pytest.raises(SystemExit):
        parse_args(["--effects", "stocks,lava"])


def test_effect_cycler_shows_one_effect_at_a_time() -> None:
    a, b = Layer(0, 0, 4, 4), Layer(0, 0, 4, 4)
    cycler = EffectCycler([a, b], interval_sec=30)

    cycler.tick(0.0)
    assert (a.visible, b.visible) == (True, False)
    cycler.tick(29.0)
    assert cycler.current is a
    cycler.tick(30.0)
    assert (a.visible, b.visible) == (False, True)
    cycler.tick(60.0)
    assert cycler.current is a


def test_effect_cycler_without_effects_is_inert() -> None:
    cycler = EffectCycler([], interval_sec=5)
    cycler.tick(0.0)
    assert cycler.current is None


def test_build_effects_in_requested_order() -> None:
    cfg = parse_args(["--effects", "clock,stocks"])
    settings = DeviceSettings(stock_symbols=("AAPL",))
    effects = build_effects(cfg, SharedStore(), JsonClient("ua"), lambda: settings)
    assert [e.name for e in effects] == ["clock", "stocks"]
    assert not any(e.visible for e in effects)


def test_main_exits_on_unreadable_settings(tmp_path) -> None:
    assert main(["--settings", str(tmp_path / "missing.yaml")]) == 2


def test_main_runs_and_writes_png(tmp_path) -> None:
    out = tmp_path / "frame.png"
    rc = main(["--effects", "clock", "--png", str(out), "--png-interval-sec", "0",
               "--net-check-host", "", "--run-seconds", "0.2", "--scale", "2"])
    assert rc == 0
    with Image.open(out) as im:
        assert im.size == (128, 64)


def test_to_rgb565_packs_little_endian() -> None:
    img = Image.new("RGB", (3, 1))
    img.putdata([(255, 0, 0), (0, 255, 0), (255, 255, 255)])
    assert to_rgb565(img) == b"\x00\xf8" + b"\xe0\x07" + b"\xff\xff"


def test_upscale_is_nearest_neighbour() -> None:
    img = Image.new("RGB", (2, 1))
    img.putdata([(255, 0, 0), (0, 0, 255)])
    big = upscale(img, 3)
    assert big.size == (6, 3)
    assert big.getpixel((2, 2)) == (255, 0, 0)
    assert big.getpixel((3, 0)) == (0, 0, 255)


def test_png_sink_rate_limits(tmp_path) -> None:
    now = {"t": 0.0}
    sink = PngSink(str(tmp_path / "f.png"), interval_sec=1.0, clock=lambda: now["t"])
    frame = Image.new("RGBA", (4, 4), (10, 20, 30, 255))
    assert sink.send(frame)
    now["t"] = 0.5
    assert not sink.send(frame)
    now["t"] = 1.0
    assert sink.send(frame)
    sink.close()
    assert (tmp_path / "f.png").exists()
    assert not (tmp_path / "f.tmp.png").exists()


def test_png_sink_writes_a_copy_off_the_render_thread(tmp_path) -> None:
    out = tmp_path / "f.png"
    sink = PngSink(str(out), interval_sec=0.0, scale=2)
    frame = Image.new("RGBA", (4, 4), (255, 0, 0, 255))

    assert sink.send(frame)
    assert sink._writer is not None and sink._writer.name == "png-writer"
    # The compositor repaints its buffer right after presenting it.
    frame.paste((0, 0, 255, 255), (0, 0, 4, 4))
    sink.close()

    with Image.open(out) as im:
        assert im.size == (8, 8)
        assert im.convert("RGB").getpixel((0, 0)) == (255, 0, 0)
    assert sink._writer is None


def test_png_sink_close_without_frames_is_a_noop(tmp_path) -> None:
    sink = PngSink(str(tmp_path / "f.png"))
    sink.close()
    assert not (tmp_path / "f.png").exists()


def test_formatting_helpers() -> None:
    assert format_price(190.5) == "190.50"
    assert format_price(38123.456) == "38123"
    assert format_temp(None) == ""
    assert format_temp(61.9) == "61"
    assert kelvin_to_fahrenheit(273.15) == pytest.approx(32.0)
    assert day_abbrev(datetime(2026, 10, 19)) == "MON"
    assert day_abbrev(datetime(2026, 10, 25), 1) == "MON"


def test_parse_icon_code() -> None:
    assert parse_icon_code("10d") == 10
    assert parse_icon_code("50n") == 50
    assert parse_icon_code("02d") == 2
    assert parse_icon_code("05d") is None
    assert parse_icon_code("12n") is None
    assert parse_icon_code(None) is None
