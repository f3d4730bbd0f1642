from __future__ import annotations
import argparse
from dataclasses import dataclass

EFFECTS = ("stocks", "weather", "subscribers", "clock")


@dataclass
class Config:
    # Display surface
    width: int
    height: int
    fps: int

    # Device settings (location, keys, channel, symbols)
    settings_path: str | None
    settings_poll_sec: float

    # Effect rotation
    effects: list[str]
    effect_duration_sec: float

    # Outputs
    framebuffer: str | None
    png_path: str | None
    png_interval_sec: float
    output_scale: int

    # Network
    user_agent: str
    http_timeout_sec: float
    net_check_host: str | None
    net_check_port: int
    net_check_interval_sec: float
    fetch_workers: int
    refresh_hidden: bool

    # Misc
    font_path: str | None = None
    icon_dir: str | None = None
    log_level: str = "INFO"
    run_seconds: float | None = None


def _effect_list(value: str) -> list[str]:
    names = [v.strip().lower() for v in value.split(",") if v.strip()]
    bad = [n for n in names if n not in EFFECTS]
    if bad:
        raise argparse.ArgumentTypeError(f"unknown effect(s): {', '.join(bad)} (choose from {', '.join(EFFECTS)})")
    if not names:
        raise argparse.ArgumentTypeError("at least one effect is required")
    return names


def parse_args(argv: list[str] | None = None) -> Config:
    p = argparse.ArgumentParser("livematrix")

    disp = p.add_argument_group("Display")
    disp.add_argument("--w", "--width", dest="width", type=int, default=64)
    disp.add_argument("--h", "--height", dest="height", type=int, default=32)
    disp.add_argument("--fps", type=int, default=25, help="Fixed render rate")
    disp.add_argument("--font", dest="font_path", type=str, default=None, help="PIL bitmap font or TTF to draw text with")
    disp.add_argument("--icons", dest="icon_dir", type=str, default=None,
                      help="Directory of weather icon PNGs (default: assets/icons next to the package)")

    eff = p.add_argument_group("Effects")
    eff.add_argument("--effects", type=_effect_list, default=list(EFFECTS),
                     help="Comma-separated effects to rotate through")
    eff.add_argument("--effect-seconds", dest="effect_duration_sec", type=float, default=30.0,
                     help="Seconds to display each effect")

    cfg = p.add_argument_group("Settings")
    cfg.add_argument("--settings", dest="settings_path", type=str, default=None,
                     help="YAML device settings file (location, API keys, channel, symbols)")
    cfg.add_argument("--settings-poll-sec", type=float, default=5.0, help="How often to check the settings file for changes")

    out = p.add_argument_group("Output")
    out.add_argument("--fb", dest="framebuffer", type=str, default=None, help="Framebuffer device to draw to (e.g. /dev/fb0)")
    out.add_argument("--png", dest="png_path", type=str, default=None, help="Write the current frame to this PNG")
    out.add_argument("--png-interval-sec", type=float, default=1.0)
    out.add_argument("--scale", dest="output_scale", type=int, default=1, help="Integer upscale for outputs")

    net = p.add_argument_group("Network")
    net.add_argument("--user-agent", type=str, default="livematrix/0.1")
    net.add_argument("--http-timeout", dest="http_timeout_sec", type=float, default=10.0)
    net.add_argument("--net-check-host", type=str, default="1.1.1.1",
                     help="Host dialled to check connectivity; empty string disables the check")
    net.add_argument("--net-check-port", type=int, default=53)
    net.add_argument("--net-check-interval-sec", type=float, default=30.0)
    net.add_argument("--fetch-workers", type=int, default=4)
    net.add_argument("--refresh-hidden", action="store_true",
                     help="Keep refreshing sources of effects that are not on screen")

    misc = p.add_argument_group("Misc")
    misc.add_argument("--log-level", type=str, default="INFO")
    misc.add_argument("--run-seconds", type=float, default=None, help="Exit after this long (default: run forever)")

    args = p.parse_args(argv)

    return Config(
        width=args.width,
        height=args.height,
        fps=args.fps,
        settings_path=args.settings_path,
        settings_poll_sec=args.settings_poll_sec,
        effects=args.effects,
        effect_duration_sec=args.effect_duration_sec,
        framebuffer=args.framebuffer,
        png_path=args.png_path,
        png_interval_sec=args.png_interval_sec,
        output_scale=max(1, args.output_scale),
        user_agent=args.user_agent,
        http_timeout_sec=args.http_timeout_sec,
        net_check_host=args.net_check_host or None,
        net_check_port=args.net_check_port,
        net_check_interval_sec=args.net_check_interval_sec,
        fetch_workers=args.fetch_workers,
        refresh_hidden=args.refresh_hidden,
        font_path=args.font_path,
        icon_dir=args.icon_dir,
        log_level=args.log_level.upper(),
        run_seconds=args.run_seconds,
    )
