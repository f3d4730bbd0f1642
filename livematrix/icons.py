from __future__ import annotations
from pathlib import Path

# OpenWeather icon number -> bitmap name ("10d" and "10n" share code 10)
WEATHER_ICONS = {
    1: "clearsky",
    2: "fewclouds",
    3: "scatteredclouds",
    4: "brokenclouds",
    9: "showerrain",
    10: "rain",
    11: "thunderstorm",
    13: "snow",
    50: "mist",
}


def parse_icon_code(raw: str | int | None) -> int | None:
    """'10d' -> 10. Unknown or malformed codes -> None."""
    if raw is None:
        return None
    digits = "".join(ch for ch in str(raw) if ch.isdigit())
    if not digits:
        return None
    code = int(digits)
    return code if code in WEATHER_ICONS else None


def find_icon_path(code: int | None, icon_dir: str | Path | None = None) -> Path | None:
    """
    Looks in ``icon_dir`` when given, otherwise upward from this file
    for assets/icons/<name>.png
    """
    if code is None or code not in WEATHER_ICONS:
        return None
    name = WEATHER_ICONS[code]
    if icon_dir is not None:
        p = Path(icon_dir).expanduser() / f"{name}.png"
        return p if p.exists() else None
    here = Path(__file__).resolve()
    for up in range(1, 5):
        p = here.parents[up - 1] / "assets" / "icons" / f"{name}.png"
        if p.exists():
            return p
    return None
