"""Live data effects (quotes, weather, subscriber counts) for small pixel matrices."""

__version__ = "0.1.0"
