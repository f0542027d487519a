"""
Lap time formatting helpers for log output.
"""

import math
from typing import Optional


def format_lap_time(seconds: Optional[float]) -> str:
    """
    Format a lap time in seconds as ``m:ss.sss``.

    Non-positive or missing values (the simulator's "no lap" sentinel) and
    values too large to represent in milliseconds are rendered as ``N/A``.
    """
    if seconds is None or seconds <= 0:
        return "N/A"

    scaled = seconds * 1000
    if not math.isfinite(scaled):
        return "N/A"
    millis = int(round(scaled))
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{minutes}:{secs:02d}.{millis:03d}"


def format_delta(seconds: float) -> str:
    """Format a lap time difference with sign, e.g. ``+0.412s``."""
    return f"{seconds:+.3f}s"
