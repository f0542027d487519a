"""
Persistent lap records as returned by the lap store.

The personal best for a (driver, car, track) triple is never stored as a flag;
it is derived from MIN(lap_time) over all records for that triple.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


DEFAULT_SIM = "LMU"

# Lap times are stored with millisecond precision
LAP_TIME_DECIMALS = 3


@dataclass
class LapRecord:
    """A stored lap time."""

    id: int
    driver_name: str
    car: str
    track: str
    lap_time: float
    sim: str = DEFAULT_SIM
    recorded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "driver_name": self.driver_name,
            "car": self.car,
            "track": self.track,
            "lap_time": self.lap_time,
            "sim": self.sim,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class LapStats:
    """Aggregate statistics over every stored lap."""

    total_laps: int
    best_lap: Optional[LapRecord]
    unique_tracks: int
    unique_cars: int


def normalize_lap_time(lap_time: float) -> float:
    """Round a lap time to the precision the store keeps."""
    return round(float(lap_time), LAP_TIME_DECIMALS)
