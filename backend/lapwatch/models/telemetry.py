"""
Telemetry data model.

One TelemetrySnapshot is decoded per inbound datagram. Snapshots are never
persisted; they live for a single decode/process cycle.
"""

from dataclasses import dataclass, field
from typing import Optional


# Simulator sentinel for "no valid lap time"
NO_LAP_TIME = -1.0

# Substituted for blank driver/car/track names
UNKNOWN_NAME = "Unknown"


@dataclass
class VehicleState:
    """State of one vehicle as reported in a snapshot."""

    is_player: bool
    driver_name: str
    vehicle_name: str
    last_lap_time: float = NO_LAP_TIME  # seconds, <= 0 means no completed lap
    best_lap_time_session: float = NO_LAP_TIME  # seconds, same convention
    total_laps: int = 0


@dataclass
class TelemetrySnapshot:
    """A single decoded telemetry packet."""

    track_name: str
    vehicles: list[VehicleState] = field(default_factory=list)

    def player(self) -> Optional[VehicleState]:
        """Return the vehicle flagged as the local player, if any."""
        for vehicle in self.vehicles:
            if vehicle.is_player:
                return vehicle
        return None


@dataclass(frozen=True)
class LapCompleted:
    """Emitted once per distinct completed lap of the player vehicle."""

    driver_name: str
    car: str
    track: str
    lap_time: float
    total_laps: int
    best_lap_time_session: float = NO_LAP_TIME

    @property
    def lap_number(self) -> int:
        """Number of the lap that just finished (the counter has already advanced)."""
        return self.total_laps - 1
