"""
Lap detector - edge detection over the player's last-lap-time field.

The simulator repeats the same last lap time in every packet until the next
lap finishes, so a lap is considered completed only when a valid value
differs from the last one this detector emitted.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lapwatch.models.telemetry import UNKNOWN_NAME, LapCompleted, TelemetrySnapshot
from lapwatch.utils.formatting import format_lap_time


logger = logging.getLogger(__name__)


@dataclass
class DetectorState:
    """Mutable state owned by a single LapDetector."""

    last_recorded_lap_time: Optional[float] = None

    # Only consulted by the session-change heuristic
    last_track: Optional[str] = None
    last_total_laps: Optional[int] = None


class LapDetector:
    """
    Emits one LapCompleted per distinct completed lap of the player vehicle.

    One detector belongs to one listener and is driven from a single event
    loop, so updating the state and returning the event need no locking.

    Args:
        reset_on_session_change: Forget the last recorded lap time when the
            track changes or the lap counter goes backwards between valid
            laps, so an identical lap time in a new session is not missed.
    """

    def __init__(self, reset_on_session_change: bool = False):
        self.state = DetectorState()
        self.reset_on_session_change = reset_on_session_change

    def on_snapshot(self, snapshot: TelemetrySnapshot) -> Optional[LapCompleted]:
        player = snapshot.player()
        if player is None:
            return None

        lap_time = player.last_lap_time
        if lap_time <= 0:
            return None

        state = self.state
        if self.reset_on_session_change and self._session_changed(snapshot, player.total_laps):
            logger.info("New session detected, clearing last recorded lap")
            state.last_recorded_lap_time = None
        state.last_track = snapshot.track_name
        state.last_total_laps = player.total_laps

        if lap_time == state.last_recorded_lap_time:
            return None

        lap = LapCompleted(
            driver_name=player.driver_name or UNKNOWN_NAME,
            car=player.vehicle_name or UNKNOWN_NAME,
            track=snapshot.track_name or UNKNOWN_NAME,
            lap_time=lap_time,
            total_laps=player.total_laps,
            best_lap_time_session=player.best_lap_time_session,
        )
        logger.info(
            f"Lap {lap.lap_number} completed: {format_lap_time(lap.lap_time)} "
            f"(session best {format_lap_time(lap.best_lap_time_session)})"
        )
        state.last_recorded_lap_time = lap_time
        return lap

    def _session_changed(self, snapshot: TelemetrySnapshot, total_laps: int) -> bool:
        state = self.state
        if state.last_track is None:
            return False
        if snapshot.track_name != state.last_track:
            return True
        return state.last_total_laps is not None and total_laps < state.last_total_laps
