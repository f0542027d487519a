"""
Session tracker - remembers who is driving what, where.

Purely informational: the identity recorded here is used for log output and
the /api/status endpoint, never for lap detection.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lapwatch.models.telemetry import TelemetrySnapshot


logger = logging.getLogger(__name__)


@dataclass
class SessionIdentity:
    """First driver, car and track seen by a tracker."""

    driver_name: Optional[str] = None
    car: Optional[str] = None
    track: Optional[str] = None


class SessionTracker:
    """
    Records the first non-blank driver, car and track of the player vehicle.

    Each field is set once and never overwritten; the feed carries no
    session-end signal, so a driver swap within the same process is not seen.
    """

    def __init__(self):
        self.identity = SessionIdentity()

    def observe(self, snapshot: TelemetrySnapshot) -> None:
        player = snapshot.player()
        if player is None:
            return

        identity = self.identity
        if player.driver_name and identity.driver_name is None:
            identity.driver_name = player.driver_name
            logger.info("Session started")
            logger.info(f"  Driver: {player.driver_name}")
        if player.vehicle_name and identity.car is None:
            identity.car = player.vehicle_name
            logger.info(f"  Car: {player.vehicle_name}")
        if snapshot.track_name and identity.track is None:
            identity.track = snapshot.track_name
            logger.info(f"  Track: {snapshot.track_name}")
