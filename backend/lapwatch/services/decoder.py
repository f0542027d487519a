"""
Snapshot decoder for JSON scoring packets.

Turns a raw UDP datagram into a TelemetrySnapshot. Anything that is not a
telemetry document (binary noise, truncated JSON, unrelated broadcasts) comes
back as a DecodeFailure value instead of an exception, so the listener can
skip it and keep receiving.
"""

import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Union

from lapwatch.models.telemetry import NO_LAP_TIME, TelemetrySnapshot, VehicleState


logger = logging.getLogger(__name__)


class DecodeFailureReason(Enum):
    """Why a datagram did not produce a snapshot."""

    MALFORMED_PAYLOAD = "malformed_payload"
    NOT_TELEMETRY = "not_telemetry"


@dataclass(frozen=True)
class DecodeFailure:
    """A datagram that could not be decoded into a snapshot."""

    reason: DecodeFailureReason
    detail: str = ""


DecodeResult = Union[TelemetrySnapshot, DecodeFailure]


class SnapshotDecoder(Protocol):
    """Decoder interface for telemetry sources."""

    def decode(self, raw: bytes) -> DecodeResult:
        ...


@dataclass(frozen=True)
class FieldMap:
    """
    Names of the fields read from a telemetry document.

    Defaults match the rFactor 2 / Le Mans Ultimate scoring structure.
    """

    vehicles: str = "mVehicles"
    track_name: str = "mTrackName"
    is_player: str = "mIsPlayer"
    driver_name: str = "mDriverName"
    vehicle_name: str = "mVehicleName"
    last_lap_time: str = "mLastLapTime"
    best_lap_time: str = "mBestLapTime"
    total_laps: str = "mTotalLaps"


LMU_FIELD_MAP = FieldMap()


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def _as_lap_time(value: Any) -> float:
    """Read a lap time, falling back to the sentinel for missing or odd values."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return NO_LAP_TIME
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return NO_LAP_TIME
    return value


def _as_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    try:
        return int(value)
    except (OverflowError, ValueError):
        return 0


class JsonSnapshotDecoder:
    """
    Decodes UTF-8 JSON documents into snapshots.

    The set of top-level keys of the first decoded document is logged once
    per decoder instance to help identify the feed.
    """

    def __init__(self, field_map: Optional[FieldMap] = None):
        self.field_map = field_map or LMU_FIELD_MAP
        self._reported_structure = False

    def decode(self, raw: bytes) -> DecodeResult:
        try:
            text = bytes(raw).decode("utf-8")
            document = json.loads(text)
        except (UnicodeDecodeError, ValueError, TypeError, RecursionError) as e:
            return DecodeFailure(DecodeFailureReason.MALFORMED_PAYLOAD, f"invalid JSON: {e}")

        if not isinstance(document, dict):
            return DecodeFailure(
                DecodeFailureReason.MALFORMED_PAYLOAD,
                f"expected a JSON object, got {type(document).__name__}",
            )

        if not self._reported_structure:
            self._reported_structure = True
            logger.info(f"First telemetry packet keys: {sorted(document.keys())}")

        fields = self.field_map
        if fields.vehicles not in document:
            return DecodeFailure(DecodeFailureReason.NOT_TELEMETRY, f"no '{fields.vehicles}' field")

        raw_vehicles = document[fields.vehicles]
        if not isinstance(raw_vehicles, list):
            return DecodeFailure(
                DecodeFailureReason.MALFORMED_PAYLOAD,
                f"'{fields.vehicles}' is not a list",
            )

        vehicles = []
        for entry in raw_vehicles:
            if not isinstance(entry, dict):
                return DecodeFailure(
                    DecodeFailureReason.MALFORMED_PAYLOAD,
                    f"vehicle entry is not an object: {type(entry).__name__}",
                )
            vehicles.append(self._decode_vehicle(entry))

        return TelemetrySnapshot(
            track_name=_as_text(document.get(fields.track_name)),
            vehicles=vehicles,
        )

    def _decode_vehicle(self, entry: dict) -> VehicleState:
        fields = self.field_map
        return VehicleState(
            is_player=entry.get(fields.is_player) is True,
            driver_name=_as_text(entry.get(fields.driver_name)),
            vehicle_name=_as_text(entry.get(fields.vehicle_name)),
            last_lap_time=_as_lap_time(entry.get(fields.last_lap_time)),
            best_lap_time_session=_as_lap_time(entry.get(fields.best_lap_time)),
            total_laps=_as_count(entry.get(fields.total_laps)),
        )
