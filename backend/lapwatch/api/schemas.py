"""
API schemas (Pydantic models) for request/response validation.

Field names follow the JSON shape existing clients already consume:
snake_case for lap rows, camelCase for the stats and personal-best wrappers.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from lapwatch.models.lap import DEFAULT_SIM, LapRecord


# ============================================================================
# Lap Schemas
# ============================================================================

class LapTimeResponse(BaseModel):
    """A stored lap time."""
    id: int
    driver_name: str
    car: str
    track: str
    lap_time: float
    sim: str
    recorded_at: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: LapRecord) -> "LapTimeResponse":
        return cls(**record.to_dict())


class LapTimeCreateRequest(BaseModel):
    """
    Request to store a lap time.

    Fields are optional here so a missing field is reported as a 400
    "Missing required fields" rather than a validation error.
    """
    driver_name: Optional[str] = None
    car: Optional[str] = None
    track: Optional[str] = None
    lap_time: Optional[float] = None
    sim: str = DEFAULT_SIM


class PersonalBestResponse(BaseModel):
    """Personal best wrapper; personalBest is null when no lap exists."""
    model_config = ConfigDict(populate_by_name=True)

    personal_best: Optional[LapTimeResponse] = Field(
        default=None, alias="personalBest"
    )


# ============================================================================
# Stats / Status Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Aggregate statistics over all stored laps."""
    model_config = ConfigDict(populate_by_name=True)

    total_laps: int = Field(alias="totalLaps")
    best_lap: Optional[LapTimeResponse] = Field(default=None, alias="bestLap")
    unique_tracks: int = Field(alias="uniqueTracks")
    unique_cars: int = Field(alias="uniqueCars")


class SessionStatusResponse(BaseModel):
    """What the telemetry listener currently sees."""
    listener_running: bool
    driver_name: Optional[str] = None
    car: Optional[str] = None
    track: Optional[str] = None
    last_recorded_lap_time: Optional[float] = None
    packets_received: int = 0
    packets_skipped: int = 0
    fault: Optional[str] = None


# ============================================================================
# Generic Schemas
# ============================================================================

class MessageResponse(BaseModel):
    """Simple acknowledgement."""
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    code: Optional[str] = None
