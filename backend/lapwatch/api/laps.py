"""
API routes for lap times.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from lapwatch.api.schemas import (
    LapTimeResponse,
    LapTimeCreateRequest,
    PersonalBestResponse,
    StatsResponse,
    SessionStatusResponse,
    MessageResponse,
    ErrorResponse,
)
from lapwatch.errors import LapStoreError
from lapwatch.services.repository import BEST_LAPS_LIMIT, RECENT_LAPS_LIMIT, get_repository


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api", tags=["lap-times"])


STORE_ERROR = {500: {"model": ErrorResponse, "description": "Lap store unavailable"}}
BAD_REQUEST = {400: {"model": ErrorResponse, "description": "Missing or invalid fields"}}
NOT_FOUND = {404: {"model": ErrorResponse, "description": "Lap time not found"}}


@router.get("/lap-times", response_model=list[LapTimeResponse], responses=STORE_ERROR)
async def list_lap_times():
    """
    List the most recently recorded laps (newest first).
    """
    try:
        records = get_repository().list_recent(RECENT_LAPS_LIMIT)
    except LapStoreError as e:
        logger.error(f"Error fetching lap times: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch lap times")

    return [LapTimeResponse.from_record(r) for r in records]


@router.post(
    "/lap-times",
    response_model=LapTimeResponse,
    status_code=201,
    responses={**BAD_REQUEST, **STORE_ERROR},
)
async def add_lap_time(request: LapTimeCreateRequest):
    """
    Store a new lap time.
    """
    if not request.driver_name or not request.car or not request.track or not request.lap_time:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if request.lap_time <= 0:
        raise HTTPException(status_code=400, detail="lap_time must be positive")

    try:
        record = get_repository().insert(
            request.driver_name,
            request.car,
            request.track,
            request.lap_time,
            request.sim,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LapStoreError as e:
        logger.error(f"Error adding lap time: {e}")
        raise HTTPException(status_code=500, detail="Failed to add lap time")

    return LapTimeResponse.from_record(record)


@router.get("/lap-times/best", response_model=list[LapTimeResponse], responses=STORE_ERROR)
async def best_lap_times(
    track: Optional[str] = Query(None, description="Only laps on this track"),
    car: Optional[str] = Query(None, description="Only laps in this car"),
):
    """
    Get the fastest laps, optionally filtered by track and car.
    """
    try:
        records = get_repository().best_laps(track=track, car=car, limit=BEST_LAPS_LIMIT)
    except LapStoreError as e:
        logger.error(f"Error fetching best laps: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch best laps")

    return [LapTimeResponse.from_record(r) for r in records]


@router.get(
    "/lap-times/personal-best",
    response_model=PersonalBestResponse,
    responses={**BAD_REQUEST, **STORE_ERROR},
)
async def personal_best(
    driver_name: Optional[str] = Query(None),
    track: Optional[str] = Query(None),
    car: Optional[str] = Query(None),
):
    """
    Get the best lap for a driver/track/car combination.
    """
    if not driver_name or not track or not car:
        raise HTTPException(status_code=400, detail="Missing required parameters")

    try:
        record = get_repository().personal_best(driver_name, car, track)
    except LapStoreError as e:
        logger.error(f"Error fetching personal best: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch personal best")

    return PersonalBestResponse(
        personal_best=LapTimeResponse.from_record(record) if record else None,
    )


@router.delete(
    "/lap-times/{lap_id}",
    response_model=MessageResponse,
    responses={**NOT_FOUND, **STORE_ERROR},
)
async def delete_lap_time(lap_id: int):
    """
    Delete a lap time.
    """
    try:
        deleted = get_repository().delete(lap_id)
    except LapStoreError as e:
        logger.error(f"Error deleting lap time: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete lap time")

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Lap time not found: {lap_id}")

    return MessageResponse(message="Lap time deleted successfully")


@router.get("/stats", response_model=StatsResponse, responses=STORE_ERROR)
async def get_stats():
    """
    Aggregate statistics: lap count, fastest lap, distinct tracks and cars.
    """
    try:
        stats = get_repository().stats()
    except LapStoreError as e:
        logger.error(f"Error fetching stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch statistics")

    return StatsResponse(
        total_laps=stats.total_laps,
        best_lap=LapTimeResponse.from_record(stats.best_lap) if stats.best_lap else None,
        unique_tracks=stats.unique_tracks,
        unique_cars=stats.unique_cars,
    )


@router.get("/status", response_model=SessionStatusResponse)
async def get_status(request: Request):
    """
    Current session identity and listener counters.
    """
    listener = getattr(request.app.state, "listener", None)
    if listener is None:
        return SessionStatusResponse(listener_running=False)

    identity = listener.tracker.identity
    return SessionStatusResponse(
        listener_running=listener.is_running,
        driver_name=identity.driver_name,
        car=identity.car,
        track=identity.track,
        last_recorded_lap_time=listener.detector.state.last_recorded_lap_time,
        packets_received=listener.packets_received,
        packets_skipped=listener.packets_skipped,
        fault=str(listener.fault) if listener.fault else None,
    )
