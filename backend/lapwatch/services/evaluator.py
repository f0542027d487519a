"""
Best-time evaluator.

Decides whether a completed lap is a new personal best for its
(driver, car, track) triple and, if so, writes it to the lap store.

Store calls are blocking, so they run in a worker thread with a bounded
timeout. Failures are reported as a StoreFailure decision and never raised:
a lap that could not be checked or saved is simply not persisted, and no
retry is scheduled.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from lapwatch.config import DEFAULT_STORE_TIMEOUT_S
from lapwatch.models.lap import DEFAULT_SIM, LapRecord, normalize_lap_time
from lapwatch.models.telemetry import LapCompleted
from lapwatch.services.repository import LapStore
from lapwatch.utils.formatting import format_delta, format_lap_time


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Saved:
    """The lap was a new personal best and has been stored."""

    record: LapRecord
    previous_best: Optional[float] = None


@dataclass(frozen=True)
class NotBest:
    """The lap was tied with or slower than the stored personal best."""

    lap_time: float
    current_best: float


@dataclass(frozen=True)
class InvalidLap:
    """The lap time is not positive at stored precision; nothing was queried or written."""

    lap_time: float


@dataclass(frozen=True)
class StoreFailure:
    """The store could not be queried or written."""

    stage: str  # "query" | "insert"
    error: str


Decision = Union[Saved, NotBest, InvalidLap, StoreFailure]


class BestTimeEvaluator:
    """Compares completed laps against the stored personal best."""

    def __init__(
        self,
        store: LapStore,
        sim: str = DEFAULT_SIM,
        timeout_s: float = DEFAULT_STORE_TIMEOUT_S,
    ):
        self.store = store
        self.sim = sim
        self.timeout_s = timeout_s

    async def _call_store(self, func, *args):
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout_s)

    async def evaluate(self, lap: LapCompleted) -> Decision:
        lap_time = normalize_lap_time(lap.lap_time)
        if lap_time <= 0:
            logger.warning(f"Ignoring lap with non-positive time {lap.lap_time!r}")
            return InvalidLap(lap_time=lap.lap_time)

        try:
            existing = await self._call_store(
                self.store.personal_best, lap.driver_name, lap.car, lap.track
            )
        except Exception as e:
            return self._failure("query", e)

        if existing is None:
            logger.info("First lap on this track/car combination")
            return await self._save(lap, lap_time, previous_best=None)

        if lap_time < existing.lap_time:
            logger.info("New personal best!")
            logger.info(f"  Previous: {format_lap_time(existing.lap_time)}")
            logger.info(f"  Improved by: {existing.lap_time - lap_time:.3f}s")
            return await self._save(lap, lap_time, previous_best=existing.lap_time)

        logger.info(
            f"Not a personal best (PB {format_lap_time(existing.lap_time)}, "
            f"{format_delta(lap_time - existing.lap_time)})"
        )
        return NotBest(lap_time=lap_time, current_best=existing.lap_time)

    async def _save(self, lap: LapCompleted, lap_time: float, previous_best: Optional[float]) -> Decision:
        try:
            record = await self._call_store(
                self.store.insert, lap.driver_name, lap.car, lap.track, lap_time, self.sim
            )
        except Exception as e:
            return self._failure("insert", e)

        logger.info(f"Saved lap {record.id} to database")
        return Saved(record=record, previous_best=previous_best)

    def _failure(self, stage: str, error: Exception) -> StoreFailure:
        if isinstance(error, asyncio.TimeoutError):
            message = f"timed out after {self.timeout_s:.1f}s"
        else:
            message = str(error) or type(error).__name__
        logger.error(f"Lap store {stage} failed: {message}")
        return StoreFailure(stage=stage, error=message)
