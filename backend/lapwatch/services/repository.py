"""
Lap Repository - persistent store for lap times.

Backed by a SQLite file. The best-time evaluator only depends on the LapStore
protocol, so the backend can be swapped without touching the pipeline.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Protocol

from lapwatch.config import Settings
from lapwatch.errors import LapStoreError
from lapwatch.models.lap import DEFAULT_SIM, LapRecord, LapStats, normalize_lap_time


logger = logging.getLogger(__name__)


RECENT_LAPS_LIMIT = 100
BEST_LAPS_LIMIT = 10

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS lap_times (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        driver_name TEXT NOT NULL,
        car TEXT NOT NULL,
        track TEXT NOT NULL,
        lap_time REAL NOT NULL CHECK (lap_time > 0),
        sim TEXT DEFAULT 'LMU',
        recorded_at TEXT DEFAULT CURRENT_TIMESTAMP,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_driver_track_car
    ON lap_times (driver_name, track, car)
    """,
)


class LapStore(Protocol):
    """Operations the lap tracking pipeline needs from a store."""

    def personal_best(self, driver_name: str, car: str, track: str) -> Optional[LapRecord]:
        ...

    def insert(
        self,
        driver_name: str,
        car: str,
        track: str,
        lap_time: float,
        sim: str = DEFAULT_SIM,
        recorded_at: Optional[datetime] = None,
    ) -> LapRecord:
        ...


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning(f"Unparseable timestamp in lap store: {value!r}")
        return None


def _row_to_record(row: sqlite3.Row) -> LapRecord:
    return LapRecord(
        id=row["id"],
        driver_name=row["driver_name"],
        car=row["car"],
        track=row["track"],
        lap_time=row["lap_time"],
        sim=row["sim"],
        recorded_at=_parse_timestamp(row["recorded_at"]),
        created_at=_parse_timestamp(row["created_at"]),
    )


class SqliteLapRepository:
    """
    SQLite implementation of the lap store.

    Every operation opens its own connection, so the repository can be used
    from worker threads concurrently. SQLite errors are re-raised as
    LapStoreError.
    """

    def __init__(self, db_path: Path, timeout_s: float = 5.0):
        """
        Initialize the repository and create the schema if needed.

        Args:
            db_path: Path to the SQLite database file
            timeout_s: How long a connection waits on a locked database
        """
        self._db_path = Path(db_path)
        self._timeout_s = timeout_s
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path, timeout=self._timeout_s)
        except sqlite3.Error as e:
            raise LapStoreError(f"Cannot open lap database {self._db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise LapStoreError(str(e)) from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info(f"Lap database ready: {self._db_path}")

    def insert(
        self,
        driver_name: str,
        car: str,
        track: str,
        lap_time: float,
        sim: str = DEFAULT_SIM,
        recorded_at: Optional[datetime] = None,
    ) -> LapRecord:
        """
        Store a lap and return it with its assigned id.

        Raises:
            ValueError: If an identity field is blank or lap_time is not positive
            LapStoreError: If the database write fails
        """
        if not driver_name or not car or not track:
            raise ValueError("driver_name, car and track are required")
        lap_time = normalize_lap_time(lap_time)
        if lap_time <= 0:
            raise ValueError(f"lap_time must be positive, got {lap_time}")

        columns = ["driver_name", "car", "track", "lap_time", "sim"]
        values: list = [driver_name, car, track, lap_time, sim or DEFAULT_SIM]
        if recorded_at is not None:
            columns.append("recorded_at")
            values.append(recorded_at.strftime(_TIMESTAMP_FORMAT))

        placeholders = ", ".join("?" for _ in columns)
        with self._connect() as conn:
            cursor = conn.execute(
                f"INSERT INTO lap_times ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )
            row = conn.execute(
                "SELECT * FROM lap_times WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()

        record = _row_to_record(row)
        logger.debug(f"Inserted lap {record.id}: {driver_name} / {car} / {track} {lap_time}")
        return record

    def get(self, lap_id: int) -> Optional[LapRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM lap_times WHERE id = ?", (lap_id,)).fetchone()
        return _row_to_record(row) if row is not None else None

    def personal_best(self, driver_name: str, car: str, track: str) -> Optional[LapRecord]:
        """Fastest stored lap for an exact (driver, car, track) match."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM lap_times WHERE driver_name = ? AND track = ? AND car = ? "
                "ORDER BY lap_time ASC, id ASC LIMIT 1",
                (driver_name, track, car),
            ).fetchone()
        return _row_to_record(row) if row is not None else None

    def list_recent(self, limit: int = RECENT_LAPS_LIMIT) -> list[LapRecord]:
        """Most recently recorded laps, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM lap_times ORDER BY recorded_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def best_laps(
        self,
        track: Optional[str] = None,
        car: Optional[str] = None,
        limit: int = BEST_LAPS_LIMIT,
    ) -> list[LapRecord]:
        """Fastest laps, optionally filtered by track and/or car."""
        query = "SELECT * FROM lap_times WHERE 1=1"
        params: list = []
        if track:
            query += " AND track = ?"
            params.append(track)
        if car:
            query += " AND car = ?"
            params.append(car)
        query += " ORDER BY lap_time ASC, id ASC LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_record(row) for row in rows]

    def stats(self) -> LapStats:
        with self._connect() as conn:
            counts = conn.execute(
                "SELECT COUNT(*) AS total, COUNT(DISTINCT track) AS tracks, "
                "COUNT(DISTINCT car) AS cars FROM lap_times"
            ).fetchone()
            best = conn.execute(
                "SELECT * FROM lap_times ORDER BY lap_time ASC, id ASC LIMIT 1"
            ).fetchone()

        return LapStats(
            total_laps=counts["total"],
            best_lap=_row_to_record(best) if best is not None else None,
            unique_tracks=counts["tracks"],
            unique_cars=counts["cars"],
        )

    def delete(self, lap_id: int) -> bool:
        """Delete a lap. Returns False if no lap had that id."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM lap_times WHERE id = ?", (lap_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted lap {lap_id}")
        return deleted


# Global repository instance (set up by app initialization)
_repository: Optional[SqliteLapRepository] = None


def get_repository() -> SqliteLapRepository:
    """Get the global repository instance, opening the configured database on first use."""
    global _repository
    if _repository is None:
        _repository = SqliteLapRepository(Settings.from_env().db_path)
    return _repository


def init_repository(db_path: Path) -> SqliteLapRepository:
    """Initialize the global repository with a database file."""
    global _repository
    _repository = SqliteLapRepository(db_path)
    return _repository
