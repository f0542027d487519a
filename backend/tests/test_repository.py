"""
Tests for the SQLite lap repository.
"""

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from lapwatch.errors import LapStoreError
from lapwatch.models.lap import DEFAULT_SIM
from lapwatch.services.repository import SqliteLapRepository


@pytest.fixture
def repo(tmp_path):
    """Empty repository in a temporary database."""
    return SqliteLapRepository(tmp_path / "laps.db")


@pytest.fixture
def populated_repo(repo):
    """Repository with laps over two tracks, two cars and two drivers."""
    laps = [
        ("Jane", "Porsche 963", "Spa", 125.400, datetime(2026, 5, 1, 10, 0, 0)),
        ("Jane", "Porsche 963", "Spa", 124.950, datetime(2026, 5, 1, 10, 5, 0)),
        ("Jane", "Ferrari 499P", "Spa", 126.100, datetime(2026, 5, 2, 9, 0, 0)),
        ("Max", "Porsche 963", "Spa", 124.700, datetime(2026, 5, 3, 18, 0, 0)),
        ("Max", "Porsche 963", "Monza", 96.300, datetime(2026, 5, 4, 12, 0, 0)),
    ]
    for driver, car, track, lap_time, recorded_at in laps:
        repo.insert(driver, car, track, lap_time, recorded_at=recorded_at)
    return repo


class TestInsert:
    """Tests for storing laps."""

    def test_insert_assigns_id(self, repo):
        """Inserted laps should get increasing ids and defaults."""
        first = repo.insert("Jane", "Porsche 963", "Spa", 125.4)
        second = repo.insert("Jane", "Porsche 963", "Spa", 124.9)

        assert first.id is not None
        assert second.id > first.id
        assert first.sim == DEFAULT_SIM
        assert first.recorded_at is not None
        assert first.created_at is not None

    def test_lap_time_rounded(self, repo):
        """Lap times are kept to the millisecond."""
        record = repo.insert("Jane", "Porsche 963", "Spa", 92.34549)

        assert record.lap_time == 92.345

    def test_explicit_sim_and_time(self, repo):
        recorded_at = datetime(2026, 1, 2, 3, 4, 5)
        record = repo.insert("Jane", "GT3", "Spa", 130.0, sim="rF2", recorded_at=recorded_at)

        assert record.sim == "rF2"
        assert record.recorded_at == recorded_at

    @pytest.mark.parametrize("lap_time", [0, -1, -0.0001])
    def test_rejects_non_positive_lap_time(self, repo, lap_time):
        with pytest.raises(ValueError):
            repo.insert("Jane", "Porsche 963", "Spa", lap_time)

    def test_rejects_blank_identity(self, repo):
        with pytest.raises(ValueError):
            repo.insert("", "Porsche 963", "Spa", 100.0)

    def test_get(self, repo):
        record = repo.insert("Jane", "Porsche 963", "Spa", 125.4)

        assert repo.get(record.id) == record
        assert repo.get(record.id + 100) is None

    def test_concurrent_inserts(self, repo):
        """Inserts from several threads should all be stored."""
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(
                lambda i: repo.insert("Jane", "Porsche 963", "Spa", 100.0 + i),
                range(40),
            ))

        assert repo.stats().total_laps == 40


class TestPersonalBest:
    """Tests for the personal best query."""

    def test_none_when_empty(self, repo):
        assert repo.personal_best("Jane", "Porsche 963", "Spa") is None

    def test_minimum_for_triple(self, populated_repo):
        """Personal best is the minimum lap time for the exact triple."""
        best = populated_repo.personal_best("Jane", "Porsche 963", "Spa")

        assert best.lap_time == 124.950

    def test_other_triples_ignored(self, populated_repo):
        """Faster laps by other drivers/cars/tracks should not count."""
        assert populated_repo.personal_best("Jane", "Ferrari 499P", "Spa").lap_time == 126.100
        assert populated_repo.personal_best("Jane", "Porsche 963", "Monza") is None

    def test_case_sensitive(self, populated_repo):
        """Matching is exact, including case."""
        assert populated_repo.personal_best("jane", "Porsche 963", "Spa") is None
        assert populated_repo.personal_best("Jane", "porsche 963", "spa") is None


class TestQueries:
    """Tests for the listing and aggregate queries."""

    def test_list_recent_order(self, populated_repo):
        """Recent laps are ordered newest first."""
        records = populated_repo.list_recent()

        assert [r.recorded_at.day for r in records] == [4, 3, 2, 1, 1]
        assert records[3].lap_time == 124.950

    def test_list_recent_limit(self, populated_repo):
        assert len(populated_repo.list_recent(limit=2)) == 2

    def test_best_laps_unfiltered(self, populated_repo):
        records = populated_repo.best_laps()

        assert [r.lap_time for r in records] == [96.300, 124.700, 124.950, 125.400, 126.100]

    def test_best_laps_by_track(self, populated_repo):
        records = populated_repo.best_laps(track="Spa")

        assert len(records) == 4
        assert records[0].driver_name == "Max"

    def test_best_laps_by_track_and_car(self, populated_repo):
        records = populated_repo.best_laps(track="Spa", car="Ferrari 499P")

        assert [r.lap_time for r in records] == [126.100]

    def test_best_laps_limit(self, repo):
        for i in range(15):
            repo.insert("Jane", "GT3", "Spa", 130.0 + i)

        assert len(repo.best_laps()) == 10

    def test_stats(self, populated_repo):
        stats = populated_repo.stats()

        assert stats.total_laps == 5
        assert stats.best_lap.lap_time == 96.300
        assert stats.unique_tracks == 2
        assert stats.unique_cars == 2

    def test_stats_empty(self, repo):
        stats = repo.stats()

        assert stats.total_laps == 0
        assert stats.best_lap is None
        assert stats.unique_tracks == 0
        assert stats.unique_cars == 0


class TestDelete:
    """Tests for deleting laps."""

    def test_delete(self, populated_repo):
        best = populated_repo.personal_best("Jane", "Porsche 963", "Spa")

        assert populated_repo.delete(best.id) is True
        assert populated_repo.get(best.id) is None
        assert populated_repo.personal_best("Jane", "Porsche 963", "Spa").lap_time == 125.400

    def test_delete_missing(self, repo):
        assert repo.delete(12345) is False


class TestStoreErrors:
    """Tests for error wrapping."""

    def test_sqlite_error_wrapped(self, repo):
        """Database errors should surface as LapStoreError."""
        conn = sqlite3.connect(repo.db_path)
        conn.execute("DROP TABLE lap_times")
        conn.close()

        with pytest.raises(LapStoreError):
            repo.list_recent()
