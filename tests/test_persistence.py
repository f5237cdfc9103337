import pytest

from nexusdfs.learning import PerformanceRecord, PerformanceTracker
from nexusdfs.persistence import MemoryStorage, SessionStore, SQLiteStorage


@pytest.fixture
def sqlite_path(tmp_path, monkeypatch):
    monkeypatch.delenv("NEXUS_DB_PATH", raising=False)
    return tmp_path / "state" / "nexus.sqlite"


def test_memory_storage_round_trip():
    storage = MemoryStorage({"b": "2"})
    storage.set("a", "1")
    assert storage.get("a") == "1"
    assert storage.get("missing") is None
    assert storage.keys() == ["a", "b"]


def test_sqlite_storage_upserts(sqlite_path):
    storage = SQLiteStorage(sqlite_path)
    storage.set("weights", "{}")
    storage.set("weights", '{"stochastic": 1.1}')

    assert sqlite_path.exists()
    assert storage.get("weights") == '{"stochastic": 1.1}'

    storage.delete("weights")
    assert storage.get("weights") is None


def test_sqlite_storage_env_override(tmp_path, monkeypatch):
    override = tmp_path / "override.sqlite"
    monkeypatch.setenv("NEXUS_DB_PATH", str(override))

    storage = SQLiteStorage(tmp_path / "ignored.sqlite")
    storage.set("key", "value")

    assert storage.db_path == override
    assert not (tmp_path / "ignored.sqlite").exists()


def test_tracker_history_persists_in_sqlite(sqlite_path):
    tracker = PerformanceTracker(SQLiteStorage(sqlite_path))
    tracker.record(PerformanceRecord(strategy="balanced", algorithm="stochastic", average_roi=12.0))

    reloaded = PerformanceTracker(SQLiteStorage(sqlite_path))

    assert [record.average_roi for record in reloaded.history()] == [12.0]


def test_session_store():
    sessions = SessionStore()
    sessions.put("run-1", {"status": "initialized"})
    sessions.put("run-2", {"status": "running"})

    assert len(sessions) == 2
    assert sessions.get("run-1") == {"status": "initialized"}
    assert sessions.remove("run-1") == {"status": "initialized"}
    assert sessions.remove("run-1") is None
    assert sessions.run_ids() == ["run-2"]
