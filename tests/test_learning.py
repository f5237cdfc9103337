import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from nexusdfs.learning import PerformanceRecord, PerformanceTracker, performance_score, target_weight
from nexusdfs.persistence import MemoryStorage


def _record(algorithm="stochastic", strategy="cash_game", roi=50.0, nexus=50.0, diversity=0.5, **extra):
    return PerformanceRecord(
        strategy=strategy,
        algorithm=algorithm,
        lineup_count=10,
        average_roi=roi,
        average_nexus_score=nexus,
        diversity_score=diversity,
        **extra,
    )


def test_performance_score_blend():
    # 0.4*50 + 0.4*50 + 0.2*0.5*100
    assert performance_score([_record()]) == pytest.approx(50.0)
    assert performance_score([]) == 0.0


def test_target_weight_is_clamped():
    assert target_weight(50.0) == pytest.approx(1.5)
    assert target_weight(500.0) == 2.0
    assert target_weight(-500.0) == 0.5


def test_weights_move_only_after_min_records():
    tracker = PerformanceTracker(min_records=10)

    for _ in range(9):
        tracker.record(_record())
    assert tracker.weights() == {}

    weights = tracker.record(_record())
    # 0.9 * 1.0 + 0.1 * 1.5
    assert weights["stochastic"] == pytest.approx(1.05)
    assert tracker.weight("annealing") == 1.0


def test_weight_update_is_per_algorithm():
    tracker = PerformanceTracker(min_records=1)
    tracker.record(_record(algorithm="annealing", roi=-500.0, nexus=-500.0, diversity=0.0))
    tracker.record(_record(algorithm="stochastic"))

    weights = tracker.weights()
    assert weights["annealing"] == pytest.approx(0.9 + 0.05)
    assert weights["stochastic"] == pytest.approx(1.05)


def test_history_is_bounded():
    tracker = PerformanceTracker(history_size=3, min_records=100)
    for index in range(5):
        tracker.record(_record(roi=float(index)))

    history = tracker.history()
    assert len(history) == 3
    assert [record.average_roi for record in history] == [2.0, 3.0, 4.0]


def test_strategy_performance_summary():
    tracker = PerformanceTracker()
    earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
    tracker.record(_record(roi=10.0, nexus=40.0, timestamp=earlier))
    tracker.record(_record(roi=30.0, nexus=60.0, timestamp=earlier + timedelta(days=1)))

    stats = tracker.strategy_performance("cash_game")
    assert stats["usage"] == 2
    assert stats["average_roi"] == pytest.approx(20.0)
    assert stats["average_nexus_score"] == pytest.approx(50.0)
    assert stats["last_used"].startswith("2024-01-02")
    assert tracker.strategy_performance("tournament")["usage"] == 0


def test_history_survives_reload():
    storage = MemoryStorage()
    tracker = PerformanceTracker(storage, min_records=1)
    tracker.record(_record())

    reloaded = PerformanceTracker(storage, min_records=1)

    assert len(reloaded.history()) == 1
    assert reloaded.weight("stochastic") == pytest.approx(1.05)
    payload = json.loads(storage.get("nexusdfs.performance"))
    assert set(payload) == {"history", "weights"}


def test_unreadable_history_is_ignored():
    storage = MemoryStorage({"nexusdfs.performance": "{not json"})
    tracker = PerformanceTracker(storage)
    assert tracker.history() == ()


def test_async_records_are_serialised():
    tracker = PerformanceTracker(min_records=1)
    futures = [tracker.record_async(_record()) for _ in range(20)]
    for future in futures:
        future.result(timeout=5)
    tracker.close()

    assert len(tracker.history()) == 20
    # Twenty sequential blends toward 1.5 starting from 1.0.
    assert tracker.weight("stochastic") == pytest.approx(1.5 - 0.5 * 0.9 ** 20)


def test_weighted_distribution_keeps_total():
    tracker = PerformanceTracker(min_records=1)
    tracker.record(_record(algorithm="stochastic"))

    shares = tracker.weighted_distribution({"stochastic": 0.5, "annealing": 0.5})

    assert sum(shares.values()) == pytest.approx(1.0)
    assert shares["stochastic"] > shares["annealing"]


class FullDiskStorage(MemoryStorage):
    def set(self, key, value):
        raise OSError("disk full")


def test_failed_write_leaves_state_untouched(caplog):
    tracker = PerformanceTracker(FullDiskStorage(), min_records=1)

    with caplog.at_level(logging.ERROR, logger="nexusdfs.learning"):
        with pytest.raises(OSError):
            tracker.record(_record())

    assert tracker.history() == ()
    assert tracker.weights() == {}
    assert "Failed to persist" in caplog.text


def test_async_write_failure_is_logged(caplog):
    tracker = PerformanceTracker(FullDiskStorage(), min_records=1)

    with caplog.at_level(logging.ERROR, logger="nexusdfs.learning"):
        future = tracker.record_async(_record())
        assert isinstance(future.exception(timeout=5), OSError)
        tracker.close()

    assert tracker.history() == ()
    assert "Asynchronous performance update failed: disk full" in caplog.text
