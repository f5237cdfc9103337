"""Performance learning: bounded run history and adaptive algorithm weights."""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict


logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "nexusdfs.performance"

_ROI_WEIGHT = 0.4
_NEXUS_WEIGHT = 0.4
_DIVERSITY_WEIGHT = 0.2
_WEIGHT_MIN = 0.5
_WEIGHT_MAX = 2.0
_BLEND_OLD = 0.9
_BLEND_NEW = 0.1


class Storage(Protocol):
    """Key-value capability used to persist history between processes."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class PerformanceRecord(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    strategy: str
    algorithm: str
    lineup_count: int = Field(0, ge=0)
    average_roi: float = 0.0
    average_nexus_score: float = 0.0
    top_lineup_roi: float = 0.0
    diversity_score: float = Field(0.0, ge=0.0, le=1.0)
    contest_type: str = "unknown"
    constraint_complexity: float = 0.0

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_summary(
        cls,
        strategy: str,
        algorithm: str,
        summary: Mapping[str, Any],
        *,
        top_lineup_roi: float = 0.0,
        contest_type: str = "unknown",
        constraint_complexity: float = 0.0,
    ) -> "PerformanceRecord":
        return cls(
            strategy=strategy,
            algorithm=algorithm,
            lineup_count=int(summary.get("lineup_count", summary.get("portfolio_size", 0)) or 0),
            average_roi=float(summary.get("average_roi", 0.0) or 0.0),
            average_nexus_score=float(summary.get("average_nexus_score", 0.0) or 0.0),
            top_lineup_roi=top_lineup_roi,
            diversity_score=float(summary.get("diversity_score", 0.0) or 0.0),
            contest_type=contest_type,
            constraint_complexity=constraint_complexity,
        )


def performance_score(records: List[PerformanceRecord]) -> float:
    """Blend of average ROI (40%), NexusScore (40%) and diversity x100 (20%)."""

    count = len(records)
    if not count:
        return 0.0
    roi = sum(record.average_roi for record in records) / count
    nexus = sum(record.average_nexus_score for record in records) / count
    diversity = sum(record.diversity_score for record in records) / count
    return roi * _ROI_WEIGHT + nexus * _NEXUS_WEIGHT + diversity * 100.0 * _DIVERSITY_WEIGHT


def target_weight(score: float) -> float:
    return max(_WEIGHT_MIN, min(_WEIGHT_MAX, 1.0 + score / 100.0))


def blend_weight(current: float, target: float) -> float:
    return _BLEND_OLD * current + _BLEND_NEW * target


def _log_async_failure(future: "Future[Dict[str, float]]") -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Asynchronous performance update failed: %s", exc)


class PerformanceTracker:
    """Bounded, time-ordered run history with per-algorithm weights.

    This is the only state shared across runs. ``record`` serialises updates
    with a lock; ``record_async`` hands them to a single writer thread.
    """

    def __init__(
        self,
        storage: Optional[Storage] = None,
        *,
        history_size: int = 100,
        min_records: int = 10,
        storage_key: str = DEFAULT_STORAGE_KEY,
    ):
        if history_size < 1:
            raise ValueError("history_size must be positive")
        self.storage = storage
        self.history_size = history_size
        self.min_records = min_records
        self.storage_key = storage_key
        self._lock = threading.Lock()
        self._history: List[PerformanceRecord] = []
        self._weights: Dict[str, float] = {}
        self._executor: Optional[ThreadPoolExecutor] = None
        self._load()

    def _load(self) -> None:
        if self.storage is None:
            return
        raw = self.storage.get(self.storage_key)
        if not raw:
            return
        try:
            payload = json.loads(raw)
            history = [PerformanceRecord.model_validate(entry) for entry in payload.get("history", [])]
            weights = {str(key): float(value) for key, value in payload.get("weights", {}).items()}
        except (ValueError, TypeError, AttributeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable performance history: %s", exc)
            return
        history.sort(key=lambda record: record.timestamp)
        self._history = history[-self.history_size :]
        self._weights = weights
        logger.info("Loaded %s performance records", len(self._history))

    def _persist(self, history: List[PerformanceRecord], weights: Dict[str, float]) -> None:
        if self.storage is None:
            return
        payload = {
            "history": [record.model_dump(mode="json") for record in history],
            "weights": weights,
        }
        self.storage.set(self.storage_key, json.dumps(payload))

    def record(self, record: PerformanceRecord) -> Dict[str, float]:
        """Append ``record``, evict the oldest past the cap, update and persist weights.

        In-memory state changes only after storage accepts the write, so a
        failed write leaves both sides at the previous snapshot.
        """

        with self._lock:
            history = self._history + [record]
            if len(history) > self.history_size:
                del history[: len(history) - self.history_size]
            weights = dict(self._weights)

            records = [entry for entry in history if entry.algorithm == record.algorithm]
            current = weights.get(record.algorithm, 1.0)
            updated = None
            if len(records) >= self.min_records:
                updated = blend_weight(current, target_weight(performance_score(records)))
                weights[record.algorithm] = updated

            try:
                self._persist(history, weights)
            except Exception:
                logger.exception("Failed to persist performance record for %s", record.algorithm)
                raise
            self._history = history
            self._weights = weights
            if updated is not None:
                logger.info("Updated %s weight %.3f -> %.3f", record.algorithm, current, updated)
            return dict(weights)

    def record_async(self, record: PerformanceRecord) -> "Future[Dict[str, float]]":
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nexus-learning")
            executor = self._executor
        future = executor.submit(self.record, record)
        future.add_done_callback(_log_async_failure)
        return future

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def weights(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._weights)

    def weight(self, algorithm: str) -> float:
        with self._lock:
            return self._weights.get(algorithm, 1.0)

    def history(self) -> Tuple[PerformanceRecord, ...]:
        with self._lock:
            return tuple(self._history)

    def strategy_performance(self, strategy: str) -> Dict[str, Any]:
        with self._lock:
            records = [record for record in self._history if record.strategy == strategy]
        if not records:
            return {"usage": 0, "average_roi": 0.0, "average_nexus_score": 0.0, "last_used": None}
        return {
            "usage": len(records),
            "average_roi": sum(record.average_roi for record in records) / len(records),
            "average_nexus_score": sum(record.average_nexus_score for record in records) / len(records),
            "last_used": max(record.timestamp for record in records).isoformat(),
        }

    def weighted_distribution(self, distribution: Mapping[str, float]) -> Dict[str, float]:
        """Scale shares by learned weights, keeping their total."""

        weights = self.weights()
        total = sum(distribution.values())
        scaled = {key: share * weights.get(str(getattr(key, "value", key)), 1.0) for key, share in distribution.items()}
        scaled_total = sum(scaled.values())
        if scaled_total <= 0.0 or total <= 0.0:
            return dict(distribution)
        return {key: share / scaled_total * total for key, share in scaled.items()}
