"""Progress sinks and cooperative cancellation tokens."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

from nexusdfs.errors import OptimizationCancelled


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]
StatusCallback = Callable[[str], None]


class ProgressSink(Protocol):
    def progress(self, percent: float, stage: str) -> None:
        ...

    def status(self, message: str) -> None:
        ...


class NullProgress:
    def progress(self, percent: float, stage: str) -> None:
        return None

    def status(self, message: str) -> None:
        return None


class CallbackProgress:
    """Forward progress to optional callbacks, clamping percent to [0, 100].

    Callback errors are logged and dropped so a faulty listener never aborts a
    run.
    """

    def __init__(self, on_progress: Optional[ProgressCallback] = None, on_status: Optional[StatusCallback] = None):
        self.on_progress = on_progress
        self.on_status = on_status
        self._lock = threading.Lock()

    def progress(self, percent: float, stage: str) -> None:
        if self.on_progress is None:
            return
        value = max(0.0, min(100.0, float(percent)))
        with self._lock:
            try:
                self.on_progress(value, stage)
            except Exception:  # noqa: BLE001 - listener failures must not stop the run
                logger.exception("Progress callback failed at stage %s", stage)

    def status(self, message: str) -> None:
        if self.on_status is None:
            return
        with self._lock:
            try:
                self.on_status(message)
            except Exception:  # noqa: BLE001
                logger.exception("Status callback failed")


class ScaledProgress:
    """Map a child's 0-100 progress onto ``[start, end]`` of a parent sink."""

    def __init__(self, parent: ProgressSink, start: float, end: float, prefix: str | None = None):
        self.parent = parent
        self.start = start
        self.end = end
        self.prefix = prefix

    def progress(self, percent: float, stage: str) -> None:
        span = self.end - self.start
        label = f"{self.prefix}:{stage}" if self.prefix else stage
        self.parent.progress(self.start + span * max(0.0, min(100.0, percent)) / 100.0, label)

    def status(self, message: str) -> None:
        self.parent.status(message)


class CancellationToken:
    """Cooperative cancellation flag checked at loop boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str, algorithm: str | None = None) -> None:
        if self._event.is_set():
            raise OptimizationCancelled(stage, algorithm=algorithm)
