"""Publish/subscribe registry for sync progress, keyed by sync job id."""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from bankfeed.logging_setup import get_logger

logger = get_logger(__name__)


class ProgressStatus(str, Enum):
    FETCHING = "fetching"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressUpdate:
    """Snapshot of a running sync."""

    job_id: str
    status: ProgressStatus
    transactions_fetched: int = 0
    transactions_processed: int = 0
    duplicates_skipped: int = 0
    current_batch: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None


ProgressCallback = Callable[[ProgressUpdate], None]


class ProgressTracker:
    """Thread-safe topic map from job id to subscriber callbacks.

    Callbacks run on the publishing thread, outside the lock. A callback
    that raises is logged and does not stop delivery to the others.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[ProgressCallback]] = {}

    def subscribe(self, job_id: str, callback: ProgressCallback) -> None:
        with self._lock:
            self._subscribers.setdefault(job_id, []).append(callback)

    def unsubscribe(self, job_id: str, callback: ProgressCallback) -> None:
        """Remove a callback; unknown callbacks are ignored."""
        with self._lock:
            callbacks = self._subscribers.get(job_id)
            if not callbacks:
                return
            try:
                callbacks.remove(callback)
            except ValueError:
                return
            if not callbacks:
                del self._subscribers[job_id]

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(job_id, ()))

    def publish(self, update: ProgressUpdate) -> int:
        """Deliver an update to the job's subscribers. Returns how many were called."""
        with self._lock:
            callbacks = list(self._subscribers.get(update.job_id, ()))
        for callback in callbacks:
            try:
                callback(update)
            except Exception:
                logger.exception("Progress subscriber failed for job %s", update.job_id)
        return len(callbacks)
