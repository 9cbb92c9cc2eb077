from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Callable, Dict, List, Optional

from tunebridge.utils.logging import setup_logger


class JobStatus(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# queued and processing share a rank: both are "in flight" and may alternate.
_STATUS_RANK = {
    JobStatus.IDLE: 0,
    JobStatus.STARTING: 1,
    JobStatus.QUEUED: 2,
    JobStatus.PROCESSING: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
}


@dataclass
class TransferJob:
    playlist_id: str
    playlist_name: str
    job_id: Optional[str] = None
    status: JobStatus = JobStatus.IDLE
    progress_percent: int = 0
    processed_tracks: int = 0
    total_tracks: int = 0
    message: str = ""
    synthetic_progress: bool = False
    real_progress: bool = False  # set once the remote reported real progress
    consecutive_failures: int = 0
    failures: list = field(default_factory=list)  # per-track failures reported by the remote
    last_updated_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict:
        return {
            "playlist_id": self.playlist_id,
            "playlist_name": self.playlist_name,
            "job_id": self.job_id,
            "status": self.status.value,
            "progress_percent": self.progress_percent,
            "processed_tracks": self.processed_tracks,
            "total_tracks": self.total_tracks,
            "message": self.message,
            "synthetic_progress": self.synthetic_progress,
            "failures": list(self.failures),
            "last_updated_at": self.last_updated_at,
        }


_JOB_FIELDS = {f.name for f in fields(TransferJob)} - {"playlist_id"}

JobListener = Callable[[TransferJob], None]


class JobStore:
    """Owns every TransferJob of one batch.

    Writers submit partial updates through `update`; fields they do not name
    are left untouched. Writes are serialized by a single lock. The store
    enforces the job lifecycle:

    - a terminal job is never modified again;
    - status never moves backwards;
    - once a job has real progress, updates flagging synthetic progress are dropped;
    - after `close()` every write is dropped.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, TransferJob] = {}
        self._order: List[str] = []
        self._lock = threading.RLock()
        self._listeners: List[JobListener] = []
        self._closed = False
        self.logger = setup_logger()

    def __len__(self) -> int:
        with self._lock:
            return len(self._order)

    def __contains__(self, playlist_id: str) -> bool:
        with self._lock:
            return playlist_id in self._jobs

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, job: TransferJob) -> TransferJob:
        """Register a new job; adding an existing playlist id is an error."""
        with self._lock:
            if job.playlist_id in self._jobs:
                raise ValueError(f"Duplicate playlist id in batch: {job.playlist_id}")
            self._jobs[job.playlist_id] = replace(job)
            self._order.append(job.playlist_id)
            return replace(job)

    def get(self, playlist_id: str) -> Optional[TransferJob]:
        with self._lock:
            job = self._jobs.get(playlist_id)
            return replace(job) if job else None

    def snapshot(self) -> List[TransferJob]:
        """Copies of all jobs in submission order."""
        with self._lock:
            return [replace(self._jobs[pid]) for pid in self._order]

    def subscribe(self, listener: JobListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def update(self, playlist_id: str, **changes) -> Optional[TransferJob]:
        """Merge `changes` into a job. Returns the merged copy, or None if dropped."""
        unknown = set(changes) - _JOB_FIELDS
        if unknown:
            raise TypeError(f"Unknown TransferJob fields: {', '.join(sorted(unknown))}")
        with self._lock:
            if self._closed:
                return None
            current = self._jobs.get(playlist_id)
            if current is None:
                self.logger.debug(f"Dropping update for unknown playlist {playlist_id}")
                return None
            if current.is_terminal:
                return None
            if changes.get("synthetic_progress") is True and (current.real_progress or changes.get("real_progress")):
                return None
            if "status" in changes:
                new_status = JobStatus(changes["status"])
                if _STATUS_RANK[new_status] < _STATUS_RANK[current.status]:
                    # keep the rest of the update, ignore the regression
                    new_status = current.status
                changes["status"] = new_status
            if "progress_percent" in changes:
                changes["progress_percent"] = max(0, min(100, int(changes["progress_percent"])))
            for count_field in ("processed_tracks", "total_tracks", "consecutive_failures"):
                if count_field in changes:
                    changes[count_field] = max(0, int(changes[count_field] or 0))
            if "failures" in changes:
                changes["failures"] = list(changes["failures"] or [])
            changes["last_updated_at"] = time.time()
            merged = replace(current, **changes)
            self._jobs[playlist_id] = merged
            if merged.is_terminal and not current.is_terminal:
                self.logger.info(f"{merged.playlist_name}: {merged.status.value} ({merged.message})")
            result = replace(merged)
            listeners = list(self._listeners)
        for listener in listeners:
            listener(result)
        return result
