from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from tunebridge.config import TransferSettings
from tunebridge.errors import RemoteJobError, TransportError
from tunebridge.jobs import JobStatus, JobStore, TransferJob
from tunebridge.transfer_client import TransferClient
from tunebridge.utils.formatting import as_count, clamp_percent, first_number, normalize_failures
from tunebridge.utils.logging import setup_logger

COMPLETED_STATUSES = {"completed", "success", "finished", "done"}
FAILED_STATUSES = {"failed", "error", "cancelled", "canceled", "aborted"}
PROGRESSING_STATUSES = {"processing", "running", "in_progress", "in-progress", "transferring", "started", "active"}

TOTAL_KEYS = ("totalTracks", "total_tracks", "total", "tracksTotal", "trackTotal", "targetCount")
PROCESSED_KEYS = (
    "processedTracks",
    "processed_tracks",
    "processed",
    "completed",
    "completedTracks",
    "tracksProcessed",
    "current",
)


@dataclass
class StatusReading:
    """What one Transfer Status payload says about a job."""

    status: str = ""
    total_tracks: int = 0
    processed_tracks: int = 0
    progress_percent: Optional[int] = None  # None: payload carried no progress
    message: str = ""
    failures: List[Dict[str, str]] = field(default_factory=list)
    completed: bool = False
    failed: bool = False

    @property
    def has_real_signal(self) -> bool:
        return self.total_tracks > 0 or self.processed_tracks > 0 or (self.progress_percent or 0) > 0

    @property
    def progressing(self) -> bool:
        return self.status in PROGRESSING_STATUSES


def interpret_status(payload: Optional[Mapping[str, Any]]) -> StatusReading:
    """Parse a Transfer Status payload. Pure; unknown shapes give an empty reading."""
    if not isinstance(payload, Mapping):
        return StatusReading()
    raw_status = payload.get("status")
    status = raw_status.strip().lower() if isinstance(raw_status, str) else ""

    total = as_count(first_number(payload, TOTAL_KEYS))
    processed = as_count(first_number(payload, PROCESSED_KEYS))

    progress: Optional[int] = None
    raw_progress = first_number(payload, ("progress",))
    if raw_progress is not None:
        # 0..1 is a fraction, anything above is already a percentage
        progress = clamp_percent(raw_progress * 100 if raw_progress <= 1 else raw_progress)
    elif total > 0:
        progress = clamp_percent(min(1.0, processed / total) * 100)

    message = payload.get("message")
    if not isinstance(message, str):
        stage = payload.get("stage")
        message = stage if isinstance(stage, str) else ""

    completed = status in COMPLETED_STATUSES or payload.get("isComplete") is True or payload.get("finished") is True
    failed = status in FAILED_STATUSES or payload.get("failed") is True or payload.get("error") is True
    return StatusReading(
        status=status,
        total_tracks=total,
        processed_tracks=processed,
        progress_percent=progress,
        message=message,
        failures=normalize_failures(payload.get("failures") or payload.get("failedTracks")),
        completed=completed and not failed,
        failed=failed,
    )


def reading_to_update(job: TransferJob, reading: StatusReading) -> Dict[str, Any]:
    """Field changes for `job` after a successful poll. Pure."""
    update: Dict[str, Any] = {"consecutive_failures": 0}
    # keep the last known counts when a payload omits them
    if reading.total_tracks:
        update["total_tracks"] = reading.total_tracks
    if reading.processed_tracks:
        update["processed_tracks"] = reading.processed_tracks
    if reading.message:
        update["message"] = reading.message
    if reading.failures:
        update["failures"] = reading.failures
    # zero or missing progress means "no news"; synthetic values stay in place
    if reading.has_real_signal:
        update["real_progress"] = True
        update["synthetic_progress"] = False
        if reading.progress_percent is not None:
            update["progress_percent"] = reading.progress_percent

    if reading.completed:
        total = reading.total_tracks or reading.processed_tracks or job.total_tracks
        update.update(
            status=JobStatus.COMPLETED,
            progress_percent=100,
            synthetic_progress=False,
            processed_tracks=total,
            total_tracks=total,
            message=reading.message or "Transfer completed",
        )
    elif reading.failed:
        update.update(
            status=JobStatus.FAILED,
            synthetic_progress=False,
            message=reading.message or "Transfer failed",
        )
    elif reading.progressing and job.status == JobStatus.QUEUED:
        update["status"] = JobStatus.PROCESSING
    return update


class JobStatusPoller:
    """Polls Transfer Status for one batch's jobs until each reaches a terminal state."""

    def __init__(
        self,
        client: TransferClient,
        store: JobStore,
        settings: Optional[TransferSettings] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.client = client
        self.store = store
        self.settings = settings or TransferSettings()
        self.cancel_event = cancel_event or threading.Event()
        self.logger = setup_logger()

    def _terminal(self, playlist_id: str) -> bool:
        job = self.store.get(playlist_id)
        return job is None or job.is_terminal

    def poll_once(self, playlist_id: str, job_id: str) -> bool:
        """One tick. Returns True when polling should stop."""
        if self.cancel_event.is_set() or self._terminal(playlist_id):
            return True
        try:
            payload = self.client.get_status(job_id)
        except TransportError as e:
            return self._record_failure(playlist_id, job_id, e)

        if self.cancel_event.is_set():
            return True
        job = self.store.get(playlist_id)
        if job is None or job.is_terminal:
            return True
        reading = interpret_status(payload)
        self.store.update(playlist_id, **reading_to_update(job, reading))
        if reading.failed:
            err = RemoteJobError(reading.message or "Transfer failed", {"job_id": job_id, "status": reading.status})
            self.logger.warning(f"Remote reported failure for job {job_id} ({reading.status or 'no status'}): {err}")
        return reading.completed or reading.failed

    def _record_failure(self, playlist_id: str, job_id: str, error: TransportError) -> bool:
        if self.cancel_event.is_set():
            return True
        job = self.store.get(playlist_id)
        if job is None or job.is_terminal:
            return True
        failures = job.consecutive_failures + 1
        if failures <= self.settings.max_consecutive_poll_failures:
            self.logger.warning(
                f"Status poll for job {job_id} failed ({failures}/{self.settings.max_consecutive_poll_failures}): {error}"
            )
            self.store.update(playlist_id, consecutive_failures=failures)
            return False
        self.store.update(
            playlist_id,
            consecutive_failures=failures,
            status=JobStatus.FAILED,
            synthetic_progress=False,
            message=f"Transfer status polling failed: {error}",
        )
        return True

    def run(self, playlist_id: str, job_id: str) -> Optional[TransferJob]:
        """Poll now, then every poll_interval_s, until terminal, cancelled or timed out."""
        deadline = time.time() + self.settings.job_timeout_s
        while True:
            if self.poll_once(playlist_id, job_id):
                break
            if time.time() >= deadline:
                self.store.update(
                    playlist_id,
                    status=JobStatus.FAILED,
                    synthetic_progress=False,
                    message=f"Transfer timed out after {int(self.settings.job_timeout_s)} seconds",
                )
                break
            if self.cancel_event.wait(self.settings.poll_interval_s):
                break
        return self.store.get(playlist_id)

    def attach(self, playlist_id: str, job_id: str) -> threading.Thread:
        """Run `run` on a daemon thread and return it."""
        t = threading.Thread(target=self.run, args=(playlist_id, job_id), daemon=True, name=f"poll-{job_id}")
        t.start()
        return t
