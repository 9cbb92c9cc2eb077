from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from tunebridge.jobs import JobStatus, TransferJob
from tunebridge.utils.formatting import clamp_percent


@dataclass(frozen=True)
class BatchProgress:
    overall_percent: int
    completed_count: int
    failed_count: int
    total: int
    active_job_message: str

    def to_dict(self) -> dict:
        return asdict(self)


def active_job_message(job: Optional[TransferJob]) -> str:
    """One status line for the job currently in flight."""
    if job is None:
        return ""
    name = job.playlist_name or "Playlist"
    if job.total_tracks > 0:
        return f'Processing "{name}" - {job.processed_tracks}/{job.total_tracks} tracks'
    if job.processed_tracks > 0:
        return f'Processing "{name}" - {job.processed_tracks} tracks processed'
    if job.message:
        return f'Processing "{name}" - {job.message}'
    return f'Processing "{name}"'


def aggregate(jobs: Iterable[TransferJob]) -> BatchProgress:
    """Batch-level progress, computed from scratch from the given jobs."""
    jobs = list(jobs)
    if not jobs:
        return BatchProgress(0, 0, 0, 0, "")
    accumulated = 0
    completed = 0
    failed = 0
    active: Optional[TransferJob] = None
    for job in jobs:
        if job.status == JobStatus.COMPLETED:
            completed += 1
            accumulated += 100
            continue
        if job.status == JobStatus.FAILED:
            failed += 1
        elif active is None:
            active = job
        accumulated += max(0, min(100, job.progress_percent))
    return BatchProgress(
        overall_percent=clamp_percent(accumulated / len(jobs)),
        completed_count=completed,
        failed_count=failed,
        total=len(jobs),
        active_job_message=active_job_message(active),
    )
