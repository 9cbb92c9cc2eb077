from __future__ import annotations

import threading
from typing import Callable, Dict, Optional

from tunebridge.config import TransferSettings
from tunebridge.jobs import JobStore, TransferJob
from tunebridge.utils.logging import setup_logger


def next_synthetic_value(current: int, step: int = 10, cap: int = 90) -> int:
    """Next multiple of `step` strictly above `current`, never above `cap`."""
    return min(cap, (max(0, current) // step + 1) * step)


class SyntheticProgressEstimator:
    """Animates progress for jobs whose remote reports nothing fine-grained.

    One ticker thread per job. A ticker stops as soon as the job gets real
    progress, turns terminal, the batch stops being active, or the cap is hit.
    The value never reaches 100 on its own; that is left to a confirmed completion.
    """

    def __init__(
        self,
        store: JobStore,
        settings: Optional[TransferSettings] = None,
        is_active: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.store = store
        self.settings = settings or TransferSettings()
        self.is_active = is_active or (lambda: True)
        self._stops: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()
        self.logger = setup_logger()
        store.subscribe(self._on_job_change)

    def _eligible(self, job: Optional[TransferJob]) -> bool:
        return job is not None and not job.is_terminal and not job.real_progress and self.is_active()

    def step(self, playlist_id: str) -> bool:
        """Advance one tick. Returns False once the ticker should stop."""
        job = self.store.get(playlist_id)
        if not self._eligible(job):
            return False
        cap = self.settings.synthetic_cap
        if job.progress_percent >= cap:
            return False
        value = next_synthetic_value(job.progress_percent, self.settings.synthetic_step, cap)
        changes = {"progress_percent": value, "synthetic_progress": True}
        if not job.message:
            changes["message"] = "Transferring..."
        if self.store.update(playlist_id, **changes) is None:
            return False
        return value < cap

    def is_running(self, playlist_id: str) -> bool:
        with self._lock:
            return playlist_id in self._stops

    def maybe_attach(self, playlist_id: str) -> bool:
        """Start a ticker for the job if it needs one. Idempotent."""
        if not self._eligible(self.store.get(playlist_id)):
            return False
        with self._lock:
            if playlist_id in self._stops:
                return True
            stop = threading.Event()
            self._stops[playlist_id] = stop
        self.logger.debug(f"Synthetic progress started for {playlist_id}")
        t = threading.Thread(target=self._run, args=(playlist_id, stop), daemon=True, name=f"synthetic-{playlist_id}")
        t.start()
        return True

    def _run(self, playlist_id: str, stop: threading.Event) -> None:
        try:
            while not stop.wait(self.settings.synthetic_interval_s):
                if not self.step(playlist_id):
                    break
        finally:
            with self._lock:
                if self._stops.get(playlist_id) is stop:
                    self._stops.pop(playlist_id, None)

    def stop(self, playlist_id: str) -> None:
        with self._lock:
            stop = self._stops.pop(playlist_id, None)
        if stop:
            stop.set()

    def stop_all(self) -> None:
        with self._lock:
            stops = list(self._stops.values())
            self._stops.clear()
        for stop in stops:
            stop.set()

    def _on_job_change(self, job: TransferJob) -> None:
        if job.is_terminal or job.real_progress:
            self.stop(job.playlist_id)
