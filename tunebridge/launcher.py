from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from tunebridge.config import TransferSettings
from tunebridge.errors import AuthError, TransferError, ValidationError
from tunebridge.estimator import SyntheticProgressEstimator
from tunebridge.jobs import JobListener, JobStatus, JobStore, TransferJob
from tunebridge.poller import JobStatusPoller
from tunebridge.progress import BatchProgress, aggregate
from tunebridge.providers import Provider, is_pseudo_playlist, provider_label, validate_combination
from tunebridge.session import SessionProvider
from tunebridge.transfer_client import TransferClient
from tunebridge.utils.formatting import playlist_display_name
from tunebridge.utils.logging import setup_logger

PSEUDO_PLAYLIST_MESSAGE = "Favorite items cannot be transferred as playlists. Please select actual playlists."


@dataclass
class PlaylistSelection:
    id: str
    name: str = ""


@dataclass
class BatchRequest:
    source_provider: str
    destination_provider: str
    playlists: List[PlaylistSelection] = field(default_factory=list)


class BatchPhase(str, Enum):
    LAUNCHING = "launching"
    TRANSFERRING = "transferring"
    FINISHED = "finished"
    CANCELLED = "cancelled"


class TransferBatch:
    """Jobs created by one launch, plus everything needed to tear them down."""

    def __init__(self, source_provider: Provider, destination_provider: Provider, owner_id: str = "") -> None:
        self.id = str(uuid.uuid4())
        self.source_provider = source_provider
        self.destination_provider = destination_provider
        self.owner_id = owner_id
        self.store = JobStore()
        self.cancel_event = threading.Event()
        self.phase = BatchPhase.LAUNCHING
        self.created_at = time.time()
        self.finished_at: Optional[float] = None
        self.estimator: Optional[SyntheticProgressEstimator] = None
        self._done = threading.Event()
        self._phase_lock = threading.Lock()

    @property
    def jobs(self) -> List[TransferJob]:
        return self.store.snapshot()

    def progress(self) -> BatchProgress:
        return aggregate(self.store.snapshot())

    def is_active(self) -> bool:
        return not self.cancel_event.is_set() and self.phase in (BatchPhase.LAUNCHING, BatchPhase.TRANSFERRING)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the batch finishes or is cancelled."""
        return self._done.wait(timeout)

    def cancel(self) -> None:
        """Stop every poller and ticker; no job is modified afterwards."""
        self.cancel_event.set()
        self.store.close()
        if self.estimator:
            self.estimator.stop_all()
        with self._phase_lock:
            if self.phase != BatchPhase.FINISHED:
                self.phase = BatchPhase.CANCELLED
                self.finished_at = time.time()
        self._done.set()

    def counts(self) -> Tuple[int, int]:
        progress = self.progress()
        return progress.completed_count, progress.failed_count

    def _begin(self) -> bool:
        """Move to TRANSFERRING unless the batch was cancelled first."""
        with self._phase_lock:
            if self.cancel_event.is_set():
                return False
            self.phase = BatchPhase.TRANSFERRING
            return True

    def _finish(self) -> None:
        if self.estimator:
            self.estimator.stop_all()
        with self._phase_lock:
            if not self.cancel_event.is_set():
                self.phase = BatchPhase.FINISHED
                self.finished_at = time.time()
        self._done.set()


class BatchLauncher:
    """Validates a batch, starts one remote transfer per playlist and follows each to the end."""

    def __init__(
        self,
        session: SessionProvider,
        settings: Optional[TransferSettings] = None,
        client_factory: Optional[Callable[[str], TransferClient]] = None,
    ) -> None:
        self.session = session
        self.settings = settings or TransferSettings()
        self.client_factory = client_factory or (lambda token: TransferClient(token, self.settings))
        self.logger = setup_logger()

    def validate(self, request: BatchRequest) -> Tuple[Provider, Provider, str]:
        """Synchronous pre-flight checks; raises before any job or network call exists."""
        if not request.playlists:
            raise ValidationError("No playlists selected")
        source, destination = validate_combination(request.source_provider, request.destination_provider)
        token = self.session.get_auth_token()
        if not token:
            raise AuthError("Missing or expired auth token. Please login first.")
        for provider in (source, destination):
            if not self.session.is_connected(provider):
                raise AuthError(f"Please connect your {provider_label(provider)} account first")
        return source, destination, token

    def launch(
        self,
        request: BatchRequest,
        background: bool = True,
        owner_id: str = "",
        listener: Optional[JobListener] = None,
    ) -> TransferBatch:
        """Create a batch and run it (on a daemon thread unless background=False)."""
        source, destination, token = self.validate(request)
        client = self.client_factory(token)

        batch = TransferBatch(source, destination, owner_id=owner_id)
        for selection in request.playlists:
            if selection.id in batch.store:
                continue
            batch.store.add(
                TransferJob(
                    playlist_id=selection.id,
                    playlist_name=playlist_display_name(selection.id, selection.name),
                    message="Waiting to start...",
                )
            )
        if listener:
            batch.store.subscribe(listener)
        batch.estimator = SyntheticProgressEstimator(batch.store, self.settings, is_active=batch.is_active)
        poller = JobStatusPoller(client, batch.store, self.settings, batch.cancel_event)
        self.logger.info(
            f"Batch {batch.id} started · {provider_label(source)} → {provider_label(destination)} · {len(batch.store)} playlist(s)"
        )

        if background:
            t = threading.Thread(target=self._run_batch, args=(batch, client, poller), daemon=True)
            t.start()
        else:
            self._run_batch(batch, client, poller)
        return batch

    def _run_batch(self, batch: TransferBatch, client: TransferClient, poller: JobStatusPoller) -> None:
        batch._begin()
        # One worker keeps jobs strictly in submission order.
        pool_size = max(1, self.settings.concurrency)
        try:
            with ThreadPoolExecutor(max_workers=pool_size) as executor:
                futures = [
                    executor.submit(self._run_job, batch, client, poller, job.playlist_id) for job in batch.jobs
                ]
                for f in as_completed(futures):
                    f.result()
        finally:
            batch._finish()
        ok, failed = batch.counts()
        self.logger.info(f"Batch {batch.id} {batch.phase.value}: {ok} transferred, {failed} failed")

    def _run_job(self, batch: TransferBatch, client: TransferClient, poller: JobStatusPoller, playlist_id: str) -> None:
        if batch.cancel_event.is_set():
            return
        store = batch.store
        job = store.get(playlist_id)
        if job is None:
            return
        name = job.playlist_name

        if is_pseudo_playlist(playlist_id):
            self.logger.warning(f"Skipping favorite item: {playlist_id}")
            store.update(playlist_id, status=JobStatus.FAILED, progress_percent=0, message=PSEUDO_PLAYLIST_MESSAGE)
            return

        try:
            store.update(
                playlist_id,
                job_id=None,
                status=JobStatus.STARTING,
                progress_percent=0,
                processed_tracks=0,
                total_tracks=0,
                message="Starting transfer...",
            )
            if batch.estimator:
                batch.estimator.maybe_attach(playlist_id)

            resp = client.start_transfer(batch.source_provider, batch.destination_provider, playlist_id, name)
            if batch.cancel_event.is_set():
                return
            if not resp.ok:
                message = resp.message or f"HTTP {resp.status_code}: Failed to transfer {name}"
                self.logger.error(f"Transfer failed for playlist {name}: {message}")
                store.update(
                    playlist_id,
                    job_id=resp.job_id,
                    status=JobStatus.FAILED,
                    progress_percent=0,
                    synthetic_progress=False,
                    message=message,
                )
                return

            if resp.job_id:
                store.update(
                    playlist_id,
                    job_id=resp.job_id,
                    status=JobStatus.QUEUED,
                    message="Waiting for transfer to start...",
                )
                poller.run(playlist_id, resp.job_id)
                return

            # no job id: the remote finished synchronously
            store.update(
                playlist_id,
                status=JobStatus.COMPLETED,
                progress_percent=100,
                processed_tracks=resp.total_tracks,
                total_tracks=resp.total_tracks,
                synthetic_progress=False,
                message=resp.message or "Transfer completed",
            )
        except TransferError as e:
            self.logger.error(f"Error transferring {name}: {e}")
            store.update(playlist_id, status=JobStatus.FAILED, synthetic_progress=False, message=str(e))
        except Exception as e:
            self.logger.exception(f"Unexpected error transferring {name}")
            store.update(
                playlist_id,
                status=JobStatus.FAILED,
                synthetic_progress=False,
                message=str(e) or "Unknown error",
            )
