from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from tunebridge.config import TransferSettings
from tunebridge.errors import AuthError, ValidationError
from tunebridge.launcher import BatchLauncher, BatchRequest, PlaylistSelection, TransferBatch
from tunebridge.session import TokenSession
from tunebridge.transfer_client import TransferClient
from tunebridge.utils.formatting import failures_to_csv
from tunebridge.utils.logging import setup_logger
from tunebridge.web import state
from tunebridge.web.auth import bearer_token, user_id_from_claims, verify_token

router = APIRouter(prefix="/api")
logger = setup_logger()

# Swapped out in tests; None means a real TransferClient per batch.
CLIENT_FACTORY: Optional[Callable[[str], TransferClient]] = None


class PlaylistIn(BaseModel):
    id: str
    name: Optional[str] = None


class TransferRequest(BaseModel):
    source_provider: str = "spotify"
    destination_provider: str
    playlists: List[PlaylistIn]
    # None: the caller did not say, assume both sides are connected
    connected_providers: Optional[List[str]] = None


class Caller(BaseModel):
    token: str
    user_id: str


def _require_caller(request: Request) -> Caller:
    token = bearer_token(request)
    claims = verify_token(token)
    return Caller(token=token, user_id=user_id_from_claims(claims, token))


def _batch_payload(batch: TransferBatch) -> Dict[str, Any]:
    return {
        "batch_id": batch.id,
        "phase": batch.phase.value,
        "source_provider": batch.source_provider.value,
        "destination_provider": batch.destination_provider.value,
        "progress": batch.progress().to_dict(),
        "jobs": [job.to_dict() for job in batch.jobs],
    }


def _get_owned_batch(batch_id: str, caller: Caller) -> TransferBatch:
    batch = state.BATCHES.get(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")
    if batch.owner_id and batch.owner_id != caller.user_id:
        raise HTTPException(status_code=403, detail="You do not have access to this batch")
    return batch


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/transfers")
def start_transfers(req: TransferRequest, caller: Caller = Depends(_require_caller)):
    connected = req.connected_providers
    if connected is None:
        connected = [req.source_provider, req.destination_provider]
    launcher = BatchLauncher(
        TokenSession(caller.token, connected),
        TransferSettings.from_env(),
        client_factory=CLIENT_FACTORY,
    )
    batch_request = BatchRequest(
        source_provider=req.source_provider,
        destination_provider=req.destination_provider,
        playlists=[PlaylistSelection(id=p.id, name=p.name or "") for p in req.playlists],
    )
    with state.LOCK:
        if state.active_batch_count() >= state.MAX_CONCURRENT_BATCHES:
            raise HTTPException(status_code=429, detail="Too many transfers running. Try again later.")
        try:
            batch = launcher.launch(batch_request, owner_id=caller.user_id)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=e.message)
        except AuthError as e:
            raise HTTPException(status_code=401, detail=e.message)
        state.register_batch(batch)
    return _batch_payload(batch)


@router.get("/transfers/{batch_id}")
def get_transfers(batch_id: str, caller: Caller = Depends(_require_caller)):
    return _batch_payload(_get_owned_batch(batch_id, caller))


@router.delete("/transfers/{batch_id}")
def cancel_transfers(batch_id: str, caller: Caller = Depends(_require_caller)):
    batch = _get_owned_batch(batch_id, caller)
    batch.cancel()
    logger.info(f"Batch {batch_id} cancelled by {caller.user_id}")
    return {"batch_id": batch.id, "phase": batch.phase.value}


@router.get("/transfers/{batch_id}/failures.csv")
def download_failures(batch_id: str, caller: Caller = Depends(_require_caller)):
    batch = _get_owned_batch(batch_id, caller)
    rows = []
    for job in batch.jobs:
        for failure in job.failures:
            rows.append({"playlist": job.playlist_name, **failure})
    return Response(
        content=failures_to_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="failed_tracks_{batch_id}.csv"'},
    )
