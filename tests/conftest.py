import sys
from pathlib import Path

import pytest

# Ensure the repository root is on the path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tunebridge.config import TransferSettings  # noqa: E402
from tunebridge.transfer_client import StartResponse  # noqa: E402


class FakeTransferClient:
    """Scripted stand-in for TransferClient.

    `starts` maps playlist id -> StartResponse (or an exception to raise);
    `statuses` maps job id -> list of payloads/exceptions, the last one repeats.
    """

    def __init__(self, starts=None, statuses=None):
        self.starts = starts or {}
        self.statuses = {k: list(v) for k, v in (statuses or {}).items()}
        self.start_calls = []
        self.status_calls = []

    def start_transfer(self, source, destination, playlist_id, new_playlist_name):
        self.start_calls.append((source, destination, playlist_id, new_playlist_name))
        resp = self.starts.get(playlist_id)
        if resp is None:
            resp = StartResponse(ok=True, status_code=200, job_id=f"job-{playlist_id}", status="queued")
        if isinstance(resp, Exception):
            raise resp
        return resp

    def get_status(self, job_id):
        self.status_calls.append(job_id)
        script = self.statuses.get(job_id) or [{"status": "completed"}]
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fast_settings():
    # synthetic ticks effectively never fire on their own; tests call step()
    return TransferSettings(poll_interval_s=0.0, synthetic_interval_s=3600.0, job_timeout_s=5.0)


@pytest.fixture
def fake_client_cls():
    return FakeTransferClient
