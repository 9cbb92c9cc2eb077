from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from tunebridge.config import TransferSettings
from tunebridge.errors import TransportError
from tunebridge.providers import Provider
from tunebridge.utils.formatting import as_count, first_number


@dataclass
class StartResponse:
    """Outcome of a Transfer Start call."""

    ok: bool
    status_code: int
    job_id: Optional[str] = None
    status: str = ""
    message: str = ""
    total_tracks: int = 0
    raw: Dict[str, Any] = field(default_factory=dict)


def _json_or_empty(resp: requests.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def extract_job_id(data: Dict[str, Any]) -> Optional[str]:
    """Read the remote job id from any of the shapes the API has used."""
    job_id = data.get("jobId") or data.get("job_id") or data.get("id")
    nested = data.get("job")
    if not job_id and isinstance(nested, dict):
        job_id = nested.get("id") or nested.get("jobId")
    return str(job_id) if job_id else None


class TransferClient:
    """Thin wrapper around the transfer HTTP API (bearer-token JSON)."""

    def __init__(
        self,
        auth_token: str,
        settings: Optional[TransferSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings or TransferSettings()
        self.base_url = self.settings.api_base_url.rstrip("/")
        self.timeout = self.settings.request_timeout_s
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {auth_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def _request(self, method: str, path: str, **kw) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kw)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}", details={"url": url}) from e

    def start_transfer(
        self,
        source: Union[str, Provider],
        destination: Union[str, Provider],
        playlist_id: str,
        new_playlist_name: str,
    ) -> StartResponse:
        """POST /api/transfer. Non-2xx answers are returned (ok=False), not raised."""
        payload = {
            "sourceProvider": source.value if isinstance(source, Provider) else source,
            "destinationProvider": destination.value if isinstance(destination, Provider) else destination,
            "sourcePlaylistId": playlist_id,
            "newPlaylistName": new_playlist_name,
        }
        resp = self._request("POST", "/api/transfer", json=payload)
        data = _json_or_empty(resp)
        message = data.get("message") or data.get("error") or ""
        return StartResponse(
            ok=resp.ok,
            status_code=resp.status_code,
            job_id=extract_job_id(data),
            status=str(data.get("status") or ""),
            message=str(message),
            total_tracks=as_count(first_number(data, ("totalTracks", "total_tracks"))),
            raw=data,
        )

    def get_status(self, job_id: str) -> Dict[str, Any]:
        """GET /api/transfer/<id>/status; any non-2xx is a TransportError."""
        resp = self._request("GET", f"/api/transfer/{job_id}/status")
        if not resp.ok:
            raise TransportError(f"HTTP {resp.status_code}", status_code=resp.status_code, details={"job_id": job_id})
        return _json_or_empty(resp)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(1),
        retry=retry_if_exception_type(TransportError),
        reraise=True,
    )
    def get_last_transfer(self) -> Optional[Dict[str, Any]]:
        """Most recent transfer known to the server, or None (404)."""
        resp = self._request("GET", "/api/transfer/last")
        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise TransportError(f"HTTP {resp.status_code}", status_code=resp.status_code)
        return _json_or_empty(resp) or None
