import pytest
import requests

from tunebridge.config import TransferSettings
from tunebridge.errors import TransportError
from tunebridge.providers import Provider
from tunebridge.transfer_client import TransferClient, extract_job_id


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text_only=False):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self._text_only = text_only

    def json(self):
        if self._text_only:
            raise ValueError("not json")
        return self._payload


class DummySession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, timeout=None, **kw):
        self.calls.append((method, url, kw))
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def _client(*responses):
    session = DummySession(responses)
    settings = TransferSettings(api_base_url="https://api.example.test/")
    return TransferClient("secret", settings, session=session), session


def test_headers_and_start_payload():
    client, session = _client(DummyResponse(202, {"jobId": "abc", "status": "queued"}))
    resp = client.start_transfer(Provider.SPOTIFY, "youtube", "p1", "Road trip")

    assert session.headers["Authorization"] == "Bearer secret"
    method, url, kw = session.calls[0]
    assert (method, url) == ("POST", "https://api.example.test/api/transfer")
    assert kw["json"] == {
        "sourceProvider": "spotify",
        "destinationProvider": "youtube",
        "sourcePlaylistId": "p1",
        "newPlaylistName": "Road trip",
    }
    assert resp.ok and resp.job_id == "abc" and resp.status == "queued"


@pytest.mark.parametrize(
    "payload,expected",
    [
        ({"jobId": "a"}, "a"),
        ({"job_id": 7}, "7"),
        ({"id": "b"}, "b"),
        ({"job": {"id": "c"}}, "c"),
        ({"job": {"jobId": "d"}}, "d"),
        ({"status": "done"}, None),
    ],
)
def test_extract_job_id_variants(payload, expected):
    assert extract_job_id(payload) == expected


def test_start_rejection_is_returned_not_raised():
    client, _ = _client(DummyResponse(400, {"error": "Playlist not found"}))
    resp = client.start_transfer("spotify", "youtube", "p1", "x")
    assert resp.ok is False
    assert resp.status_code == 400
    assert resp.message == "Playlist not found"


def test_start_with_non_json_body():
    client, _ = _client(DummyResponse(502, text_only=True))
    resp = client.start_transfer("spotify", "youtube", "p1", "x")
    assert resp.ok is False
    assert resp.job_id is None
    assert resp.message == ""


def test_start_reads_track_total_for_synchronous_answers():
    client, _ = _client(DummyResponse(200, {"totalTracks": 14, "message": "ok"}))
    resp = client.start_transfer("spotify", "youtube", "p1", "x")
    assert resp.job_id is None
    assert resp.total_tracks == 14


def test_network_error_becomes_transport_error():
    client, _ = _client(requests.exceptions.ConnectionError("refused"))
    with pytest.raises(TransportError) as exc:
        client.start_transfer("spotify", "youtube", "p1", "x")
    assert "refused" in str(exc.value)


def test_get_status_ok_and_http_error():
    client, session = _client(DummyResponse(200, {"status": "processing"}), DummyResponse(503, {}))
    assert client.get_status("j1") == {"status": "processing"}
    assert session.calls[0][1] == "https://api.example.test/api/transfer/j1/status"
    with pytest.raises(TransportError) as exc:
        client.get_status("j1")
    assert exc.value.status_code == 503


def test_last_transfer_missing_is_none():
    client, _ = _client(DummyResponse(404, {}))
    assert client.get_last_transfer() is None


def test_last_transfer_retries_transport_errors():
    client, session = _client(DummyResponse(500, {}), DummyResponse(200, {"jobId": "x", "status": "done"}))
    assert client.get_last_transfer() == {"jobId": "x", "status": "done"}
    assert len(session.calls) == 2
