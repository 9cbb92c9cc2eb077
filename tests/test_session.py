import time

import jwt

from tunebridge.providers import Provider
from tunebridge.session import TokenSession, token_claims, token_expired


def _jwt(**claims):
    return jwt.encode(claims, "k" * 32, algorithm="HS256")


def test_opaque_token_is_accepted():
    assert token_claims("not-a-jwt") == {}
    assert token_expired("not-a-jwt") is False
    assert TokenSession("not-a-jwt").get_auth_token() == "not-a-jwt"


def test_expired_jwt_is_rejected():
    token = _jwt(sub="u1", exp=int(time.time()) - 60)
    assert token_expired(token) is True
    assert TokenSession(token).get_auth_token() is None


def test_live_jwt_claims_are_readable():
    token = _jwt(sub="u1", exp=int(time.time()) + 3600)
    assert token_claims(token)["sub"] == "u1"
    assert TokenSession(token).get_auth_token() == token


def test_missing_token():
    assert TokenSession(None).get_auth_token() is None
    assert TokenSession("").get_auth_token() is None


def test_connected_providers_are_normalized():
    session = TokenSession("t", ["Spotify", "youtube-music", "deezer"])
    assert session.connected == {Provider.SPOTIFY, Provider.YOUTUBE}
    assert session.is_connected("youtube")
    assert not session.is_connected("deezer")


def test_from_env(monkeypatch):
    monkeypatch.setenv("TUNEBRIDGE_TOKEN", "abc")
    monkeypatch.setenv("TUNEBRIDGE_CONNECTED", "spotify, youtube")
    session = TokenSession.from_env()
    assert session.token == "abc"
    assert session.is_connected(Provider.SPOTIFY) and session.is_connected(Provider.YOUTUBE)
