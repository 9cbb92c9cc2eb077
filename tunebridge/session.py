from __future__ import annotations

import os
import time
from typing import Any, Dict, Iterable, Optional, Protocol, Set, Union

import jwt

from tunebridge.providers import Provider, normalize


class SessionProvider(Protocol):
    """What the orchestrator needs to know about the signed-in user."""

    def is_connected(self, provider: Union[str, Provider]) -> bool: ...

    def get_auth_token(self) -> Optional[str]: ...


def token_claims(token: str) -> Dict[str, Any]:
    """Decode JWT claims without verifying the signature; {} for opaque tokens.

    The transfer API checks the signature itself, we only need `exp`/`sub`.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return {}


def token_expired(token: str, leeway: float = 0.0) -> bool:
    exp = token_claims(token).get("exp")
    if not isinstance(exp, (int, float)):
        return False
    return exp <= time.time() + leeway


class TokenSession:
    """Session backed by an app auth token and a set of connected providers."""

    def __init__(self, token: Optional[str], connected: Iterable[Union[str, Provider]] = ()) -> None:
        self.token = token or None
        self.connected: Set[Provider] = set()
        for item in connected:
            provider = normalize(item)
            if provider:
                self.connected.add(provider)

    @classmethod
    def from_env(cls) -> "TokenSession":
        raw = os.getenv("TUNEBRIDGE_CONNECTED", "")
        return cls(os.getenv("TUNEBRIDGE_TOKEN"), [p.strip() for p in raw.split(",") if p.strip()])

    def is_connected(self, provider: Union[str, Provider]) -> bool:
        normalized = normalize(provider)
        return bool(normalized) and normalized in self.connected

    def get_auth_token(self) -> Optional[str]:
        """The token, or None when it is missing or its JWT `exp` has passed."""
        if not self.token:
            return None
        if token_expired(self.token):
            return None
        return self.token
