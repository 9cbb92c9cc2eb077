from __future__ import annotations

import hashlib
import os
from typing import Any, Dict

import jwt
from fastapi import HTTPException, Request, status

from tunebridge.session import token_claims


def bearer_token(request: Request) -> str:
    """Return the bearer token from the Authorization header or fail with 401."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = auth.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return token


def verify_token(token: str) -> Dict[str, Any]:
    """Validate the token signature when TUNEBRIDGE_JWT_SECRET is set.

    Without a secret the token is forwarded as-is and only its claims are read;
    the transfer API remains the authority.
    """
    secret = os.getenv("TUNEBRIDGE_JWT_SECRET")
    if not secret:
        return token_claims(token)
    try:
        return jwt.decode(token, secret, algorithms=["HS256"], options={"verify_aud": False})
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {exc}")


def user_id_from_claims(claims: Dict[str, Any], token: str) -> str:
    """Owner id for batches; opaque tokens are identified by a digest of the token."""
    user_id = claims.get("sub") or claims.get("user_id") or claims.get("email")
    if user_id:
        return str(user_id)
    return "token:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
