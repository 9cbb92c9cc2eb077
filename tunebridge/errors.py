"""
Exception classes for tunebridge.

Hierarchy:
    TransferError (base)
        ValidationError - invalid batch (empty selection, bad provider pair, pseudo-playlist)
        AuthError - missing/expired token or disconnected account
        TransportError - network/HTTP failure talking to the transfer API
        RemoteJobError - the remote reported a failed/cancelled job
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TransferError(Exception):
    """Base exception for all tunebridge errors.

    `message` is always suitable for direct display; `details` carries extra
    context for logs (playlist id, job id, underlying error...).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(TransferError):
    """Batch rejected before any network call."""


class AuthError(TransferError):
    """No usable auth token, or an account is not connected."""


class TransportError(TransferError):
    """Network or HTTP failure; `status_code` is None when no response arrived."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class RemoteJobError(TransferError):
    """The transfer API reported a terminal failure for a job."""
