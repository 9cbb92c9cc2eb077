from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_BASE_URL = "https://matchmytunes.onrender.com"


def _env_float(name: str, default: float) -> float:
    try:
        value = float(os.getenv(name, "") or default)
    except ValueError:
        return default
    return value if value >= 0 else default


def _env_int(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, "") or default)
    except ValueError:
        return default
    return value if value >= 0 else default


@dataclass
class TransferSettings:
    """Tunables for one orchestrator instance."""

    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout_s: float = 20.0
    poll_interval_s: float = 2.0
    synthetic_interval_s: float = 1.0
    synthetic_step: int = 10
    synthetic_cap: int = 90
    max_consecutive_poll_failures: int = 2
    # No remote guarantee that a job ever leaves "processing"; give up after this.
    job_timeout_s: float = 30 * 60
    concurrency: int = 1

    @classmethod
    def from_env(cls) -> "TransferSettings":
        """Build settings from TUNEBRIDGE_* variables; bad values fall back to defaults."""
        defaults = cls()
        return cls(
            api_base_url=(os.getenv("TUNEBRIDGE_API_BASE_URL") or defaults.api_base_url).rstrip("/"),
            request_timeout_s=_env_float("TUNEBRIDGE_REQUEST_TIMEOUT", defaults.request_timeout_s),
            poll_interval_s=_env_float("TUNEBRIDGE_POLL_INTERVAL", defaults.poll_interval_s),
            synthetic_interval_s=_env_float("TUNEBRIDGE_SYNTHETIC_INTERVAL", defaults.synthetic_interval_s),
            max_consecutive_poll_failures=_env_int(
                "TUNEBRIDGE_MAX_POLL_FAILURES", defaults.max_consecutive_poll_failures
            ),
            job_timeout_s=_env_float("TUNEBRIDGE_JOB_TIMEOUT", defaults.job_timeout_s),
            concurrency=max(1, _env_int("TUNEBRIDGE_CONCURRENCY", defaults.concurrency)),
        )
