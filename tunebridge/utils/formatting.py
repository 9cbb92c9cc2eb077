from __future__ import annotations

import csv
import io
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


def first_number(payload: Mapping[str, Any], keys: Sequence[str]) -> Optional[float]:
    """Return the first numeric value found under any of `keys`.

    Booleans are skipped (True is an int in Python) and so are NaN values.
    """
    for key in keys:
        value = payload.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if isinstance(value, float) and math.isnan(value):
            continue
        return value
    return None


def as_count(value: Optional[float]) -> int:
    """Clamp a remote track count to a non-negative int (0 when unknown)."""
    if value is None:
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_percent(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def playlist_display_name(playlist_id: Optional[str], name: Optional[str] = None) -> str:
    """Label used for a playlist; never empty."""
    if name and name.strip():
        return name.strip()
    if playlist_id:
        return f"Playlist {playlist_id}"
    return "Unknown playlist"


def normalize_failures(raw: Any) -> List[Dict[str, str]]:
    """Keep only well-formed per-track failure entries from a status payload."""
    if not isinstance(raw, list):
        return []
    failures: List[Dict[str, str]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        title = item.get("title") or item.get("name") or item.get("track") or ""
        failures.append(
            {
                "title": str(title),
                "artist": str(item.get("artist") or ""),
                "reason": str(item.get("reason") or item.get("message") or ""),
            }
        )
    return failures


def failures_to_csv(rows: Iterable[Mapping[str, str]]) -> str:
    """Render failed tracks as CSV text with a header row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["playlist", "title", "artist", "reason"])
    for row in rows:
        writer.writerow([row.get("playlist", ""), row.get("title", ""), row.get("artist", ""), row.get("reason", "")])
    return buf.getvalue()
