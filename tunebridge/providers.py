from __future__ import annotations

from enum import Enum
from typing import Tuple, Union

from tunebridge.errors import ValidationError

# Virtual collections (liked songs, followed artists...) carry this prefix.
PSEUDO_PLAYLIST_PREFIX = "favorite-"


class Provider(str, Enum):
    SPOTIFY = "spotify"
    YOUTUBE = "youtube"


_LABELS = {
    Provider.SPOTIFY: "Spotify",
    Provider.YOUTUBE: "YouTube",
}


def normalize(service_id: Union[str, Provider, None]) -> Union[Provider, str]:
    """Map a service identifier to a Provider, or "" when unsupported.

    Matching is a case-insensitive substring test, so "youtube-music" and
    "YouTube" both resolve to Provider.YOUTUBE.
    """
    if isinstance(service_id, Provider):
        return service_id
    if not service_id:
        return ""
    key = str(service_id).strip().lower()
    for provider in Provider:
        if provider.value in key:
            return provider
    return ""


def validate_combination(
    source: Union[str, Provider, None],
    destination: Union[str, Provider, None],
) -> Tuple[Provider, Provider]:
    """Return the normalized (source, destination) pair or raise ValidationError."""
    src = normalize(source)
    dst = normalize(destination)
    if not src:
        raise ValidationError(f"Unsupported source service: {source or '(none)'}", {"source": source})
    if not dst:
        raise ValidationError(
            f"Unsupported destination service: {destination or '(none)'}", {"destination": destination}
        )
    if src == dst:
        raise ValidationError(
            f"Source and destination must be different services (both are {provider_label(src)})",
            {"source": source, "destination": destination},
        )
    return src, dst


def is_pseudo_playlist(playlist_id: str) -> bool:
    return bool(playlist_id) and playlist_id.startswith(PSEUDO_PLAYLIST_PREFIX)


def provider_label(provider: Union[str, Provider]) -> str:
    normalized = normalize(provider)
    if not normalized:
        return str(provider)
    return _LABELS[normalized]
