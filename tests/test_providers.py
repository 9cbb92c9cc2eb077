import pytest

from tunebridge.errors import ValidationError
from tunebridge.providers import Provider, is_pseudo_playlist, normalize, provider_label, validate_combination


def test_normalize_known_and_unknown_services():
    assert normalize("spotify") == Provider.SPOTIFY
    assert normalize("Spotify-Premium") == Provider.SPOTIFY
    assert normalize("youtube-music") == Provider.YOUTUBE
    assert normalize("YouTube") == Provider.YOUTUBE
    assert normalize("deezer") == ""
    assert normalize("") == ""
    assert normalize(None) == ""


@pytest.mark.parametrize("provider", ["spotify", "youtube", "youtube-music"])
def test_same_provider_is_rejected(provider):
    with pytest.raises(ValidationError):
        validate_combination(provider, provider)


def test_youtube_music_counts_as_youtube():
    with pytest.raises(ValidationError):
        validate_combination("youtube", "youtube-music")


def test_unsupported_side_is_rejected():
    with pytest.raises(ValidationError) as exc:
        validate_combination("spotify", "tidal")
    assert "tidal" in str(exc.value)
    with pytest.raises(ValidationError):
        validate_combination(None, "youtube")


def test_valid_combination_returns_providers():
    assert validate_combination("spotify", "youtube-music") == (Provider.SPOTIFY, Provider.YOUTUBE)
    assert validate_combination("youtube", "spotify") == (Provider.YOUTUBE, Provider.SPOTIFY)


def test_pseudo_playlists():
    assert is_pseudo_playlist("favorite-songs")
    assert is_pseudo_playlist("favorite-artists")
    assert not is_pseudo_playlist("37i9dQZF1DXcBWIGoYBM5M")
    assert not is_pseudo_playlist("")


def test_provider_label():
    assert provider_label("youtube-music") == "YouTube"
    assert provider_label(Provider.SPOTIFY) == "Spotify"
    assert provider_label("tidal") == "tidal"
