"""Shared fixtures: a small library spread over a few genre folders."""

import pytest
from mcp_crate.models import Track


def _track(path, title=None, artist=None, album=None, bpm=None, folder=None, folder_path=None):
    filename = path.rsplit("/", 1)[-1]
    return Track(
        id=path,
        file_path=path,
        filename=filename,
        title=title or filename,
        artist=artist,
        album=album,
        bpm=bpm,
        folder=folder,
        folder_path=folder_path,
    )


@pytest.fixture
def sample_tracks():
    """Six tracks; the last one has no tags at all."""
    return [
        _track("/music/Genres/@Eurodance Brazil/01 Sonho.mp3", "Sonho de Verão", "DJ Marky",
               "Brazil Nights", 128.0, "@Eurodance Brazil", "Genres/@Eurodance Brazil"),
        _track("/music/Genres/Synthwave/02 Midnight Drive.mp3", "Midnight Drive", "Kavinsky",
               "OutRun", 115.0, "Synthwave", "Genres/Synthwave"),
        _track("/music/Genres/Synthwave/03 Nightcall.mp3", "Nightcall", "Kavinsky",
               "OutRun", 90.5, "Synthwave", "Genres/Synthwave"),
        _track("/music/Genres/Progressive/04 Strobe.mp3", "Strobe", "deadmau5",
               "For Lack of a Better Name", 128.0, "Progressive", "Genres/Progressive"),
        _track("/music/Genres/Progressive/05 Ghosts.mp3", "Ghosts n Stuff", "deadmau5",
               "For Lack of a Better Name", None, "Progressive", "Genres/Progressive"),
        _track("/music/Unsorted/Untitled.mp3", None, None, None, None, "Unsorted", "Unsorted"),
    ]
