"""
Metadata Extractor

Opens a single audio file with mutagen and turns its tags into a ``Track``.
Tag names differ per container, so every field is looked up across ID3
frames, Vorbis comments, MP4 atoms and ASF attributes; the first non-empty
value wins.

Usage:
    track = extract_track(Path("/music/House/track.mp3"), folder="House", folder_path="House")
"""

import math
import os
from pathlib import Path
from typing import Any, FrozenSet, Iterable, Optional

from mutagen import File as MutagenFile

from .models import Track


AUDIO_EXTENSIONS: FrozenSet[str] = frozenset({
    ".mp3", ".flac", ".m4a", ".aac", ".ogg", ".opus",
    ".wav", ".aiff", ".aif", ".wma",
})

# Checked in order: ID3, Vorbis/APE, MP4, ASF
TITLE_TAGS = ("TIT2", "title", "©nam", "Title")
ARTIST_TAGS = ("TPE1", "artist", "©ART", "Author", "TPE2", "albumartist", "aART", "WM/AlbumArtist")
ALBUM_TAGS = ("TALB", "album", "©alb", "WM/AlbumTitle")
BPM_TAGS = ("TBPM", "bpm", "tmpo", "----:com.apple.iTunes:BPM", "WM/BeatsPerMinute")
KEY_TAGS = ("TKEY", "initialkey", "key", "----:com.apple.iTunes:initialkey", "WM/InitialKey")


class MetadataError(Exception):
    """Raised when a file cannot be opened or parsed as audio."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def is_audio_file(path: Path, extensions: Iterable[str] = AUDIO_EXTENSIONS) -> bool:
    # macOS AppleDouble sidecar files (._*) are metadata blobs, not audio.
    if path.name.startswith("._"):
        return False
    return path.suffix.lower() in extensions


def _first(value: Any) -> Optional[str]:
    """Collapse a raw tag value (frame, list, atom, attribute) to one string."""
    if value is None:
        return None
    # ID3 text frames keep their strings in .text
    value = getattr(value, "text", value)
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    # ASF attributes wrap their payload in .value
    if not isinstance(value, (str, bytes, int, float)):
        value = getattr(value, "value", value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).strip().strip("\x00")
    return text or None


def _tag_value(tags: Any, keys: Iterable[str]) -> Optional[str]:
    if tags is None:
        return None
    for key in keys:
        try:
            value = tags.get(key)
        except (KeyError, ValueError, TypeError):
            # Vorbis comments reject keys outside their character set
            value = None
        text = _first(value)
        if text:
            return text
    return None


def parse_bpm(raw: Optional[str]) -> Optional[float]:
    """Parse a BPM tag. Missing, garbage or non-positive values become None."""
    if not raw:
        return None
    try:
        bpm = float(raw.replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(bpm) or bpm <= 0:
        return None
    return bpm


def _duration(audio: Any) -> Optional[float]:
    length = getattr(getattr(audio, "info", None), "length", None)
    if isinstance(length, (int, float)) and math.isfinite(length) and length >= 0:
        return float(length)
    return None


def extract_track(
    path: Path,
    folder: Optional[str] = None,
    folder_path: Optional[str] = None,
) -> Track:
    """
    Read one audio file and return its normalized ``Track``.

    Args:
        path:        File known to carry an audio extension.
        folder:      Immediate parent folder name, computed by the scanner.
        folder_path: Parent folder relative to the library root.

    Raises:
        MetadataError: the file is unreadable, corrupt, or not a recognised
            audio container.
    """
    path = Path(path)
    try:
        audio = MutagenFile(path)
    except Exception as exc:  # noqa: BLE001
        raise MetadataError(path, f"{type(exc).__name__}: {exc}") from exc
    if audio is None:
        raise MetadataError(path, "unrecognised audio format")

    tags = getattr(audio, "tags", None)
    file_path = os.path.abspath(path)

    return Track(
        id=file_path,
        file_path=file_path,
        filename=path.name,
        title=_tag_value(tags, TITLE_TAGS) or path.name,
        artist=_tag_value(tags, ARTIST_TAGS),
        album=_tag_value(tags, ALBUM_TAGS),
        bpm=parse_bpm(_tag_value(tags, BPM_TAGS)),
        key=_tag_value(tags, KEY_TAGS),
        duration=_duration(audio),
        folder=folder,
        folder_path=folder_path,
    )
