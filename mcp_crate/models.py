"""
Data Models for the Music Crate engine

Tracks extracted from local audio files, aggregate rows computed over result
sets, and the response shapes handed to the conversational tool layer.
"""

from typing import Optional, List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


SortField = Literal["title", "artist", "album", "bpm"]
SortOrder = Literal["asc", "desc"]


# ---------------------------------------------------------------------------
# Track model
# ---------------------------------------------------------------------------

class Track(BaseModel):
    """One audio file on disk plus the metadata read from its tags."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique track identifier (absolute file path)")
    file_path: str = Field(..., description="Absolute path to the audio file")
    filename: str = Field(..., description="Bare file name including extension")
    title: str = Field(..., description="Track title, falls back to the file name")
    artist: Optional[str] = Field(None, description="Track artist")
    album: Optional[str] = Field(None, description="Album name")
    bpm: Optional[float] = Field(None, description="Beats per minute, unrounded")
    key: Optional[str] = Field(None, description="Musical key as tagged (e.g. '8A', 'F#m')")
    duration: Optional[float] = Field(None, description="Length in seconds, unrounded")
    folder: Optional[str] = Field(None, description="Immediate parent folder name (e.g. '@Eurodance Brazil')")
    folder_path: Optional[str] = Field(
        None, description="Parent folder relative to the library root (e.g. 'Genres/@Eurodance Brazil')"
    )

    @model_validator(mode="after")
    def _check_identity(self) -> "Track":
        if not self.id:
            raise ValueError("track id must not be empty")
        if self.id != self.file_path:
            raise ValueError(f"track id {self.id!r} does not match file_path {self.file_path!r}")
        return self

    def duration_formatted(self) -> str:
        if not self.duration or self.duration <= 0:
            return "0:00"
        total = int(self.duration)
        return f"{total // 60}:{total % 60:02d}"


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

class ArtistCount(BaseModel):
    artist: str
    count: int


class AlbumCount(BaseModel):
    album: str
    count: int


class FolderCount(BaseModel):
    folder: str
    count: int


class BpmStats(BaseModel):
    """BPM spread of a result set, rounded to whole beats."""

    min: int
    max: int
    mean: int


# ---------------------------------------------------------------------------
# Shaped query responses
# ---------------------------------------------------------------------------

class SearchSummary(BaseModel):
    total: int = Field(..., description="Size of the entire result set")
    showing: int = Field(..., description="Number of tracks included in top_tracks")
    top_artists: List[ArtistCount] = Field(default_factory=list)
    top_albums: List[AlbumCount] = Field(default_factory=list)
    bpm_stats: Optional[BpmStats] = Field(None, description="None when no track has a BPM")


class FullResult(BaseModel):
    """Every matching track, optionally flagged for artist-grouped display."""

    type: Literal["full"] = "full"
    total: int
    tracks: List[Track] = Field(default_factory=list)
    grouped: Optional[bool] = Field(
        None, description="True when the list should be presented grouped by artist; absent otherwise"
    )


class SummaryResult(BaseModel):
    """A large result set condensed to its first tracks plus statistics."""

    type: Literal["summary"] = "summary"
    total: int
    showing: int
    top_tracks: List[Track] = Field(default_factory=list)
    summary: SearchSummary


class LibraryStatus(BaseModel):
    """State of the background scanner as seen by the store."""

    state: Literal["idle", "scanning", "ready", "failed"] = "idle"
    root: Optional[str] = None
    track_count: int = 0
    scanned_at: Optional[str] = Field(None, description="ISO-8601 UTC time the current snapshot was installed")
    last_error: Optional[str] = None
