"""
Conversational tool layer

Typed query operations exposed to the chat model (through the MCP server) and
returning plain JSON-ready dicts. Every operation reads ``store.snapshot``
once, so the track list and any aggregate attached to it come from the same
index even if a rescan swaps the library mid-call.
"""

from typing import Any, Dict, List

from loguru import logger

from .models import SortField, SortOrder, Track
from .result_shaper import ResultShaper, to_payload
from .store import LibraryStore


def _track_payload(track: Track) -> Dict[str, Any]:
    payload = track.model_dump()
    payload["duration_formatted"] = track.duration_formatted()
    return payload


class LibraryTools:
    """Query operations by name, as invoked by the conversational layer."""

    def __init__(self, store: LibraryStore, shaper: ResultShaper) -> None:
        self.store = store
        self.shaper = shaper

    # ------------------------------------------------------------------
    # Search and filters
    # ------------------------------------------------------------------

    def search_music(self, query: str) -> Dict[str, Any]:
        index = self.store.snapshot.index
        logger.info(f"Searching for: {query}")
        results = index.search(query)
        logger.info(f"Found {len(results)} results")
        return to_payload(self.shaper.shape(results, index))

    def filter_by_bpm(self, min_bpm: float, max_bpm: float) -> Dict[str, Any]:
        index = self.store.snapshot.index
        logger.info(f"Filtering by BPM: {min_bpm}-{max_bpm}")
        results = index.filter_by_bpm(min_bpm, max_bpm)
        logger.info(f"Found {len(results)} results")
        return to_payload(self.shaper.shape(results, index))

    def filter_by_artist(self, artist: str) -> Dict[str, Any]:
        index = self.store.snapshot.index
        logger.info(f"Filtering by artist: {artist}")
        return to_payload(self.shaper.shape(index.filter_by_artist(artist), index))

    def filter_by_album(self, album: str) -> Dict[str, Any]:
        index = self.store.snapshot.index
        logger.info(f"Filtering by album: {album}")
        return to_payload(self.shaper.shape(index.filter_by_album(album), index))

    def filter_by_folder(self, folder: str) -> Dict[str, Any]:
        index = self.store.snapshot.index
        logger.info(f"Filtering by folder: {folder}")
        return to_payload(self.shaper.shape(index.filter_by_folder(folder), index))

    def filter_by_folder_path(self, path: str) -> Dict[str, Any]:
        index = self.store.snapshot.index
        logger.info(f"Filtering by folder path: {path}")
        return to_payload(self.shaper.shape(index.filter_by_folder_path(path), index))

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    def sort_results(self, sort_by: SortField, order: SortOrder, track_ids: List[str]) -> Dict[str, Any]:
        """Sort an explicit id subset. Always a full, ungrouped list so the order survives display."""
        index = self.store.snapshot.index
        logger.info(f"Sorting {len(track_ids)} tracks by {sort_by} ({order})")
        subset = index.get_tracks_by_ids(track_ids)
        try:
            ordered = index.sort_tracks(subset, sort_by, order)
        except ValueError as exc:
            return {"error": str(exc)}
        return to_payload(self.shaper.full(ordered))

    # ------------------------------------------------------------------
    # Setlist / playback hand-off
    # ------------------------------------------------------------------

    def _resolve(self, action: str, track_id: str) -> Dict[str, Any]:
        track = self.store.snapshot.index.get_track(track_id)
        if track is None:
            logger.warning(f"{action}: track not found: {track_id}")
            return {"error": "Track not found", "track_id": track_id}
        return {"action": action, "track": _track_payload(track)}

    def add_to_setlist(self, track_id: str) -> Dict[str, Any]:
        return self._resolve("add", track_id)

    def play_music(self, track_id: str) -> Dict[str, Any]:
        return self._resolve("play", track_id)

    # ------------------------------------------------------------------
    # Library overview
    # ------------------------------------------------------------------

    def get_library_summary(self) -> Dict[str, Any]:
        summary = self.store.snapshot.index.get_library_summary(self.shaper.top_n_limit)
        summary["status"] = self.store.status().model_dump()
        return summary

    def list_folders(self) -> List[Dict[str, Any]]:
        return [row.model_dump() for row in self.store.snapshot.index.get_folders()]

    def library_status(self) -> Dict[str, Any]:
        return self.store.status().model_dump()
