"""
Search Index — fuzzy search, field filters, aggregates and sorting over one
track collection.

The index keeps its tracks, the pre-processed fuzzy haystack and the id
lookup in a single ``_IndexState`` tuple that is swapped by reference in
``set_tracks()``. Every query reads that reference exactly once, so a query
racing a rebuild sees either the old pair or the new pair, never a mix.

Fuzzy matching uses rapidfuzz. ``fuzzy_threshold`` follows the usual
0.0 (exact) .. 1.0 (anything) convention; a field must score at least
``100 * (1 - threshold)`` to count as a match.
"""

import math
from collections import Counter
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from loguru import logger
from rapidfuzz import fuzz
from rapidfuzz.utils import default_process

from .models import (
    AlbumCount,
    ArtistCount,
    BpmStats,
    FolderCount,
    SortField,
    SortOrder,
    Track,
)


SEARCH_FIELDS = ("title", "artist", "album", "filename", "folder", "folder_path")
DEFAULT_FUZZY_THRESHOLD = 0.3
DEFAULT_TOP_LIMIT = 10


class _IndexState(NamedTuple):
    tracks: Tuple[Track, ...]
    haystack: Tuple[Tuple[str, ...], ...]   # processed, non-empty searchable fields per track
    by_id: Dict[str, Track]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _field_score(query: str, text: str) -> float:
    # partial_ratio aligns the shorter string inside the longer one, so only use
    # it when the field can contain the query; otherwise a short field such as
    # artist "DJ" would fully match any query that contains "dj".
    if len(text) >= len(query):
        return fuzz.partial_ratio(query, text)
    return fuzz.ratio(query, text)


class SearchIndex:
    """
    Queryable view over a track collection.

    All query methods are synchronous, read-only and never block on a rebuild.
    """

    def __init__(
        self,
        tracks: Iterable[Track] = (),
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ) -> None:
        if not 0.0 <= fuzzy_threshold <= 1.0:
            raise ValueError(f"fuzzy_threshold must be within [0, 1], got {fuzzy_threshold}")
        self.fuzzy_threshold = fuzzy_threshold
        self._state = _IndexState((), (), {})
        self.set_tracks(tracks)

    def set_tracks(self, tracks: Iterable[Track]) -> None:
        """Replace the backing collection and rebuild the fuzzy index."""
        tracks = tuple(tracks)
        haystack = tuple(self._searchable_fields(t) for t in tracks)
        by_id = {t.id: t for t in tracks}
        self._state = _IndexState(tracks, haystack, by_id)
        logger.debug(f"Search index built: {len(tracks)} tracks")

    @staticmethod
    def _searchable_fields(track: Track) -> Tuple[str, ...]:
        fields = []
        for name in SEARCH_FIELDS:
            value = getattr(track, name)
            if value:
                processed = default_process(value)
                if processed:
                    fields.append(processed)
        return tuple(fields)

    def __len__(self) -> int:
        return len(self._state.tracks)

    # ------------------------------------------------------------------
    # Full-text search
    # ------------------------------------------------------------------

    def search(self, query: str, limit: Optional[int] = None) -> List[Track]:
        """
        Fuzzy search over title, artist, album, filename, folder and folder path.

        Returns tracks best match first; equal scores keep collection order.
        Tracks with no field scoring above the cutoff are not returned.
        A query made only of symbols (e.g. "@") has nothing left after
        processing and is matched literally instead.
        """
        state = self._state
        q = default_process(query or "")
        if not q:
            return self._search_literal(state, (query or "").strip().casefold(), limit)

        cutoff = 100.0 * (1.0 - self.fuzzy_threshold)
        scored: List[Tuple[float, int]] = []
        for position, fields in enumerate(state.haystack):
            best = max((_field_score(q, text) for text in fields), default=0.0)
            if best > 0 and best >= cutoff:
                scored.append((best, position))

        scored.sort(key=lambda item: (-item[0], item[1]))
        if limit is not None:
            scored = scored[:limit]
        return [state.tracks[position] for _, position in scored]

    @staticmethod
    def _search_literal(state: _IndexState, needle: str, limit: Optional[int]) -> List[Track]:
        if not needle:
            return []
        results = [
            t for t in state.tracks
            if any(needle in (getattr(t, name) or "").casefold() for name in SEARCH_FIELDS)
        ]
        return results if limit is None else results[:limit]

    # ------------------------------------------------------------------
    # Field filters
    # ------------------------------------------------------------------

    def filter_by_bpm(self, min_bpm: float, max_bpm: float) -> List[Track]:
        """Tracks with a BPM inside [min_bpm, max_bpm]; tracks without BPM are excluded."""
        return [
            t for t in self._state.tracks
            if t.bpm is not None and min_bpm <= t.bpm <= max_bpm
        ]

    def filter_by_artist(self, artist: str) -> List[Track]:
        return self._filter_contains("artist", artist)

    def filter_by_album(self, album: str) -> List[Track]:
        return self._filter_contains("album", album)

    def filter_by_folder(self, folder: str) -> List[Track]:
        """Case-insensitive literal match on the parent folder name ('@' etc. are plain characters)."""
        return self._filter_contains("folder", folder)

    def filter_by_folder_path(self, path_segment: str) -> List[Track]:
        return self._filter_contains("folder_path", path_segment)

    def _filter_contains(self, field: str, needle: str) -> List[Track]:
        needle = (needle or "").casefold()
        results = []
        for t in self._state.tracks:
            value = getattr(t, field)
            if value and needle in value.casefold():
                results.append(t)
        return results

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_all_tracks(self) -> List[Track]:
        """The full collection in scan order."""
        return list(self._state.tracks)

    def get_track(self, track_id: str) -> Optional[Track]:
        return self._state.by_id.get(track_id)

    def get_tracks_by_ids(self, track_ids: Iterable[str]) -> List[Track]:
        """Tracks whose id is in ``track_ids``, in collection order. Unknown ids are ignored."""
        wanted = set(track_ids)
        return [t for t in self._state.tracks if t.id in wanted]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    @staticmethod
    def _top_counts(
        tracks: Iterable[Track],
        field: str,
        limit: int,
    ) -> List[Tuple[str, int]]:
        counts: Counter = Counter()
        for t in tracks:
            value = getattr(t, field)
            if value:
                counts[value] += 1
        # most_common() sorts stably, so equal counts keep first-seen order
        return counts.most_common(max(0, limit))

    def get_top_artists(self, tracks: Iterable[Track], limit: int = DEFAULT_TOP_LIMIT) -> List[ArtistCount]:
        return [ArtistCount(artist=a, count=c) for a, c in self._top_counts(tracks, "artist", limit)]

    def get_top_albums(self, tracks: Iterable[Track], limit: int = DEFAULT_TOP_LIMIT) -> List[AlbumCount]:
        return [AlbumCount(album=a, count=c) for a, c in self._top_counts(tracks, "album", limit)]

    def get_top_folders(self, tracks: Iterable[Track], limit: int = DEFAULT_TOP_LIMIT) -> List[FolderCount]:
        return [FolderCount(folder=f, count=c) for f, c in self._top_counts(tracks, "folder", limit)]

    def get_folders(self) -> List[FolderCount]:
        """Every folder in the library with its track count, most populated first."""
        tracks = self._state.tracks
        return self.get_top_folders(tracks, limit=len(tracks))

    @staticmethod
    def get_bpm_stats(tracks: Iterable[Track]) -> Optional[BpmStats]:
        """Rounded min/max/mean BPM, or None when no track carries a BPM."""
        bpms = [t.bpm for t in tracks if t.bpm is not None]
        if not bpms:
            return None
        return BpmStats(
            min=_round_half_up(min(bpms)),
            max=_round_half_up(max(bpms)),
            mean=_round_half_up(sum(bpms) / len(bpms)),
        )

    def get_library_summary(self, limit: int = DEFAULT_TOP_LIMIT) -> Dict:
        """Summary of the whole collection for the conversational layer."""
        tracks = self._state.tracks
        if not tracks:
            return {"total": 0}

        bpm_stats = self.get_bpm_stats(tracks)
        return {
            "total": len(tracks),
            "with_bpm": sum(1 for t in tracks if t.bpm is not None),
            "bpm_stats": bpm_stats.model_dump() if bpm_stats else None,
            "artist_count": len({t.artist for t in tracks if t.artist}),
            "album_count": len({t.album for t in tracks if t.album}),
            "folder_count": len({t.folder for t in tracks if t.folder}),
            "top_artists": [r.model_dump() for r in self.get_top_artists(tracks, limit)],
            "top_albums": [r.model_dump() for r in self.get_top_albums(tracks, limit)],
            "top_folders": [r.model_dump() for r in self.get_top_folders(tracks, limit)],
        }

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    _SORT_KEYS: Dict[str, Callable[[Track], object]] = {
        "title": lambda t: (t.title or "").casefold(),
        "artist": lambda t: (t.artist or "").casefold(),
        "album": lambda t: (t.album or "").casefold(),
        "bpm": lambda t: t.bpm if t.bpm is not None else 0.0,
    }

    def sort_tracks(
        self,
        tracks: Sequence[Track],
        sort_by: SortField,
        order: SortOrder = "asc",
    ) -> List[Track]:
        """
        Stable sort by title, artist, album or bpm.

        Equal keys keep their input order for both directions (``sorted`` with
        ``reverse=True`` preserves stability).
        """
        key = self._SORT_KEYS.get(sort_by)
        if key is None:
            raise ValueError(f"Unknown sort field: {sort_by!r}")
        if order not in ("asc", "desc"):
            raise ValueError(f"Unknown sort order: {order!r}")
        return sorted(tracks, key=key, reverse=(order == "desc"))

    def __repr__(self) -> str:
        return f"SearchIndex({len(self)} tracks, fuzzy_threshold={self.fuzzy_threshold})"
