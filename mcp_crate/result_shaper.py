"""
Result Shaper

Chooses how a result set is presented based only on its size:

* more than ``summary_threshold`` tracks  -> summary (first N tracks + stats
  computed over the entire set)
* more than ``grouped_threshold`` tracks  -> full list, flagged for grouping
  by artist
* otherwise                               -> full list
"""

from typing import Sequence, Union

from .models import FullResult, SearchSummary, SummaryResult, Track
from .search_index import SearchIndex


ShapedResult = Union[FullResult, SummaryResult]


class ResultShaper:
    """Size-aware presentation policy shared by every query tool."""

    def __init__(
        self,
        summary_threshold: int = 50,
        grouped_threshold: int = 10,
        top_tracks_limit: int = 20,
        top_n_limit: int = 10,
    ) -> None:
        if summary_threshold <= grouped_threshold:
            raise ValueError(
                f"summary_threshold ({summary_threshold}) must be greater than "
                f"grouped_threshold ({grouped_threshold})"
            )
        self.summary_threshold = summary_threshold
        self.grouped_threshold = grouped_threshold
        self.top_tracks_limit = top_tracks_limit
        self.top_n_limit = top_n_limit

    @classmethod
    def from_config(cls, config) -> "ResultShaper":
        return cls(
            summary_threshold=config.summary_threshold,
            grouped_threshold=config.grouped_threshold,
            top_tracks_limit=config.top_tracks_limit,
            top_n_limit=config.top_n_limit,
        )

    def shape(self, tracks: Sequence[Track], index: SearchIndex) -> ShapedResult:
        """Shape ``tracks`` (in their natural query order) for the caller."""
        total = len(tracks)

        if total > self.summary_threshold:
            top_tracks = list(tracks[:self.top_tracks_limit])
            return SummaryResult(
                total=total,
                showing=len(top_tracks),
                top_tracks=top_tracks,
                summary=SearchSummary(
                    total=total,
                    showing=len(top_tracks),
                    top_artists=index.get_top_artists(tracks, self.top_n_limit),
                    top_albums=index.get_top_albums(tracks, self.top_n_limit),
                    bpm_stats=index.get_bpm_stats(tracks),
                ),
            )

        return FullResult(
            total=total,
            tracks=list(tracks),
            grouped=True if total > self.grouped_threshold else None,
        )

    @staticmethod
    def full(tracks: Sequence[Track]) -> FullResult:
        """Every track, ungrouped, in the given order."""
        return FullResult(total=len(tracks), tracks=list(tracks))


def to_payload(result: ShapedResult) -> dict:
    """JSON-ready dict; an ungrouped full result carries no ``grouped`` key."""
    if isinstance(result, FullResult) and result.grouped is None:
        return result.model_dump(mode="json", exclude={"grouped"})
    return result.model_dump(mode="json")
