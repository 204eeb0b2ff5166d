"""
Library Store — owns the current track collection and its search index.

The pair lives in one immutable ``LibrarySnapshot``. A rescan runs as a
background asyncio task; when it finishes, a fresh index is built off the
event loop and the snapshot reference is replaced in a single assignment.
Queries grab ``store.snapshot`` once and keep using it, so they are never
blocked by a rescan and never pair an old collection with a new index.

Usage:
    store = LibraryStore.from_config(EngineConfig.from_env())
    store.refresh()                       # returns immediately
    snap = store.snapshot                 # empty until the first scan lands
    hits = snap.index.search("eurodance")
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from loguru import logger

from .config import EngineConfig
from .models import LibraryStatus, Track
from .scanner import LibraryScanner
from .search_index import DEFAULT_FUZZY_THRESHOLD, SearchIndex


@dataclass(frozen=True)
class LibrarySnapshot:
    """A track collection and the index built from exactly that collection."""

    tracks: Tuple[Track, ...]
    index: SearchIndex
    scanned_at: Optional[str] = None


class LibraryStore:
    """Holds the live snapshot and runs (re)scans in the background."""

    def __init__(
        self,
        scanner: LibraryScanner,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ) -> None:
        self.scanner = scanner
        self.fuzzy_threshold = fuzzy_threshold
        self._snapshot = LibrarySnapshot(tracks=(), index=SearchIndex(fuzzy_threshold=fuzzy_threshold))
        self._scan_task: Optional[asyncio.Task] = None
        self._state = "idle"
        self._last_error: Optional[str] = None

    @classmethod
    def from_config(cls, config: EngineConfig) -> "LibraryStore":
        scanner = LibraryScanner(config.music_dir, max_workers=config.scan_max_workers)
        return cls(scanner, fuzzy_threshold=config.fuzzy_threshold)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> LibrarySnapshot:
        return self._snapshot

    @property
    def is_scanning(self) -> bool:
        return self._scan_task is not None and not self._scan_task.done()

    def status(self) -> LibraryStatus:
        snap = self._snapshot
        return LibraryStatus(
            state="scanning" if self.is_scanning else self._state,
            root=str(self.scanner.root),
            track_count=len(snap.tracks),
            scanned_at=snap.scanned_at,
            last_error=self._last_error,
        )

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def install(self, tracks: Iterable[Track]) -> LibrarySnapshot:
        """Build an index for ``tracks`` and swap both in synchronously."""
        tracks = tuple(tracks)
        return self._swap(tracks, SearchIndex(tracks, fuzzy_threshold=self.fuzzy_threshold))

    def _swap(self, tracks: Tuple[Track, ...], index: SearchIndex) -> LibrarySnapshot:
        snapshot = LibrarySnapshot(
            tracks=tracks,
            index=index,
            scanned_at=datetime.now(timezone.utc).isoformat(),
        )
        self._snapshot = snapshot
        self._state = "ready"
        self._last_error = None
        logger.info(f"Library snapshot installed: {len(tracks)} tracks")
        return snapshot

    def refresh(self) -> asyncio.Task:
        """
        Start a background rescan and return its task.

        If a scan is already in flight that task is returned instead of
        starting a second one. Must be called from a running event loop.
        """
        if self.is_scanning:
            return self._scan_task
        logger.info("Starting background music scan...")
        self._scan_task = asyncio.get_running_loop().create_task(
            self._run_scan(), name="library-scan"
        )
        return self._scan_task

    async def _run_scan(self) -> int:
        try:
            tracks = tuple(await self.scanner.scan())
            index = await asyncio.to_thread(SearchIndex, tracks, self.fuzzy_threshold)
        except asyncio.CancelledError:
            logger.warning("Background scan cancelled; keeping the current snapshot")
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"Background scan failed: {exc}")
            self._state = "failed"
            self._last_error = f"{type(exc).__name__}: {exc}"
            return len(self._snapshot.tracks)
        self._swap(tracks, index)
        return len(tracks)

    async def wait_until_ready(self) -> LibrarySnapshot:
        """Wait for an in-flight scan (if any) and return the resulting snapshot."""
        task = self._scan_task
        if task is not None and not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self._snapshot

    def cancel(self) -> bool:
        """Cancel an in-flight scan. The last complete snapshot stays installed."""
        if not self.is_scanning:
            return False
        self._scan_task.cancel()
        return True

    def __repr__(self) -> str:
        return f"LibraryStore({len(self._snapshot.tracks)} tracks, state={self.status().state})"
