"""
Library Scanner — walks a music folder and extracts every playable file.

Each directory is listed in a worker thread; every audio file inside it is
handed to ``extract_track`` as its own task and all of them (plus the scans of
its subdirectories) are joined before the directory counts as done. Failures
stay local: a bad file is skipped, an unreadable directory contributes no
tracks, and a missing root yields an empty library.

Usage:
    scanner = LibraryScanner(Path("~/Music"), max_workers=8)
    tracks = await scanner.scan()
"""

import asyncio
import os
import time
from contextlib import nullcontext
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from loguru import logger

from .metadata import AUDIO_EXTENSIONS, MetadataError, extract_track, is_audio_file
from .models import Track


class LibraryScanner:
    """Recursive, concurrent scan of one library root."""

    def __init__(
        self,
        root: Union[Path, str],
        max_workers: Optional[int] = None,
        extensions: Iterable[str] = AUDIO_EXTENSIONS,
    ) -> None:
        self.root = Path(root).expanduser().absolute()
        self.max_workers = max_workers
        self.extensions = frozenset(ext.lower() for ext in extensions)
        self._semaphore: Optional[asyncio.Semaphore] = None

    async def scan(self) -> List[Track]:
        """Return every track reachable under the root. Never raises for IO problems."""
        if not self.root.is_dir():
            logger.warning(f"Music directory not found: {self.root}")
            return []

        # Created per scan so it binds to the running loop
        self._semaphore = asyncio.Semaphore(self.max_workers) if self.max_workers else None

        started = time.monotonic()
        logger.info(f"Scanning music library at {self.root}")
        tracks = await self._scan_dir(self.root)
        logger.info(f"Scan complete. Found {len(tracks)} tracks in {time.monotonic() - started:.1f}s")
        return tracks

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def _scan_dir(self, directory: Path) -> List[Track]:
        logger.debug(f"Scanning directory: {directory}")
        try:
            files, subdirs = await asyncio.to_thread(self._list_dir, directory)
        except OSError as exc:
            logger.error(f"Error scanning directory {directory}: {exc}")
            return []

        folder, folder_path = self._folder_info(directory)
        file_tasks = [self._extract(path, folder, folder_path) for path in files]
        dir_tasks = [self._scan_dir(sub) for sub in subdirs]
        results = await asyncio.gather(*file_tasks, *dir_tasks)

        tracks: List[Track] = []
        for result in results[:len(file_tasks)]:
            if result is not None:
                tracks.append(result)
        for sub_tracks in results[len(file_tasks):]:
            tracks.extend(sub_tracks)
        return tracks

    def _list_dir(self, directory: Path) -> Tuple[List[Path], List[Path]]:
        """Split a directory into audio files and real (non-symlinked) subdirectories."""
        files: List[Path] = []
        subdirs: List[Path] = []
        with os.scandir(directory) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                try:
                    if entry.is_dir(follow_symlinks=False):
                        subdirs.append(Path(entry.path))
                    elif entry.is_file() and is_audio_file(Path(entry.name), self.extensions):
                        files.append(Path(entry.path))
                except OSError as exc:
                    logger.warning(f"Skipping unreadable entry {entry.path}: {exc}")
        return files, subdirs

    def _folder_info(self, directory: Path) -> Tuple[str, str]:
        """Parent folder name and its path relative to the root ("" for the root)."""
        relative = directory.relative_to(self.root)
        folder_path = relative.as_posix() if relative.parts else ""
        return directory.name, folder_path

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def _extract(self, path: Path, folder: str, folder_path: str) -> Optional[Track]:
        guard = self._semaphore if self._semaphore is not None else nullcontext()
        async with guard:
            try:
                return await asyncio.to_thread(extract_track, path, folder, folder_path)
            except MetadataError as exc:
                logger.warning(f"Failed to parse {path}: {exc.reason}")
            except Exception as exc:  # noqa: BLE001
                logger.error(f"Unexpected error reading {path}: {exc}")
        return None

    def __repr__(self) -> str:
        return f"LibraryScanner(root={self.root}, max_workers={self.max_workers})"
