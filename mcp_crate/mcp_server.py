"""
FastMCP Server for conversational music search

Exposes the library query operations (search, BPM / artist / album / folder
filters, sorting, setlist and playback hand-off) as MCP tools so a chat
client can explore a local music folder.

The library root comes from the MUSIC_DIR environment variable (default
``./music``). The first tool call creates the store and starts a background
scan; tools answer immediately against whatever has been indexed so far.

To connect a desktop client (stdio), add to its MCP config:
{
  "mcpServers": {
    "mcp-crate": {
      "command": "uv",
      "args": ["run", "--project", "/path/to/mcp-crate", "python", "-m", "mcp_crate.mcp_server"],
      "env": {"MUSIC_DIR": "/path/to/music"}
    }
  }
}

To run over HTTP (SSE):
  python -m mcp_crate.mcp_server --transport sse [--host 127.0.0.1] [--port 8000]
"""

import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from fastmcp import FastMCP
from loguru import logger

from .config import EngineConfig
from .library_tools import LibraryTools
from .result_shaper import ResultShaper
from .store import LibraryStore

# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------

mcp = FastMCP("Music Crate")

config: Optional[EngineConfig] = None
store: Optional[LibraryStore] = None
tools: Optional[LibraryTools] = None


async def _ensure_initialized() -> LibraryTools:
    """Lazy-initialize the store on first tool call and kick off the initial scan."""
    global config, store, tools
    if tools is not None:
        return tools

    config = config or EngineConfig.from_env()
    logger.info(f"Initializing music library for directory: {config.music_dir}")
    store = LibraryStore.from_config(config)
    tools = LibraryTools(store, ResultShaper.from_config(config))
    store.refresh()
    return tools


# ---------------------------------------------------------------------------
# MCP Tools
# ---------------------------------------------------------------------------

@mcp.tool()
async def search_music(query: str) -> Dict[str, Any]:
    """
    Search for music by title, artist, album, file name or folder.

    Matching is fuzzy (tolerates typos and partial words) and ranked best
    match first.

    Args:
        query: The search query

    Returns:
        {"type": "full", "total", "tracks"} for up to the summary threshold
        (plus "grouped": true above the grouping threshold), otherwise
        {"type": "summary", "total", "showing", "top_tracks",
        "summary": {"top_artists", "top_albums", "bpm_stats"}}.
        When grouped is present, show the tracks grouped by artist.
    """
    t = await _ensure_initialized()
    return t.search_music(query)


@mcp.tool()
async def filter_by_bpm(min_bpm: float, max_bpm: float) -> Dict[str, Any]:
    """
    Filter music by BPM range (inclusive). Tracks without a BPM tag are left out.

    Args:
        min_bpm: Minimum BPM
        max_bpm: Maximum BPM
    """
    t = await _ensure_initialized()
    return t.filter_by_bpm(min_bpm, max_bpm)


@mcp.tool()
async def filter_by_artist(artist: str) -> Dict[str, Any]:
    """
    Filter music by artist name (case-insensitive substring).

    Args:
        artist: The artist name to filter by
    """
    t = await _ensure_initialized()
    return t.filter_by_artist(artist)


@mcp.tool()
async def filter_by_album(album: str) -> Dict[str, Any]:
    """
    Filter music by album name (case-insensitive substring).

    Args:
        album: The album name to filter by
    """
    t = await _ensure_initialized()
    return t.filter_by_album(album)


@mcp.tool()
async def filter_by_folder(folder: str) -> Dict[str, Any]:
    """
    Filter music by the name of the folder a track sits in.

    Case-insensitive substring match; symbols such as '@' are matched
    literally (e.g. '@eurodance' matches the folder '@Eurodance Brazil').

    Args:
        folder: Part of the folder name
    """
    t = await _ensure_initialized()
    return t.filter_by_folder(folder)


@mcp.tool()
async def filter_by_folder_path(path: str) -> Dict[str, Any]:
    """
    Filter music by folder path relative to the library root
    (e.g. 'Genres/@Eurodance Brazil'). Case-insensitive substring match.

    Args:
        path: Part of the relative folder path
    """
    t = await _ensure_initialized()
    return t.filter_by_folder_path(path)


@mcp.tool()
async def sort_results(
    sort_by: Literal["title", "artist", "bpm", "album"],
    order: Literal["asc", "desc"],
    track_ids: List[str],
) -> Dict[str, Any]:
    """
    Sort tracks by a specific field.

    Args:
        sort_by: Field to sort by
        order: Sort order (ascending or descending)
        track_ids: IDs of the tracks to sort (ids from earlier results)
    """
    t = await _ensure_initialized()
    return t.sort_results(sort_by, order, track_ids)


@mcp.tool()
async def add_to_setlist(track_id: str) -> Dict[str, Any]:
    """
    Add a track to the setlist.

    Args:
        track_id: The ID of the track to add

    Returns:
        {"action": "add", "track": {...}} or {"error": "Track not found"}.
    """
    t = await _ensure_initialized()
    return t.add_to_setlist(track_id)


@mcp.tool()
async def play_music(track_id: str) -> Dict[str, Any]:
    """
    Play a specific track.

    Args:
        track_id: The ID of the track to play

    Returns:
        {"action": "play", "track": {...}} or {"error": "Track not found"}.
    """
    t = await _ensure_initialized()
    return t.play_music(track_id)


@mcp.tool()
async def get_library_summary() -> Dict[str, Any]:
    """
    Get a summary of the loaded library: track count, BPM spread, and the most
    common artists, albums and folders. Use it before suggesting refinements.
    """
    t = await _ensure_initialized()
    return t.get_library_summary()


@mcp.tool()
async def list_folders() -> List[Dict[str, Any]]:
    """List every folder in the library with its track count, largest first."""
    t = await _ensure_initialized()
    return t.list_folders()


@mcp.tool()
async def rescan_library(wait: bool = False) -> Dict[str, Any]:
    """
    Re-scan the music folder in the background.

    Queries keep answering from the current library until the new scan is
    complete.

    Args:
        wait: Block until the scan has finished (default False)
    """
    t = await _ensure_initialized()
    t.store.refresh()
    if wait:
        await t.store.wait_until_ready()
    return t.library_status()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Run the MCP server."""
    import argparse

    global config

    def handle_shutdown(sig, frame):
        logger.info("Shutting down MCP server...")
        if store is not None:
            store.cancel()
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    parser = argparse.ArgumentParser()
    parser.add_argument("--transport", default="stdio", choices=["stdio", "sse"])
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--music-dir", default=None, help="Overrides MUSIC_DIR")
    args = parser.parse_args()

    config = EngineConfig.from_env()
    if args.music_dir:
        config = config.model_copy(update={"music_dir": Path(args.music_dir)})

    # stdio transport owns stdout; logs must go to stderr
    logger.remove()
    logger.add(sys.stderr, level=config.log_level)

    logger.info("Starting Music Crate MCP Server...")

    if args.transport == "sse":
        mcp.run(transport="sse", host=args.host, port=args.port)
    else:
        mcp.run()


if __name__ == "__main__":
    main()
