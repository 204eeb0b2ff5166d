"""
FastAPI Web Application for Music Crate

Endpoints:
  GET  /api/library/stats              - Library summary
  GET  /api/library/status             - Background scan status
  GET  /api/library/tracks             - Search (shaped) or list tracks
  GET  /api/library/tracks/{track_id}  - One track by id (its absolute path)
  GET  /api/library/folders            - Folders with track counts
  POST /api/library/rescan             - Start a rescan (?wait=true to block)
"""

import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .config import EngineConfig
from .library_tools import LibraryTools
from .result_shaper import ResultShaper, to_payload
from .store import LibraryStore


def create_app(
    store: Optional[LibraryStore] = None,
    config: Optional[EngineConfig] = None,
) -> FastAPI:
    """Build the app around an injected store (a fresh one from env config otherwise)."""
    config = config or EngineConfig.from_env()
    store = store or LibraryStore.from_config(config)
    tools = LibraryTools(store, ResultShaper.from_config(config))

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        # Startup: serve an empty library right away, fill it in the background
        store.refresh()
        yield
        # Shutdown
        store.cancel()

    app = FastAPI(title="Music Crate", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.store = store

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/api/library/stats")
    async def library_stats():
        """Library summary stats."""
        return JSONResponse(tools.get_library_summary())

    @app.get("/api/library/status")
    async def library_status():
        return JSONResponse(tools.library_status())

    @app.get("/api/library/tracks")
    async def library_tracks(search: Optional[str] = None, limit: int = 100):
        """
        Shaped search results, or the first ``limit`` tracks when no search is given.

        The unsearched listing reports the library size as ``total`` and the
        number of returned tracks as ``showing``.
        """
        if search:
            return JSONResponse(tools.search_music(search))
        index = store.snapshot.index
        tracks = index.get_all_tracks()[:max(0, min(limit, 500))]
        payload = to_payload(ResultShaper.full(tracks))
        payload["total"] = len(index)
        payload["showing"] = len(tracks)
        return JSONResponse(payload)

    @app.get("/api/library/tracks/{track_id:path}")
    async def library_track(track_id: str):
        # Route parameters lose the leading slash of absolute POSIX paths
        track = store.snapshot.index.get_track(track_id)
        if track is None and not track_id.startswith("/"):
            track = store.snapshot.index.get_track("/" + track_id)
        if track is None:
            raise HTTPException(status_code=404, detail="Track not found")
        return JSONResponse(track.model_dump(mode="json"))

    @app.get("/api/library/folders")
    async def library_folders():
        return JSONResponse(tools.list_folders())

    @app.post("/api/library/rescan")
    async def rescan(wait: bool = False):
        """Start a rescan; with wait=true, respond once it has finished."""
        store.refresh()
        if wait:
            await store.wait_until_ready()
        return JSONResponse(tools.library_status())

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    config = EngineConfig.from_env()
    logger.remove()
    logger.add(sys.stderr, level=config.log_level)

    port = int(os.environ.get("MCP_CRATE_PORT", "8888"))
    logger.info(f"Starting Music Crate on port {port}")
    uvicorn.run(
        create_app(config=config),
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
