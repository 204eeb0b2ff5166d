"""
Engine configuration

Everything is read from environment variables so the MCP server, the web app
and the inspection CLI share one source of truth. Use ``EngineConfig.from_env()``
at process start; tests construct ``EngineConfig(...)`` directly.
"""

import os
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel, Field, model_validator


DEFAULT_MUSIC_DIR = "./music"

# env var -> field name
_ENV_FIELDS = {
    "MUSIC_DIR": "music_dir",
    "SEARCH_SUMMARY_THRESHOLD": "summary_threshold",
    "SEARCH_GROUPED_THRESHOLD": "grouped_threshold",
    "SEARCH_TOP_TRACKS_LIMIT": "top_tracks_limit",
    "SEARCH_TOP_N_LIMIT": "top_n_limit",
    "SEARCH_FUZZY_THRESHOLD": "fuzzy_threshold",
    "SCAN_MAX_WORKERS": "scan_max_workers",
    "MCP_CRATE_LOG_LEVEL": "log_level",
}


class EngineConfig(BaseModel):
    """Scan root, result-shaping thresholds and search tuning."""

    music_dir: Path = Field(Path(DEFAULT_MUSIC_DIR), description="Root directory to scan")
    summary_threshold: int = Field(50, gt=0, description="Result sets larger than this are summarized")
    grouped_threshold: int = Field(10, gt=0, description="Result sets larger than this are grouped by artist")
    top_tracks_limit: int = Field(20, gt=0, description="Tracks included in a summary response")
    top_n_limit: int = Field(10, gt=0, description="Rows per top-artists/albums/folders aggregate")
    fuzzy_threshold: float = Field(0.3, ge=0.0, le=1.0, description="0.0 = exact only, 1.0 = match anything")
    scan_max_workers: Optional[int] = Field(None, gt=0, description="Cap on concurrent file reads (None = unbounded)")
    log_level: str = Field("INFO", description="loguru level for entry points")

    @model_validator(mode="after")
    def _check_thresholds(self) -> "EngineConfig":
        if self.summary_threshold <= self.grouped_threshold:
            raise ValueError(
                f"summary_threshold ({self.summary_threshold}) must be greater than "
                f"grouped_threshold ({self.grouped_threshold})"
            )
        return self

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from environment variables, falling back to defaults."""
        values = {}
        for env_name, field_name in _ENV_FIELDS.items():
            raw = os.environ.get(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        config = cls(**values)
        logger.debug(f"Engine config loaded: {config.model_dump(mode='json')}")
        return config
