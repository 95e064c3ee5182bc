"""Settings loaded from the environment.

    CORTEXMAP_PATH            data directory (default: nearest .cortexmap/)
    CORTEXMAP_AGENT           default agent id recorded on commits
    CORTEXMAP_LINEAR_HISTORY  1/true/yes to serialize commits
    CORTEXMAP_LOG_LEVEL       log level for the server
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel

DATA_DIR_NAME = ".cortexmap"
DB_FILE_NAME = "cortex_map.db"
LOG_FILE_NAME = "cortexmap.log"

_TRUTHY = {"1", "true", "yes", "on"}


def find_data_dir(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for a .cortexmap directory."""
    cwd = start or Path.cwd()
    for parent in [cwd] + list(cwd.parents):
        candidate = parent / DATA_DIR_NAME
        if candidate.exists():
            return candidate

    # Default to cwd/.cortexmap
    return cwd / DATA_DIR_NAME


class Settings(BaseModel):
    data_dir: Path
    agent_id: str = "user"
    linear_history: bool = False
    log_level: str = "INFO"

    @property
    def db_path(self) -> Path:
        return self.data_dir / DB_FILE_NAME

    @property
    def log_file(self) -> Path:
        return self.data_dir / LOG_FILE_NAME


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables (os.environ by default)."""
    if env is None:
        env = os.environ

    if env_path := env.get("CORTEXMAP_PATH"):
        data_dir = Path(env_path)
    else:
        data_dir = find_data_dir()

    return Settings(
        data_dir=data_dir,
        agent_id=env.get("CORTEXMAP_AGENT") or "user",
        linear_history=env.get("CORTEXMAP_LINEAR_HISTORY", "").strip().lower() in _TRUTHY,
        log_level=(env.get("CORTEXMAP_LOG_LEVEL") or "INFO").upper(),
    )
