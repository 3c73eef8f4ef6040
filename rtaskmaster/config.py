"""Settings for RTaskmaster loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "RTASKMASTER"
DEFAULT_STORAGE_DIR = ".rtaskmaster"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


PROJECT_ROOT_ENV = _k("PROJECT_ROOT")
STORAGE_DIR_ENV = _k("STORAGE_DIR")
LOG_LEVEL_ENV = _k("LOG_LEVEL")
LOG_FILE_ENV = _k("LOG_FILE")


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v.strip()


@dataclass(frozen=True, slots=True)
class Settings:
    project_root: Optional[Path] = None
    storage_dir_name: str = DEFAULT_STORAGE_DIR
    log_level: str = "INFO"
    log_file: Optional[Path] = None


def load_settings() -> Settings:
    """Read settings from the current environment.

    Called per request, so changes to the environment are picked up
    without restarting the server.
    """
    project_root = _env(PROJECT_ROOT_ENV)
    log_file = _env(LOG_FILE_ENV)
    return Settings(
        project_root=Path(project_root).expanduser() if project_root else None,
        storage_dir_name=_env(STORAGE_DIR_ENV, DEFAULT_STORAGE_DIR),
        log_level=_env(LOG_LEVEL_ENV, "INFO").upper(),
        log_file=Path(log_file).expanduser() if log_file else None,
    )
