from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

STORAGE_BACKENDS = {"memory", "json", "sqlite"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - TASKTREE_STORAGE_BACKEND: 'memory' (default), 'json' or 'sqlite'
    - TASKTREE_DATA_DIR: directory for the json backend. Default './data'
    - TASKTREE_SQLITE_PATH: path to sqlite db file. Default './data/tasktree.db'
    - TASKTREE_STORAGE_KEY: key the task document is stored under. Default 'todo-tasks'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - TASKTREE_LOG_LEVEL: console log level name. Default 'INFO'
    - TASKTREE_LOG_FILE: optional path of a file receiving DEBUG logs
    """

    storage_backend: str
    data_dir: str
    sqlite_db_path: str
    storage_key: str
    cors_allow_origins: List[str]
    log_level: int
    log_file: Optional[str]


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_log_level(value: str, default: int = logging.INFO) -> int:
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else default


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("TASKTREE_STORAGE_BACKEND", "memory").strip().lower()
    if backend not in STORAGE_BACKENDS:
        # Fallback to memory if unsupported
        backend = "memory"

    log_file = os.getenv("TASKTREE_LOG_FILE") or None

    return Settings(
        storage_backend=backend,
        data_dir=_get_env("TASKTREE_DATA_DIR", "./data").strip(),
        sqlite_db_path=_get_env("TASKTREE_SQLITE_PATH", "./data/tasktree.db").strip(),
        storage_key=_get_env("TASKTREE_STORAGE_KEY", "todo-tasks").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_parse_log_level(_get_env("TASKTREE_LOG_LEVEL", "INFO")),
        log_file=log_file.strip() if log_file else None,
    )
