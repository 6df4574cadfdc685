"""
Configuration read from the environment.

PIPELINE_DB              SQLite file backing the remote store (default data/pipeline.db)
PIPELINE_DB_DIR          writable directory to fall back to for the DB
PIPELINE_REMOTE_BASE     base URL of the remote store API; empty means use the DB directly
PIPELINE_SYNC_TIMEOUT    seconds before a remote stage update counts as failed
PIPELINE_DRAG_ACTIVATION pointer travel (px) before a press becomes a drag
PIPELINE_LOG_LEVEL       logging level name
"""
from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


DEFAULT_DB = os.getenv("PIPELINE_DB", os.path.join("data", "pipeline.db"))
DB_DIR = os.getenv("PIPELINE_DB_DIR")
REMOTE_BASE = os.getenv("PIPELINE_REMOTE_BASE", "").strip()
SYNC_TIMEOUT_S = _env_float("PIPELINE_SYNC_TIMEOUT", 10.0)
DRAG_ACTIVATION_PX = _env_float("PIPELINE_DRAG_ACTIVATION", 8.0)
LOG_LEVEL = os.getenv("PIPELINE_LOG_LEVEL", "INFO").upper()
