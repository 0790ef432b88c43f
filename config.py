"""Centralized configuration for environment variables."""

import logging
import os
from pathlib import Path

from data.store import JsonFileStore

DATA_DIR_ENV = "SOFTBALL_DATA_DIR"
DRAFT_DIR_ENV = "SOFTBALL_DRAFT_DIR"
LOG_LEVEL_ENV = "SOFTBALL_LOG_LEVEL"

_PROJECT_ROOT = Path(__file__).resolve().parent
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def get_data_dir() -> Path:
    """Root of the authoritative document store."""
    return Path(os.environ.get(DATA_DIR_ENV) or _PROJECT_ROOT / "data" / "games")


def get_draft_dir() -> Path:
    """Root of the client-local lineup draft store."""
    return Path(os.environ.get(DRAFT_DIR_ENV) or _PROJECT_ROOT / "data" / "drafts")


def get_log_level() -> int:
    """Logging level from the environment, defaulting to INFO."""
    name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: int | None = None) -> None:
    logging.basicConfig(level=level if level is not None else get_log_level(), format=LOG_FORMAT)


def open_store(root_dir: str | Path | None = None) -> JsonFileStore:
    return JsonFileStore(root_dir or get_data_dir())


def open_draft_store(root_dir: str | Path | None = None) -> JsonFileStore:
    return JsonFileStore(root_dir or get_draft_dir())
