"""
Location of the server manager's files.

Everything lives under one data directory:

    {data_dir}/
    ├── jobs.json          # Scheduled job ledger
    ├── manager.json       # Manager settings (optional)
    └── logs/
        └── server_manager.log

The directory is taken from, in order: an explicit argument, the
SERVER_MANAGER_DATA_DIR environment variable, the directory remembered by
`server-manager init --data-dir`, and finally ~/.server_manager.
"""

import os
import json
from pathlib import Path
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)

ENV_DATA_DIR = "SERVER_MANAGER_DATA_DIR"

DEFAULT_DATA_DIR = Path("~/.server_manager")

# Remembers a non-default data directory between runs
POINTER_FILE = DEFAULT_DATA_DIR / "config.json"


def _remembered_data_dir() -> Optional[str]:
    path = Path(POINTER_FILE).expanduser()
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
        return data.get('data_dir')
    except (OSError, ValueError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable {path}: {e}")
        return None


def resolve_data_dir(data_dir: Optional[str] = None) -> Tuple[Path, str]:
    """Return the data directory and where the choice came from."""
    candidates = [
        (data_dir, "argument"),
        (os.getenv(ENV_DATA_DIR), ENV_DATA_DIR),
        (_remembered_data_dir(), str(POINTER_FILE)),
    ]
    for value, source in candidates:
        if value:
            return Path(value).expanduser().resolve(), source
    return DEFAULT_DATA_DIR.expanduser().resolve(), "default"


class Config:
    """Paths derived from the data directory. Creates the directory tree."""

    _instance: Optional['Config'] = None

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir, source = resolve_data_dir(data_dir)
        self.logs_dir = self.data_dir / "logs"
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Data directory {self.data_dir} (from {source})")

    @property
    def jobs_file(self) -> Path:
        return self.data_dir / "jobs.json"

    @property
    def manager_file(self) -> Path:
        return self.data_dir / "manager.json"

    @property
    def log_file(self) -> Path:
        return self.logs_dir / "server_manager.log"

    def remember(self):
        """Record this data directory so later runs find it without the env var."""
        path = Path(POINTER_FILE).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({'data_dir': str(self.data_dir)}, indent=2))
        logger.info(f"Remembered data directory {self.data_dir} in {path}")

    def __repr__(self):
        return f"Config(data_dir={self.data_dir})"


def get_config(data_dir: Optional[str] = None) -> Config:
    """
    Get the shared Config, creating it on first use.

    Passing data_dir always replaces the shared instance.
    """
    if Config._instance is None or data_dir is not None:
        Config._instance = Config(data_dir)
    return Config._instance


def set_data_directory(data_dir: str, save: bool = True) -> Config:
    """Switch to data_dir for this process and, with save, for later runs too."""
    config = get_config(data_dir)
    if save:
        config.remember()
    return config
