"""Shared helpers for the CLI command modules."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

from rich.console import Console

from .. import app_dir
from ..config import CONFIG_FILE_NAME, Config
from ..errors import SaveKeepError

console = Console()
logger = logging.getLogger("savekeep.cli")


def home_path(home: Optional[str]) -> Path:
    """The app directory, from ``--home`` or the environment."""
    return Path(home).expanduser() if home else app_dir()


def load_config(home: Path) -> Config:
    """Load the config file, exiting with a message if it is invalid."""
    try:
        return Config.load(home / CONFIG_FILE_NAME)
    except SaveKeepError as exc:
        fail(str(exc))


def fail(message: str) -> NoReturn:
    console.print(f"[bold red]Error:[/] {message}")
    sys.exit(1)
