"""
savekeep -- game save backup with manifest resolution and cloud sync.

Merges the shared game-data manifest with secondary manifests and
custom games, and mirrors backups to a remote through rclone.
"""

import os
from pathlib import Path

__version__ = "0.1.0"

APP_HOME = os.environ.get("SAVEKEEP_HOME", "~/.config/savekeep")


def app_dir() -> Path:
    """Directory holding the config, cache and downloaded manifests."""
    return Path(os.environ.get("SAVEKEEP_HOME", APP_HOME)).expanduser()
