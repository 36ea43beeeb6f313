"""Cloud sync through rclone: remotes, processes, and the event monitor."""

from .monitor import RcloneMonitor
from .rclone import CloudChange, Finality, Progress, Rclone, RcloneProcess, ScanChange, SyncDirection
from .remote import Remote, RemoteChoice, WebDavProvider, validate_cloud_config, validate_cloud_path

__all__ = [
    "CloudChange",
    "Finality",
    "Progress",
    "Rclone",
    "RcloneMonitor",
    "RcloneProcess",
    "Remote",
    "RemoteChoice",
    "ScanChange",
    "SyncDirection",
    "WebDavProvider",
    "validate_cloud_config",
    "validate_cloud_path",
]
