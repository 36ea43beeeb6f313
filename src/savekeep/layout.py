"""Naming rules for per-game folders in the backup directory."""

from __future__ import annotations

SAFE = "_"
_UNSAFE_CHARS = '\\/:*?"<>|\0'


def escape_folder_name(name: str) -> str:
    """Turn a game title into a folder name usable on every OS.

    Leading and trailing dots are replaced too: a leading dot hides the
    folder on most systems and Windows Explorer cannot open a folder whose
    name ends with one.
    """
    escaped = name
    if escaped.startswith("."):
        escaped = SAFE + escaped[1:]
    if escaped.endswith("."):
        escaped = escaped[:-1] + SAFE
    for char in _UNSAFE_CHARS:
        escaped = escaped.replace(char, SAFE)
    return escaped
