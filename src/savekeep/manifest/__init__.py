"""
Game manifest -- parsing, merging and alias resolution.

Downloads live in ``savekeep.manifest.update``.
"""

from .document import ALIAS_HOP_LIMIT, Manifest, merge
from .models import (
    CloudMetadata,
    FileConstraint,
    FileEntry,
    Game,
    GogMetadata,
    IdMetadata,
    Os,
    Placeholder,
    RegistryConstraint,
    RegistryEntry,
    SteamMetadata,
    Store,
    Tag,
)

__all__ = [
    "ALIAS_HOP_LIMIT",
    "CloudMetadata",
    "FileConstraint",
    "FileEntry",
    "Game",
    "GogMetadata",
    "IdMetadata",
    "Manifest",
    "Os",
    "Placeholder",
    "RegistryConstraint",
    "RegistryEntry",
    "SteamMetadata",
    "Store",
    "Tag",
    "merge",
]
