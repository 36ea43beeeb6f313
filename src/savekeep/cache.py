"""Cached state between runs: manifest ETags and check times."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from . import app_dir

if TYPE_CHECKING:
    from .manifest.update import ManifestUpdate

logger = logging.getLogger("savekeep.cache")

CACHE_FILE_NAME = "cache.yaml"


class ManifestCacheEntry(BaseModel):
    etag: Optional[str] = None
    checked: Optional[datetime] = None
    updated: Optional[datetime] = None


class Cache(BaseModel):
    """Persisted download state for each manifest URL."""

    manifests: dict[str, ManifestCacheEntry] = Field(default_factory=dict)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Cache":
        """Load the cache. A missing or corrupt cache starts fresh."""
        path = path or app_dir() / CACHE_FILE_NAME
        if not path.exists():
            return cls()
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            return cls.model_validate(data)
        except (OSError, yaml.YAMLError, ValidationError) as exc:
            logger.warning("Failed to load cache %s: %s", path, exc)
            return cls()

    def save(self, path: Optional[Path] = None) -> None:
        path = path or app_dir() / CACHE_FILE_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode="json", exclude_none=True)
        path.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")

    def update_manifest(self, update: "ManifestUpdate") -> None:
        entry = self.manifests.setdefault(update.url, ManifestCacheEntry())
        entry.etag = update.etag
        entry.checked = update.timestamp
        if update.modified:
            entry.updated = update.timestamp
