"""
User configuration -- manifest sources, roots, custom games, rclone, cloud.

Stored as YAML in the app directory and validated with pydantic.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from . import app_dir
from .cloud.remote import Remote
from .errors import ConfigError
from .manifest.models import Store

if TYPE_CHECKING:
    from .manifest.document import Manifest

logger = logging.getLogger("savekeep.config")

CONFIG_FILE_NAME = "config.yaml"
DEFAULT_MANIFEST_URL = (
    "https://raw.githubusercontent.com/mtkennerly/ludusavi-manifest/master/data/manifest.yaml"
)
SECONDARY_MANIFEST_FILE_NAME = ".ludusavi.yaml"


class SecondaryManifest(BaseModel):
    """An extra manifest, either a local file or a URL to download."""

    path: Optional[Path] = None
    url: Optional[str] = None
    enable: bool = True

    @model_validator(mode="after")
    def _one_source(self) -> "SecondaryManifest":
        if (self.path is None) == (self.url is None):
            raise ValueError("secondary manifest needs exactly one of 'path' or 'url'")
        return self


class ManifestConfig(BaseModel):
    """Where the primary and secondary manifests come from."""

    enable: bool = True
    url: str = DEFAULT_MANIFEST_URL
    secondary: list[SecondaryManifest] = Field(default_factory=list)

    def secondary_manifest_urls(self, force: bool = False) -> list[str]:
        """URLs of the secondary manifests that should be downloaded."""
        return [
            item.url for item in self.secondary
            if item.url is not None and (item.enable or force)
        ]

    def load_secondary_manifests(self, home: Optional[Path] = None) -> list[tuple[Path, "Manifest"]]:
        """Load every enabled secondary manifest, skipping unreadable ones.

        Local files are read in place. URL sources are read from their
        downloaded copy in the app directory.
        """
        from .manifest.document import Manifest

        home = home or app_dir()
        loaded: list[tuple[Path, Manifest]] = []
        for item in self.secondary:
            if not item.enable:
                continue
            if item.path is not None:
                path = item.path.expanduser()
                identifier = str(path)
            else:
                path = Manifest.path_for(item.url, primary=False, home=home)
                identifier = item.url

            if not path.is_file():
                logger.warning("Secondary manifest not found: %s", path)
                continue

            try:
                manifest = Manifest.load(path, strict=False, identifier=identifier)
            except OSError as exc:
                logger.warning("Failed to read secondary manifest %s: %s", path, exc)
                continue
            loaded.append((path, manifest))
        return loaded


class RootConfig(BaseModel):
    """A folder where a store keeps its installed games."""

    path: Path
    store: Store = Store.OTHER

    def find_secondary_manifests(self) -> list[tuple[Path, "Manifest"]]:
        """Secondary manifests shipped inside installed game folders."""
        from .manifest.document import Manifest

        root = self.path.expanduser()
        if self.store is Store.STEAM:
            pattern = f"steamapps/common/*/{SECONDARY_MANIFEST_FILE_NAME}"
        else:
            pattern = f"*/{SECONDARY_MANIFEST_FILE_NAME}"

        found: list[tuple[Path, Manifest]] = []
        for path in sorted(root.glob(pattern)):
            try:
                found.append((path, Manifest.load(path, strict=False, identifier=str(path))))
            except OSError as exc:
                logger.warning("Failed to read secondary manifest %s: %s", path, exc)
        return found


class CustomGame(BaseModel):
    """User-defined backup rules for a game."""

    name: str
    ignore: bool = False
    alias: Optional[str] = None
    files: list[str] = Field(default_factory=list)
    registry: list[str] = Field(default_factory=list)


class RcloneApp(BaseModel):
    """Location of the rclone executable and extra arguments for every call."""

    path: str = "rclone"
    arguments: str = "--fast-list --ignore-checksum"

    def resolve(self) -> Optional[str]:
        """Absolute path to the executable, or None if it cannot be found."""
        if not self.path:
            return None
        candidate = Path(self.path).expanduser()
        if candidate.is_absolute() or os.sep in self.path or "/" in self.path:
            return str(candidate) if candidate.is_file() else None
        return shutil.which(self.path)

    def is_valid(self) -> bool:
        return self.resolve() is not None


class AppsConfig(BaseModel):
    rclone: RcloneApp = Field(default_factory=RcloneApp)


class CloudConfig(BaseModel):
    """Remote and folder used for cloud sync."""

    remote: Optional[Remote] = None
    path: str = "savekeep-backup"
    synchronize: bool = True


class Config(BaseModel):
    """Fully parsed configuration file."""

    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    roots: list[RootConfig] = Field(default_factory=list)
    custom_games: list[CustomGame] = Field(default_factory=list)
    apps: AppsConfig = Field(default_factory=AppsConfig)
    cloud: CloudConfig = Field(default_factory=CloudConfig)
    backup_path: Path = Field(default_factory=lambda: Path("~/savekeep-backup"))

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load the config file, or return defaults if it does not exist.

        Raises:
            ConfigError: The file exists but is not valid.
        """
        path = path or app_dir() / CONFIG_FILE_NAME
        if not path.exists():
            logger.debug("No config at %s, using defaults", path)
            return cls()

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Config file {path} is invalid: {exc}") from exc

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the config as YAML. Remote passwords are never written."""
        path = path or app_dir() / CONFIG_FILE_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8")
        return path
