"""
Manifest data model -- games, file/registry rules and their constraints.

The YAML manifest is a mapping of game title to a ``Game``. Field names
follow the manifest's camelCase keys through pydantic aliases, and unknown
OS/store/tag values fall back to ``other`` instead of failing the parse.
"""

from __future__ import annotations

import platform
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Placeholder:
    """Symbolic path prefixes used by manifest file rules."""

    ROOT = "<root>"
    GAME = "<game>"
    BASE = "<base>"
    HOME = "<home>"
    STORE_USER_ID = "<storeUserId>"
    OS_USER_NAME = "<osUserName>"
    WIN_APP_DATA = "<winAppData>"
    WIN_LOCAL_APP_DATA = "<winLocalAppData>"
    WIN_DOCUMENTS = "<winDocuments>"
    WIN_PUBLIC = "<winPublic>"
    WIN_PROGRAM_DATA = "<winProgramData>"
    WIN_DIR = "<winDir>"
    XDG_DATA = "<xdgData>"
    XDG_CONFIG = "<xdgConfig>"


class _LenientEnum(str, Enum):
    """String enum that parses case-insensitively and falls back to ``OTHER``."""

    @classmethod
    def parse(cls, value: Any) -> Any:
        if isinstance(value, cls) or not isinstance(value, str):
            return value
        lowered = value.lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return cls["OTHER"]


class Os(_LenientEnum):
    """Operating systems a file rule can be limited to."""

    WINDOWS = "windows"
    LINUX = "linux"
    MAC = "mac"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() == "macos":
            return cls.MAC
        return super().parse(value)

    @classmethod
    def host(cls) -> "Os":
        """The operating system this process is running on."""
        return {
            "Windows": cls.WINDOWS,
            "Linux": cls.LINUX,
            "Darwin": cls.MAC,
        }.get(platform.system(), cls.OTHER)

    @property
    def is_case_sensitive(self) -> bool:
        return self not in (Os.WINDOWS, Os.MAC)


class Store(_LenientEnum):
    """Game stores and generic install locations."""

    EA = "ea"
    EPIC = "epic"
    GOG = "gog"
    GOG_GALAXY = "gogGalaxy"
    HEROIC = "heroic"
    LEGENDARY = "legendary"
    LUTRIS = "lutris"
    MICROSOFT = "microsoft"
    ORIGIN = "origin"
    PRIME = "prime"
    STEAM = "steam"
    UPLAY = "uplay"
    OTHER_HOME = "otherHome"
    OTHER_WINE = "otherWine"
    OTHER_WINDOWS = "otherWindows"
    OTHER_LINUX = "otherLinux"
    OTHER_MAC = "otherMac"
    OTHER = "other"


class Tag(_LenientEnum):
    """What kind of data a rule points at."""

    SAVE = "save"
    CONFIG = "config"
    OTHER = "other"


class FileConstraint(BaseModel):
    """Limits a file rule to an OS and/or store."""

    model_config = ConfigDict(frozen=True)

    os: Optional[Os] = None
    store: Optional[Store] = None

    @field_validator("os", mode="before")
    @classmethod
    def _parse_os(cls, value: Any) -> Any:
        return Os.parse(value)

    @field_validator("store", mode="before")
    @classmethod
    def _parse_store(cls, value: Any) -> Any:
        return Store.parse(value)

    def sort_key(self) -> tuple[str, str]:
        return (self.os.value if self.os else "", self.store.value if self.store else "")

    def to_dict(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        if self.os is not None:
            payload["os"] = self.os.value
        if self.store is not None:
            payload["store"] = self.store.value
        return payload


class RegistryConstraint(BaseModel):
    """Limits a registry rule to a store."""

    model_config = ConfigDict(frozen=True)

    store: Optional[Store] = None

    @field_validator("store", mode="before")
    @classmethod
    def _parse_store(cls, value: Any) -> Any:
        return Store.parse(value)

    def sort_key(self) -> tuple[str]:
        return (self.store.value if self.store else "",)

    def to_dict(self) -> dict[str, str]:
        return {"store": self.store.value} if self.store is not None else {}


def _parse_tags(value: Any) -> Any:
    if value is None:
        return set()
    if isinstance(value, (list, tuple, set)):
        return {Tag.parse(item) for item in value}
    return value


def _dump_rule(tags: set[Tag], when: set[Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if tags:
        payload["tags"] = sorted(tag.value for tag in tags)
    if when:
        payload["when"] = [item.to_dict() for item in sorted(when, key=lambda c: c.sort_key())]
    return payload


class FileEntry(BaseModel):
    """A file path rule. Unconditional when ``when`` is empty."""

    tags: set[Tag] = Field(default_factory=set)
    when: set[FileConstraint] = Field(default_factory=set)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Any:
        return _parse_tags(value)

    @field_validator("when", mode="before")
    @classmethod
    def _when(cls, value: Any) -> Any:
        return [] if value is None else [item or {} for item in value]

    @property
    def unconditional(self) -> bool:
        return not self.when

    def to_dict(self) -> dict[str, Any]:
        return _dump_rule(self.tags, self.when)


class RegistryEntry(BaseModel):
    """A registry key rule. Unconditional when ``when`` is empty."""

    tags: set[Tag] = Field(default_factory=set)
    when: set[RegistryConstraint] = Field(default_factory=set)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Any:
        return _parse_tags(value)

    @field_validator("when", mode="before")
    @classmethod
    def _when(cls, value: Any) -> Any:
        return [] if value is None else [item or {} for item in value]

    @property
    def unconditional(self) -> bool:
        return not self.when

    def to_dict(self) -> dict[str, Any]:
        return _dump_rule(self.tags, self.when)


class InstallDirEntry(BaseModel):
    """Marker value for an install folder name hint."""


class SteamMetadata(BaseModel):
    id: Optional[int] = Field(default=None, ge=0, le=2**32 - 1)

    def is_empty(self) -> bool:
        return self.id is None


class GogMetadata(BaseModel):
    id: Optional[int] = Field(default=None, ge=0, le=2**64 - 1)

    def is_empty(self) -> bool:
        return self.id is None


class IdMetadata(BaseModel):
    """Extra store identifiers beyond the primary Steam/GOG ids."""

    model_config = ConfigDict(populate_by_name=True)

    flatpak: Optional[str] = None
    gog_extra: set[int] = Field(default_factory=set, alias="gogExtra")
    lutris: Optional[str] = None
    steam_extra: set[int] = Field(default_factory=set, alias="steamExtra")

    def is_empty(self) -> bool:
        return (
            self.flatpak is None
            and not self.gog_extra
            and self.lutris is None
            and not self.steam_extra
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.flatpak is not None:
            payload["flatpak"] = self.flatpak
        if self.gog_extra:
            payload["gogExtra"] = sorted(self.gog_extra)
        if self.lutris is not None:
            payload["lutris"] = self.lutris
        if self.steam_extra:
            payload["steamExtra"] = sorted(self.steam_extra)
        return payload


class CloudMetadata(BaseModel):
    """Which stores sync this game's saves on their own."""

    epic: bool = False
    gog: bool = False
    origin: bool = False
    steam: bool = False
    uplay: bool = False

    def is_empty(self) -> bool:
        return not (self.epic or self.gog or self.origin or self.steam or self.uplay)

    def to_dict(self) -> dict[str, bool]:
        return {key: True for key, value in self.model_dump().items() if value}


def _none_to_empty(value: Any) -> Any:
    return {} if value is None else value


class Game(BaseModel):
    """Backup rules for a single game title."""

    model_config = ConfigDict(populate_by_name=True)

    alias: Optional[str] = None
    files: dict[str, FileEntry] = Field(default_factory=dict)
    install_dir: dict[str, InstallDirEntry] = Field(default_factory=dict, alias="installDir")
    registry: dict[str, RegistryEntry] = Field(default_factory=dict)
    steam: SteamMetadata = Field(default_factory=SteamMetadata)
    gog: GogMetadata = Field(default_factory=GogMetadata)
    id: IdMetadata = Field(default_factory=IdMetadata)
    cloud: CloudMetadata = Field(default_factory=CloudMetadata)

    @field_validator("files", "install_dir", "registry", mode="before")
    @classmethod
    def _rule_maps(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(key): _none_to_empty(item) for key, item in value.items()}
        return value

    @field_validator("steam", "gog", "id", "cloud", mode="before")
    @classmethod
    def _metadata(cls, value: Any) -> Any:
        return _none_to_empty(value)

    def normalize_relative_paths(self) -> None:
        """Rewrite ``./`` and ``../`` file paths to be relative to ``<base>``.

        Meant for secondary manifests, which live inside a game's install folder.
        """
        base = Placeholder.BASE
        normalized: dict[str, FileEntry] = {}
        for path, entry in self.files.items():
            if path.startswith(("./", ".\\")):
                path = f"{base}/{path[2:]}"
            elif path.startswith(("../", "..\\")):
                path = f"{base}/../{path[3:]}"
            normalized[path] = entry
        self.files = normalized

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.alias is not None:
            payload["alias"] = self.alias
        if self.files:
            payload["files"] = {key: self.files[key].to_dict() for key in sorted(self.files)}
        if self.install_dir:
            payload["installDir"] = {key: {} for key in sorted(self.install_dir)}
        if self.registry:
            payload["registry"] = {key: self.registry[key].to_dict() for key in sorted(self.registry)}
        if not self.steam.is_empty():
            payload["steam"] = {"id": self.steam.id}
        if not self.gog.is_empty():
            payload["gog"] = {"id": self.gog.id}
        if not self.id.is_empty():
            payload["id"] = self.id.to_dict()
        if not self.cloud.is_empty():
            payload["cloud"] = self.cloud.to_dict()
        return payload
