"""
Cloud remotes -- where rclone mirrors the backup folder.

Each remote knows the rclone backend it maps to and the ``key=value``
arguments rclone needs to create it. Passwords are only held in memory
long enough to configure rclone and are never written to the config file.
"""

from __future__ import annotations

from abc import abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..errors import RemoteNotConfigured, RemotePathInvalid, ToolUnavailable
from ..lang import Translator
from ..manifest.models import Store

if TYPE_CHECKING:
    from ..config import Config

REMOTE_NAME = "ludusavi"


class WebDavProvider(str, Enum):
    """WebDAV server flavors rclone knows how to talk to."""

    OTHER = "other"
    NEXTCLOUD = "nextcloud"
    OWNCLOUD = "owncloud"
    SHAREPOINT = "sharepoint"
    SHAREPOINT_NTLM = "sharepoint-ntlm"

    @property
    def slug(self) -> str:
        return self.value

    @classmethod
    def from_slug(cls, slug: str) -> "WebDavProvider":
        try:
            return cls(slug)
        except ValueError:
            raise ValueError(f"invalid provider: {slug}") from None

    def label(self, translator: Translator) -> str:
        if self is WebDavProvider.OTHER:
            return translator.store(Store.OTHER)
        return {
            WebDavProvider.NEXTCLOUD: "Nextcloud",
            WebDavProvider.OWNCLOUD: "Owncloud",
            WebDavProvider.SHAREPOINT: "Sharepoint",
            WebDavProvider.SHAREPOINT_NTLM: "Sharepoint (NTLM)",
        }[self]


class _RemoteBase(BaseModel):
    """Behavior shared by every remote kind."""

    def name(self) -> str:
        """Remote name inside rclone's own config."""
        return REMOTE_NAME

    @abstractmethod
    def slug(self) -> str:
        """rclone backend type passed to ``config create``."""

    def config_args(self) -> Optional[list[str]]:
        return None

    def needs_configuration(self) -> bool:
        return True

    def description(self, translator: Optional[Translator] = None) -> Optional[str]:
        return None

    def has_credentials(self) -> bool:
        return False


class _HostRemote(_RemoteBase):
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = Field(default="", exclude=True, repr=False)

    def config_args(self) -> Optional[list[str]]:
        return [
            f"host={self.host}",
            f"port={self.port}",
            f"user={self.username}",
            f"pass={self.password}",
        ]

    def description(self, translator: Optional[Translator] = None) -> Optional[str]:
        return f"{self.username}@{self.host}:{self.port}"

    def has_credentials(self) -> bool:
        return True


class CustomRemote(_RemoteBase):
    """A remote the user already set up in rclone under ``name``."""

    type: Literal["custom"] = "custom"
    remote_name: str = Field(default=REMOTE_NAME, alias="name")

    model_config = ConfigDict(populate_by_name=True)

    def name(self) -> str:
        return self.remote_name

    def slug(self) -> str:
        return ""

    def needs_configuration(self) -> bool:
        return False


class BoxRemote(_RemoteBase):
    type: Literal["box"] = "box"

    def slug(self) -> str:
        return "box"


class DropboxRemote(_RemoteBase):
    type: Literal["dropbox"] = "dropbox"

    def slug(self) -> str:
        return "dropbox"


class GoogleDriveRemote(_RemoteBase):
    type: Literal["googleDrive"] = "googleDrive"

    def slug(self) -> str:
        return "drive"

    def config_args(self) -> Optional[list[str]]:
        return ["scope=drive"]


class OneDriveRemote(_RemoteBase):
    type: Literal["oneDrive"] = "oneDrive"

    def slug(self) -> str:
        return "onedrive"

    def config_args(self) -> Optional[list[str]]:
        return [
            "drive_type=personal",
            "access_scopes=Files.ReadWrite,offline_access",
        ]


class FtpRemote(_HostRemote):
    type: Literal["ftp"] = "ftp"
    port: int = 21

    def slug(self) -> str:
        return "ftp"


class SmbRemote(_HostRemote):
    type: Literal["smb"] = "smb"
    port: int = 445

    def slug(self) -> str:
        return "smb"


class WebDavRemote(_RemoteBase):
    type: Literal["webDav"] = "webDav"
    url: str = ""
    username: str = ""
    password: str = Field(default="", exclude=True, repr=False)
    provider: WebDavProvider = WebDavProvider.OTHER

    def slug(self) -> str:
        return "webdav"

    def config_args(self) -> Optional[list[str]]:
        return [
            f"url={self.url}",
            f"user={self.username}",
            f"pass={self.password}",
            f"vendor={self.provider.slug}",
        ]

    def description(self, translator: Optional[Translator] = None) -> Optional[str]:
        translator = translator or Translator()
        return f"{self.provider.label(translator)} - {self.url}"

    def has_credentials(self) -> bool:
        return True


Remote = Annotated[
    Union[
        CustomRemote,
        BoxRemote,
        DropboxRemote,
        GoogleDriveRemote,
        OneDriveRemote,
        FtpRemote,
        SmbRemote,
        WebDavRemote,
    ],
    Field(discriminator="type"),
]


class RemoteChoice(str, Enum):
    """Remote kinds as offered to the user, including "none"."""

    NONE = "none"
    CUSTOM = "custom"
    BOX = "box"
    DROPBOX = "dropbox"
    FTP = "ftp"
    GOOGLE_DRIVE = "googleDrive"
    ONE_DRIVE = "oneDrive"
    SMB = "smb"
    WEBDAV = "webDav"

    @classmethod
    def all(cls) -> tuple["RemoteChoice", ...]:
        """Choices in display order."""
        return (
            cls.NONE,
            cls.BOX,
            cls.DROPBOX,
            cls.GOOGLE_DRIVE,
            cls.ONE_DRIVE,
            cls.FTP,
            cls.SMB,
            cls.WEBDAV,
            cls.CUSTOM,
        )

    def label(self, translator: Translator) -> str:
        if self is RemoteChoice.NONE:
            return translator.none_label()
        if self is RemoteChoice.CUSTOM:
            return translator.custom_label()
        return {
            RemoteChoice.BOX: "Box",
            RemoteChoice.DROPBOX: "Dropbox",
            RemoteChoice.FTP: "FTP",
            RemoteChoice.GOOGLE_DRIVE: "Google Drive",
            RemoteChoice.ONE_DRIVE: "OneDrive",
            RemoteChoice.SMB: "SMB",
            RemoteChoice.WEBDAV: "WebDAV",
        }[self]

    @classmethod
    def from_remote(cls, remote: Optional[Remote]) -> "RemoteChoice":
        if remote is None:
            return cls.NONE
        return cls(remote.type)

    def to_remote(self) -> Optional[Remote]:
        """A remote of this kind with default settings, or None for ``NONE``."""
        factories = {
            RemoteChoice.CUSTOM: CustomRemote,
            RemoteChoice.BOX: BoxRemote,
            RemoteChoice.DROPBOX: DropboxRemote,
            RemoteChoice.FTP: FtpRemote,
            RemoteChoice.GOOGLE_DRIVE: GoogleDriveRemote,
            RemoteChoice.ONE_DRIVE: OneDriveRemote,
            RemoteChoice.SMB: SmbRemote,
            RemoteChoice.WEBDAV: WebDavRemote,
        }
        factory = factories.get(self)
        return factory() if factory else None


def validate_cloud_path(path: str) -> None:
    """Reject remote paths that would sync against the whole remote."""
    if not path or path == "/":
        raise RemotePathInvalid(path)


def validate_cloud_config(config: "Config", cloud_path: str) -> Remote:
    """Check that a cloud operation can run and return the remote to use.

    Raises:
        ToolUnavailable: rclone cannot be found.
        RemoteNotConfigured: No remote is selected.
        RemotePathInvalid: ``cloud_path`` is empty or ``/``.
    """
    if not config.apps.rclone.is_valid():
        raise ToolUnavailable(config.apps.rclone.path)
    remote = config.cloud.remote
    if remote is None:
        raise RemoteNotConfigured()
    validate_cloud_path(cloud_path)
    return remote
