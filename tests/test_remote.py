"""
Tests for cloud remote definitions and pre-flight validation.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import TypeAdapter

from savekeep.cloud.remote import (
    BoxRemote,
    CustomRemote,
    DropboxRemote,
    FtpRemote,
    GoogleDriveRemote,
    OneDriveRemote,
    Remote,
    RemoteChoice,
    SmbRemote,
    WebDavProvider,
    WebDavRemote,
    _RemoteBase,
    validate_cloud_config,
    validate_cloud_path,
)
from savekeep.config import Config, RcloneApp
from savekeep.errors import RemoteNotConfigured, RemotePathInvalid, ToolUnavailable
from savekeep.lang import Translator


class TestRemoteArgs:
    """rclone names, slugs and config arguments."""

    def test_every_kind_declares_a_slug(self):
        with pytest.raises(TypeError):
            _RemoteBase()

    def test_custom(self):
        remote = CustomRemote(name="my-remote")
        assert remote.name() == "my-remote"
        assert remote.slug() == ""
        assert remote.config_args() is None
        assert not remote.needs_configuration()

    def test_simple_backends(self):
        assert BoxRemote().slug() == "box"
        assert DropboxRemote().slug() == "dropbox"
        assert BoxRemote().config_args() is None
        assert BoxRemote().name() == "ludusavi"

    def test_google_drive(self):
        remote = GoogleDriveRemote()
        assert remote.slug() == "drive"
        assert remote.config_args() == ["scope=drive"]

    def test_onedrive(self):
        remote = OneDriveRemote()
        assert remote.slug() == "onedrive"
        assert remote.config_args() == [
            "drive_type=personal",
            "access_scopes=Files.ReadWrite,offline_access",
        ]

    def test_ftp(self):
        remote = FtpRemote(host="nas", username="me", password="pw")
        assert remote.port == 21
        assert remote.config_args() == ["host=nas", "port=21", "user=me", "pass=pw"]
        assert remote.description() == "me@nas:21"

    def test_smb_default_port(self):
        assert SmbRemote().port == 445

    def test_webdav(self):
        remote = WebDavRemote(
            url="https://cloud.example.com/dav",
            username="me",
            password="pw",
            provider=WebDavProvider.NEXTCLOUD,
        )
        assert remote.slug() == "webdav"
        assert remote.config_args() == [
            "url=https://cloud.example.com/dav",
            "user=me",
            "pass=pw",
            "vendor=nextcloud",
        ]
        assert remote.description(Translator()) == "Nextcloud - https://cloud.example.com/dav"

    def test_webdav_other_label(self):
        remote = WebDavRemote(url="https://dav")
        assert remote.description(Translator()) == "Other - https://dav"

    def test_no_description_for_oauth(self):
        assert GoogleDriveRemote().description() is None

    def test_password_excluded_from_dump(self):
        dumped = SmbRemote(host="h", username="u", password="secret").model_dump()
        assert "password" not in dumped
        assert dumped["type"] == "smb"

    def test_discriminated_parse(self):
        adapter = TypeAdapter(Remote)
        remote = adapter.validate_python({"type": "custom", "name": "backup"})
        assert isinstance(remote, CustomRemote)
        assert remote.name() == "backup"
        assert isinstance(adapter.validate_python({"type": "oneDrive"}), OneDriveRemote)


class TestProviders:
    def test_slugs(self):
        assert WebDavProvider.from_slug("sharepoint-ntlm") is WebDavProvider.SHAREPOINT_NTLM

    def test_invalid_slug(self):
        with pytest.raises(ValueError, match="invalid provider: dav9000"):
            WebDavProvider.from_slug("dav9000")


class TestRemoteChoice:
    def test_round_trip(self):
        for choice in RemoteChoice.all():
            assert RemoteChoice.from_remote(choice.to_remote()) is choice

    def test_none(self):
        assert RemoteChoice.NONE.to_remote() is None
        assert RemoteChoice.NONE.label(Translator()) == "None"

    def test_defaults(self):
        assert RemoteChoice.CUSTOM.to_remote().name() == "ludusavi"
        assert RemoteChoice.FTP.to_remote().port == 21
        assert RemoteChoice.SMB.to_remote().port == 445
        assert RemoteChoice.WEBDAV.to_remote().provider is WebDavProvider.OTHER

    def test_labels(self):
        translator = Translator()
        assert RemoteChoice.CUSTOM.label(translator) == "Custom"
        assert RemoteChoice.GOOGLE_DRIVE.label(translator) == "Google Drive"


class TestValidation:
    """Pre-flight checks before a cloud operation."""

    @pytest.mark.parametrize("path", ["", "/"])
    def test_bad_paths(self, path):
        with pytest.raises(RemotePathInvalid):
            validate_cloud_path(path)

    def test_good_path(self):
        validate_cloud_path("games/backup")

    def test_tool_missing_first(self, tmp_path: Path):
        config = Config()
        config.apps.rclone = RcloneApp(path=str(tmp_path / "missing"))
        with pytest.raises(ToolUnavailable):
            validate_cloud_config(config, "")

    def test_remote_missing(self, fake_rclone: Path):
        config = Config()
        config.apps.rclone = RcloneApp(path=str(fake_rclone))
        with pytest.raises(RemoteNotConfigured):
            validate_cloud_config(config, "")

    def test_path_checked_last(self, fake_rclone: Path):
        config = Config()
        config.apps.rclone = RcloneApp(path=str(fake_rclone))
        config.cloud.remote = BoxRemote()
        with pytest.raises(RemotePathInvalid):
            validate_cloud_config(config, "/")

    def test_valid(self, fake_rclone: Path):
        config = Config()
        config.apps.rclone = RcloneApp(path=str(fake_rclone))
        config.cloud.remote = BoxRemote()
        assert validate_cloud_config(config, "games") == BoxRemote()
