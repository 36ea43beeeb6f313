"""Shared test fixtures for savekeep."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def app_home(tmp_path: Path, monkeypatch) -> Path:
    """Point SAVEKEEP_HOME at a temporary directory."""
    home = tmp_path / "savekeep-home"
    home.mkdir()
    monkeypatch.setenv("SAVEKEEP_HOME", str(home))
    return home


@pytest.fixture
def fake_rclone(tmp_path: Path) -> Path:
    """A stand-in executable path that ``RcloneApp.resolve`` accepts."""
    program = tmp_path / "bin" / "rclone"
    program.parent.mkdir()
    program.write_text("#!/bin/sh\nexit 0\n")
    program.chmod(0o755)
    return program

