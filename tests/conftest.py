"""Shared fixtures for watchsync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from watchsync.core.config import Profile


@pytest.fixture
def local_dir(tmp_path: Path) -> Path:
    """An existing local directory to sync."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def profile(local_dir: Path) -> Profile:
    """A valid profile pointing at local_dir."""
    return Profile(
        alias="web",
        remote_user="deploy",
        remote_host="prod.example.com",
        remote_dir="/var/www/app",
        local_dir=str(local_dir),
        exclude=(".git", "node_modules"),
    )
