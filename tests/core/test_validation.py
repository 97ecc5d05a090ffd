"""Tests for profile validation."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from watchsync.core.config import Profile
from watchsync.core.errors import ConfigurationError, LocalDirectoryError
from watchsync.core.types import SyncDirection
from watchsync.core.validation import (
    expand_local_dir,
    resolve_workspace_folder,
    validate_profile,
)


class TestValidateProfile:
    """Tests for validate_profile()."""

    def test_valid_profile(self, profile: Profile) -> None:
        """Should accept a complete profile with an existing directory."""
        result = validate_profile(profile)
        assert result.valid is True
        assert result.errors == []
        assert result.to_error() is None

    def test_missing_fields(self) -> None:
        """Should report every missing required field."""
        profile = Profile(alias="web", remote_user="", remote_host="", remote_dir="", local_dir="")
        result = validate_profile(profile)
        assert result.valid is False
        assert "Remote host is required" in result.errors
        assert "Remote user is required" in result.errors
        assert "Remote directory is required" in result.errors
        assert "Local directory is required" in result.errors

    def test_whitespace_field_is_missing(self, profile: Profile) -> None:
        """Should treat whitespace-only values as missing."""
        result = validate_profile(profile.with_changes(remote_host="   "))
        assert result.errors == ["Remote host is required"]

    @pytest.mark.parametrize("port", [0, -1, 65536, 100000])
    def test_port_out_of_range(self, profile: Profile, port: int) -> None:
        """Should reject ports outside 1-65535."""
        result = validate_profile(profile.with_changes(ssh_port=port))
        assert result.valid is False
        assert any("port" in e.lower() for e in result.errors)

    @pytest.mark.parametrize("port", [1, 22, 65535])
    def test_port_in_range(self, profile: Profile, port: int) -> None:
        """Should accept boundary ports."""
        assert validate_profile(profile.with_changes(ssh_port=port)).valid is True

    def test_local_dir_missing(self, profile: Profile, tmp_path: Path) -> None:
        """Should report a local directory that does not exist."""
        result = validate_profile(profile.with_changes(local_dir=str(tmp_path / "nope")))
        assert result.valid is False
        assert "does not exist" in result.errors[0]

    def test_local_dir_is_file(self, profile: Profile, tmp_path: Path) -> None:
        """Should report a local path that is a file."""
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")
        result = validate_profile(profile.with_changes(local_dir=str(file_path)))
        assert result.valid is False
        assert "not a directory" in result.errors[0]

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can read any directory")
    def test_local_dir_unreadable(self, profile: Profile, local_dir: Path) -> None:
        """Should report a directory without read permission."""
        local_dir.chmod(0o000)
        try:
            result = validate_profile(profile)
        finally:
            local_dir.chmod(0o755)
        assert result.valid is False
        assert "not readable" in result.errors[0]

    def test_skip_local_directory_check(self, profile: Profile) -> None:
        """Should not touch the filesystem when asked not to."""
        result = validate_profile(
            profile.with_changes(local_dir="/does/not/exist"),
            check_local_directory=False,
        )
        assert result.valid is True

    def test_other_direction_only_warns(
        self, profile: Profile, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Should accept non-default directions with a warning."""
        result = validate_profile(profile.with_changes(direction=SyncDirection.BIDIRECTIONAL))
        assert result.valid is True
        assert "only localToRemote" in caplog.text

    def test_to_error(self, profile: Profile) -> None:
        """Should convert failures into a ConfigurationError."""
        error = validate_profile(profile.with_changes(remote_host="")).to_error()
        assert isinstance(error, ConfigurationError)
        assert "Remote host is required" in str(error)
        assert error.recoverable is False

    def test_to_error_local_directory(self, profile: Profile, tmp_path: Path) -> None:
        """Should keep the LocalDirectoryError when it is the only problem."""
        missing = str(tmp_path / "nope")
        result = validate_profile(profile.with_changes(local_dir=missing))
        error = result.to_error()
        assert isinstance(error, LocalDirectoryError)
        assert error.reason == "not_found"
        assert error.path == missing
        assert error.recoverable is False

    def test_to_error_mixed_problems(self, profile: Profile, tmp_path: Path) -> None:
        """Should fall back to a ConfigurationError listing every problem."""
        broken = profile.with_changes(local_dir=str(tmp_path / "nope"), ssh_port=0)
        error = validate_profile(broken).to_error()
        assert isinstance(error, ConfigurationError)
        assert "port" in str(error)
        assert "does not exist" in str(error)


class TestWorkspaceFolder:
    """Tests for ${workspaceFolder} substitution."""

    def test_resolves_local_and_remote(self, profile: Profile) -> None:
        """Should substitute the variable in both directories."""
        templated = profile.with_changes(
            local_dir="${workspaceFolder}/src",
            remote_dir="/srv/${workspaceFolder}",
        )
        resolved = resolve_workspace_folder(templated, "/home/me/project")
        assert resolved.local_dir == "/home/me/project/src"
        assert resolved.remote_dir == "/srv//home/me/project"

    def test_no_folder_returns_same_profile(self, profile: Profile) -> None:
        """Should leave the profile alone without a workspace folder."""
        assert resolve_workspace_folder(profile, None) is profile

    def test_validation_uses_workspace(self, profile: Profile, local_dir: Path) -> None:
        """Should validate the resolved local directory."""
        templated = profile.with_changes(local_dir="${workspaceFolder}")
        assert validate_profile(templated, workspace_folder=local_dir).valid is True


class TestExpandLocalDir:
    """Tests for expand_local_dir()."""

    def test_expands_home(
        self, profile: Profile, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should replace a leading ~ with the home directory."""
        monkeypatch.setenv("HOME", str(tmp_path))
        expanded = expand_local_dir(profile.with_changes(local_dir="~/project"))
        assert expanded.local_dir == str(tmp_path / "project")

    def test_absolute_path_unchanged(self, profile: Profile) -> None:
        """Should return the same profile when there is nothing to expand."""
        assert expand_local_dir(profile) is profile
