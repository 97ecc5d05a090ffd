"""Tests for the error taxonomy."""

from __future__ import annotations

import pytest

from watchsync.core.errors import (
    AuthenticationError,
    ConfigurationError,
    ConnectionTimeoutError,
    LocalDirectoryError,
    PrerequisiteError,
    RemoteConnectionError,
    RemoteDirectoryError,
    TransferError,
    WatcherProcessError,
    WatchSyncError,
)


class TestRecoverability:
    """Tests for the recoverable flag of each error class."""

    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("alias", "Profile alias is required"),
            LocalDirectoryError("/x", "not_found"),
            RemoteDirectoryError("/srv", "host", "not_writable"),
            PrerequisiteError("rsync"),
            AuthenticationError("host", "user"),
        ],
    )
    def test_terminal(self, error: WatchSyncError) -> None:
        """Configuration, prerequisite and auth errors are terminal."""
        assert error.recoverable is False

    @pytest.mark.parametrize(
        "error",
        [
            RemoteConnectionError("host", 22),
            ConnectionTimeoutError("host", 22, 10),
            WatcherProcessError(1, "boom"),
        ],
    )
    def test_recoverable(self, error: WatchSyncError) -> None:
        """Connection and watch process errors are recoverable."""
        assert error.recoverable is True

    @pytest.mark.parametrize("code", [23, 24, 30, 35])
    def test_transfer_recoverable_codes(self, code: int) -> None:
        """Partial transfer and timeout codes are recoverable."""
        assert TransferError(code).recoverable is True

    def test_transfer_syntax_error_terminal(self) -> None:
        """Exit code 1 is terminal."""
        assert TransferError(1).recoverable is False

    def test_transfer_override(self) -> None:
        """Should allow an explicit recoverable flag."""
        assert TransferError(-15, recoverable=True).recoverable is True


class TestMessages:
    """Tests for error messages."""

    def test_transfer_message(self) -> None:
        """Should include the exit code description."""
        error = TransferError(23)
        assert "exit code 23" in str(error)
        assert error.exit_code_description == "Partial transfer due to error"

    def test_transfer_custom_message(self) -> None:
        """Should use a given message as is."""
        assert str(TransferError(30, message="rsync timed out")) == "rsync timed out"

    def test_unknown_exit_code(self) -> None:
        """Should describe unknown codes generically."""
        assert TransferError(99).exit_code_description == "Unknown error"

    def test_prerequisite_hint(self) -> None:
        """Should mention the install hint."""
        error = PrerequisiteError("rsync", "sudo apt install rsync inotify-tools")
        assert "rsync is not installed" in str(error)
        assert "apt install" in str(error)

    def test_auth_detail(self) -> None:
        """Should include user@host and the detail."""
        error = AuthenticationError("prod", "deploy", "Password rejected")
        assert str(error) == "Authentication failed for deploy@prod: Password rejected"

    def test_local_directory_message(self) -> None:
        """Should name the path and the problem."""
        error = LocalDirectoryError("/home/me/web", "not_directory")
        assert str(error) == "Local path is not a directory: /home/me/web"

    def test_remote_directory_detail(self) -> None:
        """Should append the remote detail when given."""
        error = RemoteDirectoryError("/srv", "prod", "not_writable", "Permission denied")
        assert str(error) == "No write permission in remote directory: /srv (Permission denied)"
        assert error.host == "prod"
