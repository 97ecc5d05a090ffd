"""Tests for rsync execution and output parsing."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from watchsync.core.config import Profile
from watchsync.sync.executor import (
    TransferExecutor,
    classify_exit_code,
    parse_bytes_transferred,
    parse_dry_run_output,
    parse_files_transferred,
)
from watchsync.sync.process import ProcessResult
from watchsync.sync.types import CommandSpec

STATS_OUTPUT = """\
Number of files: 1,234 (reg: 1,000, dir: 234)
Number of created files: 2
Number of deleted files: 0
Number of regular files transferred: 17
Total file size: 9,876,543 bytes
Total transferred file size: 1,048,576 bytes
Literal data: 1,048,576 bytes
"""

DRY_RUN_OUTPUT = """\
sending incremental file list
./
deleting old/stale.txt
src/
src/main.py
README.md

Number of files: 3 (reg: 2, dir: 1)
Number of regular files transferred: 2
sent 123 bytes  received 45 bytes  336.00 bytes/sec
total size is 2,048  speedup is 12.19 (DRY RUN)
"""


class TestParsing:
    """Tests for --stats parsing."""

    def test_files_transferred(self) -> None:
        """Should read the regular files count."""
        assert parse_files_transferred(STATS_OUTPUT) == 17

    def test_files_transferred_old_format(self) -> None:
        """Should accept the older wording without 'regular'."""
        assert parse_files_transferred("Number of files transferred: 3\n") == 3

    def test_bytes_with_commas(self) -> None:
        """Should strip thousands separators."""
        assert parse_bytes_transferred(STATS_OUTPUT) == 1_048_576

    def test_missing_yields_zero(self) -> None:
        """Should return zero, not fail, when the summary is absent."""
        assert parse_files_transferred("") == 0
        assert parse_bytes_transferred("garbage") == 0


class TestClassifyExitCode:
    """Tests for the exit-code table."""

    @pytest.mark.parametrize("code", [10, 12, 23, 24, 30, 35, 255])
    def test_recoverable(self, code: int) -> None:
        """Should classify transient codes as recoverable."""
        assert classify_exit_code(code).recoverable is True

    @pytest.mark.parametrize("code", [1, 2, 3, 4, 5, 11, 13, 14, 20, 22, 25])
    def test_terminal(self, code: int) -> None:
        """Should classify syntax and local problems as terminal."""
        assert classify_exit_code(code).recoverable is False

    def test_description(self) -> None:
        """Should carry the table description."""
        info = classify_exit_code(24)
        assert info.code == 24
        assert info.description == "Partial transfer due to vanished source files"

    def test_unknown_code(self) -> None:
        """Should treat unknown codes as terminal."""
        info = classify_exit_code(77)
        assert info.description == "Unknown error"
        assert info.recoverable is False

    def test_launch_failure(self) -> None:
        """Should treat a failed launch as terminal."""
        assert classify_exit_code(-1).recoverable is False


class TestDryRunParsing:
    """Tests for parse_dry_run_output()."""

    def test_splits_transfers_and_deletions(self) -> None:
        """Should list transfers and deletions, skipping chatter and stats."""
        result = parse_dry_run_output(DRY_RUN_OUTPUT)
        assert result.files_to_delete == ["old/stale.txt"]
        assert result.files_to_transfer == ["src/", "src/main.py", "README.md"]

    def test_empty_output(self) -> None:
        """Should return empty lists for no output."""
        result = parse_dry_run_output("")
        assert result.files_to_transfer == []
        assert result.files_to_delete == []


class TestTransferExecutor:
    """Tests for TransferExecutor.execute()."""

    def test_passes_spec_to_process(self) -> None:
        """Should run argv with cwd, stdin and timeout."""
        spec = CommandSpec("rsync", ("-a", "src/", "dst/"), cwd="/l", stdin="a\n")
        with patch(
            "watchsync.sync.executor.run_process",
            return_value=ProcessResult(0, STATS_OUTPUT, ""),
        ) as run:
            outcome = TransferExecutor(kill_grace=2).execute(spec, timeout=30)

        run.assert_called_once_with(
            ["rsync", "-a", "src/", "dst/"],
            input_text="a\n",
            cwd="/l",
            env=None,
            timeout=30,
            kill_grace=2,
        )
        assert outcome.exit_code == 0
        assert outcome.stdout == STATS_OUTPUT
        assert outcome.timed_out is False

    def test_env_merged_into_environment(self) -> None:
        """Should add extra variables on top of the current environment."""
        executor = TransferExecutor()
        executor.set_env({"WATCHSYNC_PASSWORD": "s3cret"})
        with patch.dict("os.environ", {"HOME": "/home/me"}), patch(
            "watchsync.sync.executor.run_process",
            return_value=ProcessResult(0, "", ""),
        ) as run:
            executor.execute(CommandSpec("rsync", ()))

        env = run.call_args.kwargs["env"]
        assert env["WATCHSYNC_PASSWORD"] == "s3cret"
        assert env["HOME"] == "/home/me"

    def test_launch_failure_returns_outcome(self) -> None:
        """Should report a missing program as exit code -1."""
        with patch(
            "watchsync.sync.executor.run_process",
            side_effect=FileNotFoundError("rsync"),
        ):
            outcome = TransferExecutor().execute(CommandSpec("rsync", ()))
        assert outcome.exit_code == -1
        assert "rsync" in outcome.stderr

    def test_timeout_flag(self) -> None:
        """Should carry the timeout flag through."""
        with patch(
            "watchsync.sync.executor.run_process",
            return_value=ProcessResult(-15, "", "", timed_out=True),
        ):
            outcome = TransferExecutor().execute(CommandSpec("rsync", ()), timeout=1)
        assert outcome.timed_out is True

    def test_dry_run(self, profile: Profile) -> None:
        """Should run the dry-run command and parse its output."""
        with patch(
            "watchsync.sync.executor.run_process",
            return_value=ProcessResult(0, DRY_RUN_OUTPUT, ""),
        ) as run:
            outcome, result = TransferExecutor().dry_run(profile, timeout=60)

        argv = run.call_args.args[0]
        assert "--dry-run" in argv
        assert run.call_args.kwargs["timeout"] == 60
        assert outcome.exit_code == 0
        assert result.files_to_delete == ["old/stale.txt"]

    def test_dry_run_failure_has_empty_result(self, profile: Profile) -> None:
        """Should not parse output of a failed dry run."""
        with patch(
            "watchsync.sync.executor.run_process",
            return_value=ProcessResult(255, "", "ssh: connect refused"),
        ):
            outcome, result = TransferExecutor().dry_run(profile)
        assert outcome.exit_code == 255
        assert result.files_to_transfer == []
