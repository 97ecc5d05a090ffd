"""Tests for change events and sync job lifecycle."""

from __future__ import annotations

import pytest

from watchsync.core.config import Profile
from watchsync.core.errors import InvalidJobStateError
from watchsync.core.types import ChangeKind, JobStatus, SyncStrategy
from watchsync.sync.types import ChangeEvent, SyncJob, SyncResult, parse_watch_kind


class TestParseWatchKind:
    """Tests for inotifywait event name mapping."""

    @pytest.mark.parametrize(
        ("names", "kind"),
        [
            ("CLOSE_WRITE,CLOSE", ChangeKind.MODIFY),
            ("CREATE", ChangeKind.CREATE),
            ("CREATE,ISDIR", ChangeKind.CREATE),
            ("DELETE", ChangeKind.DELETE),
            ("DELETE_SELF", ChangeKind.DELETE),
            ("MOVED_FROM", ChangeKind.MOVE),
            ("MOVED_TO,ISDIR", ChangeKind.MOVE),
        ],
    )
    def test_known(self, names: str, kind: ChangeKind) -> None:
        """Should map the watched events."""
        assert parse_watch_kind(names) == kind

    def test_unknown(self) -> None:
        """Should return None for events outside the watched set."""
        assert parse_watch_kind("ACCESS") is None
        assert parse_watch_kind("OPEN,ISDIR") is None


class TestChangeEvent:
    """Tests for ChangeEvent."""

    def test_from_watch_line(self) -> None:
        """Should parse event names and path."""
        event = ChangeEvent.from_watch_line("CLOSE_WRITE,CLOSE /srv/app/main.py\n")
        assert event is not None
        assert event.kind == ChangeKind.MODIFY
        assert event.path == "/srv/app/main.py"
        assert event.is_directory is False

    def test_malformed_line(self) -> None:
        """Should reject lines without both parts."""
        assert ChangeEvent.from_watch_line("CREATE") is None
        assert ChangeEvent.from_watch_line("   ") is None

    def test_affected_paths(self) -> None:
        """Should list both ends of a known move."""
        move = ChangeEvent(ChangeKind.MOVE, "/a/new", old_path="/a/old")
        assert move.affected_paths == ["/a/new", "/a/old"]
        assert ChangeEvent(ChangeKind.DELETE, "/a/x").affected_paths == ["/a/x"]


class TestSyncJob:
    """Tests for the SyncJob lifecycle."""

    def test_defaults(self, profile: Profile) -> None:
        """Should start pending with a unique id."""
        job = SyncJob(profile)
        other = SyncJob(profile)
        assert job.status == JobStatus.PENDING
        assert job.strategy == SyncStrategy.FULL
        assert job.id.startswith("sync_")
        assert job.id != other.id
        assert job.duration == 0.0

    def test_files_imply_incremental(self, profile: Profile) -> None:
        """Should default to incremental when files are given."""
        assert SyncJob(profile, files=["/a"]).strategy == SyncStrategy.INCREMENTAL

    def test_complete(self, profile: Profile) -> None:
        """Should record statistics on completion."""
        job = SyncJob(profile)
        job.start()
        assert job.status == JobStatus.RUNNING
        job.complete(5, 1024)
        assert job.status == JobStatus.COMPLETED
        assert job.files_transferred == 5
        assert job.bytes_transferred == 1024
        assert job.completed_at is not None
        assert job.duration >= 0.0

    def test_fail(self, profile: Profile) -> None:
        """Should record the error on failure."""
        job = SyncJob(profile)
        job.start()
        job.fail("boom")
        assert job.status == JobStatus.FAILED
        assert job.error == "boom"

    def test_complete_requires_running(self, profile: Profile) -> None:
        """Should reject completion of a pending job."""
        with pytest.raises(InvalidJobStateError):
            SyncJob(profile).complete(0, 0)

    def test_start_twice(self, profile: Profile) -> None:
        """Should reject starting a running job."""
        job = SyncJob(profile)
        job.start()
        with pytest.raises(InvalidJobStateError):
            job.start()

    def test_fail_after_complete(self, profile: Profile) -> None:
        """Should reject failing a finished job."""
        job = SyncJob(profile)
        job.start()
        job.complete(0, 0)
        with pytest.raises(InvalidJobStateError):
            job.fail("late")


class TestSyncResult:
    """Tests for SyncResult."""

    def test_error_message_joins(self) -> None:
        """Should join error lines."""
        result = SyncResult(success=False, job_id="x", errors=("a", "b"))
        assert result.error_message == "a; b"
