"""Filesystem change aggregation on top of inotifywait.

This module provides:
- ChangeAggregator: Runs ``inotifywait -m -r`` over the local directory
- Exclusion: Drops paths matching the profile's exclude patterns
- Debouncing: Coalesces events by path; one batch per quiet window (200ms)
- Fault reporting: An unexpected watcher exit is reported, not retried
"""

from __future__ import annotations

import dataclasses
import logging
import os
import subprocess
import threading
from collections import deque
from collections.abc import Callable, Iterable
from pathlib import Path

from watchsync.core.errors import WatcherProcessError, WatchTargetError
from watchsync.sync.ignore import ExclusionMatcher, normalize_path
from watchsync.sync.process import DEFAULT_KILL_GRACE_S, terminate_process
from watchsync.sync.types import ChangeEvent

logger = logging.getLogger(__name__)

WATCH_PROGRAM = "inotifywait"
WATCH_EVENTS = ("close_write", "create", "delete", "move")
WATCH_FORMAT = "%e %w%f"
DEFAULT_QUIET_WINDOW_MS = 200

# inotifywait start-up messages that are not worth a warning
_STDERR_CHATTER = ("Setting up watches", "Watches established")

BatchCallback = Callable[[list[ChangeEvent]], None]
FaultCallback = Callable[[WatcherProcessError], None]


def build_watch_command(target_path: str, program: str = WATCH_PROGRAM) -> list[str]:
    """Build the inotifywait argument vector for a directory."""
    args = [program, "-m", "-r"]
    for event in WATCH_EVENTS:
        args.extend(["-e", event])
    args.extend(["--format", WATCH_FORMAT, target_path])
    return args


class ChangeAggregator:
    """Turns the watch process output into debounced change batches.

    Usage:
        aggregator = ChangeAggregator()
        aggregator.set_on_batch(handle_batch)
        aggregator.set_on_fault(handle_fault)
        aggregator.start("/srv/project", [".git"], quiet_window_ms=200)
        ...
        aggregator.stop()
    """

    def __init__(
        self,
        program: str = WATCH_PROGRAM,
        kill_grace: float = DEFAULT_KILL_GRACE_S,
    ) -> None:
        """Initialize the aggregator.

        Args:
            program: Watch executable name.
            kill_grace: Seconds between SIGTERM and SIGKILL on stop.
        """
        self._program = program
        self._kill_grace = kill_grace

        self._root: str | None = None
        self._matcher = ExclusionMatcher()
        self._quiet_window_ms = DEFAULT_QUIET_WINDOW_MS

        # Pending events keyed by path, last writer wins
        self._pending: dict[str, ChangeEvent] = {}
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._last_moved_from: str | None = None

        self._process: subprocess.Popen[str] | None = None
        self._stdout_thread: threading.Thread | None = None
        self._stderr_thread: threading.Thread | None = None
        self._stderr_tail: deque[str] = deque(maxlen=20)
        self._stopping = False

        self._on_batch: BatchCallback | None = None
        self._on_fault: FaultCallback | None = None

    @property
    def is_running(self) -> bool:
        """Check if the watch process is alive."""
        return self._process is not None and self._process.poll() is None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def set_on_batch(self, callback: BatchCallback | None) -> None:
        """Set callback receiving each flushed batch."""
        self._on_batch = callback

    def set_on_fault(self, callback: FaultCallback | None) -> None:
        """Set callback for unexpected watch process exits."""
        self._on_fault = callback

    def configure(
        self,
        target_path: str,
        exclude_patterns: Iterable[str] = (),
        quiet_window_ms: int = DEFAULT_QUIET_WINDOW_MS,
    ) -> None:
        """Set root, exclusions and quiet window without spawning a process."""
        self._root = os.path.abspath(target_path)
        self._matcher = ExclusionMatcher(exclude_patterns)
        self._quiet_window_ms = quiet_window_ms or DEFAULT_QUIET_WINDOW_MS

    def start(
        self,
        target_path: str,
        exclude_patterns: Iterable[str] = (),
        quiet_window_ms: int = DEFAULT_QUIET_WINDOW_MS,
    ) -> None:
        """Start watching a directory.

        Raises:
            WatchTargetError: If target_path is not a directory.
            WatcherProcessError: If the watch process cannot be started.
        """
        if self._process is not None:
            self.stop()

        if not Path(target_path).is_dir():
            raise WatchTargetError(target_path)

        self.configure(target_path, exclude_patterns, quiet_window_ms)
        argv = build_watch_command(self._root or target_path, self._program)

        logger.info("Starting %s on %s", self._program, self._root)
        logger.debug("Exclude patterns: %s", ", ".join(self._matcher.patterns))

        self._stopping = False
        self._stderr_tail.clear()
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                # Filenames are bytes; keep undecodable ones intact
                encoding="utf-8",
                errors="surrogateescape",
                bufsize=1,
            )
        except OSError as e:
            raise WatcherProcessError(-1, str(e)) from e

        self._process = proc
        self._stdout_thread = threading.Thread(
            target=self._read_stdout, args=(proc,), name="ChangeAggregator-stdout", daemon=True
        )
        self._stderr_thread = threading.Thread(
            target=self._read_stderr, args=(proc,), name="ChangeAggregator-stderr", daemon=True
        )
        # stderr first: the stdout reader joins it when the process exits
        self._stderr_thread.start()
        self._stdout_thread.start()

    def stop(self) -> None:
        """Flush pending events and stop the watch process."""
        self._stopping = True

        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._generation += 1

        self._flush_now()

        proc = self._process
        if proc is not None:
            logger.info("Stopping %s", self._program)
            terminate_process(proc, self._kill_grace)
            for thread in (self._stdout_thread, self._stderr_thread):
                if thread is not None and thread is not threading.current_thread():
                    thread.join(timeout=2.0)

        self._process = None
        self._stdout_thread = None
        self._stderr_thread = None
        self._last_moved_from = None

    def ingest_line(self, line: str) -> ChangeEvent | None:
        """Parse one watch output line and queue the resulting event.

        Returns:
            The queued event, or None if the line was dropped.
        """
        event = ChangeEvent.from_watch_line(line)
        if event is None:
            if line.strip():
                logger.debug("Dropped malformed watch line: %r", line)
            return None

        event_names = line.split(maxsplit=1)[0].upper()

        relative = self._relative(event.path)
        if relative is None:
            return None
        if self._matcher.is_excluded(relative):
            logger.debug("Excluded: %s", event.path)
            return None

        if "MOVED_FROM" in event_names:
            self._last_moved_from = event.path
        elif "MOVED_TO" in event_names and self._last_moved_from:
            event = dataclasses.replace(event, old_path=self._last_moved_from)
            self._last_moved_from = None
        else:
            self._last_moved_from = None

        self._queue_event(event)
        return event

    def _relative(self, path: str) -> str | None:
        if self._root is None:
            return normalize_path(path)
        relative = os.path.relpath(path, self._root)
        if relative == ".":
            return None
        return normalize_path(relative)

    def _queue_event(self, event: ChangeEvent) -> None:
        with self._lock:
            self._pending[event.path] = event

            # Every insertion restarts the quiet window
            if self._timer:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(
                self._quiet_window_ms / 1000.0,
                self._flush_changes,
                args=(self._generation,),
            )
            self._timer.daemon = True
            self._timer.start()

    def _flush_changes(self, generation: int) -> None:
        """Timer callback: flush only if no newer event restarted the window."""
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        self._flush_now()

    def _flush_now(self) -> None:
        with self._lock:
            if not self._pending:
                return
            events = list(self._pending.values())
            self._pending.clear()

        logger.debug("Flushing %d events", len(events))

        # Deliver outside the lock
        if self._on_batch:
            try:
                self._on_batch(events)
            except Exception:
                logger.exception("Error handling change batch")

    def _read_stdout(self, proc: subprocess.Popen[str]) -> None:
        assert proc.stdout is not None
        try:
            for line in proc.stdout:
                self.ingest_line(line)
        except Exception as e:
            if self._stopping:
                return
            # Without a reader the process would keep running unheard
            logger.exception("Reading %s output failed", self._program)
            terminate_process(proc, self._kill_grace)
            self._report_fault(WatcherProcessError(-1, f"output reader failed: {e}"))
            return

        exit_code = proc.wait()
        if self._stopping:
            return

        if self._stderr_thread is not None and self._stderr_thread is not threading.current_thread():
            self._stderr_thread.join(timeout=1.0)

        if exit_code != 0:
            stderr = "\n".join(self._stderr_tail)
            logger.error("%s exited with code %d", self._program, exit_code)
            self._report_fault(WatcherProcessError(exit_code, stderr))
        else:
            logger.warning("%s exited unexpectedly", self._program)

    def _read_stderr(self, proc: subprocess.Popen[str]) -> None:
        assert proc.stderr is not None
        for line in proc.stderr:
            message = line.strip()
            if not message:
                continue
            self._stderr_tail.append(message)
            if any(chatter in message for chatter in _STDERR_CHATTER):
                logger.debug("%s: %s", self._program, message)
            else:
                logger.warning("%s stderr: %s", self._program, message)

    def _report_fault(self, error: WatcherProcessError) -> None:
        if self._on_fault is None:
            return
        try:
            self._on_fault(error)
        except Exception:
            logger.exception("Error handling watcher fault")
