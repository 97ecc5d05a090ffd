"""Process management utilities.

Commands are always started from an argument vector (no shell). Timeouts
send SIGTERM first and SIGKILL if the process is still alive after a
grace period.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_KILL_GRACE_S = 5.0

# External tools the sync engine drives
REQUIRED_TOOLS = ("inotifywait", "rsync")
INSTALL_HINT = "sudo apt install rsync inotify-tools"


@dataclass(frozen=True)
class ProcessResult:
    """Result of a finished process."""

    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False


def command_exists(command: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(command) is not None


def missing_tools(
    tools: tuple[str, ...] = REQUIRED_TOOLS,
    exists: Callable[[str], bool] = command_exists,
) -> list[str]:
    """Return the required tools that are not on PATH."""
    return [tool for tool in tools if not exists(tool)]


def terminate_process(
    proc: subprocess.Popen[str],
    grace: float = DEFAULT_KILL_GRACE_S,
) -> int | None:
    """Stop a process: SIGTERM, then SIGKILL if it outlives the grace period.

    Returns:
        The exit code, or None if the process could not be reaped.
    """
    if proc.poll() is not None:
        return proc.returncode

    proc.terminate()
    try:
        return proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.warning("Process %s ignored SIGTERM, killing", proc.pid)

    proc.kill()
    try:
        return proc.wait(timeout=1.0)
    except subprocess.TimeoutExpired:
        logger.error("Process %s could not be killed", proc.pid)
        return None


def run_process(
    argv: list[str],
    *,
    input_text: str | None = None,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    kill_grace: float = DEFAULT_KILL_GRACE_S,
) -> ProcessResult:
    """Run a command to completion and capture its output.

    Args:
        argv: Program and arguments.
        input_text: Text to write to stdin (stdin is closed afterwards).
        cwd: Working directory.
        env: Full environment for the child (inherits ours if None).
        timeout: Seconds before the process is terminated.
        kill_grace: Seconds between SIGTERM and SIGKILL on timeout.

    Returns:
        ProcessResult with captured output; timed_out is set on timeout.

    Raises:
        OSError: If the program cannot be started.
    """
    proc = subprocess.Popen(
        argv,
        stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        # File lists may hold undecodable names read from the watcher
        encoding="utf-8",
        errors="surrogateescape",
    )
    try:
        stdout, stderr = proc.communicate(input=input_text, timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("%s timed out after %ss, terminating", argv[0], timeout)
        proc.terminate()
        try:
            stdout, stderr = proc.communicate(timeout=kill_grace)
        except subprocess.TimeoutExpired:
            proc.kill()
            stdout, stderr = proc.communicate()
        return ProcessResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout or "",
            stderr=stderr or "",
            timed_out=True,
        )

    return ProcessResult(exit_code=proc.returncode, stdout=stdout or "", stderr=stderr or "")
