"""rsync execution and output interpretation.

This module provides:
- TransferExecutor: Runs a CommandSpec with a timeout and captures output
- parse_files_transferred / parse_bytes_transferred: --stats summary parsing
- classify_exit_code: rsync exit code -> recoverable or terminal
- parse_dry_run_output: File lists from ``rsync --dry-run -v``
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping

from watchsync.core.config import Profile
from watchsync.core.errors import RECOVERABLE_EXIT_CODES, RSYNC_EXIT_CODES
from watchsync.sync.commands import TransferCommandBuilder
from watchsync.sync.process import DEFAULT_KILL_GRACE_S, run_process
from watchsync.sync.types import CommandSpec, DryRunResult, ExitCodeInfo, TransferOutcome

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_TIMEOUT_S = 300.0
DEFAULT_DRY_RUN_TIMEOUT_S = 60.0

# Exit code reported when the process could not be started at all
LAUNCH_FAILURE_EXIT_CODE = -1

_FILES_TRANSFERRED_RE = re.compile(r"Number of (?:regular )?files transferred:\s*(\d+)")
_BYTES_TRANSFERRED_RE = re.compile(r"Total transferred file size:\s*([\d,]+)")

# Informational lines in verbose output that are not file names
_DRY_RUN_NOISE = ("sending ", "building ", "sent ", "total ", "created directory ")


def parse_files_transferred(output: str) -> int:
    """Extract the transferred file count from rsync --stats output."""
    match = _FILES_TRANSFERRED_RE.search(output)
    return int(match.group(1)) if match else 0


def parse_bytes_transferred(output: str) -> int:
    """Extract the transferred byte count from rsync --stats output."""
    match = _BYTES_TRANSFERRED_RE.search(output)
    return int(match.group(1).replace(",", "")) if match else 0


def classify_exit_code(code: int) -> ExitCodeInfo:
    """Map an rsync exit code to a description and recoverability."""
    if code == 0:
        return ExitCodeInfo(code=0, description=RSYNC_EXIT_CODES[0], recoverable=True)
    if code == LAUNCH_FAILURE_EXIT_CODE:
        return ExitCodeInfo(code=code, description="Failed to start rsync", recoverable=False)
    return ExitCodeInfo(
        code=code,
        description=RSYNC_EXIT_CODES.get(code, "Unknown error"),
        recoverable=code in RECOVERABLE_EXIT_CODES,
    )


def parse_dry_run_output(output: str) -> DryRunResult:
    """Split verbose dry-run output into transfers and deletions."""
    result = DryRunResult()
    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith("Number of files"):
            # --stats summary follows the file list
            break
        if not line or line == "./" or line.startswith(_DRY_RUN_NOISE):
            continue
        if line.startswith("deleting "):
            result.files_to_delete.append(line[len("deleting ") :])
        else:
            result.files_to_transfer.append(line)
    return result


class TransferExecutor:
    """Runs rsync commands.

    Example:
        executor = TransferExecutor()
        outcome = executor.execute(builder.build_full_sync(profile), timeout=300)
        if outcome.exit_code != 0:
            info = classify_exit_code(outcome.exit_code)
    """

    def __init__(self, kill_grace: float = DEFAULT_KILL_GRACE_S) -> None:
        self._kill_grace = kill_grace
        self._extra_env: dict[str, str] = {}

    def set_env(self, env: Mapping[str, str] | None) -> None:
        """Replace extra environment variables for child processes."""
        self._extra_env = dict(env or {})

    @property
    def extra_env(self) -> dict[str, str]:
        return dict(self._extra_env)

    def _child_env(self) -> dict[str, str] | None:
        if not self._extra_env:
            return None
        env = dict(os.environ)
        env.update(self._extra_env)
        return env

    def execute(
        self,
        spec: CommandSpec,
        timeout: float | None = DEFAULT_TRANSFER_TIMEOUT_S,
    ) -> TransferOutcome:
        """Run a command to completion.

        Never raises for process failures: a launch error is reported as
        exit code -1 with the OS error in stderr.
        """
        logger.debug("Running %s", " ".join(spec.argv))
        try:
            result = run_process(
                spec.argv,
                input_text=spec.stdin,
                cwd=spec.cwd,
                env=self._child_env(),
                timeout=timeout,
                kill_grace=self._kill_grace,
            )
        except OSError as e:
            logger.error("Failed to start %s: %s", spec.program, e)
            return TransferOutcome(
                exit_code=LAUNCH_FAILURE_EXIT_CODE,
                stdout="",
                stderr=str(e),
            )

        if result.timed_out:
            logger.warning("%s timed out after %ss", spec.program, timeout)
        elif result.exit_code != 0:
            logger.debug("%s exited with %d: %s", spec.program, result.exit_code, result.stderr)

        return TransferOutcome(
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            timed_out=result.timed_out,
        )

    def dry_run(
        self,
        profile: Profile,
        builder: TransferCommandBuilder | None = None,
        timeout: float = DEFAULT_DRY_RUN_TIMEOUT_S,
    ) -> tuple[TransferOutcome, DryRunResult]:
        """Preview what a full sync would change."""
        spec = (builder or TransferCommandBuilder()).build_dry_run(profile)
        outcome = self.execute(spec, timeout=timeout)
        if outcome.exit_code != 0 or outcome.timed_out:
            return outcome, DryRunResult()
        return outcome, parse_dry_run_output(outcome.stdout)
