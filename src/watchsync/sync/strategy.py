"""Sync strategy selection and job execution.

This module provides:
- select_strategy: Incremental when the job asks for it and has files, else full
- build_command: Dispatch a job to the matching pure command builder
- SyncService: Creates jobs and runs them through the executor
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from watchsync.core.config import OrchestratorSettings, Profile
from watchsync.core.errors import TransferError
from watchsync.core.types import SyncDirection, SyncStrategy
from watchsync.sync.commands import TransferCommandBuilder
from watchsync.sync.executor import (
    TransferExecutor,
    classify_exit_code,
    parse_bytes_transferred,
    parse_files_transferred,
)
from watchsync.sync.types import CommandSpec, SyncJob, SyncResult

logger = logging.getLogger(__name__)


def _handles_incremental(job: SyncJob) -> bool:
    return job.strategy == SyncStrategy.INCREMENTAL and bool(job.files)


def _handles_full(job: SyncJob) -> bool:
    return True


# Tried in order; full accepts every job so selection always succeeds
_STRATEGY_ORDER: tuple[tuple[SyncStrategy, Callable[[SyncJob], bool]], ...] = (
    (SyncStrategy.INCREMENTAL, _handles_incremental),
    (SyncStrategy.FULL, _handles_full),
)


def select_strategy(job: SyncJob) -> SyncStrategy:
    """Pick the strategy that will run a job."""
    for strategy, can_handle in _STRATEGY_ORDER:
        if can_handle(job):
            return strategy
    return SyncStrategy.FULL


def build_command(job: SyncJob, builder: TransferCommandBuilder) -> CommandSpec:
    """Build the rsync invocation for a job."""
    if select_strategy(job) == SyncStrategy.INCREMENTAL:
        return builder.build_incremental_sync(job.profile, job.files)
    return builder.build_full_sync(job.profile)


def result_error(result: SyncResult) -> TransferError:
    """Build the typed error describing a failed result."""
    return TransferError(
        exit_code=result.exit_code if result.exit_code is not None else -1,
        recoverable=result.recoverable,
        message=result.error_message or None,
    )


class SyncService:
    """Runs sync jobs for profiles.

    Example:
        service = SyncService()
        job = service.create_incremental_job(profile, ["/src/app/main.py"])
        result = service.sync(job)
    """

    def __init__(
        self,
        executor: TransferExecutor | None = None,
        builder: TransferCommandBuilder | None = None,
        settings: OrchestratorSettings | None = None,
    ) -> None:
        self.settings = settings or OrchestratorSettings()
        self.executor = executor or TransferExecutor(kill_grace=self.settings.kill_grace_s)
        self.builder = builder or TransferCommandBuilder()

    def create_full_job(self, profile: Profile) -> SyncJob:
        return SyncJob(profile, strategy=SyncStrategy.FULL)

    def create_incremental_job(self, profile: Profile, files: Iterable[str]) -> SyncJob:
        return SyncJob(profile, files=list(files), strategy=SyncStrategy.INCREMENTAL)

    def sync(self, job: SyncJob) -> SyncResult:
        """Run a pending job to completion.

        Failures are returned as an unsuccessful SyncResult, never raised.
        """
        job.start()

        if job.profile.direction != SyncDirection.LOCAL_TO_REMOTE:
            logger.warning(
                "Profile %s has direction %s; syncing local to remote",
                job.profile.alias,
                job.profile.direction.value,
            )

        strategy = select_strategy(job)
        logger.info(
            "Running %s sync %s for %s (%d files)",
            strategy.value,
            job.id,
            job.profile.alias,
            len(job.files),
        )

        spec = build_command(job, self.builder)
        outcome = self.executor.execute(spec, timeout=self.settings.transfer_timeout_s)

        if outcome.timed_out:
            message = f"rsync timed out after {self.settings.transfer_timeout_s:g}s"
            return self._failed(job, message, outcome.exit_code, recoverable=True)

        if outcome.exit_code != 0:
            info = classify_exit_code(outcome.exit_code)
            message = f"rsync failed (exit code {info.code}): {info.description}"
            detail = outcome.stderr.strip()
            if detail:
                message += f": {detail.splitlines()[-1]}"
            return self._failed(job, message, outcome.exit_code, recoverable=info.recoverable)

        files = parse_files_transferred(outcome.stdout)
        size = parse_bytes_transferred(outcome.stdout)
        job.complete(files, size)
        logger.info(
            "Sync %s completed: %d files, %d bytes in %.2fs",
            job.id,
            files,
            size,
            job.duration,
        )
        return SyncResult(
            success=True,
            job_id=job.id,
            files_transferred=files,
            bytes_transferred=size,
            duration=job.duration,
            exit_code=0,
        )

    def _failed(self, job: SyncJob, message: str, exit_code: int, recoverable: bool) -> SyncResult:
        job.fail(message)
        logger.error("Sync %s failed: %s", job.id, message)
        return SyncResult(
            success=False,
            job_id=job.id,
            duration=job.duration,
            errors=(message,),
            exit_code=exit_code,
            recoverable=recoverable,
        )
