"""Application context.

AppContext wires the long-lived objects together once per process and
tears them down again:

    with AppContext.create(verbose=True) as app:
        app.orchestrator.start_authenticated(profile, app.credentials)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from watchsync.core.config import OrchestratorSettings
from watchsync.core.log import setup_logging, teardown_logging
from watchsync.remote.askpass import AskpassHelper
from watchsync.remote.credentials import CredentialStore
from watchsync.remote.session import RemoteSession
from watchsync.sync.coordinator import SyncOrchestrator
from watchsync.sync.events import EventBus
from watchsync.sync.strategy import SyncService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Process-wide services with an explicit lifecycle."""

    settings: OrchestratorSettings
    bus: EventBus
    credentials: CredentialStore
    session: RemoteSession
    service: SyncService
    orchestrator: SyncOrchestrator
    owns_logging: bool = False

    @classmethod
    def create(
        cls,
        settings: OrchestratorSettings | None = None,
        verbose: bool = False,
        log_file: Path | None = None,
        configure_logging: bool = True,
    ) -> AppContext:
        """Build the context, optionally installing log handlers."""
        if configure_logging:
            setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)

        settings = settings or OrchestratorSettings()
        bus = EventBus()
        session = RemoteSession(
            connect_timeout=settings.connect_timeout_s,
            command_timeout=settings.command_timeout_s,
        )
        service = SyncService(settings=settings)
        orchestrator = SyncOrchestrator(
            session,
            service=service,
            settings=settings,
            bus=bus,
            askpass=AskpassHelper(),
        )
        logger.debug("Application context created")
        return cls(
            settings=settings,
            bus=bus,
            credentials=CredentialStore(),
            session=session,
            service=service,
            orchestrator=orchestrator,
            owns_logging=configure_logging,
        )

    def close(self) -> None:
        """Stop syncing, remove helpers and detach observers."""
        self.orchestrator.close()
        self.bus.clear()
        logger.debug("Application context closed")
        if self.owns_logging:
            teardown_logging()

    def __enter__(self) -> AppContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
