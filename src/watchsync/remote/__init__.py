"""Remote module - SSH session validation and credential handling."""

from watchsync.remote.askpass import PASSWORD_ENV_VAR, AskpassHelper
from watchsync.remote.credentials import KEYRING_SERVICE, CredentialStore
from watchsync.remote.session import (
    CommandResult,
    ConnectionResult,
    RemoteSession,
    SetupReport,
)

__all__ = [
    "PASSWORD_ENV_VAR",
    "AskpassHelper",
    "KEYRING_SERVICE",
    "CredentialStore",
    "CommandResult",
    "ConnectionResult",
    "RemoteSession",
    "SetupReport",
]
