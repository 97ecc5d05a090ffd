"""SSH password storage in the OS keyring.

Passwords are stored under the ``watchsync`` service with ``user@host`` as
the keyring username. A failing keyring backend is logged and treated as
"no stored password"; it never stops a sync.
"""

from __future__ import annotations

import logging

import click
import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "watchsync"


def credential_key(host: str, user: str) -> str:
    """Keyring username for a host/user pair."""
    return f"{user}@{host}"


class CredentialStore:
    """Get, store and prompt for SSH passwords.

    Example:
        store = CredentialStore()
        password = store.get_or_prompt("prod.example.com", "deploy")
        if password is None:
            ...  # authentication unavailable
    """

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self._service = service

    def get(self, host: str, user: str) -> str | None:
        """Return the stored password, or None."""
        try:
            return keyring.get_password(self._service, credential_key(host, user))
        except KeyringError as e:
            logger.warning("Could not read password from keyring: %s", e)
            return None

    def set(self, host: str, user: str, password: str) -> bool:
        """Store a password.

        Returns:
            True if the keyring accepted it.
        """
        try:
            keyring.set_password(self._service, credential_key(host, user), password)
        except KeyringError as e:
            logger.warning("Could not store password in keyring: %s", e)
            return False
        logger.info("Stored password for %s", credential_key(host, user))
        return True

    def delete(self, host: str, user: str) -> bool:
        """Remove a stored password.

        Returns:
            True if a password was removed.
        """
        try:
            keyring.delete_password(self._service, credential_key(host, user))
        except PasswordDeleteError:
            return False
        except KeyringError as e:
            logger.warning("Could not delete password from keyring: %s", e)
            return False
        return True

    def has(self, host: str, user: str) -> bool:
        return self.get(host, user) is not None

    def prompt_and_optionally_store(self, host: str, user: str) -> str | None:
        """Ask the operator for a password and offer to save it.

        Returns:
            The password, or None if the operator cancelled or entered nothing.
        """
        target = credential_key(host, user)
        try:
            password = click.prompt(
                f"Password for {target}",
                hide_input=True,
                default="",
                show_default=False,
            )
            if not password:
                return None
            if click.confirm("Save password in the system keyring?", default=True):
                self.set(host, user, password)
        except click.Abort:
            logger.info("Password prompt for %s cancelled", target)
            return None
        return password

    def get_or_prompt(self, host: str, user: str) -> str | None:
        """Stored password if there is one, else prompt."""
        password = self.get(host, user)
        if password is not None:
            return password
        return self.prompt_and_optionally_store(host, user)
