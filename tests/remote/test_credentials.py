"""Tests for keyring-backed password storage."""

from __future__ import annotations

from unittest.mock import patch

import click
import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from watchsync.remote.credentials import KEYRING_SERVICE, CredentialStore, credential_key

HOST = "prod.example.com"
USER = "deploy"


@pytest.fixture
def store() -> CredentialStore:
    return CredentialStore()


class TestCredentialKey:
    """Tests for credential_key()."""

    def test_format(self) -> None:
        """Should key passwords by user@host."""
        assert credential_key(HOST, USER) == "deploy@prod.example.com"


class TestCredentialStore:
    """Tests for keyring access."""

    def test_get(self, store: CredentialStore) -> None:
        """Should read from the watchsync service."""
        with patch("keyring.get_password", return_value="s3cret") as get:
            assert store.get(HOST, USER) == "s3cret"
        get.assert_called_once_with(KEYRING_SERVICE, "deploy@prod.example.com")

    def test_get_backend_failure(self, store: CredentialStore) -> None:
        """Should treat a broken keyring as no password."""
        with patch("keyring.get_password", side_effect=KeyringError("locked")):
            assert store.get(HOST, USER) is None

    def test_has(self, store: CredentialStore) -> None:
        """Should report whether a password is stored."""
        with patch("keyring.get_password", return_value=None):
            assert store.has(HOST, USER) is False
        with patch("keyring.get_password", return_value="x"):
            assert store.has(HOST, USER) is True

    def test_set(self, store: CredentialStore) -> None:
        """Should store and report success."""
        with patch("keyring.set_password") as set_password:
            assert store.set(HOST, USER, "s3cret") is True
        set_password.assert_called_once_with(KEYRING_SERVICE, "deploy@prod.example.com", "s3cret")

    def test_set_failure(self, store: CredentialStore) -> None:
        """Should report a rejected store."""
        with patch("keyring.set_password", side_effect=KeyringError("no backend")):
            assert store.set(HOST, USER, "s3cret") is False

    def test_delete(self, store: CredentialStore) -> None:
        """Should report whether something was deleted."""
        with patch("keyring.delete_password"):
            assert store.delete(HOST, USER) is True
        with patch("keyring.delete_password", side_effect=PasswordDeleteError("missing")):
            assert store.delete(HOST, USER) is False

    def test_custom_service(self) -> None:
        """Should use the configured service name."""
        with patch("keyring.get_password", return_value=None) as get:
            CredentialStore(service="other").get(HOST, USER)
        assert get.call_args.args[0] == "other"


class TestPrompt:
    """Tests for interactive password entry."""

    def test_prompt_and_store(self, store: CredentialStore) -> None:
        """Should prompt hidden and store when confirmed."""
        with patch("click.prompt", return_value="typed") as prompt, patch(
            "click.confirm", return_value=True
        ), patch("keyring.set_password") as set_password:
            assert store.prompt_and_optionally_store(HOST, USER) == "typed"

        assert prompt.call_args.kwargs["hide_input"] is True
        set_password.assert_called_once()

    def test_prompt_without_storing(self, store: CredentialStore) -> None:
        """Should return the password without storing when declined."""
        with patch("click.prompt", return_value="typed"), patch(
            "click.confirm", return_value=False
        ), patch("keyring.set_password") as set_password:
            assert store.prompt_and_optionally_store(HOST, USER) == "typed"
        set_password.assert_not_called()

    def test_empty_entry(self, store: CredentialStore) -> None:
        """Should treat an empty entry as cancellation."""
        with patch("click.prompt", return_value=""), patch("click.confirm") as confirm:
            assert store.prompt_and_optionally_store(HOST, USER) is None
        confirm.assert_not_called()

    def test_abort(self, store: CredentialStore) -> None:
        """Should return None when the prompt is aborted."""
        with patch("click.prompt", side_effect=click.Abort()):
            assert store.prompt_and_optionally_store(HOST, USER) is None

    def test_get_or_prompt_prefers_stored(self, store: CredentialStore) -> None:
        """Should not prompt when a password is stored."""
        with patch("keyring.get_password", return_value="saved"), patch("click.prompt") as prompt:
            assert store.get_or_prompt(HOST, USER) == "saved"
        prompt.assert_not_called()

    def test_get_or_prompt_falls_back(self, store: CredentialStore) -> None:
        """Should prompt when nothing is stored."""
        with patch("keyring.get_password", return_value=None), patch(
            "click.prompt", return_value="typed"
        ), patch("click.confirm", return_value=False):
            assert store.get_or_prompt(HOST, USER) == "typed"
