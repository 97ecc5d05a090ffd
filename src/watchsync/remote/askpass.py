"""Password hand-off to ssh when rsync spawns it.

ssh reads passwords from a terminal, not from its arguments. An askpass
helper script is written once; it echoes an environment variable, so the
password itself only travels in the child's environment and never shows
up on a command line or on disk.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "WATCHSYNC_PASSWORD"

_SCRIPT = f"""#!/bin/sh
printf '%s\\n' "${PASSWORD_ENV_VAR}"
"""


class AskpassHelper:
    """Owns the askpass script and builds the environment pointing at it."""

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory
        self._script: Path | None = None

    @property
    def script_path(self) -> Path | None:
        return self._script

    def ensure_script(self) -> Path:
        """Write the helper script if it does not exist yet."""
        if self._script is not None and self._script.exists():
            return self._script

        fd, name = tempfile.mkstemp(
            prefix="watchsync-askpass-",
            suffix=".sh",
            dir=str(self._directory) if self._directory else None,
        )
        with os.fdopen(fd, "w") as f:
            f.write(_SCRIPT)
        os.chmod(name, stat.S_IRWXU)
        self._script = Path(name)
        logger.debug("Created askpass helper %s", name)
        return self._script

    def environment(self, password: str) -> dict[str, str]:
        """Environment variables that make ssh use the helper."""
        script = self.ensure_script()
        return {
            "SSH_ASKPASS": str(script),
            "SSH_ASKPASS_REQUIRE": "force",
            "DISPLAY": os.environ.get("DISPLAY", ":0"),
            PASSWORD_ENV_VAR: password,
        }

    def cleanup(self) -> None:
        """Remove the helper script."""
        if self._script is None:
            return
        try:
            self._script.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove askpass helper %s: %s", self._script, e)
        self._script = None
