"""Logging setup for watchsync.

All modules log through ``logging.getLogger(__name__)``; this module
attaches handlers to the ``watchsync`` logger at process start and
removes them again at shutdown.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER_NAME = "watchsync"

_installed_handlers: list[logging.Handler] = []


def setup_logging(level: int = logging.INFO, log_path: Path | None = None) -> logging.Logger:
    """Configure the watchsync logger.

    Args:
        level: Minimum level to emit.
        log_path: Optional file to write logs to in addition to stderr.

    Returns:
        The configured ``watchsync`` logger.
    """
    teardown_logging()

    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)
    _installed_handlers.append(stream_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        _installed_handlers.append(file_handler)

    # Output is handled here; don't duplicate into the root logger
    root_logger.propagate = False

    # paramiko logs every transport negotiation at INFO
    logging.getLogger("paramiko").setLevel(logging.WARNING)
    return root_logger


def teardown_logging() -> None:
    """Remove and close handlers installed by setup_logging()."""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.propagate = True
