"""Logging configuration for vaultlink.

Usage in other modules:
    import logging
    log = logging.getLogger(__name__)

The log level can be configured via the VAULTLINK_LOG_LEVEL environment variable:
    - DEBUG: Provider requests, cache hits, per-document batch progress
    - INFO: General operational messages (default)
    - WARNING: Malformed backend responses, provider failures that were contained
    - ERROR: Errors that prevented an operation
"""

import logging
import os
import sys

_PACKAGE_LOGGER = "vaultlink"


def configure_logging() -> None:
    """Configure logging for the vaultlink package.

    Call this once at application startup (the CLI does it).
    Subsequent calls are no-ops.
    """
    root_logger = logging.getLogger(_PACKAGE_LOGGER)

    if root_logger.handlers:
        return

    level_name = os.environ.get("VAULTLINK_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="[%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # Avoid duplicate messages through the root logger
    root_logger.propagate = False


def set_quiet_mode(quiet: bool) -> None:
    """Raise the package log level to ERROR when quiet, restore INFO otherwise.

    Applies to handlers installed by configure_logging() as well.
    """
    level = logging.ERROR if quiet else logging.INFO
    root_logger = logging.getLogger(_PACKAGE_LOGGER)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)

