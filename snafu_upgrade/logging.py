# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Centralized logging configuration.

Usage:
    # In entry points
    from snafu_upgrade.logging import configure_logging
    configure_logging(verbose=args.verbose)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Patching file: %s", path)
"""

import logging


DEFAULT_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    verbose: bool = False,
    level: int | None = None,
    format_string: str | None = None,
) -> None:
    """Configure logging for the command line tool.

    Sets up the root logger with a single stderr handler. Verbose mode
    switches to DEBUG and a format that names the emitting module.

    Args:
        verbose: Enable debug output with module names and timestamps.
        level: Explicit logging level. Overrides the level implied by
            *verbose*.
        format_string: Custom format string. If None, chosen by *verbose*.
    """
    if level is None:
        level = logging.DEBUG if verbose else logging.INFO
    if format_string is None:
        format_string = VERBOSE_FORMAT if verbose else DEFAULT_FORMAT

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)
