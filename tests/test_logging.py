# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for snafu_upgrade/logging.py."""

import logging

from snafu_upgrade.logging import (
    DEFAULT_FORMAT,
    VERBOSE_FORMAT,
    configure_logging,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def teardown_method(self) -> None:
        """Reset logging after each test."""
        root = logging.getLogger()
        root.handlers.clear()
        root.setLevel(logging.WARNING)

    def test_default_level_and_format(self) -> None:
        """Non-verbose output is INFO with a short format."""
        configure_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        formatter = root.handlers[0].formatter
        assert formatter is not None
        assert formatter._fmt == DEFAULT_FORMAT

    def test_verbose(self) -> None:
        """Verbose output is DEBUG and names the module."""
        configure_logging(verbose=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        formatter = root.handlers[0].formatter
        assert formatter is not None
        assert formatter._fmt == VERBOSE_FORMAT

    def test_explicit_level_wins(self) -> None:
        """An explicit level overrides the verbose flag."""
        configure_logging(verbose=True, level=logging.WARNING)
        assert logging.getLogger().level == logging.WARNING

    def test_custom_format(self) -> None:
        """configure_logging should accept custom format string."""
        configure_logging(format_string="%(message)s")
        formatter = logging.getLogger().handlers[0].formatter
        assert formatter is not None
        assert formatter._fmt == "%(message)s"

    def test_removes_existing_handlers(self) -> None:
        """Calling configure_logging twice should not duplicate handlers."""
        configure_logging()
        configure_logging()
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)
